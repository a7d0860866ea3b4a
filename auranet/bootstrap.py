"""
Bootstrap orchestration for the Aura test network harness.
Reap orphans, resolve the chainspec, launch the genesis node, wait for it.
"""
import json
import typing as t
from dataclasses import dataclass
from pathlib import Path

from config import (
    GENESIS_CONTRACT_ACCOUNTS,
    NETWORK_CONSENSUS_GENESIS_ADDRESS,
    READINESS_PROBE_TIMEOUT,
    STRICT_DIRECTORIES,
    TMP_CHAINSPEC_ABI_NAME,
    TMP_CHAINSPEC_NAME,
    TMP_WORKDIR_PATH,
)
from .builder import ChainspecBuilder
from .cache import ArtifactCache, ArtifactKind, CacheKey
from .errors import ArtifactIOError, ArtifactNotFoundError, CorruptCacheError
from .identity import IdentityProvider, SigningIdentity
from .network import ConnectionManager, ManagedProcess, NodeLauncher
from .readiness import ReadinessGate
from .reaper import ParentPidRecord, reap_orphans


class Builder(t.Protocol):
    def build(
        self,
        os_ref: str,
        consensus_ref: str,
        master_of_ceremony: str,
        genesis_contract_accounts: t.Dict[str, str],
    ) -> t.Tuple[bytes, bytes]:
        ...


@dataclass
class BootstrapResult:
    rpc_url: str
    chainspec: t.Dict[str, t.Any]
    chain_id: int
    identity: t.Optional[SigningIdentity]
    node: ManagedProcess


class NetworkBootstrap:
    """
    Boots the network under test and owns every node it started.

    Usage:
        with NetworkBootstrap() as network:
            result = network.bootstrap()
            # ... run assertions against result.rpc_url ...
        # all node process groups are killed here

    Every step fails fast; on any failure the nodes started so far are
    torn down before the error propagates.
    """

    def __init__(
        self,
        key: t.Optional[CacheKey] = None,
        cache: t.Optional[ArtifactCache] = None,
        builder: t.Optional[Builder] = None,
        launcher: t.Optional[NodeLauncher] = None,
        gate: t.Optional[ReadinessGate] = None,
        pid_record: t.Optional[ParentPidRecord] = None,
        workdir: t.Union[str, Path] = TMP_WORKDIR_PATH,
        strict_directories: bool = STRICT_DIRECTORIES,
        genesis_contract_accounts: t.Optional[t.Dict[str, str]] = None,
        use_signer: bool = True,
        identities: t.Optional[IdentityProvider] = None,
    ) -> None:
        self.key = key or CacheKey.from_env()
        self.cache = cache or ArtifactCache()
        self.builder = builder or ChainspecBuilder()
        self.pid_record = pid_record or ParentPidRecord()
        self.launcher = launcher or NodeLauncher(pid_record=self.pid_record)
        self.gate = gate or ReadinessGate(
            ConnectionManager(retry_total=0, request_timeout=READINESS_PROBE_TIMEOUT).chain_id
        )
        self.identities = identities or IdentityProvider(self.cache, self.key)
        self.workdir = Path(workdir)
        self.strict_directories = strict_directories
        self.genesis_contract_accounts = dict(
            GENESIS_CONTRACT_ACCOUNTS if genesis_contract_accounts is None else genesis_contract_accounts
        )
        self.use_signer = use_signer

    @property
    def chainspec_path(self) -> Path:
        return self.workdir / TMP_CHAINSPEC_NAME

    @property
    def chainspec_abi_path(self) -> Path:
        return self.workdir / TMP_CHAINSPEC_ABI_NAME

    def bootstrap(self) -> BootstrapResult:
        """
        Returns the JSON-RPC url of the genesis node and the parsed
        chainspec, which can be used for asserting a valid deployment.
        """
        try:
            return self._bootstrap()
        except BaseException:
            self.teardown()
            raise

    def _bootstrap(self) -> BootstrapResult:
        # A reused instance must not leave its own nodes for the reaper
        self.teardown()
        reap_orphans(self.pid_record)
        self.prepare_directories()
        # The builder seals genesis for the signer, so the identity comes first
        identity = self.identities.obtain() if self.use_signer else None
        spec, abi = self.obtain_chainspec(identity)
        chainspec = self.parse_chainspec(spec)
        self.write_working_copy(spec, abi)
        node, chain_id = self.deploy_node(identity)
        return BootstrapResult(node.rpc_url, chainspec, chain_id, identity, node)

    def prepare_directories(self) -> None:
        for path in (self.workdir, self.cache.root):
            try:
                path.mkdir(parents=True, exist_ok=not self.strict_directories)
            except FileExistsError as exc:
                raise ArtifactIOError(f"Directory {path} already exists") from exc
            except OSError as exc:
                raise ArtifactIOError(f"Failed to create {path}: {exc}") from exc

    def obtain_chainspec(self, identity: t.Optional[SigningIdentity]) -> t.Tuple[bytes, t.Optional[bytes]]:
        """
        Reuse the cached chainspec when present, otherwise build and cache it.
        Removing the cache entry forces a rebuild on the next run.
        """
        try:
            spec = self.cache.read(ArtifactKind.CHAINSPEC, self.key)
        except ArtifactNotFoundError:
            return self._build_chainspec(identity)

        print("[Bootstrap] Using cached chainspec from previous run")
        try:
            abi = self.cache.read(ArtifactKind.CHAINSPEC_ABI, self.key)
        except ArtifactNotFoundError:
            print("[Bootstrap] No cached chainspec ABI from previous run")
            abi = None
        return spec, abi

    def _build_chainspec(self, identity: t.Optional[SigningIdentity]) -> t.Tuple[bytes, bytes]:
        print(
            f"[Bootstrap] Compiling auth_os and network consensus contracts from source "
            f"(using revisions {self.key.os_ref} and {self.key.consensus_ref}, respectively)"
        )
        signer = identity.address if identity is not None else ""
        spec, abi = self.builder.build(
            self.key.os_ref, self.key.consensus_ref, signer, self.genesis_contract_accounts
        )
        self.cache.write(ArtifactKind.CHAINSPEC, self.key, spec)
        self.cache.write(ArtifactKind.CHAINSPEC_ABI, self.key, abi)
        return spec, abi

    @staticmethod
    def parse_chainspec(spec: bytes) -> t.Dict[str, t.Any]:
        try:
            parsed = json.loads(spec)
        except ValueError as exc:
            raise CorruptCacheError(f"Chainspec is not valid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise CorruptCacheError("Chainspec is not a JSON object")
        return parsed

    def write_working_copy(self, spec: bytes, abi: t.Optional[bytes]) -> None:
        """The node reads this copy, never the cache entry."""
        try:
            self.chainspec_path.write_bytes(spec)
            if abi is not None:
                self.chainspec_abi_path.write_bytes(abi)
            elif self.chainspec_abi_path.exists():
                self.chainspec_abi_path.unlink()
        except OSError as exc:
            raise ArtifactIOError(f"Failed to write working chainspec: {exc}") from exc

    def deploy_node(self, identity: t.Optional[SigningIdentity] = None) -> t.Tuple[ManagedProcess, int]:
        node = self.launcher.launch(identity)
        chain_id = self.gate.await_ready(node.rpc_url, process=node)
        return node, chain_id

    def add_node(self, identity: t.Optional[SigningIdentity] = None) -> t.Tuple[ManagedProcess, int]:
        """
        Grow the running network by one node on the next free port.
        Must follow a successful bootstrap(); failures tear everything down.
        """
        try:
            return self.deploy_node(identity)
        except BaseException:
            self.teardown()
            raise

    def contract_abi(self, address: str = NETWORK_CONSENSUS_GENESIS_ADDRESS) -> t.List[t.Dict[str, t.Any]]:
        """ABI of a genesis contract; the network consensus contract by default."""
        return self.cache.read_contract_abi(self.key, address)

    def teardown(self) -> None:
        self.launcher.teardown()

    def __enter__(self) -> "NetworkBootstrap":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()
