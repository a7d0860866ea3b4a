import json
import typing as t

import pytest

from auranet.cache import ArtifactCache, CacheKey
from auranet.identity import IdentityProvider
from auranet.network import NodeLauncher
from auranet.reaper import ParentPidRecord

SLEEPER = ["sleep", "60"]


class FakeBuilder:
    """Stands in for the chainspec builder service and records its calls."""

    def __init__(self, abi: t.Optional[t.Dict[str, t.Any]] = None) -> None:
        self.calls: t.List[t.Tuple[str, str, str, t.Dict[str, str]]] = []
        self.abi = abi if abi is not None else {"0x0000000000000000000000000000000000000018": []}

    def build(self, os_ref, consensus_ref, master_of_ceremony, genesis_contract_accounts):
        self.calls.append((os_ref, consensus_ref, master_of_ceremony, dict(genesis_contract_accounts)))
        accounts = {master_of_ceremony: {"balance": "1"}}
        for addr in genesis_contract_accounts.values():
            accounts[addr] = {"constructor": "0x6080"}
        spec = {"name": f"{os_ref}+{consensus_ref}", "accounts": accounts}
        return json.dumps(spec).encode("utf-8"), json.dumps(self.abi).encode("utf-8")


class FakeProbe:
    """Liveness probe that answers after a fixed number of misses."""

    def __init__(self, chain_id: t.Optional[int] = 1337, misses: int = 0) -> None:
        self.chain_id = chain_id
        self.misses = misses
        self.urls: t.List[str] = []

    def __call__(self, rpc_url: str) -> t.Optional[int]:
        self.urls.append(rpc_url)
        if len(self.urls) <= self.misses:
            return None
        return self.chain_id


@pytest.fixture
def key() -> CacheKey:
    return CacheKey("osA", "consA")


@pytest.fixture
def cache(tmp_path) -> ArtifactCache:
    return ArtifactCache(tmp_path / ".spec")


@pytest.fixture
def identities(cache, key) -> IdentityProvider:
    # pbkdf2 with few rounds keeps keystore generation fast
    return IdentityProvider(cache, key, kdf="pbkdf2", iterations=2)


@pytest.fixture
def pid_record(tmp_path) -> ParentPidRecord:
    return ParentPidRecord(tmp_path / ".pid")


@pytest.fixture
def make_launcher(tmp_path, pid_record):
    launchers: t.List[NodeLauncher] = []

    def factory(command=SLEEPER, **kwargs) -> NodeLauncher:
        kwargs.setdefault("log_dir", tmp_path / "logs")
        kwargs.setdefault("launch_timeout", 10)
        launcher = NodeLauncher(command, pid_record=pid_record, **kwargs)
        launchers.append(launcher)
        return launcher

    yield factory
    for launcher in launchers:
        launcher.teardown()
