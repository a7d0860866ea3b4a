"""
Artifact cache for the Aura test network harness.
Content-addressed storage of chainspecs & master of ceremony keys.
"""
import json
import os
import tempfile
import typing as t
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import quote

from config import CACHED_CHAINSPEC_PATH, get_revision_refs
from .errors import ArtifactIOError, ArtifactNotFoundError, CorruptCacheError


class ArtifactKind(Enum):
    """File suffix appended to the cache prefix for each artifact."""
    CHAINSPEC = ".json"
    CHAINSPEC_ABI = ".abi.json"
    KEYSTORE = "-master-of-ceremony-key.json"
    PRIVATE_KEY = "-master-of-ceremony.key"


@dataclass(frozen=True)
class CacheKey:
    """
    Pair of upstream revisions identifying one reusable artifact set.
    """
    os_ref: str
    consensus_ref: str

    @property
    def prefix(self) -> str:
        """
        Path fragment for this key, e.g. ``osA+consA``.

        Each ref is percent-encoded (``/`` and ``+`` included) so two
        different keys can never map to the same file.
        """
        return f"{quote(self.os_ref, safe='')}+{quote(self.consensus_ref, safe='')}"

    @classmethod
    def from_env(cls) -> "CacheKey":
        os_ref, consensus_ref = get_revision_refs()
        return cls(os_ref, consensus_ref)


class ArtifactCache:
    """
    Reads and writes build artifacts under a single cache root.

    No locking: one writer per key per machine is assumed.
    """

    def __init__(self, root: t.Union[str, Path] = CACHED_CHAINSPEC_PATH) -> None:
        self.root = Path(root)

    def path_for(self, kind: ArtifactKind, key: CacheKey) -> Path:
        return self.root / f"{key.prefix}{kind.value}"

    def exists(self, kind: ArtifactKind, key: CacheKey) -> bool:
        return self.path_for(kind, key).is_file()

    def read(self, kind: ArtifactKind, key: CacheKey) -> bytes:
        """
        Return the raw bytes of a cached artifact.

        Raises:
            ArtifactNotFoundError: nothing cached for this kind/key.
            ArtifactIOError: the file exists but could not be read.
        """
        path = self.path_for(kind, key)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise ArtifactNotFoundError(f"No cached {kind.name.lower()} at {path}") from exc
        except OSError as exc:
            raise ArtifactIOError(f"Failed to read {path}: {exc}") from exc

    def write(self, kind: ArtifactKind, key: CacheKey, data: bytes) -> Path:
        """
        Persist an artifact, creating parent directories as needed.

        The bytes land in a sibling temp file first and are renamed into
        place, so readers never observe a truncated entry.
        """
        path = self.path_for(kind, key)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=path.parent, prefix=f".{path.name}.", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise ArtifactIOError(f"Failed to write {path}: {exc}") from exc
        return path

    def read_contract_abi(self, key: CacheKey, address: str) -> t.List[t.Dict[str, t.Any]]:
        """
        Look up the interface definition of one genesis contract.

        Args:
            key: Cache key the chainspec was built for.
            address: Genesis address of the contract (e.g. the network
                consensus contract).

        Returns:
            ABI list suitable for ``web3.eth.contract(abi=...)``.
        """
        raw = self.read(ArtifactKind.CHAINSPEC_ABI, key)
        try:
            document = json.loads(raw)
        except ValueError as exc:
            raise CorruptCacheError(f"Cached chainspec ABI is not valid JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise CorruptCacheError("Cached chainspec ABI is not a JSON object")

        # Builders are not consistent about address casing
        wanted = address.lower()
        for addr, abi in document.items():
            if addr.lower() == wanted:
                if isinstance(abi, str):
                    try:
                        abi = json.loads(abi)
                    except ValueError as exc:
                        raise CorruptCacheError(f"ABI for {address} is not valid JSON") from exc
                return abi
        raise ArtifactNotFoundError(f"No ABI cached for contract {address}")
