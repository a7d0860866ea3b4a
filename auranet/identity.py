"""
Identity management for the Aura test network harness.
Master of Ceremony key generation & cache recovery.
"""
import json
import typing as t
from dataclasses import dataclass, field

from eth_account import Account
from web3 import Web3

from .cache import ArtifactCache, ArtifactKind, CacheKey
from .errors import CorruptCacheError


@dataclass(frozen=True)
class SigningIdentity:
    """
    The key pair that seals genesis and signs bootstrap transactions.
    """
    address: str  # checksummed
    private_key: bytes = field(repr=False)
    keystore_json: str = field(repr=False)

    @property
    def private_key_hex(self) -> str:
        """Raw key as plain hex, without a 0x prefix."""
        return self.private_key.hex()


class IdentityProvider:
    """
    Produces the Master of Ceremony once per cache prefix and recovers it
    on every later run.
    """

    def __init__(
        self,
        cache: ArtifactCache,
        key: CacheKey,
        kdf: t.Optional[str] = None,
        iterations: t.Optional[int] = None,
    ) -> None:
        self.cache = cache
        self.key = key
        # None keeps eth_account's defaults (scrypt)
        self.kdf = kdf
        self.iterations = iterations

    def has(self) -> bool:
        """True iff both the keystore and the raw key file are cached."""
        return (
            self.cache.exists(ArtifactKind.KEYSTORE, self.key)
            and self.cache.exists(ArtifactKind.PRIVATE_KEY, self.key)
        )

    def obtain(self) -> SigningIdentity:
        if self.has():
            identity = self._recover()
            print(f"[Identity] Using cached master of ceremony {identity.address}")
            return identity
        identity = self._generate()
        print(f"[Identity] Generated master of ceremony {identity.address}")
        return identity

    def _generate(self) -> SigningIdentity:
        account = Account.create()
        private_key = bytes(account.key)
        # Keystore password is the raw key hex, so the node can unlock it unattended
        keystore = Account.encrypt(
            private_key, private_key.hex(), kdf=self.kdf, iterations=self.iterations
        )
        keystore_json = json.dumps(keystore)

        self.cache.write(ArtifactKind.KEYSTORE, self.key, keystore_json.encode("utf-8"))
        self.cache.write(ArtifactKind.PRIVATE_KEY, self.key, private_key.hex().encode("ascii"))
        return SigningIdentity(account.address, private_key, keystore_json)

    def _recover(self) -> SigningIdentity:
        keystore_raw = self.cache.read(ArtifactKind.KEYSTORE, self.key)
        key_raw = self.cache.read(ArtifactKind.PRIVATE_KEY, self.key)

        try:
            key_hex = key_raw.decode("ascii").strip()
            if key_hex.startswith(("0x", "0X")):
                key_hex = key_hex[2:]
            private_key = bytes.fromhex(key_hex)
            if len(private_key) != 32:
                raise ValueError(f"expected 32 bytes, got {len(private_key)}")
            account = Account.from_key(private_key)
        except ValueError as exc:
            raise CorruptCacheError(f"Cached master of ceremony private key is invalid: {exc}") from exc

        try:
            keystore_json = keystore_raw.decode("utf-8")
            keystore = json.loads(keystore_json)
            stored = keystore["address"]
            if not stored.startswith(("0x", "0X")):
                stored = f"0x{stored}"
            stored_address = Web3.to_checksum_address(stored)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise CorruptCacheError(f"Cached master of ceremony keystore is invalid: {exc}") from exc

        if stored_address != account.address:
            raise CorruptCacheError(
                f"Cached keystore address {stored_address} does not match "
                f"the cached private key ({account.address})"
            )
        return SigningIdentity(account.address, private_key, keystore_json)
