"""
Chainspec builder client for the Aura test network harness.
Asks the external builder service to compile the genesis chainspec.
"""
import json
import typing as t

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import BUILDER_TIMEOUT, BUILDER_URL
from .errors import BuildError


class ChainspecBuilder:
    """
    Compiles the auth_os and network consensus contracts at the given
    revisions into a genesis chainspec plus its ABI companion.

    The service answers ``POST {base_url}/chainspecs`` with
    ``{"chainspec": ..., "abi": ...}``; either value may be a JSON
    document or an already-serialized string.
    """

    def __init__(
        self,
        base_url: str = BUILDER_URL,
        timeout: float = BUILDER_TIMEOUT,
        session: t.Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        adapter = HTTPAdapter(
            max_retries=Retry(
                total=3,
                backoff_factor=1.0,
                status_forcelist=[502, 503, 504],
                allowed_methods=None,
            )
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def build(
        self,
        os_ref: str,
        consensus_ref: str,
        master_of_ceremony: str,
        genesis_contract_accounts: t.Dict[str, str],
    ) -> t.Tuple[bytes, bytes]:
        """
        Returns:
            (chainspec bytes, ABI bytes)

        Raises:
            BuildError: transport failure, non-2xx answer or malformed body.
        """
        payload = {
            "os_ref": os_ref,
            "consensus_ref": consensus_ref,
            "master_of_ceremony": master_of_ceremony,
            "genesis_contract_accounts": genesis_contract_accounts,
        }
        url = f"{self.base_url}/chainspecs"
        try:
            resp = self._session.post(url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.exceptions.RequestException as exc:
            raise BuildError(f"Chainspec build at {url} failed: {exc}") from exc
        except ValueError as exc:
            raise BuildError(f"Chainspec builder returned invalid JSON: {exc}") from exc

        if not isinstance(body, dict) or "chainspec" not in body:
            raise BuildError("Chainspec builder response has no chainspec")
        return self._as_bytes(body["chainspec"]), self._as_bytes(body.get("abi") or {})

    @staticmethod
    def _as_bytes(value: t.Any) -> bytes:
        if isinstance(value, str):
            return value.encode("utf-8")
        return json.dumps(value).encode("utf-8")
