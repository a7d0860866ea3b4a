import json

import pytest
import requests

from auranet.builder import ChainspecBuilder
from auranet.errors import BuildError


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self._text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._text is not None:
            return json.loads(self._text)
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def post(self, url, json=None, timeout=None):
        self.requests.append((url, json, timeout))
        if self.error is not None:
            raise self.error
        return self.response


ACCOUNTS = {"NetworkConsensus": "0x0000000000000000000000000000000000000018"}


def test_build_posts_refs_and_returns_bytes():
    spec = {"name": "aura", "accounts": {}}
    abi = {"0x0000000000000000000000000000000000000018": []}
    session = FakeSession(FakeResponse(body={"chainspec": spec, "abi": abi}))
    builder = ChainspecBuilder("http://builder:8000/", timeout=5, session=session)

    spec_bytes, abi_bytes = builder.build("osA", "consA", "0xabc", ACCOUNTS)

    assert json.loads(spec_bytes) == spec
    assert json.loads(abi_bytes) == abi
    url, payload, timeout = session.requests[0]
    assert url == "http://builder:8000/chainspecs"
    assert payload == {
        "os_ref": "osA",
        "consensus_ref": "consA",
        "master_of_ceremony": "0xabc",
        "genesis_contract_accounts": ACCOUNTS,
    }
    assert timeout == 5


def test_serialized_documents_pass_through():
    session = FakeSession(FakeResponse(body={"chainspec": '{"name":"aura"}', "abi": "{}"}))
    spec_bytes, abi_bytes = ChainspecBuilder(session=session).build("a", "b", "0xabc", ACCOUNTS)
    assert spec_bytes == b'{"name":"aura"}'
    assert abi_bytes == b"{}"


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(error=requests.exceptions.ConnectionError("refused")),
        FakeSession(FakeResponse(status_code=500, body={})),
        FakeSession(FakeResponse(text="<html>")),
        FakeSession(FakeResponse(body={"abi": {}})),
    ],
)
def test_failures_become_build_errors(session):
    with pytest.raises(BuildError):
        ChainspecBuilder(session=session).build("a", "b", "0xabc", ACCOUNTS)
