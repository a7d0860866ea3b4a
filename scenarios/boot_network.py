"""
Boot scenario for the Aura test network harness.
Brings up the genesis node (plus optional peers) and keeps it running.
"""
import signal
import sys
import time

from config import EXTRA_NODES, GENESIS_CONTRACT_ACCOUNTS, NETWORK_CONSENSUS_GENESIS_ADDRESS
from auranet.bootstrap import NetworkBootstrap
from auranet.errors import ArtifactNotFoundError, BootstrapError
from auranet.network import ConnectionManager


def _terminate(signum, frame):
    # Turn SIGTERM into SystemExit so teardown in `finally` still runs
    sys.exit(128 + signum)


def run(extra_nodes: int = EXTRA_NODES) -> int:
    print("=== Aura Test Network Bootstrap ===")
    signal.signal(signal.SIGTERM, _terminate)

    network = NetworkBootstrap()
    try:
        # 1. Genesis node
        print("\n1. Booting genesis node...")
        try:
            result = network.bootstrap()
        except BootstrapError as e:
            print(f"[System] Bootstrap failed: {e}")
            return 1
        print(f"   JSON-RPC:          {result.rpc_url}")
        print(f"   Chain id:          {result.chain_id}")
        print(f"   Master of ceremony: {result.identity.address if result.identity else '-'}")

        # 2. Genesis contents
        accounts = result.chainspec.get("accounts", {})
        missing = [name for name, addr in GENESIS_CONTRACT_ACCOUNTS.items() if addr not in accounts]
        print(f"\n2. Chainspec holds {len(accounts)} genesis accounts")
        if missing:
            print(f"   Warning: no genesis account for {', '.join(missing)}")
        try:
            abi = network.contract_abi(NETWORK_CONSENSUS_GENESIS_ADDRESS)
            print(f"   NetworkConsensus ABI: {len(abi)} entries")
        except ArtifactNotFoundError:
            print("   NetworkConsensus ABI not cached")

        # 3. Extra peers
        for i in range(extra_nodes):
            print(f"\n3.{i + 1} Adding peer node...")
            node, chain_id = network.add_node()
            print(f"   {node.rpc_url} ready (chain id {chain_id})")

        w3 = ConnectionManager().get_web3(result.rpc_url)
        print(f"\nNetwork running at block {w3.eth.block_number}. Press Ctrl+C to stop.")
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nInterrupted.")
    finally:
        print("Stopping network...")
        network.teardown()
    return 0
