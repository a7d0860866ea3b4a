"""
Configuration module for the Aura test network harness.
Single source of truth for paths, ports & genesis constants.
"""
import os
import typing as t

# Filesystem layout
CACHED_CHAINSPEC_PATH: str = "./.spec"
PARENT_PID_PATH: str = "./.pid"
TMP_WORKDIR_PATH: str = "./.tmp"
TMP_CHAINSPEC_NAME: str = "spec.json"
TMP_CHAINSPEC_ABI_NAME: str = "spec.abi.json"
NODE_LOG_DIR: str = "logs"

# Node process
NODE_COMMAND: t.List[str] = ["bash", "-c", "./start-node.sh"]
NODE_LOGGING: str = "debug"
LAUNCH_TIMEOUT: float = 30.0  # seconds to wait for the OS to hand back a pid

# JSON-RPC
NETWORK_ID: str = "arbitraryidentifier"
RPC_HOST: str = "localhost"
RPC_BASE_PORT: int = 8050
READINESS_TIMEOUT: float = 120.0  # seconds
READINESS_INITIAL_DELAY: float = 0.25
READINESS_MAX_DELAY: float = 5.0
READINESS_PROBE_TIMEOUT: float = 2.0

# Chainspec builder service
BUILDER_URL: str = os.environ.get("CHAINSPEC_BUILDER_URL", "http://localhost:8000")
BUILDER_TIMEOUT: float = 600.0  # compiling contracts from source is slow

# Treat an existing working/cache directory as an error
STRICT_DIRECTORIES: bool = False

# Extra non-signing peers started by the runnable scenario
EXTRA_NODES: int = 0

# Genesis contract accounts
ABSTRACT_STORAGE_GENESIS_ADDRESS: str = "0x0000000000000000000000000000000000000009"
REGISTRY_IDX_GENESIS_ADDRESS: str = "0x0000000000000000000000000000000000000010"
PROVIDER_GENESIS_ADDRESS: str = "0x0000000000000000000000000000000000000011"
AURA_GENESIS_ADDRESS: str = "0x0000000000000000000000000000000000000012"
VALIDATOR_CONSOLE_GENESIS_ADDRESS: str = "0x0000000000000000000000000000000000000013"
VOTING_CONSOLE_GENESIS_ADDRESS: str = "0x0000000000000000000000000000000000000014"
INIT_BRIDGES_GENESIS_ADDRESS: str = "0x0000000000000000000000000000000000000015"
BRIDGES_CONSOLE_GENESIS_ADDRESS: str = "0x0000000000000000000000000000000000000016"
ORACLES_CONSOLE_GENESIS_ADDRESS: str = "0x0000000000000000000000000000000000000017"
NETWORK_CONSENSUS_GENESIS_ADDRESS: str = "0x0000000000000000000000000000000000000018"

GENESIS_CONTRACT_ACCOUNTS: t.Dict[str, str] = {
    "AbstractStorage": ABSTRACT_STORAGE_GENESIS_ADDRESS,
    "RegistryIdx": REGISTRY_IDX_GENESIS_ADDRESS,
    "Provider": PROVIDER_GENESIS_ADDRESS,
    "Aura": AURA_GENESIS_ADDRESS,
    "ValidatorConsole": VALIDATOR_CONSOLE_GENESIS_ADDRESS,
    "VotingConsole": VOTING_CONSOLE_GENESIS_ADDRESS,
    "InitBridges": INIT_BRIDGES_GENESIS_ADDRESS,
    "BridgesConsole": BRIDGES_CONSOLE_GENESIS_ADDRESS,
    "OraclesConsole": ORACLES_CONSOLE_GENESIS_ADDRESS,
    "NetworkConsensus": NETWORK_CONSENSUS_GENESIS_ADDRESS,
}


def get_revision_refs() -> t.Tuple[str, str]:
    """
    Read the two upstream revisions the genesis chainspec is built from.

    Returns:
        (os_ref, consensus_ref) taken from OS_REF and NETWORK_CONSENSUS_REF.
    """
    return os.environ.get("OS_REF", ""), os.environ.get("NETWORK_CONSENSUS_REF", "")


def get_rpc_url(port: int, host: str = RPC_HOST) -> str:
    return f"http://{host}:{port}"
