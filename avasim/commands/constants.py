"""
Constants and configuration values used across the avasim codebase.
"""

# API Endpoints
INFO_ENDPOINT = "/ext/info"
KEYSTORE_ENDPOINT = "/ext/keystore"
PLATFORM_ENDPOINT = "/ext/bc/P"
BLOCKCHAIN_ENDPOINT = "/ext/bc/{blockchain_id}"

# JSON-RPC method names
METHOD_IS_BOOTSTRAPPED = "info.isBootstrapped"
METHOD_PEERS = "info.peers"
METHOD_GET_NODE_ID = "info.getNodeID"
METHOD_CREATE_USER = "keystore.createUser"
METHOD_IMPORT_KEY = "platform.importKey"
METHOD_GET_BALANCE = "platform.getBalance"
METHOD_CREATE_SUBNET = "platform.createSubnet"
METHOD_GET_TX_STATUS = "platform.getTxStatus"
METHOD_ADD_SUBNET_VALIDATOR = "platform.addSubnetValidator"
METHOD_CREATE_BLOCKCHAIN = "platform.createBlockchain"
METHOD_GET_BLOCKCHAINS = "platform.getBlockchains"
METHOD_GET_BLOCKCHAIN_STATUS = "platform.getBlockchainStatus"

# Network layout
NUM_NODES = 5
BASE_HTTP_PORT = 9650
DEFAULT_HOST = "127.0.0.1"
DEFAULT_NETWORK_ID = "local"
DEFAULT_LOG_LEVEL = "info"

# Chains every node must finish bootstrapping before the network is ready
REQUIRED_CHAINS = ("P", "C", "X")

# Node binary discovery
NODE_BINARY_NAME = "avalanchego"
COMMON_BINARY_PATHS = [
    "/usr/local/bin/avalanchego",
    "/usr/bin/avalanchego",
    "~/bin/avalanchego",
    "./build/avalanchego",
    "./avalanchego",
]
DEFAULT_SYSTEM_PLUGIN_DIR = "system-plugins"

# Workspace layout
WORK_DIR_PREFIX = "avasim-"
PLUGINS_DIR_NAME = "plugins"
NODE_DIR_TEMPLATE = "node{number}"
CERT_DIR_TEMPLATE = "keys{number}"
STAKER_CERT_FILE = "staker.crt"
STAKER_KEY_FILE = "staker.key"
DB_DIR_NAME = "db"
LOGS_DIR_NAME = "logs"

# Staking certificates: keys{N}/staker.{crt,key} or the flat staker{N}.{crt,key}
# layout of the avalanchego source tree
FLAT_CERT_FILE_TEMPLATE = "staker{number}.crt"
FLAT_KEY_FILE_TEMPLATE = "staker{number}.key"
LOCAL_STAKING_SUBDIR = "staking/local"
COMMON_CERT_DIRS = [
    "./staking/local",
    "~/avalanchego/staking/local",
    "$GOPATH/src/github.com/ava-labs/avalanchego/staking/local",
    "~/go/src/github.com/ava-labs/avalanchego/staking/local",
]

# Node identity encoding
NODE_ID_PREFIX = "NodeID-"
CB58_CHECKSUM_LENGTH = 4

# Validators of the local network genesis, in staker order. The funded key
# and the whitelisted subnet below only exist on a network run by these five.
LOCAL_NETWORK_IDS = ("local", "12345")
LOCAL_GENESIS_NODE_IDS = (
    "NodeID-7Xhw2mDxuDS44j42TCB6U5579esbSt3Lg",
    "NodeID-MFrZFVCXPv5iCn6M9K6XduxGTYp891xXZ",
    "NodeID-NFBbbJ4qCmNaCzeW7sxErhvWqvEQMnYcN",
    "NodeID-GWPcbFJZFfZreETSoWjPimr846mXEKCtu",
    "NodeID-P7oB2McjBGgW2NXXWVYjV8JEDFoW9xDE5",
)

# Custom VM defaults (DO NOT CHANGE: the whitelisted subnet is the id of the
# first subnet created by the funded key on a fresh local network)
DEFAULT_VM_ID = "tGas3T58KzdjLHhBDMnH2TvrddhqTji5iZAMZ3RXs2NLpSnhH"
DEFAULT_VM_NAME = "kewl vm"
DEFAULT_WHITELISTED_SUBNETS = "p4jUwqZsA2LuSftroCd3zb4ytH8W99oXKuKVZdsty7eQ3rXD6"

# Keystore user and the well-known pre-funded key of local networks
DEFAULT_USERNAME = "test"
DEFAULT_PASSWORD = "vmsrkewl"
FUNDED_PRIVATE_KEY = "PrivateKey-ewoqjP7PxY4yr3iLTpLisriqt94hdyDFNgchSxGGztUrTXtNN"
SUBNET_CONTROL_THRESHOLD = 1

# Subnet validator enrollment
DEFAULT_VALIDATOR_WEIGHT = 30
VALIDATOR_START_OFFSET = 60  # seconds from now
VALIDATOR_END_OFFSET = 30 * 24 * 60 * 60  # seconds from now

# Platform status values (from API responses)
TX_STATUS_COMMITTED = "Committed"
TX_STATUS_DROPPED = "Dropped"
TX_STATUS_ABORTED = "Aborted"
BLOCKCHAIN_STATUS_VALIDATING = "Validating"

# Response field names
FIELD_IS_BOOTSTRAPPED = "isBootstrapped"
FIELD_NUM_PEERS = "numPeers"
FIELD_PEERS = "peers"
FIELD_NODE_ID = "nodeID"
FIELD_SUCCESS = "success"
FIELD_ADDRESS = "address"
FIELD_BALANCE = "balance"
FIELD_TX_ID = "txID"
FIELD_STATUS = "status"
FIELD_BLOCKCHAINS = "blockchains"
FIELD_ID = "id"
FIELD_SUBNET_ID = "subnetID"
FIELD_RESULT = "result"
FIELD_ERROR = "error"

# HTTP timeouts
HTTP_TIMEOUT = 10.0  # seconds per request
HTTP_CONNECT_TIMEOUT = 5.0  # seconds

# Polling intervals
BOOTSTRAP_POLL_INTERVAL = 2.0  # seconds between readiness checks
TX_POLL_INTERVAL = 1.0  # seconds between transaction status checks
ACTIVATION_POLL_INTERVAL = 15.0  # seconds between blockchain status checks

# Process management timeouts
PROCESS_WAIT_TIMEOUT = 5  # seconds before a stopped node is killed
SHUTDOWN_GRACE = 5.0  # seconds tasks get to observe cancellation

# Bounded retry configuration (used outside of poll loops)
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0  # seconds
DEFAULT_RETRY_BACKOFF = 2.0  # exponential backoff multiplier

# Exit codes
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

# Error messages
ERROR_FILE_NOT_FOUND = "File not found: {path}"
ERROR_NODE_EXITED = "Node {node} exited unexpectedly with code {code}"
