"""Pytest configuration and shared fakes for avasim tests."""

import itertools
from pathlib import Path
from typing import Optional

import pytest

from avasim.commands.config import RunSettings
from avasim.commands.constants import BASE_HTTP_PORT, LOCAL_GENESIS_NODE_IDS
from avasim.commands.errors import RemoteRejectionError
from avasim.commands.identity import IdentityPool, NodeIdentity

FUNDED_ADDRESS = "P-local18jma8ppw3nhx5r4ap8clazz0dps7rv5u00z96u"
BLOCKCHAIN_ID = "2cWR2b3mMe5yhdUJVVRgSS3RvC9gKrFxAQERk5NmmAkB2HKW1V"


class FakeNodeClient:
    """In-memory stand-in for NodeClient that records every call by RPC method name."""

    def __init__(
        self,
        uri: str = "http://127.0.0.1:9650",
        *,
        bootstrap_polls: int = 0,
        peers: int = 4,
        tx_status: str = "Committed",
        blockchain_status: str = "Validating",
        reject: Optional[set] = None,
        balance: int = 30000000000000000,
        node_id: Optional[str] = None,
    ):
        self.uri = uri
        if node_id is None:
            # node{N} listens on BASE_HTTP_PORT + 2 * (N - 1)
            index = (int(uri.rsplit(":", 1)[1]) - BASE_HTTP_PORT) // 2
            node_id = LOCAL_GENESIS_NODE_IDS[index]
        self.node_id = node_id
        self.bootstrap_polls = bootstrap_polls
        self.peer_count = peers
        self.tx_status = tx_status
        self.blockchain_status = blockchain_status
        self.reject = set(reject or ())
        self.balance = balance
        self.calls: list[str] = []
        self.validators: list[str] = []
        self.closed = False
        self._bootstrap_seen: dict[str, int] = {}
        self._tx_ids = itertools.count(1)
        self.subnet_tx_id = "2bRCr6B4MiEfSjidDwxDpdCyviwnfUVqB2HGwhm947w9YYqb7r"
        self.funded_address = FUNDED_ADDRESS
        self.blockchain_id = BLOCKCHAIN_ID

    def _record(self, method: str) -> None:
        self.calls.append(method)
        if method in self.reject:
            raise RemoteRejectionError(f"{method}: rejected", method=method)

    async def is_bootstrapped(self, chain: str) -> bool:
        self._record("info.isBootstrapped")
        seen = self._bootstrap_seen.get(chain, 0)
        self._bootstrap_seen[chain] = seen + 1
        return seen >= self.bootstrap_polls

    async def peers(self) -> int:
        self._record("info.peers")
        return self.peer_count

    async def get_node_id(self) -> str:
        self._record("info.getNodeID")
        return self.node_id

    async def create_user(self, username, password) -> bool:
        self._record("keystore.createUser")
        return True

    async def import_key(self, username, password, private_key) -> str:
        self._record("platform.importKey")
        return self.funded_address

    async def get_balance(self, address) -> int:
        self._record("platform.getBalance")
        return self.balance

    async def create_subnet(self, username, password, address, threshold=1) -> str:
        self._record("platform.createSubnet")
        return self.subnet_tx_id

    async def get_tx_status(self, tx_id) -> str:
        self._record("platform.getTxStatus")
        return self.tx_status

    async def add_subnet_validator(
        self, username, password, address, subnet_id, node_id, weight, start_time, end_time
    ) -> str:
        self._record("platform.addSubnetValidator")
        self.validators.append(node_id)
        return f"validator-tx-{next(self._tx_ids)}"

    async def create_blockchain(
        self, username, password, address, subnet_id, vm_id, name, genesis
    ) -> str:
        self._record("platform.createBlockchain")
        return "blockchain-tx"

    async def get_blockchains(self) -> list[dict]:
        self._record("platform.getBlockchains")
        return [
            {"id": "X-chain-id", "subnetID": "11111111111111111111111111111111LpoYY"},
            {"id": self.blockchain_id, "subnetID": self.subnet_tx_id},
        ]

    async def get_blockchain_status(self, blockchain_id) -> str:
        self._record("platform.getBlockchainStatus")
        return self.blockchain_status

    async def close(self) -> None:
        self.closed = True


def make_identity(index: int) -> NodeIdentity:
    return NodeIdentity(
        index=index,
        node_id=LOCAL_GENESIS_NODE_IDS[index],
        cert_bytes=f"cert-{index + 1}".encode(),
        key_bytes=f"key-{index + 1}".encode(),
    )


@pytest.fixture
def fake_pool():
    """The five local genesis identities, without certificate parsing."""
    return IdentityPool([make_identity(i) for i in range(5)])


@pytest.fixture
def cert_dir():
    """keys1..keys5 of freshly generated certificates; none is a genesis validator."""
    return Path(__file__).parent / "certs"


@pytest.fixture
def fast_settings(tmp_path):
    """Run settings with short poll intervals and a private work dir."""
    return RunSettings(
        work_dir=str(tmp_path / "work"),
        plugin_dir=None,
        bootstrap_poll_interval=0.01,
        tx_poll_interval=0.01,
        activation_poll_interval=0.01,
    )


@pytest.fixture
def vm_files(tmp_path):
    """A dummy VM binary and genesis file."""
    vm_path = tmp_path / "myvm"
    vm_path.write_bytes(b"#!/bin/sh\nexit 0\n")
    genesis_path = tmp_path / "genesis.json"
    genesis_path.write_text('{"alloc": {}}')
    return str(vm_path), str(genesis_path)


@pytest.fixture
def node_client_class():
    return FakeNodeClient
