"""
NodeClient - JSON-RPC 2.0 client for the node's info, keystore and platform APIs.

One client talks to one node and owns a single aiohttp.ClientSession that is
created lazily and reused for every request until close() is called.

Error mapping:
- Connection failures, timeouts and non-JSON responses raise
  TransientNetworkError; poll loops treat them as "not ready yet".
- A JSON-RPC ``error`` member, or a result missing a required member,
  raises RemoteRejectionError.
"""

import asyncio
import hashlib
import itertools
from typing import Any, Optional

import aiohttp

from avasim.commands.constants import (
    CB58_CHECKSUM_LENGTH,
    FIELD_ADDRESS,
    FIELD_BALANCE,
    FIELD_BLOCKCHAINS,
    FIELD_ERROR,
    FIELD_IS_BOOTSTRAPPED,
    FIELD_NODE_ID,
    FIELD_NUM_PEERS,
    FIELD_PEERS,
    FIELD_RESULT,
    FIELD_STATUS,
    FIELD_SUCCESS,
    FIELD_TX_ID,
    HTTP_CONNECT_TIMEOUT,
    HTTP_TIMEOUT,
    INFO_ENDPOINT,
    KEYSTORE_ENDPOINT,
    METHOD_ADD_SUBNET_VALIDATOR,
    METHOD_CREATE_BLOCKCHAIN,
    METHOD_CREATE_SUBNET,
    METHOD_CREATE_USER,
    METHOD_GET_BALANCE,
    METHOD_GET_BLOCKCHAIN_STATUS,
    METHOD_GET_BLOCKCHAINS,
    METHOD_GET_NODE_ID,
    METHOD_GET_TX_STATUS,
    METHOD_IMPORT_KEY,
    METHOD_IS_BOOTSTRAPPED,
    METHOD_PEERS,
    PLATFORM_ENDPOINT,
    SUBNET_CONTROL_THRESHOLD,
)
from avasim.commands.errors import RemoteRejectionError, TransientNetworkError


def encode_hex_with_checksum(data: bytes) -> str:
    """Hex encoding used for genesis payloads: 0x + hex(data + sha256(data)[-4:])."""
    checksum = hashlib.sha256(data).digest()[-CB58_CHECKSUM_LENGTH:]
    return "0x" + (data + checksum).hex()


def _field(result: dict[str, Any], name: str, method: str) -> Any:
    """A required member of a JSON-RPC result."""
    value = result.get(name)
    if value is None:
        raise RemoteRejectionError(f"{method}: response has no '{name}'", method=method)
    return value


class NodeClient:
    """Async client for a single node's HTTP APIs."""

    def __init__(
        self,
        uri: str,
        timeout: float = HTTP_TIMEOUT,
        connect_timeout: float = HTTP_CONNECT_TIMEOUT,
    ):
        self.uri = uri.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout, connect=connect_timeout)
        self._session: Optional[aiohttp.ClientSession] = None
        self._ids = itertools.count(1)

    def __repr__(self) -> str:
        return f"NodeClient({self.uri!r})"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                cookie_jar=aiohttp.DummyCookieJar(),
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "NodeClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _post(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON-RPC payload and return the decoded response body."""
        session = await self._get_session()
        try:
            async with session.post(url, json=payload) as response:
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise TransientNetworkError(
                        f"Invalid response from {url} (HTTP {response.status}): {e}",
                        url=url,
                    ) from e
        except aiohttp.ClientError as e:
            raise TransientNetworkError(f"Cannot reach {url}: {e}", url=url) from e
        except asyncio.TimeoutError as e:
            raise TransientNetworkError(f"Timeout calling {url}", url=url) from e

    async def _call(
        self, endpoint: str, method: str, params: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        url = f"{self.uri}{endpoint}"
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or {},
        }
        body = await self._post(url, payload)

        if not isinstance(body, dict):
            raise TransientNetworkError(f"Unexpected response from {url}", url=url)

        error = body.get(FIELD_ERROR)
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise RemoteRejectionError(f"{method}: {message}", method=method)

        result = body.get(FIELD_RESULT)
        if not isinstance(result, dict):
            raise TransientNetworkError(
                f"{method} returned no result object", url=url
            )
        return result

    # Info API

    async def is_bootstrapped(self, chain: str) -> bool:
        result = await self._call(INFO_ENDPOINT, METHOD_IS_BOOTSTRAPPED, {"chain": chain})
        return bool(result.get(FIELD_IS_BOOTSTRAPPED, False))

    async def peers(self) -> int:
        """Number of peers the node is connected to."""
        result = await self._call(INFO_ENDPOINT, METHOD_PEERS)
        if FIELD_NUM_PEERS in result:
            return int(result[FIELD_NUM_PEERS])
        return len(result.get(FIELD_PEERS) or [])

    async def get_node_id(self) -> str:
        result = await self._call(INFO_ENDPOINT, METHOD_GET_NODE_ID)
        return _field(result, FIELD_NODE_ID, METHOD_GET_NODE_ID)

    # Keystore API

    async def create_user(self, username: str, password: str) -> bool:
        result = await self._call(
            KEYSTORE_ENDPOINT,
            METHOD_CREATE_USER,
            {"username": username, "password": password},
        )
        return bool(result.get(FIELD_SUCCESS, False))

    # Platform API

    async def import_key(self, username: str, password: str, private_key: str) -> str:
        result = await self._call(
            PLATFORM_ENDPOINT,
            METHOD_IMPORT_KEY,
            {"username": username, "password": password, "privateKey": private_key},
        )
        return _field(result, FIELD_ADDRESS, METHOD_IMPORT_KEY)

    async def get_balance(self, address: str) -> int:
        result = await self._call(
            PLATFORM_ENDPOINT, METHOD_GET_BALANCE, {"address": address}
        )
        return int(result.get(FIELD_BALANCE, 0))

    async def create_subnet(
        self,
        username: str,
        password: str,
        address: str,
        threshold: int = SUBNET_CONTROL_THRESHOLD,
    ) -> str:
        """Submit a subnet creation tx controlled by ``address``. Returns the tx id."""
        result = await self._call(
            PLATFORM_ENDPOINT,
            METHOD_CREATE_SUBNET,
            {
                "username": username,
                "password": password,
                "from": [address],
                "changeAddr": address,
                "controlKeys": [address],
                "threshold": threshold,
            },
        )
        return _field(result, FIELD_TX_ID, METHOD_CREATE_SUBNET)

    async def get_tx_status(self, tx_id: str) -> str:
        result = await self._call(
            PLATFORM_ENDPOINT,
            METHOD_GET_TX_STATUS,
            {"txID": tx_id, "includeReason": True},
        )
        return result.get(FIELD_STATUS, "")

    async def add_subnet_validator(
        self,
        username: str,
        password: str,
        address: str,
        subnet_id: str,
        node_id: str,
        weight: int,
        start_time: int,
        end_time: int,
    ) -> str:
        result = await self._call(
            PLATFORM_ENDPOINT,
            METHOD_ADD_SUBNET_VALIDATOR,
            {
                "username": username,
                "password": password,
                "from": [address],
                "changeAddr": address,
                "subnetID": subnet_id,
                "nodeID": node_id,
                "weight": weight,
                "startTime": start_time,
                "endTime": end_time,
            },
        )
        return _field(result, FIELD_TX_ID, METHOD_ADD_SUBNET_VALIDATOR)

    async def create_blockchain(
        self,
        username: str,
        password: str,
        address: str,
        subnet_id: str,
        vm_id: str,
        name: str,
        genesis: bytes,
    ) -> str:
        result = await self._call(
            PLATFORM_ENDPOINT,
            METHOD_CREATE_BLOCKCHAIN,
            {
                "username": username,
                "password": password,
                "from": [address],
                "changeAddr": address,
                "subnetID": subnet_id,
                "vmID": vm_id,
                "fxIDs": [],
                "name": name,
                "genesisData": encode_hex_with_checksum(genesis),
                "encoding": "hex",
            },
        )
        return _field(result, FIELD_TX_ID, METHOD_CREATE_BLOCKCHAIN)

    async def get_blockchains(self) -> list[dict[str, Any]]:
        result = await self._call(PLATFORM_ENDPOINT, METHOD_GET_BLOCKCHAINS)
        return list(result.get(FIELD_BLOCKCHAINS) or [])

    async def get_blockchain_status(self, blockchain_id: str) -> str:
        result = await self._call(
            PLATFORM_ENDPOINT,
            METHOD_GET_BLOCKCHAIN_STATUS,
            {"blockchainID": blockchain_id},
        )
        return result.get(FIELD_STATUS, "")
