"""
Node identities - the fixed pool of staking certificates a local network runs with.

Each node of the network is bound to one pre-generated (certificate, key)
pair. The node id is derived the same way the node runtime derives it:

    NodeID-<cb58(ripemd160(sha256(certificate DER)))>

so the ids computed here match what ``info.getNodeID`` reports once the
node is running.

The local network genesis only stakes five well-known validators, so a
``local`` network has to run with avalanchego's own ``staking/local``
certificates. They are found next to the avalanchego checkout the same way
the binary is, or given explicitly with ``--cert-dir``.
"""

import hashlib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import base58
from Crypto.Hash import RIPEMD160
from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding

from avasim.commands.constants import (
    CB58_CHECKSUM_LENGTH,
    CERT_DIR_TEMPLATE,
    COMMON_CERT_DIRS,
    FLAT_CERT_FILE_TEMPLATE,
    FLAT_KEY_FILE_TEMPLATE,
    LOCAL_GENESIS_NODE_IDS,
    LOCAL_NETWORK_IDS,
    LOCAL_STAKING_SUBDIR,
    NODE_ID_PREFIX,
    NUM_NODES,
    STAKER_CERT_FILE,
    STAKER_KEY_FILE,
)
from avasim.commands.errors import IdentityError
from avasim.commands.utils import console


def cb58_encode(payload: bytes) -> str:
    """Base58 with the last 4 bytes of sha256(payload) appended as checksum."""
    checksum = hashlib.sha256(payload).digest()[-CB58_CHECKSUM_LENGTH:]
    return base58.b58encode(payload + checksum).decode()


def pubkey_bytes_to_address(data: bytes) -> bytes:
    """ripemd160(sha256(data)) - the 20 byte short id of a staker."""
    digest = hashlib.sha256(data).digest()
    return RIPEMD160.new(digest).digest()


def derive_node_id(cert_pem: bytes, source: Optional[str] = None) -> str:
    """Derive the prefixed node id from a PEM encoded staking certificate.

    Raises:
        IdentityError: if the certificate is not valid PEM/DER
    """
    try:
        cert = x509.load_pem_x509_certificate(cert_pem)
    except ValueError as e:
        raise IdentityError(
            f"Problem parsing staking certificate: {e}", path=source
        ) from e

    short_id = pubkey_bytes_to_address(cert.public_bytes(Encoding.DER))
    return NODE_ID_PREFIX + cb58_encode(short_id)


def staking_paths(base: Union[str, Path], number: int) -> tuple[Path, Path]:
    """Certificate and key path of staker ``number`` (1-based) under ``base``.

    ``keys{N}/staker.crt`` is used when ``keys{N}`` exists, the flat
    ``staker{N}.crt`` of avalanchego's ``staking/local`` otherwise.
    """
    base = Path(base)
    key_dir = base / CERT_DIR_TEMPLATE.format(number=number)
    if key_dir.is_dir():
        return key_dir / STAKER_CERT_FILE, key_dir / STAKER_KEY_FILE
    return (
        base / FLAT_CERT_FILE_TEMPLATE.format(number=number),
        base / FLAT_KEY_FILE_TEMPLATE.format(number=number),
    )


def _has_staking_files(path: Union[str, Path]) -> bool:
    return os.path.isdir(path) and staking_paths(path, 1)[0].is_file()


def find_cert_dir(
    cert_dir: Union[str, Path, None] = None, binary_path: Optional[str] = None
) -> Path:
    """Locate the staking certificate directory.

    An explicit ``cert_dir`` is used as is. Otherwise looks for
    ``staking/local`` of the avalanchego checkout the binary was built in,
    then in common checkout locations.

    Raises:
        IdentityError: if ``cert_dir`` does not exist or nothing is found
    """
    if cert_dir is not None:
        path = Path(os.path.expanduser(str(cert_dir)))
        if not path.is_dir():
            raise IdentityError(
                f"Certificate directory not found: {cert_dir}", path=str(cert_dir)
            )
        return path

    candidates = []
    if binary_path:
        # build/avalanchego -> <checkout>/staking/local
        binary_dir = Path(os.path.realpath(binary_path)).parent
        candidates.append(binary_dir.parent / LOCAL_STAKING_SUBDIR)
        candidates.append(binary_dir / LOCAL_STAKING_SUBDIR)
    for path in COMMON_CERT_DIRS:
        path = os.path.expanduser(os.path.expandvars(path))
        if "$" not in path:
            candidates.append(Path(path))

    for path in candidates:
        if _has_staking_files(path):
            console.print(f"[green]✓ Found staking certificates: {path}[/green]")
            return path

    raise IdentityError(
        "Staking certificates not found. Specify --cert-dir pointing at "
        f"avalanchego's {LOCAL_STAKING_SUBDIR} directory "
        f"(searched next to the binary and {', '.join(COMMON_CERT_DIRS)})"
    )


@dataclass(frozen=True)
class NodeIdentity:
    """A staking identity bound to one node slot."""

    index: int
    node_id: str
    cert_bytes: bytes = field(repr=False)
    key_bytes: bytes = field(repr=False)

    @property
    def genesis_validator(self) -> bool:
        return self.node_id in LOCAL_GENESIS_NODE_IDS


class IdentityPool:
    """Ordered, immutable pool of node identities loaded once at startup."""

    def __init__(self, identities: list[NodeIdentity]):
        if not identities:
            raise IdentityError("Identity pool is empty")

        seen: dict[str, int] = {}
        for identity in identities:
            if identity.node_id in seen:
                raise IdentityError(
                    f"Slots {seen[identity.node_id] + 1} and {identity.index + 1} "
                    f"share the same staking certificate ({identity.node_id}); "
                    "every node needs a distinct identity",
                    index=identity.index,
                )
            seen[identity.node_id] = identity.index

        self._identities = tuple(identities)

    @classmethod
    def from_directory(
        cls, cert_dir: Union[str, Path], count: int = NUM_NODES
    ) -> "IdentityPool":
        """Load ``count`` identities from ``cert_dir``.

        Both ``keys{1..count}/staker.{crt,key}`` and the flat
        ``staker{1..count}.{crt,key}`` layouts are accepted.

        Raises:
            IdentityError: if a certificate or key is missing or malformed
        """
        if count < 1:
            raise IdentityError(f"Node count must be at least 1 (got {count})")

        identities = []
        for index in range(count):
            cert_path, key_path = staking_paths(cert_dir, index + 1)
            for path in (cert_path, key_path):
                if not path.is_file():
                    raise IdentityError(
                        f"Staking file not found: {path}",
                        path=str(path),
                        index=index,
                    )

            cert_bytes = cert_path.read_bytes()
            key_bytes = key_path.read_bytes()
            try:
                node_id = derive_node_id(cert_bytes, source=str(cert_path))
            except IdentityError as e:
                raise IdentityError(e.message, path=str(cert_path), index=index) from e

            identities.append(
                NodeIdentity(
                    index=index,
                    node_id=node_id,
                    cert_bytes=cert_bytes,
                    key_bytes=key_bytes,
                )
            )

        return cls(identities)

    def check_network(self, network_id: str) -> None:
        """Reject identities the network's genesis does not stake.

        Only the local network has a known validator set; other network ids
        are not checked.

        Raises:
            IdentityError: naming the first identity that is not a genesis validator
        """
        if str(network_id) not in LOCAL_NETWORK_IDS:
            return
        for identity in self._identities:
            if not identity.genesis_validator:
                raise IdentityError(
                    f"Node {identity.index + 1} identity {identity.node_id} is not a "
                    f"validator of the {network_id} network genesis. Use the "
                    f"certificates from avalanchego's {LOCAL_STAKING_SUBDIR}",
                    index=identity.index,
                )

    def identities(self) -> tuple[NodeIdentity, ...]:
        return self._identities

    def node_ids(self) -> list[str]:
        return [identity.node_id for identity in self._identities]

    def __len__(self) -> int:
        return len(self._identities)

    def __getitem__(self, index: int) -> NodeIdentity:
        return self._identities[index]
