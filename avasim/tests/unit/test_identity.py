"""
Unit tests for node identity loading and node id derivation.

The certificates under tests/certs were generated with openssl; their node
ids were computed independently of this package.
"""

import shutil

import pytest

from avasim.commands.constants import LOCAL_GENESIS_NODE_IDS
from avasim.commands.errors import IdentityError
from avasim.commands.identity import (
    IdentityPool,
    NodeIdentity,
    cb58_encode,
    derive_node_id,
    find_cert_dir,
    pubkey_bytes_to_address,
    staking_paths,
)

CERT_NODE_IDS = [
    "NodeID-8MnajUiTgDpot6MeePwe4YrrTzELZNous",
    "NodeID-LkahyuGRtwGmZUag6RqmdXk72GaXbh1nh",
    "NodeID-FoGThToPgZ2QNPmMT4GeatDRn3GCL8gPh",
    "NodeID-3zxqQc5sRHpZ32cu8CU5FHNWf5fTtFq5W",
    "NodeID-9drLHanCg2ofuoLoMNEzQpjDFSgukKXmd",
]


@pytest.fixture
def clean_search_paths(tmp_path, monkeypatch):
    """No staking certificates in the working dir, HOME or GOPATH."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("GOPATH", raising=False)
    monkeypatch.chdir(tmp_path)
    return home


class TestEncoding:
    def test_cb58_empty_short_id(self):
        assert cb58_encode(bytes(20)) == "111111111111111111116DBWJs"

    def test_cb58_empty_id(self):
        assert cb58_encode(bytes(32)) == "11111111111111111111111111111111LpoYY"

    def test_hash160_of_empty_input(self):
        assert (
            pubkey_bytes_to_address(b"").hex()
            == "b472a266d0bd89c13706a4132ccfb16f7c3b9fcb"
        )


class TestDeriveNodeId:
    def test_known_certificate(self, cert_dir):
        cert = (cert_dir / "keys1" / "staker.crt").read_bytes()
        assert derive_node_id(cert) == "NodeID-8MnajUiTgDpot6MeePwe4YrrTzELZNous"

    @pytest.mark.parametrize("number", [2, 3, 4, 5])
    def test_other_known_certificates(self, cert_dir, number):
        cert = (cert_dir / f"keys{number}" / "staker.crt").read_bytes()
        assert derive_node_id(cert) == CERT_NODE_IDS[number - 1]

    def test_malformed_certificate(self):
        with pytest.raises(IdentityError) as exc_info:
            derive_node_id(b"-----BEGIN CERTIFICATE-----\nnot base64\n-----END CERTIFICATE-----\n")
        assert exc_info.value.code == "IDENTITY_INVALID"

    def test_not_pem(self):
        with pytest.raises(IdentityError):
            derive_node_id(b"hello", source="keys1/staker.crt")


class TestIdentityPool:
    def test_pool_has_five_distinct_identities(self, cert_dir):
        pool = IdentityPool.from_directory(cert_dir)

        assert len(pool) == 5
        assert pool.node_ids() == CERT_NODE_IDS
        assert [identity.index for identity in pool.identities()] == [0, 1, 2, 3, 4]

    def test_identities_are_stable(self, cert_dir):
        pool = IdentityPool.from_directory(cert_dir)

        assert pool.identities() == pool.identities()
        assert IdentityPool.from_directory(cert_dir).node_ids() == pool.node_ids()

    def test_identity_carries_key_material(self, cert_dir):
        identity = IdentityPool.from_directory(cert_dir)[0]

        assert b"BEGIN CERTIFICATE" in identity.cert_bytes
        assert b"PRIVATE KEY" in identity.key_bytes
        # key material stays out of reprs
        assert "PRIVATE KEY" not in repr(identity)

    def test_smaller_count(self, cert_dir):
        pool = IdentityPool.from_directory(cert_dir, count=2)
        assert pool.node_ids() == CERT_NODE_IDS[:2]

    def test_flat_layout(self, cert_dir, tmp_path):
        for number in (1, 2):
            shutil.copy(cert_dir / f"keys{number}" / "staker.crt", tmp_path / f"staker{number}.crt")
            shutil.copy(cert_dir / f"keys{number}" / "staker.key", tmp_path / f"staker{number}.key")

        pool = IdentityPool.from_directory(tmp_path, count=2)
        assert pool.node_ids() == CERT_NODE_IDS[:2]

    def test_staking_paths(self, tmp_path):
        (tmp_path / "keys1").mkdir()

        assert staking_paths(tmp_path, 1) == (
            tmp_path / "keys1" / "staker.crt",
            tmp_path / "keys1" / "staker.key",
        )
        assert staking_paths(tmp_path, 2) == (
            tmp_path / "staker2.crt",
            tmp_path / "staker2.key",
        )

    def test_missing_key_directory(self, cert_dir, tmp_path):
        shutil.copytree(cert_dir / "keys1", tmp_path / "keys1")

        with pytest.raises(IdentityError) as exc_info:
            IdentityPool.from_directory(tmp_path, count=2)
        assert exc_info.value.index == 1
        assert "staker2.crt" in exc_info.value.path

    def test_missing_key_file(self, cert_dir, tmp_path):
        shutil.copytree(cert_dir / "keys1", tmp_path / "keys1")
        (tmp_path / "keys1" / "staker.key").unlink()

        with pytest.raises(IdentityError) as exc_info:
            IdentityPool.from_directory(tmp_path, count=1)
        assert exc_info.value.path.endswith("staker.key")

    def test_malformed_certificate_in_directory(self, cert_dir, tmp_path):
        shutil.copytree(cert_dir / "keys1", tmp_path / "keys1")
        shutil.copytree(cert_dir / "keys2", tmp_path / "keys2")
        (tmp_path / "keys2" / "staker.crt").write_text("garbage")

        with pytest.raises(IdentityError) as exc_info:
            IdentityPool.from_directory(tmp_path, count=2)
        assert exc_info.value.index == 1

    def test_duplicate_certificates_rejected(self, cert_dir, tmp_path):
        shutil.copytree(cert_dir / "keys1", tmp_path / "keys1")
        shutil.copytree(cert_dir / "keys1", tmp_path / "keys2")

        with pytest.raises(IdentityError) as exc_info:
            IdentityPool.from_directory(tmp_path, count=2)
        assert "same staking certificate" in exc_info.value.message

    def test_empty_pool_rejected(self):
        with pytest.raises(IdentityError):
            IdentityPool([])

    def test_zero_count_rejected(self, cert_dir):
        with pytest.raises(IdentityError):
            IdentityPool.from_directory(cert_dir, count=0)

    def test_pool_from_explicit_identities(self):
        identities = [
            NodeIdentity(index=0, node_id="NodeID-a", cert_bytes=b"a", key_bytes=b"a"),
            NodeIdentity(index=1, node_id="NodeID-b", cert_bytes=b"b", key_bytes=b"b"),
        ]
        pool = IdentityPool(identities)
        assert pool.node_ids() == ["NodeID-a", "NodeID-b"]
        assert pool[1].node_id == "NodeID-b"


class TestCheckNetwork:
    def _pool(self, node_ids):
        return IdentityPool(
            [NodeIdentity(i, node_id, b"cert", b"key") for i, node_id in enumerate(node_ids)]
        )

    def test_genesis_validators_accepted(self):
        pool = self._pool(LOCAL_GENESIS_NODE_IDS)
        pool.check_network("local")
        pool.check_network("12345")
        assert all(identity.genesis_validator for identity in pool.identities())

    def test_unknown_identity_rejected_on_local(self, cert_dir):
        pool = IdentityPool.from_directory(cert_dir)

        with pytest.raises(IdentityError) as exc_info:
            pool.check_network("local")
        assert exc_info.value.index == 0
        assert CERT_NODE_IDS[0] in exc_info.value.message

    def test_one_stray_identity_rejected(self):
        node_ids = list(LOCAL_GENESIS_NODE_IDS)
        node_ids[3] = CERT_NODE_IDS[3]

        with pytest.raises(IdentityError) as exc_info:
            self._pool(node_ids).check_network("local")
        assert exc_info.value.index == 3

    def test_other_networks_not_checked(self, cert_dir):
        IdentityPool.from_directory(cert_dir).check_network("1337")


class TestFindCertDir:
    def test_explicit_directory(self, cert_dir):
        assert find_cert_dir(cert_dir) == cert_dir

    def test_explicit_directory_missing(self, tmp_path):
        with pytest.raises(IdentityError) as exc_info:
            find_cert_dir(tmp_path / "nope")
        assert exc_info.value.path == str(tmp_path / "nope")

    def test_next_to_binary(self, cert_dir, tmp_path, clean_search_paths):
        checkout = tmp_path / "avalanchego"
        (checkout / "build").mkdir(parents=True)
        binary = checkout / "build" / "avalanchego"
        binary.write_text("#!/bin/sh\n")
        shutil.copytree(cert_dir / "keys1", checkout / "staking" / "local" / "keys1")

        found = find_cert_dir(binary_path=str(binary))
        assert found.resolve() == (checkout / "staking" / "local").resolve()

    def test_gopath_checkout(self, tmp_path, clean_search_paths, monkeypatch):
        gopath = tmp_path / "go"
        local = gopath / "src" / "github.com" / "ava-labs" / "avalanchego" / "staking" / "local"
        local.mkdir(parents=True)
        (local / "staker1.crt").write_text("cert")
        monkeypatch.setenv("GOPATH", str(gopath))

        assert find_cert_dir() == local

    def test_nothing_found(self, clean_search_paths):
        with pytest.raises(IdentityError) as exc_info:
            find_cert_dir(binary_path="/nonexistent/build/avalanchego")
        assert "--cert-dir" in exc_info.value.message
