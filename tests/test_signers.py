"""Tests for signing capabilities and signature helpers."""

import json

import httpx
import pytest

from erc721_permit import (
    JsonRpcSigner,
    LocalAccountSigner,
    SigningCapabilityError,
    UnknownTypeError,
    recover_signer,
    sign,
    split_signature,
)


# Hardhat account #0 (DO NOT use in production)
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

FAKE_SIGNATURE = "0x" + "11" * 32 + "22" * 32 + "1b"

SCHEMA = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "PermitToApprove": [
        {"name": "spender", "type": "address"},
        {"name": "tokenId", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}

DOMAIN = {
    "name": "ERC721OffchainPermit",
    "version": "1",
    "chainId": 1,
    "verifyingContract": "0x5FbDB2315678afecb367f032d93F642f64180aa3",
}

MESSAGE = {
    "spender": "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
    "tokenId": 0,
    "nonce": 0,
    "deadline": 10_000_000_000,
}


class FakeSigner:
    """Deterministic signer that records what it was asked to sign."""

    def __init__(self, signature=FAKE_SIGNATURE, error=None):
        self.signature = signature
        self.error = error
        self.calls = []

    def sign_typed_data(self, domain, types, message):
        self.calls.append((domain, types, message))
        if self.error is not None:
            raise self.error
        return self.signature


@pytest.fixture
def local_signer():
    """Create a local signer with a test key."""
    return LocalAccountSigner(TEST_PRIVATE_KEY)


class TestSign:
    """Tests for the signing pass-through."""

    def test_returns_signer_output(self):
        """sign should return the signature unchanged."""
        signer = FakeSigner()
        assert sign(DOMAIN, MESSAGE, SCHEMA, signer) == FAKE_SIGNATURE

    def test_passes_only_primary_type(self):
        """The signer receives the primary type only, never EIP712Domain."""
        signer = FakeSigner()
        sign(DOMAIN, MESSAGE, SCHEMA, signer, primary_type="PermitToApprove")

        domain, types, message = signer.calls[0]
        assert types == {"PermitToApprove": SCHEMA["PermitToApprove"]}
        assert domain == DOMAIN
        assert message == MESSAGE

    def test_includes_nested_structs(self):
        """Structs referenced by the primary type are passed along."""
        schema = {
            "Person": [{"name": "name", "type": "string"}],
            "Mail": [{"name": "from", "type": "Person"}],
            "Unrelated": [{"name": "v", "type": "uint8"}],
        }
        signer = FakeSigner()
        sign(DOMAIN, {"from": {"name": "Cow"}}, schema, signer, primary_type="Mail")
        assert set(signer.calls[0][1]) == {"Mail", "Person"}

    def test_infers_primary_type(self):
        """Without primary_type the single unreferenced struct is used."""
        signer = FakeSigner()
        sign(DOMAIN, MESSAGE, SCHEMA, signer)
        assert list(signer.calls[0][1]) == ["PermitToApprove"]

    def test_unknown_primary_type(self):
        """An undefined primary type is rejected before signing."""
        signer = FakeSigner()
        with pytest.raises(UnknownTypeError):
            sign(DOMAIN, MESSAGE, SCHEMA, signer, primary_type="Permit")
        assert signer.calls == []

    def test_wraps_signer_failure(self):
        """Signer errors surface as SigningCapabilityError."""
        cause = RuntimeError("user rejected request")
        signer = FakeSigner(error=cause)

        with pytest.raises(SigningCapabilityError, match="user rejected") as exc_info:
            sign(DOMAIN, MESSAGE, SCHEMA, signer)
        assert exc_info.value.__cause__ is cause
        assert len(signer.calls) == 1


class TestLocalAccountSigner:
    """Tests for in-process signing."""

    def test_address(self, local_signer):
        """Signer address is derived from the key."""
        assert local_signer.address == TEST_ADDRESS

    def test_signature_format(self, local_signer):
        """Signatures are 0x-prefixed 65-byte hex."""
        signature = sign(DOMAIN, MESSAGE, SCHEMA, local_signer)
        assert signature.startswith("0x")
        assert len(signature) == 2 + 65 * 2

    def test_deterministic(self, local_signer):
        """Same input gives the same signature."""
        assert sign(DOMAIN, MESSAGE, SCHEMA, local_signer) == sign(
            DOMAIN, MESSAGE, SCHEMA, local_signer
        )

    def test_recovers_to_signer(self, local_signer):
        """The locally built digest recovers the signing address."""
        signature = sign(DOMAIN, MESSAGE, SCHEMA, local_signer)
        assert recover_signer(DOMAIN, "PermitToApprove", MESSAGE, SCHEMA, signature) == TEST_ADDRESS

    def test_tampered_message_recovers_other_address(self, local_signer):
        """A signature does not verify for a different message."""
        signature = sign(DOMAIN, MESSAGE, SCHEMA, local_signer)
        tampered = {**MESSAGE, "tokenId": 1}
        assert recover_signer(DOMAIN, "PermitToApprove", tampered, SCHEMA, signature) != TEST_ADDRESS


class TestJsonRpcSigner:
    """Tests for remote signing over JSON-RPC."""

    URL = "http://localhost:8545"

    def _signer(self, handler):
        return JsonRpcSigner(self.URL, TEST_ADDRESS, transport=httpx.MockTransport(handler))

    def test_request_shape(self):
        """Request carries address and the full typed-data JSON."""
        requests = []

        def handler(request):
            requests.append(json.loads(request.content))
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": FAKE_SIGNATURE})

        signature = sign(DOMAIN, MESSAGE, SCHEMA, self._signer(handler))
        assert signature == FAKE_SIGNATURE

        body = requests[0]
        assert body["method"] == "eth_signTypedData_v4"
        assert body["params"][0] == TEST_ADDRESS
        typed_data = json.loads(body["params"][1])
        assert typed_data["primaryType"] == "PermitToApprove"
        assert typed_data["types"]["EIP712Domain"] == SCHEMA["EIP712Domain"]
        assert typed_data["domain"] == DOMAIN
        assert typed_data["message"] == MESSAGE

    def test_bytes_are_hex_encoded(self):
        """Byte values are sent as 0x hex strings."""
        signer = JsonRpcSigner(self.URL, TEST_ADDRESS)
        request = signer.build_request(
            {**DOMAIN, "salt": b"\x01" * 32},
            {"Blob": [{"name": "data", "type": "bytes"}]},
            {"data": b"\xde\xad"},
        )
        typed_data = json.loads(request["params"][1])
        assert typed_data["domain"]["salt"] == "0x" + "01" * 32
        assert typed_data["message"]["data"] == "0xdead"
        assert typed_data["types"]["EIP712Domain"][-1] == {"name": "salt", "type": "bytes32"}

    def test_self_referencing_primary_type(self):
        """A self-referencing struct is inferred as primaryType."""
        types = {
            "Node": [
                {"name": "value", "type": "uint256"},
                {"name": "next", "type": "Node"},
            ]
        }
        signer = JsonRpcSigner(self.URL, TEST_ADDRESS)
        request = signer.build_request(DOMAIN, types, {"value": 1, "next": {}})
        assert json.loads(request["params"][1])["primaryType"] == "Node"

    def test_rpc_error(self):
        """JSON-RPC errors raise SigningCapabilityError."""

        def handler(request):
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": 1, "error": {"code": 4001, "message": "User denied"}},
            )

        with pytest.raises(SigningCapabilityError, match="User denied"):
            sign(DOMAIN, MESSAGE, SCHEMA, self._signer(handler))

    def test_http_error(self):
        """HTTP failures are wrapped in SigningCapabilityError."""

        def handler(request):
            return httpx.Response(503, text="unavailable")

        with pytest.raises(SigningCapabilityError) as exc_info:
            sign(DOMAIN, MESSAGE, SCHEMA, self._signer(handler))
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    def test_missing_result(self):
        """A response without a signature is an error."""

        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": None})

        with pytest.raises(SigningCapabilityError, match="no signature"):
            sign(DOMAIN, MESSAGE, SCHEMA, self._signer(handler))


class TestSplitSignature:
    """Tests for signature splitting."""

    def test_split(self):
        """Should split into r, s and v."""
        parts = split_signature(FAKE_SIGNATURE)
        assert parts.r == int("11" * 32, 16)
        assert parts.s == int("22" * 32, 16)
        assert parts.v == 27

    def test_normalises_v(self):
        """v of 0/1 becomes 27/28."""
        raw = b"\x01" * 64 + b"\x01"
        assert split_signature(raw).v == 28

    def test_round_trip_hex(self):
        """Split signatures pack back to the same hex."""
        assert split_signature(FAKE_SIGNATURE).to_hex() == FAKE_SIGNATURE

    def test_wrong_length(self):
        """Signatures must be 65 bytes."""
        with pytest.raises(ValueError, match="65-byte"):
            split_signature("0x" + "11" * 64)

    def test_invalid_recovery_id(self):
        """v outside 27/28 after normalising is rejected."""
        with pytest.raises(ValueError, match="recovery id"):
            split_signature(b"\x01" * 64 + b"\x25")
