"""Signing capabilities and the typed-data signing pass-through.

Signing itself is delegated to a `TypedDataSigner`: anything that holds a
private key and exposes `sign_typed_data(domain, types, message)`. The key
never passes through this module.
"""

import json
from collections.abc import Mapping
from typing import Any, Protocol

import httpx
import structlog
from eth_account import Account
from eth_keys import keys
from eth_utils import to_bytes, to_hex

from .eip712 import (
    DOMAIN_TYPE_NAME,
    Schema,
    dependencies,
    digest_to_sign,
    domain_type,
    find_primary_type,
    struct_fields,
)
from .exceptions import SigningCapabilityError, UnknownTypeError
from .models import EIP712Domain, Signature

logger = structlog.get_logger("erc721_permit.signers")


class TypedDataSigner(Protocol):
    """A signing capability for EIP-712 typed data.

    `types` holds only the message types; the implementation derives the
    `EIP712Domain` type from `domain` itself.
    """

    def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        message: dict[str, Any],
    ) -> str:
        """Return the 65-byte `r || s || v` signature as 0x-prefixed hex."""
        ...


class LocalAccountSigner:
    """Signs in-process with a private key held by `eth_account`."""

    def __init__(self, private_key: str):
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        """Get the signer address."""
        return self._account.address

    def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        message: dict[str, Any],
    ) -> str:
        signed = self._account.sign_typed_data(domain, types, message)
        return to_hex(signed.signature)


def _to_json_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, Mapping):
        return {k: _to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json_value(v) for v in value]
    return value


class JsonRpcSigner:
    """Asks a remote key holder to sign via `eth_signTypedData_v4`.

    Works against any JSON-RPC endpoint that manages `address`: a node with an
    unlocked account, a remote signer service, or a wallet bridge.
    """

    METHOD = "eth_signTypedData_v4"

    def __init__(
        self,
        url: str,
        address: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize signer.

        Args:
            url: JSON-RPC endpoint URL
            address: Account the remote side signs with
            timeout: HTTP request timeout in seconds
            transport: Optional httpx transport (e.g. for testing)
        """
        self.url = url
        self.address = address
        self.timeout = timeout
        self._transport = transport
        self._request_id = 0

    def build_request(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        message: dict[str, Any],
    ) -> dict[str, Any]:
        """Build the JSON-RPC request body for a signing call."""
        typed_data = {
            "types": {
                DOMAIN_TYPE_NAME: [f.model_dump() for f in domain_type(domain)],
                **types,
            },
            "primaryType": find_primary_type(types),
            "domain": _to_json_value(domain),
            "message": _to_json_value(message),
        }
        self._request_id += 1
        return {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": self.METHOD,
            "params": [self.address, json.dumps(typed_data)],
        }

    def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        message: dict[str, Any],
    ) -> str:
        request = self.build_request(domain, types, message)
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            response = client.post(self.url, json=request)
            response.raise_for_status()
            body = response.json()

        if "error" in body:
            error = body["error"]
            raise SigningCapabilityError(
                f"{self.METHOD} rejected by {self.url}: "
                f"{error.get('message', error)} (code {error.get('code')})"
            )
        result = body.get("result")
        if not isinstance(result, str):
            raise SigningCapabilityError(
                f"{self.METHOD} returned no signature: {body!r}"
            )
        return result


def sign(
    domain: EIP712Domain | Mapping[str, Any],
    message: Mapping[str, Any],
    schema: Schema,
    signer: TypedDataSigner,
    primary_type: str | None = None,
) -> str:
    """Have `signer` sign `message` under `domain`.

    Only the primary type and the structs it references are handed to the
    signer, never the domain type or unrelated schema entries. The signature
    is returned exactly as the signer produced it.

    Args:
        domain: Domain values
        message: Values of the primary type
        schema: Type definitions; may include `EIP712Domain`
        signer: The signing capability
        primary_type: Struct to sign; inferred from `schema` when omitted

    Raises:
        UnknownTypeError: If `primary_type` is not defined in `schema`.
        SigningCapabilityError: If the signer fails for any reason.
    """
    if primary_type is None:
        primary_type = find_primary_type(schema)

    type_subset = {
        name: [f.model_dump() for f in struct_fields(name, schema)]
        for name in dependencies(primary_type, schema)
    }
    if not type_subset:
        raise UnknownTypeError(primary_type)

    if not isinstance(domain, EIP712Domain):
        domain = EIP712Domain.model_validate(domain)

    log = logger.bind(primary_type=primary_type, signer=type(signer).__name__)
    log.info("signer.request")
    try:
        signature = signer.sign_typed_data(domain.to_dict(), type_subset, dict(message))
    except SigningCapabilityError as e:
        log.warning("signer.failed", error=str(e))
        raise
    except Exception as e:
        log.warning("signer.failed", error=str(e))
        raise SigningCapabilityError(f"Signing {primary_type} failed: {e}") from e
    log.info("signer.signed")
    return signature


def split_signature(signature: str | bytes) -> Signature:
    """Split a 65-byte signature into `r`, `s` and `v` (27 or 28).

    Raises:
        ValueError: If the signature is not 65 bytes long or `v` is not
            0, 1, 27 or 28.
    """
    raw = to_bytes(hexstr=signature) if isinstance(signature, str) else bytes(signature)
    if len(raw) != 65:
        raise ValueError(f"Expected a 65-byte signature, got {len(raw)} bytes")
    v = raw[64]
    if v < 27:
        v += 27
    if v not in (27, 28):
        raise ValueError(f"Invalid signature recovery id v={raw[64]}")
    return Signature(
        r=int.from_bytes(raw[:32], "big"),
        s=int.from_bytes(raw[32:64], "big"),
        v=v,
    )


def recover_signer(
    domain: EIP712Domain | Mapping[str, Any],
    primary_type: str,
    message: Mapping[str, Any],
    schema: Schema,
    signature: str | bytes,
) -> str:
    """Recover the checksum address that produced `signature`.

    The digest is rebuilt locally, the same way an on-chain verifier does.
    """
    digest = digest_to_sign(domain, primary_type, message, schema)
    parts = split_signature(signature)
    ecdsa = keys.Signature(vrs=(parts.v - 27, parts.r, parts.s))
    public_key = ecdsa.recover_public_key_from_msg_hash(digest)
    return public_key.to_checksum_address()
