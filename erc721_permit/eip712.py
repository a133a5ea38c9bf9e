"""EIP-712 typed-data encoding.

Implements the hashing pipeline of https://eips.ethereum.org/EIPS/eip-712:

    dependencies -> encode_type -> type_hash
                 -> encode_data -> hash_struct
                 -> domain_separator -> digest_to_sign

A schema maps struct names to ordered `{name, type}` descriptors, e.g.::

    {
        "PermitToApprove": [
            {"name": "spender", "type": "address"},
            {"name": "tokenId", "type": "uint256"},
        ],
    }

Everything is recomputed per call; nothing is cached.
"""

import re
from collections.abc import Mapping, Sequence
from typing import Any, Union

import structlog
from eth_abi import encode
from eth_abi.exceptions import EncodingError
from eth_utils import keccak, to_bytes

from .exceptions import (
    InvalidFieldValueError,
    MissingFieldValueError,
    UnknownTypeError,
    UnsupportedArrayEncodingError,
)
from .models import EIP712Domain, FieldDescriptor, TypedData

logger = structlog.get_logger("erc721_permit.eip712")

Descriptor = Union[FieldDescriptor, Mapping[str, str]]
Schema = Mapping[str, Sequence[Descriptor]]

EIP712_PREFIX = b"\x19\x01"
DOMAIN_TYPE_NAME = "EIP712Domain"

# Canonical order of the recognised domain fields.
DOMAIN_FIELDS: tuple[FieldDescriptor, ...] = (
    FieldDescriptor(name="name", type="string"),
    FieldDescriptor(name="version", type="string"),
    FieldDescriptor(name="chainId", type="uint256"),
    FieldDescriptor(name="verifyingContract", type="address"),
    FieldDescriptor(name="salt", type="bytes32"),
)

_INT_TYPE = re.compile(r"^u?int(\d+)$")
_FIXED_BYTES_TYPE = re.compile(r"^bytes(\d+)$")


def struct_fields(type_name: str, schema: Schema) -> list[FieldDescriptor]:
    """Field descriptors of `type_name`, raising UnknownTypeError if undefined."""
    try:
        descriptors = schema[type_name]
    except KeyError:
        raise UnknownTypeError(type_name) from None
    return [
        d if isinstance(d, FieldDescriptor) else FieldDescriptor.model_validate(d)
        for d in descriptors
    ]


def _base_type(type_name: str) -> str:
    """Strip array suffixes: `Person[2][]` -> `Person`."""
    return type_name.split("[", 1)[0]


def _is_primitive(type_name: str) -> bool:
    """Check for a static ABI scalar (`address`, `bool`, `uintN`, `intN`, `bytesN`)."""
    if type_name in ("address", "bool"):
        return True
    match = _INT_TYPE.match(type_name)
    if match:
        bits = int(match.group(1))
        return 8 <= bits <= 256 and bits % 8 == 0
    match = _FIXED_BYTES_TYPE.match(type_name)
    if match:
        return 1 <= int(match.group(1)) <= 32
    return False


def dependencies(primary_type: str, schema: Schema) -> list[str]:
    """Return every struct type reachable from `primary_type`, itself first.

    The walk is depth-first in field declaration order and tracks visited
    types, so cyclic schemas terminate. Only names defined in `schema` are
    returned; an undefined `primary_type` yields an empty list.
    """
    if primary_type not in schema:
        return []

    found = [primary_type]
    visited = {primary_type}
    stack = [iter(struct_fields(primary_type, schema))]
    while stack:
        field = next(stack[-1], None)
        if field is None:
            stack.pop()
            continue
        dep = _base_type(field.type)
        if dep in schema and dep not in visited:
            visited.add(dep)
            found.append(dep)
            stack.append(iter(struct_fields(dep, schema)))
    return found


def find_primary_type(schema: Schema) -> str:
    """Return the one struct no other struct references.

    `EIP712Domain` is never a candidate. A struct referencing itself (e.g. a
    linked-list node) still counts as unreferenced.

    Raises:
        ValueError: If there is no such struct, or more than one.
    """
    referenced = {
        _base_type(field.type)
        for type_name in schema
        for field in struct_fields(type_name, schema)
        if _base_type(field.type) != type_name
    }
    candidates = [
        name for name in schema if name != DOMAIN_TYPE_NAME and name not in referenced
    ]
    if len(candidates) != 1:
        raise ValueError(
            f"Cannot infer the primary type, candidates: {candidates or 'none'}"
        )
    return candidates[0]


def encode_type(primary_type: str, schema: Schema) -> str:
    """Render the canonical type string, e.g. `Mail(Person from,...)Person(...)`.

    The primary type comes first, the remaining dependencies follow in
    alphabetical order. Fields keep their declaration order.

    Raises:
        UnknownTypeError: If `primary_type`, or any type its fields reference,
            is neither defined in `schema` nor an ABI primitive.
    """
    deps = dependencies(primary_type, schema)
    if not deps:
        raise UnknownTypeError(primary_type)

    ordered = [primary_type] + sorted(d for d in deps if d != primary_type)
    result = ""
    for type_name in ordered:
        fields = struct_fields(type_name, schema)
        for f in fields:
            base = _base_type(f.type)
            if base not in ("string", "bytes") and base not in schema and not _is_primitive(base):
                raise UnknownTypeError(base, f"field '{type_name}.{f.name}'")
        members = ",".join(f"{f.type} {f.name}" for f in fields)
        result += f"{type_name}({members})"
    return result


def type_hash(primary_type: str, schema: Schema) -> bytes:
    """Keccak-256 of the canonical type string."""
    return keccak(text=encode_type(primary_type, schema))


def _dynamic_bytes(struct_name: str, field: FieldDescriptor, value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        if field.type == "string":
            return value.encode("utf-8")
        try:
            return to_bytes(hexstr=value)
        except ValueError as e:
            raise InvalidFieldValueError(
                f"Field '{struct_name}.{field.name}' expects hex-encoded bytes, "
                f"got {value!r}"
            ) from e
    raise InvalidFieldValueError(
        f"Field '{struct_name}.{field.name}' ({field.type}) cannot hold "
        f"a value of type {type(value).__name__}"
    )


def _coerce_scalar(type_name: str, value: Any) -> Any:
    if isinstance(value, str):
        if _INT_TYPE.match(type_name):
            return int(value, 16) if value.startswith("0x") else int(value)
        if _FIXED_BYTES_TYPE.match(type_name):
            return to_bytes(hexstr=value)
    return value


def _encode_slot(struct_name: str, field: FieldDescriptor, abi_type: str, value: Any) -> bytes:
    try:
        return encode([abi_type], [_coerce_scalar(abi_type, value)])
    except (EncodingError, ValueError, TypeError) as e:
        raise InvalidFieldValueError(
            f"Field '{struct_name}.{field.name}' ({field.type}): "
            f"cannot encode {value!r}: {e}"
        ) from e


def encode_data(primary_type: str, values: Mapping[str, Any], schema: Schema) -> bytes:
    """ABI-encode a struct value: its type hash followed by one slot per field.

    Raises:
        UnknownTypeError: A field type is neither a schema struct nor a primitive.
        UnsupportedArrayEncodingError: A field is array-typed.
        MissingFieldValueError: `values` lacks a declared field.
        InvalidFieldValueError: A value does not fit its ABI type.
    """
    if not isinstance(values, Mapping):
        raise InvalidFieldValueError(
            f"Value for struct '{primary_type}' must be a mapping, "
            f"got {type(values).__name__}"
        )

    slots = [encode(["bytes32"], [type_hash(primary_type, schema)])]
    for field in struct_fields(primary_type, schema):
        if field.type.endswith("]"):
            raise UnsupportedArrayEncodingError(primary_type, field.name, field.type)
        is_struct = field.type in schema
        if not is_struct and field.type not in ("string", "bytes") and not _is_primitive(field.type):
            raise UnknownTypeError(field.type, f"field '{primary_type}.{field.name}'")

        value = values.get(field.name)
        if value is None:
            raise MissingFieldValueError(primary_type, field.name)

        if field.type in ("string", "bytes"):
            digest = keccak(_dynamic_bytes(primary_type, field, value))
            slots.append(encode(["bytes32"], [digest]))
        elif is_struct:
            slots.append(encode(["bytes32"], [hash_struct(field.type, value, schema)]))
        else:
            slots.append(_encode_slot(primary_type, field, field.type, value))
    return b"".join(slots)


def hash_struct(primary_type: str, values: Mapping[str, Any], schema: Schema) -> bytes:
    """Keccak-256 of `encode_data`."""
    return keccak(encode_data(primary_type, values, schema))


def _domain_values(domain: EIP712Domain | Mapping[str, Any]) -> dict[str, Any]:
    if not isinstance(domain, EIP712Domain):
        domain = EIP712Domain.model_validate(domain)
    return domain.to_dict()


def domain_type(domain: EIP712Domain | Mapping[str, Any]) -> list[FieldDescriptor]:
    """Canonical domain descriptors restricted to the fields set on `domain`.

    A field counts as set when it is not None, so `chainId=0` or an empty
    `name` still take part in the domain type.
    """
    values = _domain_values(domain)
    return [f for f in DOMAIN_FIELDS if f.name in values]


def domain_separator(domain: EIP712Domain | Mapping[str, Any]) -> bytes:
    """Hash of the domain struct, binding a signature to one contract and chain."""
    values = _domain_values(domain)
    schema = {DOMAIN_TYPE_NAME: domain_type(domain)}
    return hash_struct(DOMAIN_TYPE_NAME, values, schema)


def digest_to_sign(
    domain: EIP712Domain | Mapping[str, Any],
    primary_type: str,
    message: Mapping[str, Any],
    schema: Schema,
) -> bytes:
    """Build `keccak256(0x1901 || domainSeparator || hashStruct(message))`."""
    separator = domain_separator(domain)
    struct_hash = hash_struct(primary_type, message, schema)
    digest = keccak(EIP712_PREFIX + separator + struct_hash)
    logger.debug(
        "eip712.digest",
        primary_type=primary_type,
        domain_separator="0x" + separator.hex(),
        digest="0x" + digest.hex(),
    )
    return digest


def hash_typed_data(payload: TypedData | Mapping[str, Any]) -> bytes:
    """Digest of a full `{types, primaryType, domain, message}` payload."""
    if not isinstance(payload, TypedData):
        payload = TypedData.model_validate(payload)
    return digest_to_sign(payload.domain, payload.primary_type, payload.message, payload.types)
