"""ERC-721 permit - EIP-712 typed-data encoding and off-chain approval signing."""

from .eip712 import (
    dependencies,
    digest_to_sign,
    domain_separator,
    domain_type,
    encode_data,
    encode_type,
    find_primary_type,
    hash_struct,
    hash_typed_data,
    type_hash,
)
from .exceptions import (
    EIP712EncodingError,
    InvalidFieldValueError,
    MissingFieldValueError,
    PermitError,
    SigningCapabilityError,
    UnknownTypeError,
    UnsupportedArrayEncodingError,
)
from .models import EIP712Domain, FieldDescriptor, Signature, TypedData
from .permit import (
    PERMIT_TYPE,
    PERMIT_TYPES,
    build_permit_typed_data,
    generate_deadline,
    permit_digest,
    sign_permit,
)
from .signers import (
    JsonRpcSigner,
    LocalAccountSigner,
    TypedDataSigner,
    recover_signer,
    sign,
    split_signature,
)
from .wallet import PermitRecord, PermitWallet

__all__ = [
    "dependencies",
    "digest_to_sign",
    "domain_separator",
    "domain_type",
    "encode_data",
    "encode_type",
    "find_primary_type",
    "hash_struct",
    "hash_typed_data",
    "type_hash",
    "EIP712EncodingError",
    "InvalidFieldValueError",
    "MissingFieldValueError",
    "PermitError",
    "SigningCapabilityError",
    "UnknownTypeError",
    "UnsupportedArrayEncodingError",
    "EIP712Domain",
    "FieldDescriptor",
    "Signature",
    "TypedData",
    "PERMIT_TYPE",
    "PERMIT_TYPES",
    "build_permit_typed_data",
    "generate_deadline",
    "permit_digest",
    "sign_permit",
    "JsonRpcSigner",
    "LocalAccountSigner",
    "TypedDataSigner",
    "recover_signer",
    "sign",
    "split_signature",
    "PermitRecord",
    "PermitWallet",
]

__version__ = "0.1.0"
