"""Exceptions raised while encoding and signing EIP-712 permits.

Hierarchy:
    PermitError
    ├── EIP712EncodingError (also a ValueError)
    │   ├── UnknownTypeError
    │   ├── UnsupportedArrayEncodingError
    │   ├── MissingFieldValueError
    │   └── InvalidFieldValueError
    └── SigningCapabilityError
"""


class PermitError(Exception):
    """Root exception for this package."""


class EIP712EncodingError(PermitError, ValueError):
    """Typed data could not be encoded.

    Schemas and values are caller-supplied static data, so these errors are
    never retried.
    """


class UnknownTypeError(EIP712EncodingError):
    """A type name is neither a struct in the schema nor an ABI primitive."""

    def __init__(self, type_name: str, context: str | None = None):
        self.type_name = type_name
        message = f"Type '{type_name}' is not defined in the schema"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)


class UnsupportedArrayEncodingError(EIP712EncodingError):
    """Array-typed fields are not encoded.

    Raised instead of guessing an encoding, since a wrong encoding yields a
    digest no verifier will reconstruct.
    """

    def __init__(self, struct_name: str, field_name: str, field_type: str):
        self.struct_name = struct_name
        self.field_name = field_name
        self.field_type = field_type
        super().__init__(
            f"Array field '{struct_name}.{field_name}' ({field_type}) "
            f"cannot be encoded: arrays are not supported"
        )


class MissingFieldValueError(EIP712EncodingError):
    """A struct value has no entry for one of its declared fields."""

    def __init__(self, struct_name: str, field_name: str):
        self.struct_name = struct_name
        self.field_name = field_name
        super().__init__(f"Missing value for field '{struct_name}.{field_name}'")


class InvalidFieldValueError(EIP712EncodingError):
    """A field value does not fit its declared ABI type."""


class SigningCapabilityError(PermitError):
    """The external signing capability rejected or failed a request."""
