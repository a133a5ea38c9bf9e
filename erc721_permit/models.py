"""Data models for EIP-712 typed data."""

from dataclasses import dataclass
from typing import Any

from eth_utils import to_bytes
from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldDescriptor(BaseModel):
    """A single `{name, type}` entry of a struct type definition."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str


class EIP712Domain(BaseModel):
    """EIP-712 domain values.

    Every field is optional; only the fields that are set take part in the
    domain's derived type. The attribute names follow the EIP-712 wire names.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str | None = None
    version: str | None = None
    chainId: int | None = None
    verifyingContract: str | None = None
    salt: bytes | None = None

    @field_validator("salt", mode="before")
    @classmethod
    def _salt_from_hex(cls, value: Any) -> Any:
        if isinstance(value, str):
            return to_bytes(hexstr=value)
        return value

    def to_dict(self) -> dict[str, Any]:
        """Return the set fields, in canonical domain order."""
        return self.model_dump(exclude_none=True)


class TypedData(BaseModel):
    """A full typed-data payload: `{types, primaryType, domain, message}`.

    This is the JSON shape wallets accept for `eth_signTypedData_v4`.
    """

    model_config = ConfigDict(populate_by_name=True)

    types: dict[str, list[FieldDescriptor]]
    primary_type: str = Field(alias="primaryType")
    domain: EIP712Domain
    message: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """Return the payload using EIP-712 wire names."""
        return {
            "types": {
                name: [field.model_dump() for field in fields]
                for name, fields in self.types.items()
            },
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message,
        }


@dataclass(frozen=True)
class Signature:
    """An ECDSA signature split into its `r`, `s` and `v` components."""

    r: int
    s: int
    v: int

    def to_bytes(self) -> bytes:
        """Pack back into the 65-byte `r || s || v` form."""
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.v])

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()
