"""EIP-712 permit utilities for ERC-721 `permitToApprove`."""

import time
from typing import Any

from .eip712 import hash_typed_data
from .signers import TypedDataSigner, sign

PERMIT_TYPE = "PermitToApprove"

PERMIT_TYPES: dict[str, list[dict[str, str]]] = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    PERMIT_TYPE: [
        {"name": "spender", "type": "address"},
        {"name": "tokenId", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}

SECONDS_PER_DAY = 24 * 60 * 60


def generate_deadline(days: float, now: int | None = None) -> int:
    """Unix timestamp `days` from `now` (defaults to the current time)."""
    if now is None:
        now = int(time.time())
    return now + int(days * SECONDS_PER_DAY)


def build_permit_typed_data(
    contract_name: str,
    verifying_contract: str,
    chain_id: int,
    spender: str,
    token_id: int,
    nonce: int,
    deadline: int,
    version: str = "1",
) -> dict[str, Any]:
    """Build EIP-712 typed data for PermitToApprove.

    Args:
        contract_name: Token contract name, as returned by `name()`
        verifying_contract: Token contract address
        chain_id: Chain the contract is deployed on
        spender: Address being approved
        token_id: Token to approve
        nonce: Current permit nonce of the token
        deadline: Unix timestamp after which the permit is rejected
        version: Contract's EIP-712 version string

    Raises:
        ValueError: If `token_id`, `nonce` or `deadline` is negative.
    """
    for label, value in (("token_id", token_id), ("nonce", nonce), ("deadline", deadline)):
        if value < 0:
            raise ValueError(f"{label} must be non-negative, got {value}")

    return {
        "types": PERMIT_TYPES,
        "primaryType": PERMIT_TYPE,
        "domain": {
            "name": contract_name,
            "version": version,
            "chainId": chain_id,
            "verifyingContract": verifying_contract,
        },
        "message": {
            "spender": spender,
            "tokenId": token_id,
            "nonce": nonce,
            "deadline": deadline,
        },
    }


def permit_digest(**permit: Any) -> bytes:
    """Digest the token contract reconstructs when verifying a permit.

    Takes the same keyword arguments as `build_permit_typed_data`.
    """
    return hash_typed_data(build_permit_typed_data(**permit))


def sign_permit(signer: TypedDataSigner, **permit: Any) -> str:
    """Sign a PermitToApprove message and return the signature.

    Takes the signing capability plus the keyword arguments of
    `build_permit_typed_data`.
    """
    typed_data = build_permit_typed_data(**permit)
    return sign(
        typed_data["domain"],
        typed_data["message"],
        typed_data["types"],
        signer,
        primary_type=PERMIT_TYPE,
    )
