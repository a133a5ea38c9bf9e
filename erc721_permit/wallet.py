"""Permit wallet for signing ERC-721 approvals off-chain."""

import os
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from eth_keys.exceptions import BadSignature, ValidationError

from .exceptions import EIP712EncodingError
from .models import EIP712Domain
from .permit import (
    PERMIT_TYPE,
    PERMIT_TYPES,
    build_permit_typed_data,
    generate_deadline,
    permit_digest,
    sign_permit,
)
from .signers import LocalAccountSigner, recover_signer, split_signature

logger = structlog.get_logger("erc721_permit.wallet")


@dataclass
class PermitRecord:
    """Record of a permit signed by the wallet."""

    spender: str
    token_id: int
    nonce: int
    deadline: int
    signature: str
    digest: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class PermitWallet:
    """Wallet that signs PermitToApprove messages for one token contract.

    Holds a private key and the contract's EIP-712 domain, and keeps a
    history of the permits it signed.
    """

    DEFAULT_VALIDITY_DAYS = 7

    def __init__(
        self,
        contract_name: str,
        verifying_contract: str,
        chain_id: int,
        private_key: str | None = None,
        version: str = "1",
    ):
        """Initialize wallet.

        Args:
            contract_name: Token contract name, as returned by `name()`
            verifying_contract: Token contract address
            chain_id: Chain the contract is deployed on
            private_key: Hex-encoded private key. If None, generates a new one.
            version: Contract's EIP-712 version string
        """
        if private_key is None:
            private_key = "0x" + secrets.token_hex(32)

        self._signer = LocalAccountSigner(private_key)
        self._domain = EIP712Domain(
            name=contract_name,
            version=version,
            chainId=chain_id,
            verifyingContract=verifying_contract,
        )
        self._permits: list[PermitRecord] = []

    @property
    def address(self) -> str:
        """Get the wallet address."""
        return self._signer.address

    @property
    def domain(self) -> EIP712Domain:
        """Get the EIP-712 domain of the token contract."""
        return self._domain

    @property
    def chain_id(self) -> int:
        """Get the chain ID of the token contract."""
        return self._domain.chainId

    @property
    def verifying_contract(self) -> str:
        """Get the token contract address."""
        return self._domain.verifyingContract

    @property
    def permits(self) -> list[PermitRecord]:
        """Get the list of permit records."""
        return self._permits.copy()

    def _permit_args(self, spender: str, token_id: int, nonce: int, deadline: int) -> dict:
        return {
            "contract_name": self._domain.name,
            "verifying_contract": self._domain.verifyingContract,
            "chain_id": self._domain.chainId,
            "version": self._domain.version,
            "spender": spender,
            "token_id": token_id,
            "nonce": nonce,
            "deadline": deadline,
        }

    def sign_permit(
        self,
        spender: str,
        token_id: int,
        nonce: int,
        deadline: int | None = None,
    ) -> dict:
        """Sign a permit approving `spender` for `token_id`.

        Args:
            spender: Address to approve
            token_id: Token to approve
            nonce: Current permit nonce of the token (`getNonce(tokenId)`)
            deadline: Unix timestamp when the permit expires
                (default: 7 days from now)

        Returns:
            dict with signature, its v/r/s split, digest and permit fields

        Raises:
            ValueError: If a permit field is negative
            SigningCapabilityError: If signing fails
        """
        if deadline is None:
            deadline = generate_deadline(self.DEFAULT_VALIDITY_DAYS)

        permit = self._permit_args(spender, token_id, nonce, deadline)
        signature = sign_permit(self._signer, **permit)
        digest = "0x" + permit_digest(**permit).hex()
        parts = split_signature(signature)

        self._permits.append(
            PermitRecord(
                spender=spender,
                token_id=token_id,
                nonce=nonce,
                deadline=deadline,
                signature=signature,
                digest=digest,
            )
        )
        logger.info(
            "wallet.permit_signed",
            spender=spender,
            token_id=token_id,
            nonce=nonce,
            deadline=deadline,
        )

        return {
            "signature": signature,
            "v": parts.v,
            "r": "0x" + parts.r.to_bytes(32, "big").hex(),
            "s": "0x" + parts.s.to_bytes(32, "big").hex(),
            "digest": digest,
            "spender": spender,
            "tokenId": token_id,
            "nonce": nonce,
            "deadline": deadline,
        }

    def verify_permit(
        self,
        spender: str,
        token_id: int,
        nonce: int,
        deadline: int,
        signature: str,
    ) -> bool:
        """Check that `signature` is this wallet's permit for the given fields.

        Malformed signatures verify as False.
        """
        permit = self._permit_args(spender, token_id, nonce, deadline)
        typed_data = build_permit_typed_data(**permit)
        try:
            recovered = recover_signer(
                typed_data["domain"], PERMIT_TYPE, typed_data["message"], PERMIT_TYPES, signature
            )
        except EIP712EncodingError:
            raise
        except (ValueError, BadSignature, ValidationError) as e:
            logger.info("wallet.permit_rejected", error=str(e))
            return False
        return recovered == self.address

    def get_permit_summary(self) -> dict:
        """Get a summary of all permits signed."""
        return {
            "wallet_address": self.address,
            "chain_id": self.chain_id,
            "verifying_contract": self.verifying_contract,
            "permit_count": len(self._permits),
            "permits": [
                {
                    "spender": p.spender,
                    "token_id": p.token_id,
                    "nonce": p.nonce,
                    "deadline": p.deadline,
                    "timestamp": p.timestamp.isoformat(),
                }
                for p in self._permits
            ],
        }

    def clear_history(self) -> None:
        """Clear the permit history."""
        self._permits.clear()

    @classmethod
    def from_env(
        cls,
        contract_name: str,
        verifying_contract: str,
        chain_id: int,
        key_env_var: str = "PERMIT_SIGNER_PRIVATE_KEY",
        version: str = "1",
    ) -> "PermitWallet":
        """Create a wallet from an environment variable.

        Args:
            contract_name: Token contract name
            verifying_contract: Token contract address
            chain_id: Chain ID
            key_env_var: Name of environment variable containing private key
            version: Contract's EIP-712 version string

        Returns:
            PermitWallet instance
        """
        private_key = os.environ.get(key_env_var)
        if not private_key:
            raise ValueError(f"Environment variable {key_env_var} not set")
        return cls(
            contract_name=contract_name,
            verifying_contract=verifying_contract,
            chain_id=chain_id,
            private_key=private_key,
            version=version,
        )
