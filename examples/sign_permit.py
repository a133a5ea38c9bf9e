"""Example: sign an ERC-721 permit off-chain and verify it locally.

The signature lets the spender call `permitToApprove` on the token contract
without a transaction from the owner.

To run:
    export PERMIT_SIGNER_PRIVATE_KEY=0x...
    python sign_permit.py
"""

from erc721_permit import PermitWallet
from erc721_permit.log import configure_logging

# Hardhat's first deployment address on a local node
CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
# Hardhat account #1
SPENDER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


def main():
    configure_logging(verbose=True)

    wallet = PermitWallet.from_env(
        contract_name="ERC721OffchainPermit",
        verifying_contract=CONTRACT_ADDRESS,
        chain_id=31337,
    )

    permit = wallet.sign_permit(spender=SPENDER, token_id=0, nonce=0)

    print(f"Owner:     {wallet.address}")
    print(f"Deadline:  {permit['deadline']}")
    print(f"Digest:    {permit['digest']}")
    print(f"Signature: {permit['signature']}")
    print(f"v={permit['v']} r={permit['r']} s={permit['s']}")

    valid = wallet.verify_permit(
        spender=SPENDER,
        token_id=0,
        nonce=0,
        deadline=permit["deadline"],
        signature=permit["signature"],
    )
    print(f"Recovers to owner: {valid}")


if __name__ == "__main__":
    main()
