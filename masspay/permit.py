"""
EIP-2612 permit authorization.

One permit per submission: the owner signs off-chain for the total value of
every batch, and the first batch's operation consumes it on-chain.
"""
import logging
import time
from typing import Any, Callable, Dict, Optional

from web3 import Web3

from .errors import AuthorizationFailed
from .models import PermitAuthorization, PermitSignature

logger = logging.getLogger(__name__)

PERMIT_DEADLINE_SECONDS = 60 * 30

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]
PERMIT_TYPE = [
    {"name": "owner", "type": "address"},
    {"name": "spender", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
]


def default_domain_version(token_name: str) -> str:
    # USDC uses version 2 while most other tokens use version 1
    return "2" if token_name == "USD Coin" else "1"


def split_signature(signature: bytes) -> PermitSignature:
    sig = bytes(signature)
    if len(sig) != 65:
        raise ValueError(f"expected a 65-byte signature, got {len(sig)} bytes")
    v = sig[64]
    if v < 27:
        v += 27
    return PermitSignature(v=v, r="0x" + sig[:32].hex(), s="0x" + sig[32:64].hex())


def build_permit_typed_data(name: str, version: str, chain_id: int, token: str,
                            owner: str, spender: str, value: int, nonce: int, deadline: int) -> Dict[str, Any]:
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_TYPE,
            "Permit": PERMIT_TYPE,
        },
        "primaryType": "Permit",
        "domain": {
            "name": name,
            "version": version,
            "chainId": int(chain_id),
            "verifyingContract": Web3.to_checksum_address(token),
        },
        "message": {
            "owner": Web3.to_checksum_address(owner),
            "spender": Web3.to_checksum_address(spender),
            "value": int(value),
            "nonce": int(nonce),
            "deadline": int(deadline),
        },
    }


class PermitAuthorizer:
    def __init__(self, session, web3h, chain_config, clock: Callable[[], float] = time.time,
                 deadline_seconds: int = PERMIT_DEADLINE_SECONDS):
        self.session = session
        self.web3h = web3h
        self.chain_id = int(chain_config.CHAIN_ID)
        self.token = Web3.to_checksum_address(chain_config.TOKEN_ADDRESS)
        self.fallback_name = getattr(chain_config, "TOKEN_NAME", "")
        self.clock = clock
        self.deadline_seconds = int(deadline_seconds)

    def _domain(self):
        meta = self.web3h.token_meta(self.token) or {}
        name = meta.get("name") or self.fallback_name
        if not name:
            raise AuthorizationFailed(f"Could not resolve token name for {self.token}")
        version = meta.get("version") or default_domain_version(name)
        return name, version

    def authorize(self, owner: str, spender: str, total_value: int,
                  deadline: Optional[int] = None) -> PermitAuthorization:
        if int(total_value) <= 0:
            raise AuthorizationFailed("Permit value must be greater than zero")
        if Web3.to_checksum_address(owner) != Web3.to_checksum_address(self.session.address):
            raise AuthorizationFailed(f"Owner {owner} does not match the wallet session")

        if deadline is None:
            deadline = int(self.clock()) + self.deadline_seconds

        try:
            nonce = self.web3h.permit_nonce(self.token, owner)
            name, version = self._domain()
            typed_data = build_permit_typed_data(
                name, version, self.chain_id, self.token,
                owner, spender, total_value, nonce, deadline,
            )
            signature = split_signature(self.session.sign_typed_data(typed_data))
        except AuthorizationFailed:
            raise
        except Exception as e:
            logger.error("Error signing permit: %s", e)
            raise AuthorizationFailed(f"Permit signing failed: {e}") from e

        logger.info("Permit signed: value=%s nonce=%s deadline=%s spender=%s",
                    total_value, nonce, deadline, spender)
        return PermitAuthorization(
            token=self.token,
            owner=Web3.to_checksum_address(owner),
            spender=Web3.to_checksum_address(spender),
            value=int(total_value),
            nonce=int(nonce),
            deadline=int(deadline),
            signature=signature,
        )
