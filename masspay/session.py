"""
Owner wallet session.

The session is passed explicitly to the permit authorizer and the gateway;
nothing in the pipeline reads a process-wide wallet handle.
"""
from typing import Any, Dict, Protocol

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data


class WalletSession(Protocol):
    address: str

    def sign_typed_data(self, typed_data: Dict[str, Any]) -> bytes:
        ...

    def sign_hash(self, message_hash: bytes) -> bytes:
        ...


class LocalWalletSession:
    """Signs with a private key held in memory (loaded from file or CLI)."""

    def __init__(self, private_key: str):
        self._account = Account.from_key(private_key)
        self.address = self._account.address

    def sign_typed_data(self, typed_data: Dict[str, Any]) -> bytes:
        signable = encode_typed_data(full_message=typed_data)
        return bytes(self._account.sign_message(signable).signature)

    def sign_hash(self, message_hash: bytes) -> bytes:
        # SimpleAccount validates an EIP-191 signature over the userOpHash
        signable = encode_defunct(primitive=bytes(message_hash))
        return bytes(self._account.sign_message(signable).signature)

    def __repr__(self) -> str:
        return f"LocalWalletSession({self.address})"
