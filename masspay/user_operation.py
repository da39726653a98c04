"""
ERC-4337 v0.7 user operation.

Kept in the unpacked form the bundler RPC speaks; ``pack()`` and ``hash()``
produce the EntryPoint v0.7 PackedUserOperation encoding the smart account
signs over.
"""
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from eth_abi import encode
from web3 import Web3

# SimpleAccount dummy signature: valid length, recovers to a throwaway key so
# simulation does not revert before the paymaster sees the operation.
DUMMY_SIGNATURE = (
    "0xfffffffffffffffffffffffffffffff0000000000000000000000000000000007"
    "aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa1c"
)


def to_quantity(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    s = str(value).strip()
    return int(s, 16) if s.lower().startswith("0x") else int(s)


def to_hex_quantity(value: int) -> str:
    return hex(int(value))


def hex_to_bytes(value: Optional[str]) -> bytes:
    if not value:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    s = value[2:] if value.lower().startswith("0x") else value
    return bytes.fromhex(s)


def _pack_uint128_pair(high: int, low: int) -> bytes:
    return int(high).to_bytes(16, "big") + int(low).to_bytes(16, "big")


@dataclass(frozen=True)
class UserOperation:
    sender: str
    nonce: int
    call_data: str
    factory: Optional[str] = None
    factory_data: Optional[str] = None
    call_gas_limit: int = 0
    verification_gas_limit: int = 0
    pre_verification_gas: int = 0
    max_fee_per_gas: int = 0
    max_priority_fee_per_gas: int = 0
    paymaster: Optional[str] = None
    paymaster_verification_gas_limit: Optional[int] = None
    paymaster_post_op_gas_limit: Optional[int] = None
    paymaster_data: Optional[str] = None
    signature: str = DUMMY_SIGNATURE

    # ---------- RPC form ----------
    def to_rpc(self) -> Dict[str, str]:
        out = {
            "sender": Web3.to_checksum_address(self.sender),
            "nonce": to_hex_quantity(self.nonce),
            "callData": self.call_data,
            "callGasLimit": to_hex_quantity(self.call_gas_limit),
            "verificationGasLimit": to_hex_quantity(self.verification_gas_limit),
            "preVerificationGas": to_hex_quantity(self.pre_verification_gas),
            "maxFeePerGas": to_hex_quantity(self.max_fee_per_gas),
            "maxPriorityFeePerGas": to_hex_quantity(self.max_priority_fee_per_gas),
            "signature": self.signature,
        }
        if self.factory:
            out["factory"] = Web3.to_checksum_address(self.factory)
            out["factoryData"] = self.factory_data or "0x"
        if self.paymaster:
            out["paymaster"] = Web3.to_checksum_address(self.paymaster)
            out["paymasterVerificationGasLimit"] = to_hex_quantity(self.paymaster_verification_gas_limit or 0)
            out["paymasterPostOpGasLimit"] = to_hex_quantity(self.paymaster_post_op_gas_limit or 0)
            out["paymasterData"] = self.paymaster_data or "0x"
        return out

    def with_sponsorship(self, fields: Dict[str, Any]) -> "UserOperation":
        """Merge a paymaster sponsorship response (gas limits + paymaster data)."""
        updates: Dict[str, Any] = {}
        quantities = {
            "callGasLimit": "call_gas_limit",
            "verificationGasLimit": "verification_gas_limit",
            "preVerificationGas": "pre_verification_gas",
            "maxFeePerGas": "max_fee_per_gas",
            "maxPriorityFeePerGas": "max_priority_fee_per_gas",
            "paymasterVerificationGasLimit": "paymaster_verification_gas_limit",
            "paymasterPostOpGasLimit": "paymaster_post_op_gas_limit",
        }
        for key, attr in quantities.items():
            if fields.get(key) is not None:
                updates[attr] = to_quantity(fields[key])
        if fields.get("paymaster"):
            updates["paymaster"] = fields["paymaster"]
            updates["paymaster_data"] = fields.get("paymasterData") or "0x"
        return replace(self, **updates)

    def with_signature(self, signature: bytes) -> "UserOperation":
        return replace(self, signature="0x" + bytes(signature).hex())

    # ---------- packed form ----------
    @property
    def init_code(self) -> bytes:
        if not self.factory:
            return b""
        return hex_to_bytes(self.factory) + hex_to_bytes(self.factory_data)

    @property
    def paymaster_and_data(self) -> bytes:
        if not self.paymaster:
            return b""
        return (
            hex_to_bytes(self.paymaster)
            + int(self.paymaster_verification_gas_limit or 0).to_bytes(16, "big")
            + int(self.paymaster_post_op_gas_limit or 0).to_bytes(16, "big")
            + hex_to_bytes(self.paymaster_data)
        )

    @property
    def account_gas_limits(self) -> bytes:
        return _pack_uint128_pair(self.verification_gas_limit, self.call_gas_limit)

    @property
    def gas_fees(self) -> bytes:
        return _pack_uint128_pair(self.max_priority_fee_per_gas, self.max_fee_per_gas)

    def pack(self) -> bytes:
        return encode(
            ["address", "uint256", "bytes32", "bytes32", "bytes32", "uint256", "bytes32", "bytes32"],
            [
                Web3.to_checksum_address(self.sender),
                int(self.nonce),
                Web3.keccak(self.init_code),
                Web3.keccak(hex_to_bytes(self.call_data)),
                self.account_gas_limits,
                int(self.pre_verification_gas),
                self.gas_fees,
                Web3.keccak(self.paymaster_and_data),
            ],
        )

    def hash(self, entry_point: str, chain_id: int) -> bytes:
        return bytes(Web3.keccak(encode(
            ["bytes32", "address", "uint256"],
            [Web3.keccak(self.pack()), Web3.to_checksum_address(entry_point), int(chain_id)],
        )))

    @property
    def total_gas(self) -> int:
        return (
            self.pre_verification_gas
            + self.call_gas_limit
            + self.verification_gas_limit
            + (self.paymaster_post_op_gas_limit or 0)
            + (self.paymaster_verification_gas_limit or 0)
        )
