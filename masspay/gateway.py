"""
Execution gateway: the boundary between the orchestration engine and the
smart-account / sponsor / network infrastructure.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

from web3 import Web3

from .errors import BatchSubmissionFailed, GatewayUnavailable
from .models import PreparedCallSet, SubmissionResult
from .user_operation import DUMMY_SIGNATURE, UserOperation

logger = logging.getLogger(__name__)

ACCOUNT_SALT = 0
NONCE_KEY = 0


class ExecutionGateway(ABC):
    @abstractmethod
    def smart_account_address(self) -> str:
        """Counterfactual address of the owner's smart account (the permit spender)."""

    @abstractmethod
    def prepare(self, call_set: PreparedCallSet) -> UserOperation:
        """Build and sponsor an operation for call_set without submitting it."""

    @abstractmethod
    def submit(self, call_set: PreparedCallSet) -> SubmissionResult:
        """Submit call_set and block until it lands or fails."""

    @abstractmethod
    def get_base_fee(self) -> int:
        ...


def _load_abi(abi):
    return json.loads(abi) if isinstance(abi, str) else abi


class SponsoredGateway(ExecutionGateway):
    """
    SimpleAccount (EntryPoint v0.7) driven through a paymaster-enabled
    bundler. The owner session signs each user operation hash; the paymaster
    pays gas under the configured sponsorship policy.
    """

    def __init__(self, chain_config, session, web3h, bundler, receipt_timeout: Optional[float] = None):
        self.cfg = chain_config
        self.session = session
        self.web3h = web3h
        self.w3 = web3h.w3
        self.bundler = bundler
        self.chain_id = int(chain_config.CHAIN_ID)
        self.entry_point_address = Web3.to_checksum_address(chain_config.ENTRY_POINT_ADDRESS)
        self.policy_id = getattr(chain_config, "SPONSORSHIP_POLICY_ID", None) or None
        self.receipt_timeout = receipt_timeout or getattr(chain_config, "RECEIPT_TIMEOUT", 180)

        self.entry_point = self.w3.eth.contract(
            address=self.entry_point_address,
            abi=_load_abi(chain_config.ENTRY_POINT_ABI),
        )
        self.factory = self.w3.eth.contract(
            address=Web3.to_checksum_address(chain_config.SIMPLE_ACCOUNT_FACTORY),
            abi=_load_abi(chain_config.SIMPLE_ACCOUNT_FACTORY_ABI),
        )
        self.account_abi = _load_abi(chain_config.SIMPLE_ACCOUNT_ABI)
        self._account_address: Optional[str] = None

    # ---------- account ----------
    def smart_account_address(self) -> str:
        if self._account_address is None:
            try:
                addr = self.factory.functions.getAddress(self.session.address, ACCOUNT_SALT).call()
            except Exception as e:
                raise GatewayUnavailable(f"Could not resolve smart account address: {e}") from e
            self._account_address = Web3.to_checksum_address(addr)
            logger.info("Smart account for %s: %s", self.session.address, self._account_address)
        return self._account_address

    def _init_fields(self, sender: str):
        if self.web3h.is_deployed(sender):
            return None, None
        factory_data = self.factory.encode_abi("createAccount", args=[self.session.address, ACCOUNT_SALT])
        return self.factory.address, factory_data

    def _encode_execute_batch(self, sender: str, call_set: PreparedCallSet) -> str:
        account = self.w3.eth.contract(address=sender, abi=self.account_abi)
        return account.encode_abi(
            "executeBatch",
            args=[
                [Web3.to_checksum_address(c.to) for c in call_set.calls],
                [0] * len(call_set.calls),
                [bytes.fromhex(c.data[2:]) for c in call_set.calls],
            ],
        )

    # ---------- ExecutionGateway ----------
    def get_base_fee(self) -> int:
        try:
            return self.web3h.base_fee()
        except Exception as e:
            raise GatewayUnavailable(f"Could not read base fee: {e}") from e

    def prepare(self, call_set: PreparedCallSet) -> UserOperation:
        if not call_set.calls:
            raise BatchSubmissionFailed(f"Batch {call_set.batch_id} has no calls")
        sender = self.smart_account_address()
        try:
            nonce = int(self.entry_point.functions.getNonce(sender, NONCE_KEY).call())
            factory, factory_data = self._init_fields(sender)
        except Exception as e:
            raise GatewayUnavailable(f"Could not read smart account state: {e}") from e

        max_fee, max_prio = self.bundler.get_user_operation_gas_price()
        op = UserOperation(
            sender=sender,
            nonce=nonce,
            call_data=self._encode_execute_batch(sender, call_set),
            factory=factory,
            factory_data=factory_data,
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=max_prio,
            signature=DUMMY_SIGNATURE,
        )
        sponsorship = self.bundler.sponsor_user_operation(
            op.to_rpc(), self.entry_point_address, self.policy_id
        )
        return op.with_sponsorship(sponsorship)

    def submit(self, call_set: PreparedCallSet) -> SubmissionResult:
        op = self.prepare(call_set)
        user_op_hash = op.hash(self.entry_point_address, self.chain_id)
        signed = op.with_signature(self.session.sign_hash(user_op_hash))

        op_hash = self.bundler.send_user_operation(signed.to_rpc(), self.entry_point_address)
        logger.info("Batch %s sent as user operation %s", call_set.batch_id, op_hash)

        receipt = self.bundler.wait_for_receipt(op_hash, timeout=self.receipt_timeout)
        tx_hash = (receipt.get("receipt") or {}).get("transactionHash")
        if receipt.get("success") and tx_hash:
            return SubmissionResult.complete(tx_hash, user_op_hash=op_hash)
        reason = receipt.get("reason") or "user operation reverted"
        return SubmissionResult.failed(reason, user_op_hash=op_hash)
