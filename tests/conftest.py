import os
import sys
from decimal import Decimal
from types import SimpleNamespace

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import config
from masspay.models import PermitAuthorization, PermitSignature, Recipient, SubmissionResult

OWNER_KEY = "0x" + "4c" * 32
TOKEN = "0xfdcC3dd6671eaB0709A4C0f3F53De9a333d80798"
SMART_ACCOUNT = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"


def make_address(i: int) -> str:
    return "0x" + f"{i + 1:040x}"


def make_recipients(n: int, amount: str = "1.5"):
    return [Recipient(address=make_address(i), amount=Decimal(amount)) for i in range(n)]


class DummyChainConfig(SimpleNamespace):
    def __init__(self, **overrides):
        values = dict(
            RPC_URL="http://localhost:8545",
            CHAIN_ID=8453,
            CHAIN_NAME="base",
            EXPLORER_URL="https://basescan.org",
            TOKEN_ADDRESS=TOKEN,
            TOKEN_NAME="Stable Coin",
            TOKEN_SYMBOL="SBC",
            TOKEN_DECIMALS=18,
            ENTRY_POINT_ADDRESS=config.ENTRY_POINT_ADDRESS,
            SIMPLE_ACCOUNT_FACTORY=config.SIMPLE_ACCOUNT_FACTORY,
            SPONSORSHIP_POLICY_ID="sp_test",
            RECEIPT_TIMEOUT=5,
            TOKEN_ABI=config.TOKEN_ABI,
            LEGACY_NONCES_ABI=config.LEGACY_NONCES_ABI,
            ENTRY_POINT_ABI=config.ENTRY_POINT_ABI,
            SIMPLE_ACCOUNT_FACTORY_ABI=config.SIMPLE_ACCOUNT_FACTORY_ABI,
            SIMPLE_ACCOUNT_ABI=config.SIMPLE_ACCOUNT_ABI,
        )
        values.update(overrides)
        super().__init__(**values)


class FakeGateway:
    """
    Scripted gateway. ``outcomes`` is consumed one entry per submit: True for
    success, False for an on-chain failure, or an exception instance to raise.
    """

    def __init__(self, outcomes=None, account=SMART_ACCOUNT):
        self.outcomes = list(outcomes or [])
        self.account = account
        self.submitted = []

    def smart_account_address(self):
        if isinstance(self.account, Exception):
            raise self.account
        return self.account

    def prepare(self, call_set):
        raise NotImplementedError

    def get_base_fee(self):
        return 0

    def submit(self, call_set):
        self.submitted.append(call_set)
        outcome = self.outcomes.pop(0) if self.outcomes else True
        if isinstance(outcome, Exception):
            raise outcome
        if outcome:
            return SubmissionResult.complete("0x" + f"{len(self.submitted):064x}")
        return SubmissionResult.failed("execution reverted")


def make_authorization(owner, value, spender=SMART_ACCOUNT):
    return PermitAuthorization(
        token=TOKEN,
        owner=owner,
        spender=spender,
        value=value,
        nonce=0,
        deadline=2_000_000_000,
        signature=PermitSignature(v=27, r="0x" + "11" * 32, s="0x" + "22" * 32),
    )


@pytest.fixture
def chain_config():
    return DummyChainConfig()
