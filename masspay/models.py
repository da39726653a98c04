from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from enum import Enum
from typing import Optional, Tuple

from web3 import Web3

from .errors import EstimationFailed

IDLE_CURSOR = -1


def to_base_units(amount: Decimal, decimals: int) -> int:
    """Exact conversion of a token amount to its smallest unit."""
    with localcontext() as ctx:
        ctx.prec = 80
        return int(Decimal(amount).scaleb(decimals))


def short_hash(value: Optional[str]) -> str:
    if not value:
        return ""
    return f"{value[:6]}...{value[-4:]}" if len(value) > 12 else value


@dataclass(frozen=True)
class Recipient:
    address: str
    amount: Decimal

    def amount_base_units(self, decimals: int) -> int:
        return to_base_units(self.amount, decimals)


class BatchStatus(Enum):
    NOT_STARTED = "NotStarted"
    PENDING = "Pending"
    COMPLETE = "Complete"
    FAILED = "Failed"


@dataclass(frozen=True)
class TransferBatch:
    id: str
    recipients: Tuple[Recipient, ...]
    status: BatchStatus = BatchStatus.NOT_STARTED
    tx_hash: Optional[str] = None
    explorer_url: Optional[str] = None
    user_op_hash: Optional[str] = None

    @property
    def display_hash(self) -> str:
        return short_hash(self.tx_hash)

    @property
    def total_amount(self) -> Decimal:
        return sum((r.amount for r in self.recipients), Decimal(0))


@dataclass(frozen=True)
class PermitSignature:
    v: int
    r: str  # 0x-prefixed bytes32
    s: str

    @property
    def r_bytes(self) -> bytes:
        return bytes.fromhex(self.r[2:]).rjust(32, b"\x00")

    @property
    def s_bytes(self) -> bytes:
        return bytes.fromhex(self.s[2:]).rjust(32, b"\x00")


@dataclass(frozen=True)
class PermitAuthorization:
    token: str
    owner: str
    spender: str
    value: int
    nonce: int
    deadline: int
    signature: PermitSignature


@dataclass(frozen=True)
class Call:
    from_: str
    to: str
    data: str


@dataclass(frozen=True)
class PreparedCallSet:
    batch_id: str
    calls: Tuple[Call, ...]
    carries_permit: bool = False

    def __len__(self) -> int:
        return len(self.calls)


@dataclass(frozen=True)
class SubmissionResult:
    tx_hash: Optional[str] = None
    reason: Optional[str] = None
    user_op_hash: Optional[str] = None

    @property
    def ok(self) -> bool:
        return bool(self.tx_hash)

    @classmethod
    def complete(cls, tx_hash: str, user_op_hash: Optional[str] = None) -> "SubmissionResult":
        return cls(tx_hash=tx_hash, user_op_hash=user_op_hash)

    @classmethod
    def failed(cls, reason: str, user_op_hash: Optional[str] = None) -> "SubmissionResult":
        return cls(reason=reason or "unknown failure", user_op_hash=user_op_hash)


@dataclass(frozen=True)
class GasEstimate:
    cost_wei: int = 0
    gas_used: int = 0
    gas_price: int = 0
    error: Optional[EstimationFailed] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def describe(self) -> str:
        if self.failed:
            return f"Gas estimation failed: {self.error}"
        gwei = Web3.from_wei(self.cost_wei, "gwei")
        eth = Web3.from_wei(self.cost_wei, "ether")
        return f"Gas cost for this transaction is {gwei} gwei ({eth} ETH)."


class RunPhase(Enum):
    IDLE = "Idle"
    RUNNING = "Running"
    DONE = "Done"


@dataclass(frozen=True)
class ExecutionState:
    batches: Tuple[TransferBatch, ...] = field(default_factory=tuple)
    cursor: int = IDLE_CURSOR
    receipt: Optional[str] = None

    @property
    def phase(self) -> RunPhase:
        if self.cursor == IDLE_CURSOR:
            return RunPhase.IDLE
        if self.cursor >= len(self.batches):
            return RunPhase.DONE
        return RunPhase.RUNNING

    @property
    def current(self) -> Optional[TransferBatch]:
        if self.phase is RunPhase.RUNNING:
            return self.batches[self.cursor]
        return None

    def count(self, status: BatchStatus) -> int:
        return sum(1 for b in self.batches if b.status is status)
