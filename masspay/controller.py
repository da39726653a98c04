"""
Sequential batch execution.

``transition`` is the whole state machine: Idle -> Running(0) -> ... ->
Running(n-1) -> Done. Each batch reaches exactly one terminal status and the
cursor only moves forward, whether the batch completed or failed.
``BatchExecutionController`` drives it against an ExecutionGateway.
"""
import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Sequence, Tuple

from .errors import (
    AuthorizationFailed,
    InvalidInput,
    InvalidTransition,
    SubmissionInProgress,
)
from .models import (
    IDLE_CURSOR,
    BatchStatus,
    ExecutionState,
    GasEstimate,
    PermitAuthorization,
    Recipient,
    RunPhase,
    SubmissionResult,
    TransferBatch,
)
from .parser import total_base_units
from .receipt import ReceiptExporter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionStarted:
    batches: Tuple[TransferBatch, ...]


@dataclass(frozen=True)
class BatchDispatched:
    index: int


@dataclass(frozen=True)
class BatchOutcome:
    index: int
    result: SubmissionResult
    explorer_url: Optional[str] = None


def _replace_batch(state: ExecutionState, index: int, batch: TransferBatch) -> Tuple[TransferBatch, ...]:
    batches = list(state.batches)
    batches[index] = batch
    return tuple(batches)


def _finish_if_done(state: ExecutionState) -> ExecutionState:
    if state.cursor >= len(state.batches):
        return replace(state, receipt=ReceiptExporter.export(state.batches))
    return state


def transition(state: ExecutionState, event) -> ExecutionState:
    phase = state.phase

    if isinstance(event, SubmissionStarted):
        if phase is RunPhase.RUNNING:
            raise SubmissionInProgress("A submission is already running")
        return _finish_if_done(ExecutionState(batches=tuple(event.batches), cursor=0))

    if phase is not RunPhase.RUNNING:
        raise InvalidTransition(f"{type(event).__name__} received while {phase.value}")
    if event.index != state.cursor:
        raise InvalidTransition(f"Event for batch {event.index} but cursor is at {state.cursor}")

    batch = state.batches[state.cursor]

    if isinstance(event, BatchDispatched):
        if batch.status is not BatchStatus.NOT_STARTED:
            raise InvalidTransition(f"Batch {event.index} already {batch.status.value}")
        pending = replace(batch, status=BatchStatus.PENDING)
        return replace(state, batches=_replace_batch(state, event.index, pending))

    if isinstance(event, BatchOutcome):
        if event.result.ok:
            done = replace(
                batch,
                status=BatchStatus.COMPLETE,
                tx_hash=event.result.tx_hash,
                explorer_url=event.explorer_url,
                user_op_hash=event.result.user_op_hash,
            )
        else:
            done = replace(
                batch,
                status=BatchStatus.FAILED,
                tx_hash=None,
                explorer_url=None,
                user_op_hash=event.result.user_op_hash,
            )
        advanced = replace(
            state,
            batches=_replace_batch(state, event.index, done),
            cursor=state.cursor + 1,
        )
        return _finish_if_done(advanced)

    raise InvalidTransition(f"Unknown event {event!r}")


class BatchExecutionController:
    def __init__(self, gateway, authorizer, builder, planner,
                 explorer_url_for: Callable[[str], str],
                 on_change: Optional[Callable[[ExecutionState], None]] = None):
        self.gateway = gateway
        self.authorizer = authorizer
        self.builder = builder
        self.planner = planner
        self.explorer_url_for = explorer_url_for
        self.on_change = on_change
        self._state = ExecutionState()

    @property
    def state(self) -> ExecutionState:
        return self._state

    def _apply(self, event) -> ExecutionState:
        self._state = transition(self._state, event)
        if self.on_change is not None:
            self.on_change(self._state)
        return self._state

    def reset(self) -> ExecutionState:
        if self._state.phase is RunPhase.RUNNING:
            raise SubmissionInProgress("Cannot reset while a submission is running")
        self._state = ExecutionState(cursor=IDLE_CURSOR)
        if self.on_change is not None:
            self.on_change(self._state)
        return self._state

    # ---------- pre-submission ----------
    def authorize(self, recipients: Sequence[Recipient]) -> PermitAuthorization:
        """Sign one permit covering every recipient, spendable by the smart account."""
        if not recipients:
            raise InvalidInput(["no recipients found"])
        owner = self.authorizer.session.address
        try:
            spender = self.gateway.smart_account_address()
        except Exception as e:
            raise AuthorizationFailed(f"Could not resolve smart account: {e}") from e
        value = total_base_units(recipients, self.builder.decimals)
        return self.authorizer.authorize(owner, spender, value)

    def estimate(self, recipients: Sequence[Recipient], estimator) -> GasEstimate:
        """
        Advisory cost of the whole payout. Each batch is simulated on its own
        against current chain state, so every call set carries the permit;
        otherwise batches after the first would revert for lack of allowance.
        Nothing is sent, so the permit is never consumed.
        """
        batches = self.planner.plan(recipients)
        authorization = self.authorize(recipients)
        return estimator.estimate_all(self.builder.build(batch, authorization) for batch in batches)

    # ---------- run ----------
    def submit(self, recipients: Sequence[Recipient]) -> ExecutionState:
        if self._state.phase is RunPhase.RUNNING:
            raise SubmissionInProgress("A submission is already running")

        batches = self.planner.plan(recipients)
        authorization = self.authorize(recipients)

        self._apply(SubmissionStarted(tuple(batches)))
        logger.info("Submitting %d recipient(s) in %d batch(es)", len(recipients), len(batches))

        for index, batch in enumerate(batches):
            self._apply(BatchDispatched(index))
            result = self._run_batch(index, batch, authorization if index == 0 else None)
            url = self.explorer_url_for(result.tx_hash) if result.ok else None
            self._apply(BatchOutcome(index, result, url))

        logger.info(
            "Submission finished: %d complete, %d failed",
            self._state.count(BatchStatus.COMPLETE),
            self._state.count(BatchStatus.FAILED),
        )
        return self._state

    def _run_batch(self, index: int, batch: TransferBatch,
                   authorization: Optional[PermitAuthorization]) -> SubmissionResult:
        try:
            call_set = self.builder.build(batch, authorization)
            result = self.gateway.submit(call_set)
        except Exception as e:
            op_hash = getattr(e, "user_op_hash", None)
            logger.error("Batch %d (%s) failed: %s", index + 1, batch.id, e)
            if op_hash:
                # already sent; it may still land on-chain
                logger.warning("Batch %d user operation %s may still be included", index + 1, op_hash)
            return SubmissionResult.failed(str(e), user_op_hash=op_hash)

        if result.ok:
            logger.info("Batch %d complete: %s", index + 1, result.tx_hash)
        else:
            logger.warning("Batch %d failed: %s (user operation %s)", index + 1, result.reason, result.user_op_hash)
        return result
