"""
Typed errors for the mass pay pipeline.

Pre-submission errors (InvalidInput, AuthorizationFailed) abort a run before
any batch is planned or executed. Per-batch errors (BatchSubmissionFailed,
GatewayUnavailable) are recorded on the batch and never stop the run.
EstimationFailed is advisory only.
"""
from typing import List, Optional


class MassPayError(Exception):
    """Base class for every mass pay error."""


class InvalidInput(MassPayError):
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        summary = f"{len(self.errors)} invalid line(s)" if self.errors else "invalid input"
        detail = "; ".join(self.errors[:5])
        super().__init__(f"{summary}: {detail}" if detail else summary)


class AuthorizationFailed(MassPayError):
    pass


class EstimationFailed(MassPayError):
    pass


class BatchSubmissionFailed(MassPayError):
    def __init__(self, message: str, user_op_hash: Optional[str] = None):
        super().__init__(message)
        self.user_op_hash = user_op_hash


class GatewayUnavailable(BatchSubmissionFailed):
    """Transport failure talking to the RPC node or the bundler."""


class SubmissionInProgress(MassPayError):
    pass


class InvalidTransition(MassPayError):
    pass
