import uuid
from typing import List, Sequence

from .models import BatchStatus, Recipient, TransferBatch

# Six transfers plus the permit stay inside a single sponsored operation's
# gas and calldata limits.
DEFAULT_BATCH_SIZE = 6


class BatchPlanner:
    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.batch_size = batch_size

    def plan(self, recipients: Sequence[Recipient]) -> List[TransferBatch]:
        """Split recipients into contiguous batches of at most batch_size."""
        return [
            TransferBatch(
                id=uuid.uuid4().hex,
                recipients=tuple(recipients[i: i + self.batch_size]),
                status=BatchStatus.NOT_STARTED,
            )
            for i in range(0, len(recipients), self.batch_size)
        ]
