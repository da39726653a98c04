import csv
import io
from pathlib import Path
from typing import Iterable, Union

from .models import TransferBatch

RECEIPT_HEADERS = ["txHash", "address to", "value", "status", "url"]


class ReceiptExporter:
    """CSV receipt: one row per recipient, batch fields repeated on each row."""

    @staticmethod
    def rows(batches: Iterable[TransferBatch]):
        for batch in batches:
            for r in batch.recipients:
                yield [batch.tx_hash or "", r.address, format(r.amount, "f"), batch.status.value, batch.explorer_url or ""]

    @staticmethod
    def export(batches: Iterable[TransferBatch]) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(RECEIPT_HEADERS)
        writer.writerows(ReceiptExporter.rows(batches))
        return buf.getvalue()

    @staticmethod
    def write(batches: Iterable[TransferBatch], out_path: Union[str, Path]) -> str:
        out_path = Path(out_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(out_path, "w", newline="", encoding="utf-8") as f:
            f.write(ReceiptExporter.export(batches))
        return str(out_path)
