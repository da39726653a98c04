"""
Recipient list parsing.

Input is one recipient per line, ``address, amount``. The whole list is
accepted or rejected; errors for every bad line are collected into a single
InvalidInput so the caller can show them all at once.
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from web3 import Web3

from .errors import InvalidInput
from .models import Recipient, to_base_units

logger = logging.getLogger(__name__)

DEFAULT_DECIMALS = 18
DISPLAY_QUANTUM = Decimal("0.000001")
HEADER_FIELDS = ("address", "amount")


def _strip_comment(line: str) -> str:
    s = line.strip()
    if not s or s.startswith("#"):
        return ""
    return s


def _parse_amount(raw: str, decimals: int) -> Tuple[Optional[Decimal], Optional[str]]:
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        return None, f"amount '{raw}' is not a number"
    if not amount.is_finite():
        return None, f"amount '{raw}' is not finite"
    if amount <= 0:
        return None, f"amount must be greater than zero, got {raw}"
    exponent = amount.normalize().as_tuple().exponent
    if isinstance(exponent, int) and -exponent > decimals:
        return None, f"amount '{raw}' has more than {decimals} decimal places"
    return amount, None


def _parse_address(raw: str) -> Tuple[Optional[str], Optional[str]]:
    if not raw.startswith("0x") or not Web3.is_address(raw):
        return None, f"'{raw}' is not a valid address"
    body = raw[2:]
    # single-case hex carries no checksum; mixed case must be EIP-55
    if body != body.lower() and body != body.upper() and not Web3.is_checksum_address(raw):
        return None, f"'{raw}' has an invalid checksum"
    return Web3.to_checksum_address(raw), None


def parse_recipients(text: Optional[str], decimals: int = DEFAULT_DECIMALS) -> List[Recipient]:
    recipients: List[Recipient] = []
    errors: List[str] = []

    for line_no, raw_line in enumerate((text or "").splitlines(), start=1):
        line = _strip_comment(raw_line)
        if not line:
            continue
        fields = line.split(",")
        if len(fields) != 2:
            errors.append(f"line {line_no}: expected 'address, amount', got '{line}'")
            continue
        addr_raw, amt_raw = (f.strip() for f in fields)
        if not addr_raw or not amt_raw:
            errors.append(f"line {line_no}: missing address or amount")
            continue

        address, addr_err = _parse_address(addr_raw)
        amount, amt_err = _parse_amount(amt_raw, decimals)
        for err in (addr_err, amt_err):
            if err:
                errors.append(f"line {line_no}: {err}")
        if address and amount is not None:
            recipients.append(Recipient(address=address, amount=amount))

    if not recipients and not errors:
        errors.append("no recipients found")
    if errors:
        logger.debug("rejected recipient list: %s", errors)
        raise InvalidInput(errors)
    return recipients


def _is_header(line: str) -> bool:
    fields = tuple(f.strip().lower() for f in line.split(","))
    return fields == HEADER_FIELDS


def load_recipients_file(path: Union[str, Path], decimals: int = DEFAULT_DECIMALS) -> List[Recipient]:
    """
    Read recipients from a text or CSV file. A leading ``address,amount``
    header row is skipped.
    """
    with open(path, "r", encoding="utf-8-sig") as f:
        lines = f.read().splitlines()

    for idx, line in enumerate(lines):
        if not _strip_comment(line):
            continue
        if _is_header(line):
            # keep line numbers stable for error messages
            lines[idx] = ""
        break
    return parse_recipients("\n".join(lines), decimals=decimals)


def total_amount(recipients: Iterable[Recipient]) -> Decimal:
    total = sum((r.amount for r in recipients), Decimal(0))
    return total.quantize(DISPLAY_QUANTUM, rounding=ROUND_HALF_UP)


def total_base_units(recipients: Iterable[Recipient], decimals: int = DEFAULT_DECIMALS) -> int:
    return sum(to_base_units(r.amount, decimals) for r in recipients)
