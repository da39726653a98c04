from decimal import Decimal

import pytest

from masspay.errors import InvalidInput
from masspay.parser import load_recipients_file, parse_recipients, total_amount, total_base_units
from masspay.models import Recipient

ADDR_A = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
ADDR_B = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"


def test_parse_two_valid_lines():
    text = f"{ADDR_A}, 0.01\n{ADDR_B.lower()},2"
    recipients = parse_recipients(text)
    assert recipients == [
        Recipient(ADDR_A, Decimal("0.01")),
        Recipient(ADDR_B, Decimal("2")),
    ]


def test_blank_and_comment_lines_are_ignored():
    text = f"# payroll\n\n{ADDR_A}, 1\n   \n"
    assert len(parse_recipients(text)) == 1


@pytest.mark.parametrize("amount", ["-1", "0", "abc", "NaN", "Infinity"])
def test_bad_amounts_rejected(amount):
    with pytest.raises(InvalidInput):
        parse_recipients(f"{ADDR_A}, {amount}")


def test_bad_address_rejected():
    with pytest.raises(InvalidInput) as exc:
        parse_recipients("notanaddress, 1")
    assert "line 1" in exc.value.errors[0]


def test_bad_checksum_rejected():
    # first letter's case flipped
    broken = "0xD8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
    with pytest.raises(InvalidInput):
        parse_recipients(f"{broken}, 1")


def test_checksum_error_names_the_line():
    broken = "0xD8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
    with pytest.raises(InvalidInput) as exc:
        parse_recipients(f"{ADDR_A}, 1\n{broken}, 1")
    assert exc.value.errors == [f"line 2: '{broken}' has an invalid checksum"]


def test_single_case_addresses_accepted():
    upper = "0x" + ADDR_A[2:].upper()
    recipients = parse_recipients(f"{ADDR_A.lower()}, 1\n{upper}, 2")
    assert [r.address for r in recipients] == [ADDR_A, ADDR_A]


def test_address_without_prefix_rejected():
    with pytest.raises(InvalidInput):
        parse_recipients(f"{ADDR_A[2:].lower()}, 1")


@pytest.mark.parametrize("text", ["", "   \n\n", "# only a comment"])
def test_empty_input_rejected(text):
    with pytest.raises(InvalidInput) as exc:
        parse_recipients(text)
    assert exc.value.errors == ["no recipients found"]


def test_wrong_field_count_rejected():
    with pytest.raises(InvalidInput):
        parse_recipients(f"{ADDR_A}, 1, extra")
    with pytest.raises(InvalidInput):
        parse_recipients(ADDR_A)


def test_all_errors_collected_and_nothing_accepted():
    text = f"{ADDR_A}, 1\nnotanaddress, 1\n{ADDR_B}, -5"
    with pytest.raises(InvalidInput) as exc:
        parse_recipients(text)
    assert len(exc.value.errors) == 2
    assert exc.value.errors[0].startswith("line 2")
    assert exc.value.errors[1].startswith("line 3")


def test_too_many_decimals_rejected():
    with pytest.raises(InvalidInput):
        parse_recipients(f"{ADDR_A}, 0.1234567", decimals=6)
    assert parse_recipients(f"{ADDR_A}, 0.123456", decimals=6)[0].amount == Decimal("0.123456")


def test_load_file_skips_header(tmp_path):
    path = tmp_path / "recipients.csv"
    path.write_text(f"Address,Amount\n{ADDR_A},0.5\n{ADDR_B},1.25\n")
    recipients = load_recipients_file(path)
    assert [r.amount for r in recipients] == [Decimal("0.5"), Decimal("1.25")]


def test_load_file_keeps_file_line_numbers(tmp_path):
    path = tmp_path / "recipients.csv"
    path.write_text(f"address,amount\n{ADDR_A},0.5\nbad,1\n")
    with pytest.raises(InvalidInput) as exc:
        load_recipients_file(path)
    assert exc.value.errors[0].startswith("line 3")


def test_total_amount_rounds_half_up_to_six_places():
    recipients = [
        Recipient(ADDR_A, Decimal("0.0000004")),
        Recipient(ADDR_B, Decimal("0.0000001")),
    ]
    assert total_amount(recipients) == Decimal("0.000001")


def test_total_amount_independent_of_grouping():
    amounts = [Decimal("0.1"), Decimal("0.2"), Decimal("0.3"), Decimal("1.000001")]
    recipients = [Recipient(ADDR_A, a) for a in amounts]
    whole = total_amount(recipients)
    halves = total_amount(recipients[:2]) + total_amount(recipients[2:])
    assert whole == halves == Decimal("1.600001")


def test_total_base_units_is_exact():
    recipients = [Recipient(ADDR_A, Decimal("0.1")), Recipient(ADDR_B, Decimal("0.2"))]
    assert total_base_units(recipients, 18) == 300_000_000_000_000_000
