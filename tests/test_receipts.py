from app.core.fees import format_receipt_no


def test_receipt_no_format() -> None:
    assert format_receipt_no("RC", "2024-2025", 1) == "RC20242025000001"
    assert format_receipt_no("RC", "2024-2025", 123456) == "RC20242025123456"
    assert format_receipt_no("FEE", "2025-2026", 7, width=4) == "FEE202520260007"


def test_sequence_wider_than_padding_is_kept() -> None:
    assert format_receipt_no("RC", "2024-2025", 1234567) == "RC202420251234567"
