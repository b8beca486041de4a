"""Human-readable receipt numbers: prefix + academic year + zero-padded per-year sequence."""


def format_receipt_no(prefix: str, academic_year: str, sequence: int, width: int = 6) -> str:
    """``format_receipt_no("RC", "2024-2025", 12)`` -> ``"RC20242025000012"``."""
    return f"{prefix}{academic_year.replace('-', '')}{sequence:0{width}d}"
