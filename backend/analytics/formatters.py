from datetime import date

CURRENCY_CODE = "KES"


def format_currency(value: float) -> str:
    """Format a number as a KES amount, e.g. 1234.5 -> 'KES 1,234.50'."""
    sign = "-" if value < 0 else ""
    return f"{sign}{CURRENCY_CODE} {abs(value):,.2f}"


def format_large_number(value: float) -> str:
    """Abbreviate large numbers (e.g., 150000 -> 150k)."""
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.0f}k"
    return f"{value:g}"


def format_month(month_key: str) -> str:
    """Convert 'YYYY-MM' to a short month name, e.g. '2023-03' -> 'Mar'."""
    year, month = month_key.split("-")
    return date(int(year), int(month), 1).strftime("%b")
