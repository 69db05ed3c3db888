from __future__ import annotations


def format_currency(cents: int, symbol: str = "₱") -> str:
    """Format integer cents for operator-facing messages, e.g. 150050 -> '₱1,500.50'."""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(int(cents)), 100)
    return f"{sign}{symbol}{whole:,}.{frac:02d}"


def apply_rate_bps(amount_cents: int, rate_bps: int) -> int:
    """amount x rate (basis points), rounded half-up to the nearest cent."""
    if rate_bps <= 0:
        return 0
    return (amount_cents * rate_bps + 5000) // 10000
