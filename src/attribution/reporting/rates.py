"""Zero-safe conversion-rate arithmetic."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")


def conversion_rate(numerator: int, denominator: int) -> str:
    """Express ``numerator / denominator`` as a percentage with 2 decimals.

    A zero denominator yields ``"0"`` rather than an error, whatever the
    numerator is.

    Args:
        numerator: Downstream conversions (e.g. FTDs).
        denominator: Upstream funnel stage (e.g. cookie sets).

    Returns:
        The rate as a string, e.g. ``"33.33"``.
    """
    if denominator == 0:
        return "0"
    pct = Decimal(numerator) * 100 / Decimal(denominator)
    return str(pct.quantize(_CENT, rounding=ROUND_HALF_UP))


def conversion_rates(cookie_sets: int, registrations: int, ftds: int) -> dict[str, str]:
    """Return both funnel rates keyed as they appear in reports."""
    return {
        "cookieToFtd": conversion_rate(ftds, cookie_sets),
        "regToFtd": conversion_rate(ftds, registrations),
    }
