"""Small numeric helpers shared by the derived metrics."""


def safe_ratio(numerator: float, denominator: float) -> float:
    """Divide, reporting 0.0 instead of failing or producing NaN on a zero divisor."""
    if not denominator:
        return 0.0
    return numerator / denominator


def format_delta(value: float) -> str:
    """Format an absolute percentage (100 = average) as a signed delta, e.g. ``+2.3%``."""
    delta = value - 100
    sign = "+" if delta >= 0 else ""
    return f"{sign}{delta:.1f}%"
