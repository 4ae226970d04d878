from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value, ndigits: int = 0):
    """Round halves away from zero (1/8 of 100 gives 13, not 12)."""
    if value is None:
        return 0
    exponent = Decimal(1).scaleb(-ndigits)
    rounded = Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)
    return int(rounded) if ndigits == 0 else float(rounded)


def percentage(part, whole, ndigits: int = 0):
    """``part / whole`` as a rounded percentage, 0 when ``whole`` is empty."""
    if not whole:
        return 0
    return round_half_up(part / whole * 100, ndigits)
