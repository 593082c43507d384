from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")

def round_currency(amount: float) -> float:
    """Half-up rounding to two decimals; str() avoids binary float artefacts like 2.675 -> 2.67"""
    return float(Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP))

def to_minor_units(amount: float) -> int:
    return int(Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP) * 100)
