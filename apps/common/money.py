from decimal import Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize(amount):
    return Decimal(amount).quantize(CENT)


def parse_amount(value):
    """Parse a user supplied money value into a 2-decimal Decimal.

    Returns ``None`` when the value is missing or not numeric so callers can
    decide which error to raise.
    """
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().replace(",", "")
    if not text:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount.quantize(CENT)
