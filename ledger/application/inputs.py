import uuid
from decimal import Decimal, InvalidOperation

from ledger.domain.exceptions import ValidationError

CENT = Decimal("0.01")
# Activity.amount holds 14 digits, two of them decimal.
AMOUNT_LIMIT = Decimal("1e12")


def parse_amount(value, field="amount"):
    """Coerce a positive currency amount with at most two decimal places."""
    if value is None or value == "":
        raise ValidationError(field, "is required")
    if isinstance(value, bool):
        raise ValidationError(field, "must be a number")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(field, "must be a number") from None
    if not amount.is_finite():
        raise ValidationError(field, "must be a finite number")
    if amount <= 0:
        raise ValidationError(field, "must be greater than zero")
    if amount >= AMOUNT_LIMIT:
        raise ValidationError(field, f"must be less than {AMOUNT_LIMIT:,.0f}")
    cents = amount.quantize(CENT)
    if amount != cents:
        raise ValidationError(field, "must have at most two decimal places")
    return cents
