"""Decimal coercion and the single rounding rule used for converted amounts."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, Overflow, localcontext
from numbers import Number

from fx_convert.errors import InvalidAmountError

# Minor-unit exponents per ISO 4217; anything not listed uses two decimals.
CURRENCY_EXPONENTS: dict[str, int] = {
    "JPY": 0,
    "KRW": 0,
    "BHD": 3,
    "KWD": 3,
}
DEFAULT_EXPONENT = 2


def coerce_amount(amount: object) -> Decimal:
    """Return ``amount`` as a finite, non-negative :class:`Decimal`."""

    if isinstance(amount, bool) or not isinstance(amount, (Number, str, Decimal)):
        raise InvalidAmountError(f"Amount must be numeric, got {amount!r}")
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise InvalidAmountError(f"Amount is not a number: {amount!r}") from exc
    if not value.is_finite():
        raise InvalidAmountError(f"Amount must be finite, got {amount!r}")
    if value < 0:
        raise InvalidAmountError(f"Amount must not be negative, got {amount!r}")
    return value


def to_rate(value: object) -> Decimal:
    """Convert a backend or provider rate value into a :class:`Decimal`.

    Floats go through ``str`` so ``0.253`` stays ``Decimal("0.253")``.
    """

    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid rate value: {value!r}") from exc


def minor_unit(currency: str) -> Decimal:
    exponent = CURRENCY_EXPONENTS.get(currency, DEFAULT_EXPONENT)
    return Decimal(1).scaleb(-exponent)


def _precision_for(*values: Decimal, exponent: int) -> int:
    # Exact product digits plus the integer digits kept after quantizing.
    digits = sum(len(value.as_tuple().digits) for value in values)
    magnitude = sum(abs(value.adjusted()) for value in values)
    return digits + magnitude + exponent + 4


def round_amount(amount: Decimal, currency: str) -> Decimal:
    """Round half-up to the smallest subunit of ``currency``."""

    exponent = CURRENCY_EXPONENTS.get(currency, DEFAULT_EXPONENT)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, _precision_for(amount, exponent=exponent))
        try:
            return amount.quantize(minor_unit(currency), rounding=ROUND_HALF_UP)
        except InvalidOperation as exc:
            raise InvalidAmountError(f"Amount {amount!r} cannot be represented in {currency}") from exc


def convert_amount(amount: Decimal, rate: Decimal, currency: str) -> Decimal:
    """Return ``amount * rate`` rounded to ``currency`` without losing digits."""

    exponent = CURRENCY_EXPONENTS.get(currency, DEFAULT_EXPONENT)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, _precision_for(amount, rate, exponent=exponent))
        try:
            product = amount * rate
        except (InvalidOperation, Overflow) as exc:
            raise InvalidAmountError(f"Amount {amount!r} is out of range") from exc
        return round_amount(product, currency)


__all__ = [
    "CURRENCY_EXPONENTS",
    "coerce_amount",
    "convert_amount",
    "minor_unit",
    "round_amount",
    "to_rate",
]
