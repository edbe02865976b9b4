"""TokenMath: Exact decimal arithmetic over raw on-chain token amounts.

On-chain amounts are integers denominated in the token's smallest unit
(e.g. yoctoNEAR, 10^-24 NEAR). All helpers here operate on
:class:`decimal.Decimal` with a dedicated high-precision context so that
30+ digit reserves never lose precision and never touch binary floats.

.. code-block:: python

    >>> format_token_amount("2000000000000000000000", 24, 0)
    Decimal('0')
    >>> format_token_amount("2000000000000000000000000000", 24, 0)
    Decimal('2000')
    >>> calculate_price_for_token("2000", "1000", "5.00")
    Decimal('10.00000')
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Mapping, Union

DecimalLike = Union[Decimal, int, str]

# Precision is wide enough for 40-digit reserves multiplied by prices.
DECIMAL_CONTEXT = Context(prec=100, rounding=ROUND_HALF_UP)

BASE = 10
PRICE_PRECISION = 5
VOLUME_PRECISION = 0

ZERO = Decimal(0)


def to_decimal(value: DecimalLike) -> Decimal:
    """Convert an int, string or Decimal into a Decimal.

    :param value: Raw value as received from a collaborator.
    :returns: Exact Decimal representation.
    :raises decimal.InvalidOperation: If the string is not a number.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError("Binary floats are not accepted for token amounts")
    return Decimal(str(value).strip())


def quantize(value: Decimal, places: int) -> Decimal:
    """Round ``value`` half-up to ``places`` fractional digits."""
    return value.quantize(Decimal(1).scaleb(-places), context=DECIMAL_CONTEXT)


def to_plain_string(value: Decimal) -> str:
    """Render a Decimal without scientific notation.

    .. code-block:: python

        >>> to_plain_string(Decimal("1E+3"))
        '1000'
    """
    return format(value, "f")


def _is_missing(value: DecimalLike | None) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def format_token_amount(
    raw_amount: DecimalLike | None,
    decimals: int = 18,
    precision: int | None = None,
) -> Decimal | None:
    """Scale a raw on-chain amount into whole token units.

    :param raw_amount: Raw integer amount (smallest unit).
    :param decimals: Token decimals.
    :param precision: Fractional digits to round to; full precision if None.
    :returns: Scaled amount, or None when ``raw_amount`` is empty/absent.
        None means "unavailable", never zero.
    """
    if _is_missing(raw_amount):
        return None

    scaled = to_decimal(raw_amount).scaleb(-decimals, context=DECIMAL_CONTEXT)
    if precision is None:
        return scaled
    return quantize(scaled, precision)


def calculate_price_for_token(
    fiat_amount: DecimalLike | None,
    token_amount: DecimalLike,
    fiat_unit_price: DecimalLike | None,
) -> Decimal:
    """Derive the constant-product implied USD price of a token.

    ``price = fiat_amount * fiat_unit_price / token_amount`` rounded to
    five fractional digits.

    :param fiat_amount: Whole-unit reserve of the anchor side.
    :param token_amount: Whole-unit reserve of the priced side.
    :param fiat_unit_price: USD price of one anchor unit.
    :returns: Implied price, or zero if the anchor price is absent/zero or
        ``fiat_amount <= 0``.
    :raises decimal.DivisionByZero: If ``token_amount`` is zero while the
        anchor side holds liquidity.
    """
    if _is_missing(fiat_unit_price) or _is_missing(fiat_amount):
        return ZERO

    unit_price = to_decimal(fiat_unit_price)
    if unit_price.is_zero():
        return ZERO

    fiat = to_decimal(fiat_amount)
    if fiat <= 0:
        return ZERO

    value = DECIMAL_CONTEXT.divide(
        DECIMAL_CONTEXT.multiply(fiat, unit_price),
        to_decimal(token_amount),
    )
    return quantize(value, PRICE_PRECISION)


def calculate_volume(
    supplies: Mapping[str, DecimalLike],
    prices: Mapping[str, DecimalLike | None],
) -> Decimal:
    """Estimate a pool's USD-denominated corroboration volume.

    Sums ``reserve * price`` over every token of the pool. Reserves are
    raw amounts and are deliberately NOT scaled by token decimals; callers
    compare volumes only against each other and the liquidity floor.

    :param supplies: Token id to raw reserve.
    :param prices: Token id to unit price.
    :returns: Sum rounded to zero fractional digits, or zero if any token
        in ``supplies`` has no price.
    """
    if not all(not _is_missing(prices.get(token)) for token in supplies):
        return ZERO

    total = ZERO
    for token, reserve in supplies.items():
        total = DECIMAL_CONTEXT.add(
            total,
            DECIMAL_CONTEXT.multiply(to_decimal(reserve), to_decimal(prices[token])),
        )
    return quantize(total, VOLUME_PRECISION)
