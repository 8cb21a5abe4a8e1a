"""Currency table and display formatting.

Formatting only: amounts are never converted between currencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import MAX_EMAX, MIN_EMIN, ROUND_HALF_UP, Decimal, localcontext

from subtracker.models.schemas import Currency


@dataclass(frozen=True)
class CurrencySpec:
    code: Currency
    symbol: str
    decimals: int
    reference_income: Decimal  # typical monthly income, scales advisory thresholds
    group_separator: str = ","
    decimal_separator: str = "."


CURRENCIES: dict[Currency, CurrencySpec] = {
    Currency.USD: CurrencySpec(Currency.USD, "$", 2, Decimal("5000")),
    Currency.EUR: CurrencySpec(Currency.EUR, "€", 2, Decimal("4500")),
    Currency.GBP: CurrencySpec(Currency.GBP, "£", 2, Decimal("4000")),
    Currency.CAD: CurrencySpec(Currency.CAD, "C$", 2, Decimal("6000")),
    Currency.JPY: CurrencySpec(Currency.JPY, "¥", 0, Decimal("500000")),
    Currency.INR: CurrencySpec(Currency.INR, "₹", 2, Decimal("100000")),
}


def quantize_amount(amount: Decimal, currency: Currency) -> Decimal:
    """Round to the currency's minor unit (half-up).

    Works for any finite amount: the precision is widened to fit every
    digit of the rounded result.
    """
    decimals = CURRENCIES[currency].decimals
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + decimals + 2)
        ctx.Emax = MAX_EMAX
        ctx.Emin = MIN_EMIN
        return amount.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal | int | float, currency: Currency = Currency.USD) -> str:
    """Format an amount for display, e.g. ``$1,234.56`` or ``¥500,000``."""
    spec = CURRENCIES[currency]
    value = quantize_amount(Decimal(str(amount)), currency)
    sign = "-" if value < 0 else ""
    text = f"{value.copy_abs():,.{spec.decimals}f}"
    if spec.group_separator != "," or spec.decimal_separator != ".":
        text = (
            text.replace(",", "\0")
            .replace(".", spec.decimal_separator)
            .replace("\0", spec.group_separator)
        )
    return f"{sign}{spec.symbol}{text}"
