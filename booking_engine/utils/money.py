"""
Fixed-point currency helpers.

All amounts are ``Decimal`` with a 2-digit scale. Rounding is half-up at every
step that produces a stored amount, and the host net is derived by subtraction
so that ``gross == commission + vat + net`` always holds exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
UNIT = Decimal("1")


def quantize(amount: Decimal) -> Decimal:
    """Round an amount to currency scale (2 decimal places, half-up)."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """
    Convert a currency amount to gateway minor units (cents).

    Example:
        >>> to_minor_units(Decimal("12.10"))
        1210
    """
    return int((amount * 100).quantize(UNIT, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class EscrowSplit:
    """Breakdown of a gross payment into platform fee and host proceeds."""

    gross: Decimal
    commission: Decimal
    vat: Decimal
    net: Decimal

    @property
    def application_fee(self) -> Decimal:
        """Amount kept by the platform: commission plus the VAT charged on it."""
        return self.commission + self.vat


def split_gross(gross: Decimal, commission_rate: Decimal, vat_rate: Decimal) -> EscrowSplit:
    """
    Split a gross amount into commission, VAT on the commission, and host net.

    Args:
        gross: Amount charged to the customer
        commission_rate: Platform commission as a fraction in [0, 1)
        vat_rate: VAT applied to the commission as a fraction in [0, 1)

    Returns:
        EscrowSplit with every component at currency scale

    Example:
        >>> split_gross(Decimal("100.00"), Decimal("0.10"), Decimal("0.21"))
        EscrowSplit(gross=Decimal('100.00'), commission=Decimal('10.00'), vat=Decimal('2.10'), net=Decimal('87.90'))
    """
    gross = quantize(gross)
    commission = quantize(gross * commission_rate)
    vat = quantize(commission * vat_rate)
    net = gross - commission - vat
    return EscrowSplit(gross=gross, commission=commission, vat=vat, net=net)
