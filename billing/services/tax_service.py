"""
Line and document tax calculation.

Pure functions: no ORM access, so the same code prices an unsaved preview
and a persisted document. Items and company settings may be model
instances or plain dicts.

Rounding happens once per line, half-up to ``quantum``: the tax for
exclusive prices, the net for tax-inclusive ones. Document totals are sums
of already rounded lines and are never rounded again.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple

from ..utils import read_field, to_decimal

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TAX_QUANTUM = Decimal("1")

STANDARD = "standard"
REDUCED = "reduced"
EXEMPT = "exempt"
NON_TAX = "non_tax"


class RateOrigin(str, Enum):
    OVERRIDE = "override"
    STANDARD = STANDARD
    REDUCED = REDUCED
    EXEMPT = EXEMPT
    NON_TAX = NON_TAX


@dataclass(frozen=True)
class TaxSettings:
    standard_tax_rate: Decimal = Decimal("10")
    reduced_tax_rate: Decimal = Decimal("8")
    price_includes_tax: bool = False

    @classmethod
    def from_company(cls, company: Any) -> "TaxSettings":
        if isinstance(company, cls):
            return company
        defaults = cls()
        standard = to_decimal(read_field(company, "standard_tax_rate"))
        reduced = to_decimal(read_field(company, "reduced_tax_rate"))
        return cls(
            standard_tax_rate=defaults.standard_tax_rate if standard is None else standard,
            reduced_tax_rate=defaults.reduced_tax_rate if reduced is None else reduced,
            price_includes_tax=bool(read_field(company, "price_includes_tax", False)),
        )


@dataclass(frozen=True)
class TaxRateResolution:
    rate: Decimal
    origin: RateOrigin


@dataclass(frozen=True)
class LineResult:
    net_amount: Decimal
    tax_amount: Decimal
    line_total: Decimal
    effective_tax_rate: Decimal
    rate_origin: RateOrigin

    def to_dict(self) -> Dict[str, Any]:
        return {
            "net_amount": self.net_amount,
            "tax_amount": self.tax_amount,
            "line_total": self.line_total,
            "effective_tax_rate": self.effective_tax_rate,
            "rate_origin": self.rate_origin.value,
        }


@dataclass(frozen=True)
class TaxBucket:
    tax_rate: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal

    @property
    def label(self) -> str:
        return f"{format_rate(self.tax_rate)}%"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tax_rate": self.tax_rate,
            "taxable_amount": self.taxable_amount,
            "tax_amount": self.tax_amount,
            "label": self.label,
        }


@dataclass(frozen=True)
class TotalsResult:
    subtotal: Decimal = ZERO
    total_tax: Decimal = ZERO
    total_amount: Decimal = ZERO
    tax_summary: Tuple[TaxBucket, ...] = ()
    lines: Tuple[LineResult, ...] = field(default=(), compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "total_tax": self.total_tax,
            "total_amount": self.total_amount,
            "tax_summary": [bucket.to_dict() for bucket in self.tax_summary],
            "lines": [line.to_dict() for line in self.lines],
        }


def format_rate(rate: Decimal) -> str:
    return format(rate.normalize(), "f")


def _round(value: Decimal, quantum: Decimal) -> Decimal:
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def resolve_tax_rate(item: Any, settings: TaxSettings) -> TaxRateResolution:
    """Exempt/non-tax always 0, then a valid item override, then the category default."""
    category = read_field(item, "tax_category") or STANDARD
    if category == EXEMPT:
        return TaxRateResolution(ZERO, RateOrigin.EXEMPT)
    if category == NON_TAX:
        return TaxRateResolution(ZERO, RateOrigin.NON_TAX)

    override = to_decimal(read_field(item, "tax_rate"))
    if override is not None and ZERO <= override <= HUNDRED:
        return TaxRateResolution(override, RateOrigin.OVERRIDE)

    if category == REDUCED:
        return TaxRateResolution(settings.reduced_tax_rate, RateOrigin.REDUCED)
    return TaxRateResolution(settings.standard_tax_rate, RateOrigin.STANDARD)


def compute_line(item: Any, settings: Any, quantum: Decimal = TAX_QUANTUM) -> LineResult:
    settings = TaxSettings.from_company(settings)
    resolution = resolve_tax_rate(item, settings)

    quantity = to_decimal(read_field(item, "quantity"))
    unit_price = to_decimal(read_field(item, "unit_price"))
    if quantity is None or unit_price is None or quantity <= 0 or unit_price < 0:
        # Half-typed preview rows price as zero instead of failing the whole form.
        return LineResult(ZERO, ZERO, ZERO, resolution.rate, resolution.origin)

    discount = to_decimal(read_field(item, "discount_amount")) or ZERO
    amount = max(ZERO, quantity * unit_price - max(discount, ZERO))
    rate = resolution.rate

    if settings.price_includes_tax:
        # The net is backed out of the gross and rounded; tax is the remainder.
        net_amount = amount if rate == ZERO else _round(amount * HUNDRED / (HUNDRED + rate), quantum)
        tax_amount = amount - net_amount
        line_total = amount
    else:
        net_amount = amount
        tax_amount = _round(amount * rate / HUNDRED, quantum)
        line_total = net_amount + tax_amount

    return LineResult(net_amount, tax_amount, line_total, rate, resolution.origin)


def compute_totals(items: Iterable[Any], settings: Any, quantum: Decimal = TAX_QUANTUM) -> TotalsResult:
    settings = TaxSettings.from_company(settings)
    lines = tuple(compute_line(item, settings, quantum) for item in items)
    if not lines:
        return TotalsResult()

    buckets: Dict[Decimal, List[Decimal]] = {}
    for line in lines:
        # Decimal("10") and Decimal("10.00") hash alike, so equal rates share a bucket.
        taxable, tax = buckets.setdefault(line.effective_tax_rate, [ZERO, ZERO])
        buckets[line.effective_tax_rate] = [taxable + line.net_amount, tax + line.tax_amount]

    subtotal = sum((line.net_amount for line in lines), ZERO)
    total_tax = sum((line.tax_amount for line in lines), ZERO)
    summary = tuple(
        TaxBucket(tax_rate=rate, taxable_amount=taxable, tax_amount=tax)
        for rate, (taxable, tax) in sorted(buckets.items(), key=lambda entry: entry[0], reverse=True)
    )

    return TotalsResult(
        subtotal=subtotal,
        total_tax=total_tax,
        total_amount=subtotal + total_tax,
        tax_summary=summary,
        lines=lines,
    )
