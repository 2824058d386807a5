from decimal import Decimal

import pytest

from billing.services.tax_service import (
    RateOrigin,
    TaxSettings,
    compute_line,
    compute_totals,
    resolve_tax_rate,
)

SETTINGS = TaxSettings(standard_tax_rate=Decimal("10"), reduced_tax_rate=Decimal("8"))


def item(**overrides):
    data = {
        "quantity": Decimal("1"),
        "unit_price": Decimal("100"),
        "discount_amount": Decimal("0"),
        "tax_category": "standard",
        "tax_rate": None,
    }
    data.update(overrides)
    return data


class TestResolveTaxRate:
    def test_standard_category_uses_company_rate(self):
        resolution = resolve_tax_rate(item(), SETTINGS)
        assert resolution.rate == Decimal("10")
        assert resolution.origin == RateOrigin.STANDARD

    def test_reduced_category_uses_reduced_rate(self):
        resolution = resolve_tax_rate(item(tax_category="reduced"), SETTINGS)
        assert resolution.rate == Decimal("8")
        assert resolution.origin == RateOrigin.REDUCED

    def test_override_wins_over_category(self):
        resolution = resolve_tax_rate(item(tax_category="reduced", tax_rate=Decimal("5")), SETTINGS)
        assert resolution.rate == Decimal("5")
        assert resolution.origin == RateOrigin.OVERRIDE

    def test_exempt_ignores_override(self):
        resolution = resolve_tax_rate(item(tax_category="exempt", tax_rate=Decimal("10")), SETTINGS)
        assert resolution.rate == Decimal("0")
        assert resolution.origin == RateOrigin.EXEMPT

    def test_non_tax_is_zero(self):
        assert resolve_tax_rate(item(tax_category="non_tax"), SETTINGS).rate == Decimal("0")

    @pytest.mark.parametrize("bad_rate", [Decimal("-1"), Decimal("100.01"), "abc"])
    def test_out_of_range_override_falls_back_to_category(self, bad_rate):
        resolution = resolve_tax_rate(item(tax_rate=bad_rate), SETTINGS)
        assert resolution.rate == Decimal("10")
        assert resolution.origin == RateOrigin.STANDARD


class TestComputeLine:
    def test_standard_line(self):
        result = compute_line(item(quantity=Decimal("2"), unit_price=Decimal("1000")), SETTINGS)
        assert result.net_amount == Decimal("2000")
        assert result.tax_amount == Decimal("200")
        assert result.line_total == Decimal("2200")

    def test_override_rounds_half_up_to_whole_units(self):
        result = compute_line(item(unit_price=Decimal("999"), tax_rate=Decimal("8")), SETTINGS)
        assert result.tax_amount == Decimal("80")
        assert result.effective_tax_rate == Decimal("8")

    def test_half_unit_rounds_up(self):
        # 5 * 10% = 0.5
        result = compute_line(item(unit_price=Decimal("5")), SETTINGS)
        assert result.tax_amount == Decimal("1")

    def test_discount_reduces_taxable_amount(self):
        result = compute_line(item(unit_price=Decimal("1000"), discount_amount=Decimal("100")), SETTINGS)
        assert result.net_amount == Decimal("900")
        assert result.tax_amount == Decimal("90")

    def test_discount_larger_than_amount_clamps_to_zero(self):
        result = compute_line(item(discount_amount=Decimal("500")), SETTINGS)
        assert result.net_amount == Decimal("0")
        assert result.tax_amount == Decimal("0")

    @pytest.mark.parametrize("overrides", [
        {"quantity": Decimal("0")},
        {"quantity": None},
        {"unit_price": Decimal("-1")},
        {"unit_price": "not a number"},
    ])
    def test_invalid_preview_rows_price_as_zero(self, overrides):
        result = compute_line(item(**overrides), SETTINGS)
        assert result.net_amount == Decimal("0")
        assert result.tax_amount == Decimal("0")
        assert result.line_total == Decimal("0")

    def test_cent_quantum(self):
        result = compute_line(item(unit_price=Decimal("999")), SETTINGS, quantum=Decimal("0.01"))
        assert result.tax_amount == Decimal("99.90")

    def test_price_includes_tax(self):
        settings = TaxSettings(price_includes_tax=True)
        result = compute_line(item(unit_price=Decimal("1100")), settings)
        assert result.tax_amount == Decimal("100")
        assert result.net_amount == Decimal("1000")
        assert result.line_total == Decimal("1100")

    def test_price_includes_tax_rounds_the_net(self):
        # 16.50 / 1.10 = 15 exactly; rounding the tax share (1.5) instead would give 2.
        settings = TaxSettings(price_includes_tax=True)
        result = compute_line(item(unit_price=Decimal("16.50")), settings)
        assert result.net_amount == Decimal("15")
        assert result.tax_amount == Decimal("1.50")
        assert result.line_total == Decimal("16.50")

    def test_net_amount_is_not_rounded(self):
        result = compute_line(item(quantity=Decimal("1.5"), unit_price=Decimal("0.33")), SETTINGS)
        assert result.net_amount == Decimal("0.495")
        assert result.tax_amount == Decimal("0")

    def test_price_includes_tax_with_zero_rate(self):
        settings = TaxSettings(price_includes_tax=True)
        result = compute_line(item(unit_price=Decimal("1100"), tax_category="exempt"), settings)
        assert result.tax_amount == Decimal("0")
        assert result.net_amount == Decimal("1100")

    def test_settings_from_plain_dict(self):
        result = compute_line(item(unit_price=Decimal("1000")), {"standard_tax_rate": "20"})
        assert result.tax_amount == Decimal("200")


class TestComputeTotals:
    def test_example_document(self):
        totals = compute_totals([item(quantity=Decimal("2"), unit_price=Decimal("1000"))], SETTINGS)
        assert totals.subtotal == Decimal("2000")
        assert totals.total_tax == Decimal("200")
        assert totals.total_amount == Decimal("2200")

    def test_empty_document_is_zero(self):
        totals = compute_totals([], SETTINGS)
        assert totals.subtotal == Decimal("0")
        assert totals.total_tax == Decimal("0")
        assert totals.total_amount == Decimal("0")
        assert totals.tax_summary == ()

    def test_buckets_by_effective_rate_descending(self):
        totals = compute_totals([
            item(unit_price=Decimal("999"), tax_rate=Decimal("8")),
            item(unit_price=Decimal("500"), tax_category="reduced"),
            item(unit_price=Decimal("1000")),
            item(unit_price=Decimal("300"), tax_category="exempt"),
        ], SETTINGS)

        assert [bucket.tax_rate for bucket in totals.tax_summary] == [Decimal("10"), Decimal("8"), Decimal("0")]
        eight = totals.tax_summary[1]
        assert eight.taxable_amount == Decimal("1499")
        assert eight.tax_amount == Decimal("120")
        assert eight.label == "8%"

    def test_bucket_sums_match_totals(self):
        totals = compute_totals([
            item(unit_price=Decimal("333.33"), quantity=Decimal("3")),
            item(unit_price=Decimal("12.50"), tax_category="reduced"),
            item(unit_price=Decimal("7"), tax_category="non_tax"),
        ], SETTINGS)

        assert sum(bucket.tax_amount for bucket in totals.tax_summary) == totals.total_tax
        assert sum(bucket.taxable_amount for bucket in totals.tax_summary) == totals.subtotal
        assert totals.total_amount == totals.subtotal + totals.total_tax

    def test_item_order_does_not_change_totals(self):
        items = [
            item(unit_price=Decimal("5")),
            item(unit_price=Decimal("15"), tax_category="reduced"),
            item(unit_price=Decimal("999"), tax_rate=Decimal("8")),
        ]
        forward = compute_totals(items, SETTINGS)
        backward = compute_totals(list(reversed(items)), SETTINGS)

        assert forward.total_tax == backward.total_tax
        assert forward.tax_summary == backward.tax_summary

    def test_tax_is_rounded_per_line_not_per_document(self):
        # Two lines of 0.5 tax each round to 1 + 1, not round(1.0).
        totals = compute_totals([item(unit_price=Decimal("5")), item(unit_price=Decimal("5"))], SETTINGS)
        assert totals.total_tax == Decimal("2")

    def test_to_dict(self):
        payload = compute_totals([item()], SETTINGS).to_dict()
        assert payload["total_amount"] == Decimal("110")
        assert payload["tax_summary"][0]["label"] == "10%"
        assert payload["lines"][0]["rate_origin"] == "standard"
