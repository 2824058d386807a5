import pytest

from billing.models import Invoice, Quote
from billing.services.transitions import (
    INVOICE_TRANSITIONS,
    QUOTE_TRANSITIONS,
    StatusTransitionPolicy,
    TransitionRule,
)


class TestQuoteTransitions:
    @pytest.mark.parametrize("current,target", [
        ("draft", "sent"),
        ("sent", "accepted"),
        ("sent", "declined"),
        ("accepted", "declined"),
        ("declined", "sent"),
    ])
    def test_allowed(self, current, target):
        assert QUOTE_TRANSITIONS.is_valid(current, target)

    @pytest.mark.parametrize("current,target", [
        ("draft", "accepted"),
        ("sent", "draft"),
        ("accepted", "sent"),
        ("draft", "draft"),
    ])
    def test_rejected(self, current, target):
        assert not QUOTE_TRANSITIONS.is_valid(current, target)

    def test_only_finalization_mints_a_number(self):
        assert QUOTE_TRANSITIONS.requires_number_generation(Quote.Status.DRAFT, Quote.Status.SENT)
        assert QUOTE_TRANSITIONS.requires_items(Quote.Status.DRAFT, Quote.Status.SENT)
        assert not QUOTE_TRANSITIONS.requires_number_generation(Quote.Status.DECLINED, Quote.Status.SENT)

    def test_allowed_targets(self):
        assert QUOTE_TRANSITIONS.allowed_targets("sent") == {"accepted", "declined"}


class TestInvoiceTransitions:
    def test_paid_is_terminal(self):
        assert INVOICE_TRANSITIONS.allowed_targets(Invoice.Status.PAID) == frozenset()

    def test_payment_date_required_for_every_paid_transition(self):
        assert INVOICE_TRANSITIONS.requires_payment_date("sent", "paid")
        assert INVOICE_TRANSITIONS.requires_payment_date("overdue", "paid")
        assert not INVOICE_TRANSITIONS.requires_payment_date("sent", "overdue")

    def test_overdue_cannot_go_back_to_sent(self):
        assert not INVOICE_TRANSITIONS.is_valid("overdue", "sent")

    def test_unknown_status_has_no_targets(self):
        assert INVOICE_TRANSITIONS.allowed_targets("archived") == frozenset()
        assert not INVOICE_TRANSITIONS.requires_items("archived", "sent")


class TestStatusTransitionPolicy:
    def test_duplicate_rule_rejected(self):
        with pytest.raises(ValueError):
            StatusTransitionPolicy([
                TransitionRule("a", frozenset({"b"})),
                TransitionRule("a", frozenset({"b", "c"})),
            ])

    def test_rule_for(self):
        policy = StatusTransitionPolicy([TransitionRule("a", frozenset({"b"}), requires_items=True)])
        assert policy.rule_for("a", "b").requires_items
        assert policy.rule_for("b", "a") is None
