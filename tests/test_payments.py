# tests/test_payments.py
"""
Payment ledger: the running sum never exceeds the invoice total and the
invoice flips to paid once the sum reaches it.
"""

from datetime import date
from decimal import Decimal

import pytest

from conftest import custom_line
from invoicing.errors import BusinessRuleError, NotFoundError, ValidationError
from invoicing.extensions import db
from invoicing.models import Invoice, InvoiceStatus, Payment, PaymentMethod
from invoicing.services.invoices import invoice_service
from invoicing.services.ledger import total_paid


def pay(invoice, org, amount, method="bank_transfer", **extra):
    data = {"amount": amount, "payment_method": method, "payment_date": "2026-03-10"}
    data.update(extra)
    return invoice_service.create_payment(invoice.id, org.id, data)


def test_full_payment_marks_invoice_paid(org, make_invoice):
    invoice = make_invoice()  # 120.00

    payment = pay(invoice, org, "120.00", reference="VIR-0042")

    assert payment.amount == Decimal("120.00")
    assert payment.payment_method == PaymentMethod.BANK_TRANSFER
    assert payment.payment_date == date(2026, 3, 10)
    assert payment.reference == "VIR-0042"
    assert db.session.get(Invoice, invoice.id).status == InvoiceStatus.PAID


def test_second_payment_on_paid_invoice_is_rejected(org, make_invoice):
    invoice = make_invoice()
    pay(invoice, org, "120.00")

    with pytest.raises(BusinessRuleError) as exc:
        pay(invoice, org, "0.01")
    assert "already paid" in exc.value.message
    assert Payment.query.count() == 1


def test_over_payment_is_rejected_and_nothing_persisted(org, make_invoice):
    invoice = make_invoice()

    with pytest.raises(BusinessRuleError) as exc:
        pay(invoice, org, "200.00")

    assert exc.value.message == "Payment total cannot exceed invoice amount"
    assert Payment.query.count() == 0
    assert db.session.get(Invoice, invoice.id).status == InvoiceStatus.PENDING


def test_partial_payments_accumulate(org, make_invoice):
    invoice = make_invoice()

    pay(invoice, org, "50.00")
    assert db.session.get(Invoice, invoice.id).status == InvoiceStatus.PENDING
    assert total_paid(invoice.id) == Decimal("50.00")

    with pytest.raises(BusinessRuleError):
        pay(invoice, org, "70.01")

    pay(invoice, org, "70.00", method="cash")
    assert total_paid(invoice.id) == Decimal("120.00")
    assert db.session.get(Invoice, invoice.id).status == InvoiceStatus.PAID


@pytest.mark.parametrize("amount", ["120.004", "0.015", "119.999"])
def test_sub_cent_amounts_are_refused_not_rounded(org, make_invoice, amount):
    invoice = make_invoice()

    with pytest.raises(ValidationError) as exc:
        pay(invoice, org, amount)

    assert exc.value.message == "amount must have at most 2 decimal places"
    assert Payment.query.count() == 0
    assert db.session.get(Invoice, invoice.id).status == InvoiceStatus.PENDING


def test_trailing_zeros_are_fine(org, make_invoice):
    invoice = make_invoice()
    payment = pay(invoice, org, "120.000")
    assert payment.amount == Decimal("120.00")
    assert db.session.get(Invoice, invoice.id).status == InvoiceStatus.PAID


def test_late_invoice_can_still_be_paid(org, make_invoice):
    invoice = make_invoice()
    invoice.status = InvoiceStatus.LATE
    db.session.commit()

    pay(invoice, org, "120.00")
    assert db.session.get(Invoice, invoice.id).status == InvoiceStatus.PAID


def test_cancelled_invoice_cannot_be_paid(org, make_invoice):
    invoice = make_invoice()
    invoice.status = InvoiceStatus.CANCELLED
    db.session.commit()

    with pytest.raises(BusinessRuleError) as exc:
        pay(invoice, org, "10.00")
    assert exc.value.message == "Cannot pay a cancelled invoice"


def test_fractional_total(org, make_invoice):
    invoice = make_invoice(custom_line("Misc", "0.10", "REDUCED_1", 3))  # 0.30 + 0.0063 -> 0.31
    assert invoice.amount_including_tax == Decimal("0.31")

    pay(invoice, org, "0.31")
    assert db.session.get(Invoice, invoice.id).status == InvoiceStatus.PAID


@pytest.mark.parametrize(
    "data",
    [
        {"payment_method": "cash"},
        {"amount": "0", "payment_method": "cash"},
        {"amount": "-5", "payment_method": "cash"},
        {"amount": "0.001", "payment_method": "cash"},
        {"amount": "abc", "payment_method": "cash"},
        {"amount": "10"},
        {"amount": "10", "payment_method": "cheque"},
        {"amount": "10", "payment_method": "cash", "payment_date": "10/03/2026"},
    ],
)
def test_invalid_payment_data(org, make_invoice, data):
    invoice = make_invoice()
    with pytest.raises(ValidationError):
        invoice_service.create_payment(invoice.id, org.id, data)
    assert Payment.query.count() == 0


def test_payment_date_defaults_to_today(org, make_invoice):
    invoice = make_invoice()
    payment = invoice_service.create_payment(invoice.id, org.id, {"amount": "1.00", "payment_method": "stripe"})
    assert payment.payment_date is not None


def test_payment_scoped_to_organization(make_invoice, other_org):
    invoice = make_invoice()
    with pytest.raises(NotFoundError):
        pay(invoice, other_org, "10.00")
