# tests/test_sweeper.py
from datetime import date

import pytest

from invoicing.extensions import db
from invoicing.models import Invoice, InvoiceStatus, Quote, QuoteStatus
from invoicing.services.sweeper import update_expired_quotes, update_late_invoices

TODAY = date(2026, 4, 15)


def _status(model, doc_id):
    db.session.expire_all()
    return db.session.get(model, doc_id).status


@pytest.fixture
def invoices(make_invoice):
    """(status, due_date) -> invoice id"""
    rows = {}
    for status, due in [
        (InvoiceStatus.SENT, "2026-04-01"),
        (InvoiceStatus.PENDING, "2026-04-14"),
        (InvoiceStatus.SENT, "2026-04-15"),
        (InvoiceStatus.PENDING, "2026-05-01"),
        (InvoiceStatus.PAID, "2026-04-01"),
        (InvoiceStatus.CANCELLED, "2026-04-01"),
    ]:
        invoice = make_invoice(due_date=due)
        invoice.status = status
        rows[(status, due)] = invoice.id
    db.session.commit()
    return rows


def test_overdue_open_invoices_become_late(invoices):
    assert update_late_invoices(TODAY) == 2

    assert _status(Invoice, invoices[(InvoiceStatus.SENT, "2026-04-01")]) == InvoiceStatus.LATE
    assert _status(Invoice, invoices[(InvoiceStatus.PENDING, "2026-04-14")]) == InvoiceStatus.LATE
    # due today is not overdue yet
    assert _status(Invoice, invoices[(InvoiceStatus.SENT, "2026-04-15")]) == InvoiceStatus.SENT
    assert _status(Invoice, invoices[(InvoiceStatus.PENDING, "2026-05-01")]) == InvoiceStatus.PENDING
    assert _status(Invoice, invoices[(InvoiceStatus.PAID, "2026-04-01")]) == InvoiceStatus.PAID
    assert _status(Invoice, invoices[(InvoiceStatus.CANCELLED, "2026-04-01")]) == InvoiceStatus.CANCELLED


def test_late_sweep_is_idempotent(invoices):
    update_late_invoices(TODAY)
    before = {doc_id: _status(Invoice, doc_id) for doc_id in invoices.values()}

    assert update_late_invoices(TODAY) == 0
    assert {doc_id: _status(Invoice, doc_id) for doc_id in invoices.values()} == before


def test_expired_quotes(make_quote):
    ids = {}
    for status, validity in [
        (QuoteStatus.DRAFT, "2026-04-01"),
        (QuoteStatus.SENT, "2026-04-10"),
        (QuoteStatus.SENT, "2026-05-01"),
        (QuoteStatus.ACCEPTED, "2026-04-01"),
        (QuoteStatus.REJECTED, "2026-04-01"),
    ]:
        quote = make_quote(validity_date=validity)
        quote.status = status
        ids[(status, validity)] = quote.id
    db.session.commit()

    assert update_expired_quotes(TODAY) == 2
    assert update_expired_quotes(TODAY) == 0

    assert _status(Quote, ids[(QuoteStatus.DRAFT, "2026-04-01")]) == QuoteStatus.EXPIRED
    assert _status(Quote, ids[(QuoteStatus.SENT, "2026-04-10")]) == QuoteStatus.EXPIRED
    assert _status(Quote, ids[(QuoteStatus.SENT, "2026-05-01")]) == QuoteStatus.SENT
    assert _status(Quote, ids[(QuoteStatus.ACCEPTED, "2026-04-01")]) == QuoteStatus.ACCEPTED
    assert _status(Quote, ids[(QuoteStatus.REJECTED, "2026-04-01")]) == QuoteStatus.REJECTED


def test_cli_commands(app, make_invoice):
    invoice = make_invoice(invoice_date="2020-01-06", due_date="2020-02-05")
    invoice_id = invoice.id

    runner = app.test_cli_runner()
    result = runner.invoke(args=["mark-late-invoices"])
    assert result.exit_code == 0
    assert "1 invoice(s) marked late" in result.output
    assert _status(Invoice, invoice_id) == InvoiceStatus.LATE

    result = runner.invoke(args=["mark-expired-quotes"])
    assert result.exit_code == 0
    assert "0 quote(s) marked expired" in result.output
