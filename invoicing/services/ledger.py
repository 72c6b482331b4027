# invoicing/services/ledger.py
"""
Payment ledger.

Payments are append-only rows against an invoice. The running sum never
exceeds the invoice total, and the invoice flips to "paid" once the sum
reaches the total within one cent.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy import func

from invoicing.errors import BusinessRuleError, NotFoundError
from invoicing.extensions import db
from invoicing.models import Invoice, InvoiceStatus, Payment, PaymentMethod
from invoicing.utils.db import atomic
from invoicing.utils.money import PAYMENT_TOLERANCE, to_decimal
from invoicing.utils.parsing import parse_date, parse_decimal, parse_enum, parse_str

logger = logging.getLogger(__name__)


def total_paid(invoice_id: str):
    paid = (
        db.session.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.invoice_id == invoice_id)
        .scalar()
    )
    return to_decimal(paid)


def _parse_payment(data: Mapping[str, Any]) -> dict:
    # Payments are stored in cents; finer amounts are refused, not rounded.
    amount = parse_decimal(data.get("amount"), "amount", required=True, strictly_positive=True, places=2)

    payment_date = parse_date(data.get("payment_date"), "payment_date")
    if payment_date is None:
        payment_date = datetime.now(timezone.utc).date()

    return {
        "amount": amount,
        "payment_method": parse_enum(PaymentMethod, data.get("payment_method"), "payment_method", required=True),
        "payment_date": payment_date,
        "reference": parse_str(data.get("reference"), maxlen=120),
        "description": parse_str(data.get("description")),
    }


def create_payment(invoice_id: str, organization_id: str, data: Mapping[str, Any]) -> Payment:
    """
    Record a payment. The invoice row is locked for the whole transaction so
    two concurrent payments cannot both pass the over-payment check.
    """
    with atomic("Payment creation failed") as session:
        invoice = (
            Invoice.query
            .filter(Invoice.id == invoice_id, Invoice.organization_id == organization_id)
            .with_for_update()
            .first()
        )
        if invoice is None:
            raise NotFoundError("Invoice not found")
        if invoice.status == InvoiceStatus.CANCELLED:
            raise BusinessRuleError("Cannot pay a cancelled invoice")
        if invoice.status == InvoiceStatus.PAID:
            raise BusinessRuleError("This invoice is already paid")

        fields = _parse_payment(data)
        invoice_total = to_decimal(invoice.amount_including_tax)
        new_total = total_paid(invoice.id) + fields["amount"]
        if new_total > invoice_total:
            raise BusinessRuleError("Payment total cannot exceed invoice amount")

        payment = Payment(invoice_id=invoice.id, **fields)
        session.add(payment)
        session.flush()

        if abs(new_total - invoice_total) < PAYMENT_TOLERANCE:
            invoice.status = InvoiceStatus.PAID

        payment_id = payment.id
        status = invoice.status

    logger.info(
        "Payment %s recorded on invoice %s (amount=%s, invoice status=%s)",
        payment_id, invoice_id, fields["amount"], status.value,
    )
    return db.session.get(Payment, payment_id)
