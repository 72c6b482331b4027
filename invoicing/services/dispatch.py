# invoicing/services/dispatch.py
"""
Send a document to its customer: PDF from the PDF service, email through the
email service, optionally with a payment-provider checkout link.

External calls run outside any database transaction. The status flip to
"sent" is its own small transaction afterwards; if it fails the customer
already has the email and the document stays in its initial status.
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app, render_template

from invoicing.errors import BusinessRuleError, DomainError, NotFoundError, ValidationError
from invoicing.models import InvoiceStatus, User
from invoicing.serializers import document_to_dict, organization_to_dict
from invoicing.services.clients import clients_from_config
from invoicing.services.documents import DocumentService
from invoicing.utils.money import ZERO, money_str, quantize, to_decimal, to_minor_units
from invoicing.utils.parsing import parse_url

logger = logging.getLogger(__name__)

# Invoices in these statuses cannot be paid online.
UNPAYABLE_STATUSES = {
    InvoiceStatus.PAID: "This invoice is already paid",
    InvoiceStatus.CANCELLED: "Cannot pay a cancelled invoice",
}


def _doc_title(kind: str) -> str:
    return "Invoice" if kind == "invoice" else "Quote"


def _filename(kind: str, document) -> str:
    return f"{kind}-{document.number}.pdf"


def _customer_email(document) -> str:
    email = (document.customer.email or "").strip() if document.customer else ""
    if not email:
        raise ValidationError("Customer has no email address")
    return email


def _actor(actor_id: str) -> User:
    user = User.query.filter_by(id=actor_id).first() if actor_id else None
    if user is None:
        raise NotFoundError("User not found")
    return user


def amount_due(invoice) -> Decimal:
    paid = sum((to_decimal(p.amount) for p in invoice.payments), ZERO)
    return quantize(to_decimal(invoice.amount_including_tax) - paid)


def platform_fee(amount_minor_units: int, rate) -> int:
    fee = Decimal(amount_minor_units) * to_decimal(rate)
    return int(fee.to_integral_value(rounding=ROUND_HALF_UP))


class Dispatcher:
    def __init__(self, pdf, email, payments):
        self._pdf = pdf
        self._email = email
        self._payments = payments

    @classmethod
    def from_config(cls, config=None) -> "Dispatcher":
        return cls(*clients_from_config(config))

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def _render_pdf(self, kind: str, document) -> bytes:
        pdf = self._pdf.render(kind, document_to_dict(document), organization_to_dict(document.organization))
        logger.info("PDF generated for %s %s (%d bytes)", kind, document.id, len(pdf))
        return pdf

    def _send_email(self, kind: str, document, actor: User, to: str, pdf: bytes, payment_url: str | None = None):
        title = _doc_title(kind)
        html = render_template(
            f"emails/{kind}.html",
            document=document,
            customer=document.customer,
            organization=document.organization,
            actor=actor,
            doc_title=title,
            amount=money_str(document.amount_including_tax),
            payment_url=payment_url,
        )
        self._email.send_with_attachment(
            to=to,
            subject=f"{title} {document.number}",
            html=html,
            attachment=pdf,
            filename=_filename(kind, document),
        )
        logger.info("%s %s emailed to %s", title, document.id, to)

    @staticmethod
    def _mark_sent(service: DocumentService, document, recipient: str) -> bool:
        document_id, organization_id, status = document.id, document.organization_id, document.status.value
        try:
            flipped = service.mark_sent(document_id, organization_id)
        except DomainError:
            logger.error(
                "%s %s sent but status flip failed (organization=%s, recipient=%s, status left as %s)",
                service.policy.label, document_id, organization_id, recipient, status,
                exc_info=True,
            )
            return False
        if flipped:
            logger.info("%s %s marked %s", service.policy.label, document_id, service.policy.sent_status.value)
        return flipped

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def send_by_email(self, service: DocumentService, document_id: str, organization_id: str, actor_id: str):
        kind = service.policy.kind
        document = service.get_with_details(document_id, organization_id)
        to = _customer_email(document)
        actor = _actor(actor_id)

        pdf = self._render_pdf(kind, document)
        self._send_email(kind, document, actor, to, pdf)

        self._mark_sent(service, document, to)
        return service.get_with_details(document_id, organization_id)

    def send_with_payment_link(self, service: DocumentService, document_id: str, organization_id: str,
                               actor_id: str, success_url, cancel_url):
        success_url = parse_url(success_url, "success_url")
        cancel_url = parse_url(cancel_url, "cancel_url")

        kind = service.policy.kind
        document = service.get_with_details(document_id, organization_id)
        message = UNPAYABLE_STATUSES.get(document.status)
        if message:
            raise BusinessRuleError(message)
        to = _customer_email(document)
        actor = _actor(actor_id)

        organization = document.organization
        if organization is None or not organization.accepts_online_payments:
            raise BusinessRuleError("Payment account not configured")

        pdf = self._render_pdf(kind, document)

        cfg = current_app.config
        amount_minor = to_minor_units(amount_due(document))
        checkout_url = self._payments.create_checkout_session(
            amount_minor_units=amount_minor,
            currency=cfg.get("PAYMENT_CURRENCY", "eur"),
            description=f"{_doc_title(kind)} {document.number}",
            connected_account_id=organization.payment_account_id,
            application_fee_minor_units=platform_fee(amount_minor, cfg.get("PLATFORM_FEE_RATE", 0.05)),
            invoice_id=document.id,
            customer_email=to,
            success_url=success_url,
            cancel_url=cancel_url,
        )
        logger.info("Checkout session created for %s %s (amount=%d)", kind, document.id, amount_minor)

        self._send_email(kind, document, actor, to, pdf, payment_url=checkout_url)

        self._mark_sent(service, document, to)
        return service.get_with_details(document_id, organization_id)

