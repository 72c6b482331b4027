# invoicing/services/invoices.py
from __future__ import annotations

from invoicing.errors import BusinessRuleError
from invoicing.models import Invoice, InvoiceItem, InvoiceStatus
from invoicing.services.documents import DocumentPolicy, DocumentService
from invoicing.services.ledger import create_payment
from invoicing.services.numbering import INVOICE_PREFIX

INVOICE_POLICY = DocumentPolicy(
    kind="invoice",
    label="Invoice",
    model=Invoice,
    item_model=InvoiceItem,
    status_enum=InvoiceStatus,
    initial_status=InvoiceStatus.PENDING,
    sent_status=InvoiceStatus.SENT,
    reference_prefix=INVOICE_PREFIX,
    number_field="invoice_number",
    issue_date_field="invoice_date",
    due_date_field="due_date",
    text_fields=("conditions", "late_payment_penalty"),
    update_forbidden={
        InvoiceStatus.PAID: "Cannot modify a paid invoice",
        InvoiceStatus.CANCELLED: "Cannot modify a cancelled invoice",
    },
    delete_forbidden={
        InvoiceStatus.PAID: "Cannot delete a paid invoice",
    },
    # "paid" comes from the payment ledger and "late" from the sweeper only.
    manual_transitions={
        InvoiceStatus.PENDING: frozenset({InvoiceStatus.SENT, InvoiceStatus.CANCELLED}),
        InvoiceStatus.SENT: frozenset({InvoiceStatus.CANCELLED}),
        InvoiceStatus.LATE: frozenset({InvoiceStatus.CANCELLED}),
    },
    detail_relations=("items", "customer", "user", "organization", "payments"),
)


class InvoiceService(DocumentService):
    def __init__(self, resolver=None):
        super().__init__(INVOICE_POLICY, resolver)

    def _before_delete(self, invoice: Invoice) -> None:
        # Payments are append-only; an invoice that received money stays.
        if invoice.payments:
            raise BusinessRuleError("Cannot delete an invoice with recorded payments")

    def create_payment(self, invoice_id: str, organization_id: str, data):
        return create_payment(invoice_id, organization_id, data)


invoice_service = InvoiceService()
