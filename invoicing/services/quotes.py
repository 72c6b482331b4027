# invoicing/services/quotes.py
from __future__ import annotations

from invoicing.models import Quote, QuoteItem, QuoteStatus
from invoicing.services.documents import DocumentPolicy, DocumentService
from invoicing.services.numbering import QUOTE_PREFIX

QUOTE_POLICY = DocumentPolicy(
    kind="quote",
    label="Quote",
    model=Quote,
    item_model=QuoteItem,
    status_enum=QuoteStatus,
    initial_status=QuoteStatus.DRAFT,
    sent_status=QuoteStatus.SENT,
    reference_prefix=QUOTE_PREFIX,
    number_field="quote_number",
    issue_date_field="quote_date",
    due_date_field="validity_date",
    text_fields=("conditions", "notes"),
    update_forbidden={
        QuoteStatus.ACCEPTED: "Cannot modify an accepted quote",
        QuoteStatus.REJECTED: "Cannot modify a rejected quote",
        QuoteStatus.EXPIRED: "Cannot modify an expired quote",
    },
    delete_forbidden={
        QuoteStatus.ACCEPTED: "Cannot delete an accepted quote",
    },
    # "expired" is set by the sweeper only.
    manual_transitions={
        QuoteStatus.DRAFT: frozenset({QuoteStatus.SENT, QuoteStatus.ACCEPTED, QuoteStatus.REJECTED}),
        QuoteStatus.SENT: frozenset({QuoteStatus.ACCEPTED, QuoteStatus.REJECTED}),
    },
)


class QuoteService(DocumentService):
    def __init__(self, resolver=None):
        super().__init__(QUOTE_POLICY, resolver)


quote_service = QuoteService()
