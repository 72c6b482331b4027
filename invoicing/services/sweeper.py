# invoicing/services/sweeper.py
"""
Date-driven status sweeps, run from the Flask CLI (cron / scheduler).

Each sweep is one bulk UPDATE, so a row is either swept or not and running
the sweep twice in a row changes nothing the second time.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import update

from invoicing.models import Invoice, InvoiceStatus, Quote, QuoteStatus
from invoicing.utils.db import atomic

logger = logging.getLogger(__name__)

# Invoices still awaiting money
OPEN_INVOICE_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.SENT)
# Quotes still awaiting a customer answer
OPEN_QUOTE_STATUSES = (QuoteStatus.DRAFT, QuoteStatus.SENT)


def _today(today: date | None) -> date:
    return today or datetime.now(timezone.utc).date()


def update_late_invoices(today: date | None = None) -> int:
    """Mark open invoices whose due date has passed as late. Returns the row count."""
    cutoff = _today(today)
    with atomic("Late invoice sweep failed") as session:
        result = session.execute(
            update(Invoice)
            .where(Invoice.status.in_(OPEN_INVOICE_STATUSES), Invoice.due_date < cutoff)
            .values(status=InvoiceStatus.LATE)
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0

    logger.info("Late invoice sweep: %d invoice(s) marked late (cutoff=%s)", count, cutoff)
    return count


def update_expired_quotes(today: date | None = None) -> int:
    """Mark open quotes whose validity date has passed as expired. Returns the row count."""
    cutoff = _today(today)
    with atomic("Expired quote sweep failed") as session:
        result = session.execute(
            update(Quote)
            .where(Quote.status.in_(OPEN_QUOTE_STATUSES), Quote.validity_date < cutoff)
            .values(status=QuoteStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0

    logger.info("Expired quote sweep: %d quote(s) marked expired (cutoff=%s)", count, cutoff)
    return count
