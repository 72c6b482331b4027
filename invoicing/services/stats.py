# invoicing/services/stats.py
"""
Dashboard figures for one organization.

Revenue counts paid invoices by invoice date; "this month" and "this year"
are calendar periods in UTC.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal

import sqlalchemy as sa

from invoicing.extensions import db
from invoicing.models import Invoice, InvoiceStatus, Quote, QuoteStatus
from invoicing.services.invoices import INVOICE_POLICY
from invoicing.services.listing import status_counts
from invoicing.services.quotes import QUOTE_POLICY
from invoicing.utils.money import money_str, to_decimal

logger = logging.getLogger(__name__)


def _today(today: date | None) -> date:
    return today or datetime.now(timezone.utc).date()


def _month_range(today: date) -> tuple[date, date]:
    start = today.replace(day=1)
    if start.month == 12:
        return start, start.replace(year=start.year + 1, month=1)
    return start, start.replace(month=start.month + 1)


def _year_range(today: date) -> tuple[date, date]:
    return date(today.year, 1, 1), date(today.year + 1, 1, 1)


def paid_revenue(organization_id: str, start: date, end: date) -> Decimal:
    """Sum of paid invoice totals with start <= invoice_date < end."""
    total = (
        db.session.query(sa.func.coalesce(sa.func.sum(Invoice.amount_including_tax), 0))
        .filter(
            Invoice.organization_id == organization_id,
            Invoice.status == InvoiceStatus.PAID,
            Invoice.invoice_date >= start,
            Invoice.invoice_date < end,
        )
        .scalar()
    )
    return to_decimal(total)


def _quotes_issued(organization_id: str, start: date, end: date) -> int:
    return (
        Quote.query
        .filter(Quote.organization_id == organization_id, Quote.quote_date >= start, Quote.quote_date < end)
        .count()
    )


def acceptance_rate(accepted: int, rejected: int) -> float:
    decided = accepted + rejected
    return round(accepted / decided, 4) if decided else 0.0


def invoice_stats(organization_id: str, today: date | None = None) -> dict:
    today = _today(today)
    counts = status_counts(INVOICE_POLICY, organization_id)
    logger.info("Computing invoice stats for organization %s", organization_id)
    return {
        "monthly_revenue": money_str(paid_revenue(organization_id, *_month_range(today))),
        "yearly_revenue": money_str(paid_revenue(organization_id, *_year_range(today))),
        "pending_count": counts[InvoiceStatus.PENDING.value],
        "late_count": counts[InvoiceStatus.LATE.value],
        "paid_count": counts[InvoiceStatus.PAID.value],
        "status_distribution": counts,
    }


def quote_stats(organization_id: str, today: date | None = None) -> dict:
    today = _today(today)
    counts = status_counts(QUOTE_POLICY, organization_id)
    logger.info("Computing quote stats for organization %s", organization_id)
    accepted = counts[QuoteStatus.ACCEPTED.value]
    return {
        "monthly_count": _quotes_issued(organization_id, *_month_range(today)),
        "yearly_count": _quotes_issued(organization_id, *_year_range(today)),
        "pending_count": counts[QuoteStatus.SENT.value],
        "accepted_count": accepted,
        "acceptance_rate": acceptance_rate(accepted, counts[QuoteStatus.REJECTED.value]),
        "status_distribution": counts,
    }
