# invoicing/services/listing.py
"""
Filtered, paginated, sorted document listing plus whole-organization status
counts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping

import sqlalchemy as sa
from sqlalchemy.orm import joinedload, selectinload

from invoicing.errors import NotFoundError, ValidationError
from invoicing.extensions import db
from invoicing.models import Customer
from invoicing.utils.parsing import parse_date, parse_decimal, parse_enum, parse_int, parse_str

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass
class DocumentPage:
    items: list
    total: int
    page: int
    limit: int
    status_counts: dict = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def sortable_fields(policy) -> set[str]:
    return {
        policy.issue_date_field,
        policy.due_date_field,
        policy.number_field,
        "amount_including_tax",
        "status",
        "created_at",
    }


def _parse_filters(policy, raw: Mapping[str, Any]) -> dict:
    page = parse_int(raw.get("page"), "page", default=DEFAULT_PAGE, minimum=1)
    limit = parse_int(raw.get("limit"), "limit", default=DEFAULT_LIMIT, minimum=1)

    sort_by = parse_str(raw.get("sort_by")) or policy.issue_date_field
    if sort_by not in sortable_fields(policy):
        raise ValidationError(f"sort_by must be one of: {', '.join(sorted(sortable_fields(policy)))}")

    sort_order = (parse_str(raw.get("sort_order")) or "DESC").upper()
    if sort_order not in ("ASC", "DESC"):
        raise ValidationError("sort_order must be ASC or DESC")

    return {
        "page": page,
        "limit": min(limit, MAX_LIMIT),
        "search": parse_str(raw.get("search"), maxlen=100),
        "status": parse_enum(policy.status_enum, raw.get("status"), "status"),
        "customer_id": parse_str(raw.get("customer_id")),
        "start_date": parse_date(raw.get("start_date"), "start_date"),
        "end_date": parse_date(raw.get("end_date"), "end_date"),
        "min_amount": parse_decimal(raw.get("min_amount"), "min_amount"),
        "max_amount": parse_decimal(raw.get("max_amount"), "max_amount"),
        "sort_by": sort_by,
        "sort_order": sort_order,
    }


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def status_counts(policy, organization_id: str) -> dict[str, int]:
    """
    Count per status value for the whole organization, plus "total".

    One grouped query, so every number comes from the same snapshot.
    """
    model = policy.model
    rows = (
        db.session.query(model.status, sa.func.count(model.id))
        .filter(model.organization_id == organization_id)
        .group_by(model.status)
        .all()
    )
    counts = {s.value: 0 for s in policy.status_enum}
    for status, n in rows:
        counts[status.value] = n
    counts["total"] = sum(n for _, n in rows)
    return counts


def list_documents(policy, organization_id: str, raw_filters: Mapping[str, Any]) -> DocumentPage:
    f = _parse_filters(policy, raw_filters)
    model = policy.model
    issue_col = policy.issue_date_column()

    query = model.query.filter(model.organization_id == organization_id)

    if f["customer_id"]:
        query = query.filter(model.customer_id == f["customer_id"])
    if f["status"]:
        query = query.filter(model.status == f["status"])
    if f["start_date"]:
        query = query.filter(issue_col >= f["start_date"])
    if f["end_date"]:
        query = query.filter(issue_col <= f["end_date"])
    if f["min_amount"] is not None:
        query = query.filter(model.amount_including_tax >= f["min_amount"])
    if f["max_amount"] is not None:
        query = query.filter(model.amount_including_tax <= f["max_amount"])

    if f["search"]:
        like = f"%{_escape_like(f['search'])}%"
        query = query.outerjoin(Customer, model.customer_id == Customer.id).filter(
            sa.or_(
                policy.number_column().ilike(like, escape="\\"),
                Customer.email.ilike(like, escape="\\"),
                Customer.first_name.ilike(like, escape="\\"),
                Customer.last_name.ilike(like, escape="\\"),
                Customer.business_name.ilike(like, escape="\\"),
                Customer.tax_id.ilike(like, escape="\\"),
            )
        )

    sort_col = getattr(model, f["sort_by"])
    order = sa.desc(sort_col) if f["sort_order"] == "DESC" else sa.asc(sort_col)

    pagination = (
        query.options(selectinload(model.items), joinedload(model.customer))
        .order_by(order, model.id)
        .paginate(page=f["page"], per_page=f["limit"], error_out=False)
    )

    return DocumentPage(
        items=list(pagination.items),
        total=pagination.total or 0,
        page=f["page"],
        limit=f["limit"],
        status_counts=status_counts(policy, organization_id),
    )


def list_customer_documents(policy, customer_id: str, organization_id: str,
                            raw_filters: Mapping[str, Any]) -> DocumentPage:
    customer = Customer.query.filter_by(id=customer_id, organization_id=organization_id).first()
    if customer is None:
        raise NotFoundError("Customer not found")
    filters = dict(raw_filters)
    filters["customer_id"] = customer.id
    return list_documents(policy, organization_id, filters)
