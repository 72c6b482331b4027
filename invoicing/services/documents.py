# invoicing/services/documents.py
"""
Status-guarded document engine shared by invoices and quotes.

Each document type is described by a ``DocumentPolicy``: its models, status
enum, which statuses block update / delete (and with what message), and
which status changes a caller may request directly. ``DocumentService``
implements create / update / get / delete / mark-sent once against that table.

Every mutation loads the document scoped to (id, organization id) inside the
same transaction that writes it, so the guard and the write cannot be split
by a concurrent request.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping

from sqlalchemy.orm import joinedload, selectinload

from invoicing.errors import BusinessRuleError, DomainError, NotFoundError, ValidationError
from invoicing.extensions import db
from invoicing.models import Customer
from invoicing.services.line_items import LineItemResolver
from invoicing.services.listing import DocumentPage, list_customer_documents, list_documents
from invoicing.services.numbering import generate_reference
from invoicing.utils.db import atomic
from invoicing.utils.money import ZERO, Totals
from invoicing.utils.parsing import parse_date, parse_enum, parse_str

logger = logging.getLogger(__name__)

REFERENCE_ATTEMPTS = 5


@dataclass(frozen=True)
class DocumentPolicy:
    kind: str
    label: str
    model: type
    item_model: type
    status_enum: type[enum.Enum]
    initial_status: enum.Enum
    sent_status: enum.Enum
    reference_prefix: str
    number_field: str
    issue_date_field: str
    due_date_field: str
    text_fields: tuple[str, ...]
    # status -> message; updating / deleting in that status is refused
    update_forbidden: Mapping[enum.Enum, str]
    delete_forbidden: Mapping[enum.Enum, str]
    # status changes callers may request through update()
    manual_transitions: Mapping[enum.Enum, frozenset] = field(default_factory=dict)
    detail_relations: tuple[str, ...] = ("items", "customer", "user", "organization")

    @property
    def not_found_message(self) -> str:
        return f"{self.label} not found"

    def number_column(self):
        return getattr(self.model, self.number_field)

    def issue_date_column(self):
        return getattr(self.model, self.issue_date_field)

    def due_date_column(self):
        return getattr(self.model, self.due_date_field)

    def can_transition(self, current: enum.Enum, target: enum.Enum) -> bool:
        return current == target or target in self.manual_transitions.get(current, frozenset())


class DocumentService:
    def __init__(self, policy: DocumentPolicy, resolver: LineItemResolver | None = None):
        self.policy = policy
        self.resolver = resolver or LineItemResolver()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def _scoped(self, document_id: str, organization_id: str):
        model = self.policy.model
        return model.query.filter(model.id == document_id, model.organization_id == organization_id)

    def _load_for_update(self, document_id: str, organization_id: str):
        document = self._scoped(document_id, organization_id).with_for_update().first()
        if document is None:
            raise NotFoundError(self.policy.not_found_message)
        return document

    def _detail_options(self):
        model = self.policy.model
        options = []
        for name in self.policy.detail_relations:
            attr = getattr(model, name)
            if attr.property.uselist:
                options.append(selectinload(attr))
            else:
                options.append(joinedload(attr))
        return options

    def get_with_details(self, document_id: str, organization_id: str):
        document = (
            self._scoped(document_id, organization_id)
            .options(*self._detail_options())
            .first()
        )
        if document is None:
            raise NotFoundError(self.policy.not_found_message)
        return document

    @staticmethod
    def _customer_for(organization_id: str, customer_id: Any) -> Customer:
        customer_id = parse_str(customer_id)
        if not customer_id:
            raise ValidationError("customer_id is required")
        customer = Customer.query.filter_by(id=customer_id, organization_id=organization_id).first()
        if customer is None:
            raise NotFoundError("Customer not found")
        return customer

    def _unique_reference(self, organization_id: str, issued_on: date) -> str:
        column = self.policy.number_column()
        model = self.policy.model
        for _ in range(REFERENCE_ATTEMPTS):
            reference = generate_reference(self.policy.reference_prefix, organization_id, issued_on)
            taken = model.query.filter(model.organization_id == organization_id, column == reference).first()
            if taken is None:
                return reference
            logger.warning("Reference %s already used in organization %s, retrying", reference, organization_id)
        raise DomainError(f"Could not allocate a {self.policy.kind} number", 500)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------
    @staticmethod
    def _guard(status: enum.Enum, forbidden: Mapping[enum.Enum, str]) -> None:
        message = forbidden.get(status)
        if message:
            raise BusinessRuleError(message)

    def _before_delete(self, document) -> None:
        """Extra delete checks for a document type."""

    def _check_dates(self, issued_on: date | None, due_on: date | None) -> None:
        if issued_on and due_on and due_on < issued_on:
            raise ValidationError(f"{self.policy.due_date_field} must be on or after {self.policy.issue_date_field}")

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------
    def create(self, actor_id: str, organization_id: str, request: Mapping[str, Any]):
        policy = self.policy
        logger.info("Creating %s for organization %s by user %s", policy.kind, organization_id, actor_id)

        with atomic(f"{policy.label} creation failed") as session:
            issued_on = parse_date(request.get(policy.issue_date_field), policy.issue_date_field, required=True)
            due_on = parse_date(request.get(policy.due_date_field), policy.due_date_field, required=True)
            self._check_dates(issued_on, due_on)

            lines, totals = self.resolver.resolve(organization_id, request.get("items"))
            customer = self._customer_for(organization_id, request.get("customer_id"))

            document = policy.model(
                organization_id=organization_id,
                customer_id=customer.id,
                user_id=actor_id,
                status=policy.initial_status,
                amount_excluding_tax=ZERO,
                tax=ZERO,
                amount_including_tax=ZERO,
            )
            setattr(document, policy.number_field, self._unique_reference(organization_id, issued_on))
            setattr(document, policy.issue_date_field, issued_on)
            setattr(document, policy.due_date_field, due_on)
            for name in policy.text_fields:
                setattr(document, name, parse_str(request.get(name)))

            session.add(document)
            session.flush()

            self._replace_items(document, lines)
            self._apply_totals(document, totals)
            session.flush()

            document_id = document.id
            amount = document.amount_including_tax

        logger.info(
            "%s %s created (organization=%s, user=%s, amount=%s)",
            policy.label, document_id, organization_id, actor_id, amount,
        )
        return self.get_with_details(document_id, organization_id)

    def _replace_items(self, document, lines) -> None:
        document.items.clear()
        db.session.flush()
        for position, line in enumerate(lines):
            document.items.append(line.to_item(self.policy.item_model, position))
        db.session.flush()

    @staticmethod
    def _apply_totals(document, totals: Totals) -> None:
        for name, value in totals.rounded().items():
            setattr(document, name, value)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------
    def update(self, document_id: str, organization_id: str, patch: Mapping[str, Any]):
        policy = self.policy

        with atomic(f"{policy.label} update failed"):
            document = self._load_for_update(document_id, organization_id)
            self._guard(document.status, policy.update_forbidden)
            self._apply_patch(document, organization_id, patch)

        logger.info("%s %s updated (organization=%s)", policy.label, document_id, organization_id)
        return self.get_with_details(document_id, organization_id)

    def _apply_patch(self, document, organization_id: str, patch: Mapping[str, Any]) -> None:
        policy = self.policy

        issued_on = getattr(document, policy.issue_date_field)
        due_on = getattr(document, policy.due_date_field)
        if policy.issue_date_field in patch:
            issued_on = parse_date(patch[policy.issue_date_field], policy.issue_date_field, required=True)
        if policy.due_date_field in patch:
            due_on = parse_date(patch[policy.due_date_field], policy.due_date_field, required=True)
        self._check_dates(issued_on, due_on)
        setattr(document, policy.issue_date_field, issued_on)
        setattr(document, policy.due_date_field, due_on)

        for name in policy.text_fields:
            if name in patch:
                setattr(document, name, parse_str(patch[name]))

        if "items" in patch:
            if document.status != policy.initial_status:
                raise BusinessRuleError(
                    f"Line items can only be changed while the {policy.kind} is {policy.initial_status.value}"
                )
            lines, totals = self.resolver.resolve(organization_id, patch["items"])
            self._replace_items(document, lines)
            self._apply_totals(document, totals)

        if "status" in patch:
            target = parse_enum(policy.status_enum, patch["status"], "status", required=True)
            if not policy.can_transition(document.status, target):
                raise BusinessRuleError(
                    f"Cannot change {policy.kind} status from {document.status.value} to {target.value}"
                )
            document.status = target

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------
    def delete(self, document_id: str, organization_id: str) -> None:
        policy = self.policy

        with atomic(f"{policy.label} deletion failed") as session:
            document = self._load_for_update(document_id, organization_id)
            self._guard(document.status, policy.delete_forbidden)
            self._before_delete(document)
            session.delete(document)

        logger.info("%s %s deleted (organization=%s)", policy.label, document_id, organization_id)

    # ------------------------------------------------------------------
    # Sent flag (used after a successful dispatch)
    # ------------------------------------------------------------------
    def mark_sent(self, document_id: str, organization_id: str) -> bool:
        """
        Flip the initial status to "sent". Any later status is left alone so a
        re-send never regresses an accepted / paid / late document.
        """
        policy = self.policy
        with atomic(f"{policy.label} status update failed"):
            document = self._load_for_update(document_id, organization_id)
            if document.status != policy.initial_status:
                return False
            document.status = policy.sent_status
        return True

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------
    def list(self, organization_id: str, filters: Mapping[str, Any] | None = None) -> DocumentPage:
        return list_documents(self.policy, organization_id, filters or {})

    def list_for_customer(self, customer_id: str, organization_id: str,
                          filters: Mapping[str, Any] | None = None) -> DocumentPage:
        return list_customer_documents(self.policy, customer_id, organization_id, filters or {})
