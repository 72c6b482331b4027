# invoicing/serializers.py
"""
Model -> JSON-ready dict conversion.

Money is rendered as fixed two-decimal strings, dates as ISO strings and
enums by value.
"""

from __future__ import annotations

from decimal import Decimal

from invoicing.models import Invoice, Quote
from invoicing.utils.money import money_str, quantize


def _money(value):
    return None if value is None else money_str(value)


def _iso(value):
    return value.isoformat() if value is not None else None


def _enum(value):
    return getattr(value, "value", value)


def _quantity(value) -> str | None:
    if value is None:
        return None
    return format(Decimal(value).normalize(), "f")


# =========================================================
# Parties
# =========================================================
def customer_to_dict(customer) -> dict | None:
    if customer is None:
        return None
    return {
        "id": customer.id,
        "customer_type": _enum(customer.customer_type),
        "display_name": customer.display_name,
        "email": customer.email,
        "phone": customer.phone,
        "address": customer.address,
        "first_name": customer.first_name,
        "last_name": customer.last_name,
        "business_name": customer.business_name,
        "tax_id": customer.tax_id,
    }


def organization_to_dict(organization) -> dict | None:
    if organization is None:
        return None
    return {
        "id": organization.id,
        "name": organization.name,
        "email": organization.email,
        "phone": organization.phone,
        "address": organization.address,
        "tax_id": organization.tax_id,
    }


def user_to_dict(user) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
    }


# =========================================================
# Lines / payments
# =========================================================
def item_to_dict(item) -> dict:
    amount = item.amount_excluding_tax
    product = item.product
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product": {"id": product.id, "name": product.name} if product is not None else None,
        "position": item.position,
        "name": item.name,
        "description": item.description,
        "quantity": _quantity(item.quantity),
        "unit": _enum(item.unit),
        "unit_price_excluding_tax": _money(item.unit_price_excluding_tax),
        "vat_rate": _enum(item.vat_rate),
        "amount_excluding_tax": money_str(amount),
        "tax": money_str(item.tax_amount),
    }


def payment_to_dict(payment) -> dict:
    return {
        "id": payment.id,
        "invoice_id": payment.invoice_id,
        "amount": _money(payment.amount),
        "payment_method": _enum(payment.payment_method),
        "payment_date": _iso(payment.payment_date),
        "reference": payment.reference,
        "description": payment.description,
        "created_at": _iso(payment.created_at),
    }


# =========================================================
# Documents
# =========================================================
def _document_common(doc, details: bool) -> dict:
    data = {
        "id": doc.id,
        "organization_id": doc.organization_id,
        "customer_id": doc.customer_id,
        "user_id": doc.user_id,
        "status": _enum(doc.status),
        "amount_excluding_tax": _money(doc.amount_excluding_tax),
        "tax": _money(doc.tax),
        "amount_including_tax": _money(doc.amount_including_tax),
        "conditions": doc.conditions,
        "customer": customer_to_dict(doc.customer),
        "items": [item_to_dict(i) for i in doc.items],
        "created_at": _iso(doc.created_at),
        "updated_at": _iso(doc.updated_at),
    }
    if details:
        data["user"] = user_to_dict(doc.user)
        data["organization"] = organization_to_dict(doc.organization)
    return data


def invoice_to_dict(invoice: Invoice, details: bool = True) -> dict:
    data = _document_common(invoice, details)
    data.update({
        "invoice_number": invoice.invoice_number,
        "invoice_date": _iso(invoice.invoice_date),
        "due_date": _iso(invoice.due_date),
        "late_payment_penalty": invoice.late_payment_penalty,
    })
    if details:
        payments = list(invoice.payments)
        paid = sum((quantize(p.amount) for p in payments), Decimal("0"))
        data["payments"] = [payment_to_dict(p) for p in payments]
        data["amount_paid"] = money_str(paid)
        data["amount_due"] = money_str(quantize(invoice.amount_including_tax) - paid)
    return data


def quote_to_dict(quote: Quote, details: bool = True) -> dict:
    data = _document_common(quote, details)
    data.update({
        "quote_number": quote.quote_number,
        "quote_date": _iso(quote.quote_date),
        "validity_date": _iso(quote.validity_date),
        "notes": quote.notes,
    })
    return data


def document_to_dict(doc, details: bool = True) -> dict:
    if isinstance(doc, Invoice):
        return invoice_to_dict(doc, details)
    return quote_to_dict(doc, details)


def page_to_dict(page, key: str) -> dict:
    return {
        key: [document_to_dict(d, details=False) for d in page.items],
        "pagination": {
            "total": page.total,
            "total_pages": page.total_pages,
            "page": page.page,
            "limit": page.limit,
        },
        "status_counts": page.status_counts,
    }
