# invoicing/models.py
from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from flask_login import UserMixin
from sqlalchemy import Enum as SAEnum

from .extensions import db
from .utils.money import ZERO, line_amount, line_tax


# Naive UTC everywhere: columns are "timestamp without time zone".
def utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def _enum_column(enum_cls: type[enum.Enum], name: str, **kwargs):
    return db.Column(
        SAEnum(
            enum_cls,
            name=name,
            values_callable=lambda e: [m.value for m in e],
            native_enum=False,
            create_constraint=True,
            length=20,
        ),
        **kwargs,
    )


# =========================================================
# Enums
# =========================================================
class InvoiceStatus(enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    PAID = "paid"
    CANCELLED = "cancelled"
    LATE = "late"


class QuoteStatus(enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class VatRate(enum.Enum):
    ZERO = "ZERO"
    REDUCED_1 = "REDUCED_1"
    REDUCED_2 = "REDUCED_2"
    REDUCED_3 = "REDUCED_3"
    STANDARD = "STANDARD"


class ProductUnit(enum.Enum):
    UNIT = "unite"
    KG = "kg"
    G = "g"
    L = "l"
    ML = "ml"
    M = "m"
    CM = "cm"
    M2 = "m2"
    CM2 = "cm2"
    M3 = "m3"
    HOUR = "h"
    DAY = "jour"
    MONTH = "mois"
    YEAR = "annee"


class PaymentMethod(enum.Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    BANK_TRANSFER = "bank_transfer"
    STRIPE = "stripe"


class CustomerType(enum.Enum):
    INDIVIDUAL = "individual"
    BUSINESS = "business"


# =========================================================
# Organization (tenant)
# =========================================================
class Organization(db.Model):
    __tablename__ = "organization"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(160), nullable=False)
    email = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    tax_id = db.Column(db.String(60), nullable=True)

    # Connected payment-provider account; payment links need both set.
    payment_account_id = db.Column(db.String(120), nullable=True)
    payment_account_onboarded = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    @property
    def accepts_online_payments(self) -> bool:
        return bool(self.payment_account_id) and bool(self.payment_account_onboarded)

    def __repr__(self) -> str:
        return f"<Organization {self.id} {self.name}>"


# =========================================================
# User (issuer of documents)
# =========================================================
class User(UserMixin, db.Model):
    __tablename__ = "user"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    organization_id = db.Column(
        db.String(36),
        db.ForeignKey("organization.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    organization = db.relationship("Organization", foreign_keys=[organization_id], lazy="joined")

    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(120), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    __table_args__ = (db.UniqueConstraint("email", name="user_email_key"),)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email}>"


# =========================================================
# Customer (individual or business)
# =========================================================
class Customer(db.Model):
    __tablename__ = "customer"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(
        db.String(36),
        db.ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    customer_type = _enum_column(CustomerType, "customer_type", nullable=False, default=CustomerType.INDIVIDUAL)

    email = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    # Individual
    first_name = db.Column(db.String(80), nullable=True)
    last_name = db.Column(db.String(80), nullable=True)

    # Business
    business_name = db.Column(db.String(160), nullable=True)
    tax_id = db.Column(db.String(60), nullable=True)  # SIRET / VAT number

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    @property
    def display_name(self) -> str:
        if self.customer_type == CustomerType.BUSINESS and self.business_name:
            return self.business_name
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def __repr__(self) -> str:
        return f"<Customer {self.id} {self.display_name}>"


# =========================================================
# Product (catalog)
# =========================================================
class Product(db.Model):
    __tablename__ = "product"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(
        db.String(36),
        db.ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price_excluding_tax = db.Column(db.Numeric(12, 2), nullable=False)
    vat_rate = _enum_column(VatRate, "vat_rate", nullable=False)
    unit = _enum_column(ProductUnit, "product_unit", nullable=False, default=ProductUnit.UNIT)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    def __repr__(self) -> str:
        return f"<Product {self.id} {self.name}>"


# =========================================================
# Documents (invoice / quote) - shared columns
# =========================================================
class BaseDocument(db.Model):
    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    organization_id = db.Column(db.String(36), db.ForeignKey("organization.id"), nullable=False, index=True)
    customer_id = db.Column(db.String(36), db.ForeignKey("customer.id"), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey("user.id", ondelete="SET NULL"), nullable=True)

    # Derived from line items; never set directly by callers.
    amount_excluding_tax = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)
    amount_including_tax = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)

    conditions = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)


class BaseLineItem(db.Model):
    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    product_id = db.Column(db.String(36), db.ForeignKey("product.id", ondelete="SET NULL"), nullable=True)

    # Request order of the line within its document
    position = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit = _enum_column(ProductUnit, "product_unit", nullable=False, default=ProductUnit.UNIT)
    unit_price_excluding_tax = db.Column(db.Numeric(12, 2), nullable=False)
    vat_rate = _enum_column(VatRate, "vat_rate", nullable=False)

    @property
    def amount_excluding_tax(self):
        return line_amount(self.quantity, self.unit_price_excluding_tax)

    @property
    def tax_amount(self):
        return line_tax(self.amount_excluding_tax, self.vat_rate)


# =========================================================
# Invoice
# =========================================================
class Invoice(BaseDocument):
    __tablename__ = "invoice"

    invoice_number = db.Column(db.String(40), nullable=False)
    invoice_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)

    status = _enum_column(InvoiceStatus, "invoice_status", nullable=False, default=InvoiceStatus.PENDING, index=True)

    late_payment_penalty = db.Column(db.Text, nullable=True)

    organization = db.relationship("Organization", foreign_keys="Invoice.organization_id", lazy="select")
    customer = db.relationship("Customer", foreign_keys="Invoice.customer_id", lazy="select")
    user = db.relationship("User", foreign_keys="Invoice.user_id", lazy="select")

    items = db.relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
        lazy="select",
    )
    payments = db.relationship(
        "Payment",
        back_populates="invoice",
        order_by="Payment.payment_date",
        lazy="select",
    )

    __table_args__ = (
        db.UniqueConstraint("organization_id", "invoice_number", name="uq_invoice_org_number"),
        db.CheckConstraint("due_date >= invoice_date", name="ck_invoice_due_after_issue"),
    )

    @property
    def number(self) -> str:
        return self.invoice_number

    def __repr__(self) -> str:
        return f"<Invoice {self.id} {self.invoice_number} {self.status}>"


class InvoiceItem(BaseLineItem):
    __tablename__ = "invoice_item"

    invoice_id = db.Column(
        db.String(36),
        db.ForeignKey("invoice.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    invoice = db.relationship("Invoice", back_populates="items")
    product = db.relationship("Product", foreign_keys="InvoiceItem.product_id", lazy="joined")


# =========================================================
# Payment (append-only, invoices only)
# =========================================================
class Payment(db.Model):
    __tablename__ = "payment"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    invoice_id = db.Column(
        db.String(36),
        db.ForeignKey("invoice.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    invoice = db.relationship("Invoice", back_populates="payments")

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = _enum_column(PaymentMethod, "payment_method", nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    reference = db.Column(db.String(120), nullable=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    __table_args__ = (db.CheckConstraint("amount > 0", name="ck_payment_amount_positive"),)

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.amount} invoice={self.invoice_id}>"


# =========================================================
# Quote
# =========================================================
class Quote(BaseDocument):
    __tablename__ = "quote"

    quote_number = db.Column(db.String(40), nullable=False)
    quote_date = db.Column(db.Date, nullable=False)
    validity_date = db.Column(db.Date, nullable=False, index=True)

    status = _enum_column(QuoteStatus, "quote_status", nullable=False, default=QuoteStatus.DRAFT, index=True)

    notes = db.Column(db.Text, nullable=True)

    organization = db.relationship("Organization", foreign_keys="Quote.organization_id", lazy="select")
    customer = db.relationship("Customer", foreign_keys="Quote.customer_id", lazy="select")
    user = db.relationship("User", foreign_keys="Quote.user_id", lazy="select")

    items = db.relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.position",
        lazy="select",
    )

    __table_args__ = (
        db.UniqueConstraint("organization_id", "quote_number", name="uq_quote_org_number"),
        db.CheckConstraint("validity_date >= quote_date", name="ck_quote_validity_after_issue"),
    )

    @property
    def number(self) -> str:
        return self.quote_number

    def __repr__(self) -> str:
        return f"<Quote {self.id} {self.quote_number} {self.status}>"


class QuoteItem(BaseLineItem):
    __tablename__ = "quote_item"

    quote_id = db.Column(
        db.String(36),
        db.ForeignKey("quote.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quote = db.relationship("Quote", back_populates="items")
    product = db.relationship("Product", foreign_keys="QuoteItem.product_id", lazy="joined")
