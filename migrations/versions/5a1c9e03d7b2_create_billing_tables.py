"""create_billing_tables

Revision ID: 5a1c9e03d7b2
Revises:
Create Date: 2026-10-17 09:12:41.218305

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5a1c9e03d7b2'
down_revision = None
branch_labels = None
depends_on = None


VAT_RATES = ("ZERO", "REDUCED_1", "REDUCED_2", "REDUCED_3", "STANDARD")
UNITS = ("unite", "kg", "g", "l", "ml", "m", "cm", "m2", "cm2", "m3", "h", "jour", "mois", "annee")


def _enum(name, *values):
    return sa.Enum(*values, name=name, native_enum=False, create_constraint=True, length=20)


def _line_item_columns():
    return [
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("product_id", sa.String(length=36), sa.ForeignKey("product.id", ondelete="SET NULL"), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit", _enum("product_unit", *UNITS), nullable=False),
        sa.Column("unit_price_excluding_tax", sa.Numeric(12, 2), nullable=False),
        sa.Column("vat_rate", _enum("vat_rate", *VAT_RATES), nullable=False),
    ]


def _document_columns():
    return [
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organization.id"), nullable=False),
        sa.Column("customer_id", sa.String(length=36), sa.ForeignKey("customer.id"), nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("amount_excluding_tax", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("tax", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("amount_including_tax", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("conditions", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade():
    # =========================
    # organization
    # =========================
    op.create_table(
        "organization",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=True),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("tax_id", sa.String(length=60), nullable=True),
        sa.Column("payment_account_id", sa.String(length=120), nullable=True),
        sa.Column("payment_account_onboarded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )

    # =========================
    # user
    # =========================
    op.create_table(
        "user",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organization.id", ondelete="SET NULL"), nullable=True),
        sa.Column("first_name", sa.String(length=80), nullable=False),
        sa.Column("last_name", sa.String(length=80), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("email", name="user_email_key"),
    )
    op.create_index("ix_user_organization_id", "user", ["organization_id"])

    # =========================
    # customer
    # =========================
    op.create_table(
        "customer",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organization.id", ondelete="CASCADE"), nullable=False),
        sa.Column("customer_type", _enum("customer_type", "individual", "business"), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=True),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.String(length=80), nullable=True),
        sa.Column("last_name", sa.String(length=80), nullable=True),
        sa.Column("business_name", sa.String(length=160), nullable=True),
        sa.Column("tax_id", sa.String(length=60), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_customer_organization_id", "customer", ["organization_id"])

    # =========================
    # product (catalog)
    # =========================
    op.create_table(
        "product",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organization.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_excluding_tax", sa.Numeric(12, 2), nullable=False),
        sa.Column("vat_rate", _enum("vat_rate", *VAT_RATES), nullable=False),
        sa.Column("unit", _enum("product_unit", *UNITS), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_product_organization_id", "product", ["organization_id"])

    # =========================
    # invoice + lines + payments
    # =========================
    op.create_table(
        "invoice",
        *_document_columns(),
        sa.Column("invoice_number", sa.String(length=40), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            _enum("invoice_status", "pending", "sent", "paid", "cancelled", "late"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("late_payment_penalty", sa.Text(), nullable=True),
        sa.UniqueConstraint("organization_id", "invoice_number", name="uq_invoice_org_number"),
        sa.CheckConstraint("due_date >= invoice_date", name="ck_invoice_due_after_issue"),
    )
    op.create_index("ix_invoice_organization_id", "invoice", ["organization_id"])
    op.create_index("ix_invoice_customer_id", "invoice", ["customer_id"])
    op.create_index("ix_invoice_due_date", "invoice", ["due_date"])
    op.create_index("ix_invoice_status", "invoice", ["status"])

    op.create_table(
        "invoice_item",
        *_line_item_columns(),
        sa.Column("invoice_id", sa.String(length=36), sa.ForeignKey("invoice.id", ondelete="CASCADE"), nullable=False),
    )
    op.create_index("ix_invoice_item_invoice_id", "invoice_item", ["invoice_id"])

    op.create_table(
        "payment",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("invoice_id", sa.String(length=36), sa.ForeignKey("invoice.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "payment_method",
            _enum("payment_method", "cash", "credit_card", "bank_transfer", "stripe"),
            nullable=False,
        ),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("reference", sa.String(length=120), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
    )
    op.create_index("ix_payment_invoice_id", "payment", ["invoice_id"])

    # =========================
    # quote + lines
    # =========================
    op.create_table(
        "quote",
        *_document_columns(),
        sa.Column("quote_number", sa.String(length=40), nullable=False),
        sa.Column("quote_date", sa.Date(), nullable=False),
        sa.Column("validity_date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            _enum("quote_status", "draft", "sent", "accepted", "rejected", "expired"),
            nullable=False,
            server_default="draft",
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("organization_id", "quote_number", name="uq_quote_org_number"),
        sa.CheckConstraint("validity_date >= quote_date", name="ck_quote_validity_after_issue"),
    )
    op.create_index("ix_quote_organization_id", "quote", ["organization_id"])
    op.create_index("ix_quote_customer_id", "quote", ["customer_id"])
    op.create_index("ix_quote_validity_date", "quote", ["validity_date"])
    op.create_index("ix_quote_status", "quote", ["status"])

    op.create_table(
        "quote_item",
        *_line_item_columns(),
        sa.Column("quote_id", sa.String(length=36), sa.ForeignKey("quote.id", ondelete="CASCADE"), nullable=False),
    )
    op.create_index("ix_quote_item_quote_id", "quote_item", ["quote_id"])


def downgrade():
    op.drop_table("quote_item")
    op.drop_table("quote")
    op.drop_table("payment")
    op.drop_table("invoice_item")
    op.drop_table("invoice")
    op.drop_table("product")
    op.drop_table("customer")
    op.drop_table("user")
    op.drop_table("organization")
