# tests/conftest.py
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
import requests

from invoicing import create_app
from invoicing.extensions import db
from invoicing.models import (
    Customer,
    CustomerType,
    Organization,
    Product,
    ProductUnit,
    User,
    VatRate,
)
from invoicing.services.clients import EmailClient, PaymentProviderClient, PdfClient
from invoicing.services.dispatch import Dispatcher
from invoicing.settings import TestConfig

ISSUED = date(2026, 3, 2)
DUE = date(2026, 4, 1)


# =========================================================
# Fake HTTP transport for the sibling services
# =========================================================
class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", payload=None):
        self.status_code = status_code
        self.content = content
        self._payload = payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; answers by URL suffix and records calls."""

    def __init__(self):
        self.calls: list[dict] = []
        self.responses = {
            "/api/pdf/invoice": FakeResponse(200, b"%PDF-1.7 invoice"),
            "/api/pdf/quote": FakeResponse(200, b"%PDF-1.7 quote"),
            "/api/email/send-with-attachment": FakeResponse(200, b"{}", {"success": True}),
            "/api/stripe/create-checkout-session": FakeResponse(
                200, b"{}", {"success": True, "data": {"url": "https://checkout.test/cs_123"}}
            ),
        }

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        for suffix, answer in self.responses.items():
            if url.endswith(suffix):
                if isinstance(answer, Exception):
                    raise answer
                return answer
        return FakeResponse(404)

    def calls_to(self, suffix: str) -> list[dict]:
        return [c for c in self.calls if c["url"].endswith(suffix)]


# =========================================================
# App / DB
# =========================================================
@pytest.fixture
def http():
    return FakeSession()


@pytest.fixture
def app(http):
    app = create_app(TestConfig)
    app.extensions["invoicing.dispatcher"] = Dispatcher(
        PdfClient(app.config["PDF_SERVICE_URL"], 5, http),
        EmailClient(app.config["EMAIL_SERVICE_URL"], 5, http),
        PaymentProviderClient(app.config["PAYMENT_SERVICE_URL"], 5, http),
    )

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def dispatcher(app):
    return app.extensions["invoicing.dispatcher"]


# =========================================================
# Seed data
# =========================================================
@pytest.fixture
def org(app):
    organization = Organization(
        name="Atelier Lumen",
        email="billing@lumen.test",
        payment_account_id="acct_123",
        payment_account_onboarded=True,
    )
    db.session.add(organization)
    db.session.commit()
    return organization


@pytest.fixture
def other_org(app):
    organization = Organization(name="Other Co")
    db.session.add(organization)
    db.session.commit()
    return organization


@pytest.fixture
def user(org):
    u = User(organization_id=org.id, first_name="Camille", last_name="Durand", email="camille@lumen.test")
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def customer(org):
    c = Customer(
        organization_id=org.id,
        customer_type=CustomerType.BUSINESS,
        business_name="Boulangerie Martin",
        email="compta@martin.test",
        tax_id="FR12345678901",
    )
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def product(org):
    p = Product(
        organization_id=org.id,
        name="Consulting day",
        price_excluding_tax=Decimal("50.00"),
        vat_rate=VatRate.STANDARD,
        unit=ProductUnit.DAY,
    )
    db.session.add(p)
    db.session.commit()
    return p


@pytest.fixture
def book(org):
    p = Product(
        organization_id=org.id,
        name="Printed guide",
        price_excluding_tax=Decimal("12.35"),
        vat_rate=VatRate.REDUCED_2,
        unit=ProductUnit.UNIT,
    )
    db.session.add(p)
    db.session.commit()
    return p


@pytest.fixture
def foreign_product(other_org):
    p = Product(
        organization_id=other_org.id,
        name="Not yours",
        price_excluding_tax=Decimal("1.00"),
        vat_rate=VatRate.ZERO,
        unit=ProductUnit.UNIT,
    )
    db.session.add(p)
    db.session.commit()
    return p


@pytest.fixture
def auth(user):
    return {"X-User-Id": user.id}


# =========================================================
# Request builders
# =========================================================
def invoice_request(customer, *items, **extra):
    data = {
        "customer_id": customer.id,
        "invoice_date": ISSUED.isoformat(),
        "due_date": DUE.isoformat(),
        "items": list(items),
    }
    data.update(extra)
    return data


def quote_request(customer, *items, **extra):
    data = {
        "customer_id": customer.id,
        "quote_date": ISSUED.isoformat(),
        "validity_date": DUE.isoformat(),
        "items": list(items),
    }
    data.update(extra)
    return data


def product_line(product, quantity=1):
    return {"product_id": product.id, "quantity": quantity}


def custom_line(name="Setup fee", price="10.00", vat="STANDARD", quantity=1, **extra):
    line = {"name": name, "unit_price_excluding_tax": price, "vat_rate": vat, "quantity": quantity}
    line.update(extra)
    return line


@pytest.fixture
def make_invoice(org, user, customer, product):
    from invoicing.services.invoices import invoice_service

    def _make(*items, **extra):
        items = items or (product_line(product, 2),)
        return invoice_service.create(user.id, org.id, invoice_request(customer, *items, **extra))

    return _make


@pytest.fixture
def make_quote(org, user, customer, product):
    from invoicing.services.quotes import quote_service

    def _make(*items, **extra):
        items = items or (product_line(product, 2),)
        return quote_service.create(user.id, org.id, quote_request(customer, *items, **extra))

    return _make
