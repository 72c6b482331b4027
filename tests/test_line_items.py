# tests/test_line_items.py
from decimal import Decimal

import pytest

from conftest import custom_line, product_line
from invoicing.errors import NotFoundError, ValidationError
from invoicing.models import Product, ProductUnit, VatRate
from invoicing.services.line_items import LineItemResolver, fetch_products


@pytest.fixture
def resolver():
    return LineItemResolver()


class TestProductLines:
    def test_catalog_data_wins_over_client_values(self, org, product, resolver):
        tampered = {
            "product_id": product.id,
            "quantity": 2,
            "unit_price_excluding_tax": "0.01",
            "vat_rate": "ZERO",
            "unit": "kg",
        }
        lines, totals = resolver.resolve(org.id, [tampered])

        line = lines[0]
        assert line.unit_price_excluding_tax == Decimal("50.00")
        assert line.vat_rate == VatRate.STANDARD
        assert line.unit == ProductUnit.DAY
        assert line.amount_excluding_tax == Decimal("100.00")
        assert totals.rounded()["amount_including_tax"] == Decimal("120.00")

    def test_duplicate_product_ids_are_one_lookup(self, org, product, resolver):
        lines, totals = resolver.resolve(org.id, [product_line(product, 1), product_line(product, 3)])
        assert len(lines) == 2
        assert totals.rounded()["amount_excluding_tax"] == Decimal("200.00")

    def test_one_missing_id_fails_the_batch(self, org, product, resolver):
        with pytest.raises(NotFoundError) as exc:
            resolver.resolve(org.id, [product_line(product), {"product_id": "missing", "quantity": 1}])
        assert exc.value.status_code == 404
        assert "do not belong to your organization" in exc.value.message

    def test_other_organizations_products_are_invisible(self, org, foreign_product, resolver):
        with pytest.raises(NotFoundError):
            resolver.resolve(org.id, [product_line(foreign_product)])

    def test_fetch_products_with_no_ids(self, org):
        assert fetch_products(org.id, [None, ""]) == {}


class TestCustomLines:
    def test_custom_line_uses_client_values(self, org, resolver):
        lines, totals = resolver.resolve(org.id, [custom_line("Travel", "40.00", "REDUCED_3", 3, unit="h")])

        line = lines[0]
        assert line.product_id is None
        assert line.name == "Travel"
        assert line.unit == ProductUnit.HOUR
        assert totals.rounded() == {
            "amount_excluding_tax": Decimal("120.00"),
            "tax": Decimal("12.00"),
            "amount_including_tax": Decimal("132.00"),
        }

    def test_unit_defaults(self, org, resolver):
        lines, _ = resolver.resolve(org.id, [custom_line()])
        assert lines[0].unit == ProductUnit.UNIT

    @pytest.mark.parametrize(
        "line, field",
        [
            ({"unit_price_excluding_tax": "10", "vat_rate": "STANDARD", "quantity": 1}, "name"),
            ({"name": "X", "vat_rate": "STANDARD", "quantity": 1}, "unit_price_excluding_tax"),
            ({"name": "X", "unit_price_excluding_tax": "10", "quantity": 1}, "vat_rate"),
            ({"name": "X", "unit_price_excluding_tax": "10", "vat_rate": "HALF", "quantity": 1}, "vat_rate"),
            ({"name": "X", "unit_price_excluding_tax": "-1", "vat_rate": "ZERO", "quantity": 1}, "unit_price"),
            ({"name": "X", "unit_price_excluding_tax": "1", "vat_rate": "ZERO", "quantity": 0}, "quantity"),
            ({"name": "X", "unit_price_excluding_tax": "1", "vat_rate": "ZERO", "quantity": 1, "unit": "parsec"}, "unit"),
        ],
    )
    def test_invalid_custom_lines(self, org, resolver, line, field):
        with pytest.raises(ValidationError) as exc:
            resolver.resolve(org.id, [line])
        assert field in exc.value.message

    @pytest.mark.parametrize(
        "quantity, price, field",
        [
            ("1.0004", "100", "quantity"),
            ("3", "0.333", "unit_price_excluding_tax"),
            ("2", "1e40", "unit_price_excluding_tax"),
        ],
    )
    def test_values_finer_than_storage_are_refused(self, org, resolver, quantity, price, field):
        with pytest.raises(ValidationError) as exc:
            resolver.resolve(org.id, [custom_line("Fine", price, "ZERO", quantity)])
        assert field in exc.value.message

    def test_storage_scale_is_accepted(self, org, resolver):
        lines, totals = resolver.resolve(org.id, [custom_line("Fine", "0.330", "ZERO", "1.250")])
        assert lines[0].quantity == Decimal("1.25")
        assert totals.rounded()["amount_excluding_tax"] == Decimal("0.41")

    def test_refused_line_saves_no_product(self, org, resolver):
        with pytest.raises(ValidationError):
            resolver.resolve(org.id, [custom_line("Fine", "9.999", "ZERO", save_as_product=True)])
        assert Product.query.filter_by(name="Fine").count() == 0

    def test_save_as_product_creates_catalog_entry(self, org, resolver):
        lines, _ = resolver.resolve(org.id, [custom_line("Logo pack", "80.00", "STANDARD", save_as_product=True)])

        product = Product.query.filter_by(organization_id=org.id, name="Logo pack").one()
        assert lines[0].product_id == product.id
        assert product.price_excluding_tax == Decimal("80.00")
        assert product.vat_rate == VatRate.STANDARD


@pytest.mark.parametrize("lines", [None, [], "abc", [1, 2]])
def test_line_list_shape(org, resolver, lines):
    with pytest.raises(ValidationError):
        resolver.resolve(org.id, lines)
