# invoicing/services/line_items.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping

from invoicing.errors import NotFoundError, ValidationError
from invoicing.extensions import db
from invoicing.models import Product, ProductUnit, VatRate
from invoicing.utils.money import ZERO, Totals
from invoicing.utils.parsing import parse_bool, parse_decimal, parse_enum, parse_str

logger = logging.getLogger(__name__)

PRODUCTS_NOT_FOUND = "Some products do not exist or do not belong to your organization"

# Scale of the quantity / unit price columns on line items.
QUANTITY_PLACES = 3
PRICE_PLACES = 2


@dataclass
class ResolvedLine:
    product_id: str | None
    name: str | None
    description: str | None
    quantity: Decimal
    unit: ProductUnit
    unit_price_excluding_tax: Decimal
    vat_rate: VatRate
    amount_excluding_tax: Decimal
    tax: Decimal

    def to_item(self, item_model, position: int):
        return item_model(
            position=position,
            product_id=self.product_id,
            name=self.name,
            description=self.description,
            quantity=self.quantity,
            unit=self.unit,
            unit_price_excluding_tax=self.unit_price_excluding_tax,
            vat_rate=self.vat_rate,
        )


def fetch_products(organization_id: str, product_ids: Iterable[str]) -> dict[str, Product]:
    """
    Batch lookup scoped to the organization.

    One missing or foreign id fails the whole batch: the number of rows found
    must equal the number of distinct ids requested.
    """
    unique_ids = {pid for pid in product_ids if pid}
    if not unique_ids:
        return {}

    products = (
        Product.query
        .filter(Product.id.in_(unique_ids), Product.organization_id == organization_id)
        .all()
    )
    if len(products) != len(unique_ids):
        logger.info(
            "Product lookup mismatch for organization %s: requested=%d found=%d",
            organization_id, len(unique_ids), len(products),
        )
        raise NotFoundError(PRODUCTS_NOT_FOUND)

    return {p.id: p for p in products}


class LineItemResolver:
    """Turns requested lines into authoritative line data plus running totals."""

    def resolve(self, organization_id: str, lines: Any) -> tuple[list[ResolvedLine], Totals]:
        if not isinstance(lines, (list, tuple)) or not lines:
            raise ValidationError("At least one line item is required")
        for raw in lines:
            if not isinstance(raw, Mapping):
                raise ValidationError("Each line item must be an object")

        products = fetch_products(organization_id, (parse_str(raw.get("product_id")) for raw in lines))

        totals = Totals()
        resolved = []
        for index, raw in enumerate(lines, start=1):
            line = self._resolve_line(organization_id, index, raw, products)
            line.amount_excluding_tax, line.tax = totals.add_line(
                line.quantity, line.unit_price_excluding_tax, line.vat_rate
            )
            resolved.append(line)

        return resolved, totals

    def _resolve_line(self, organization_id: str, index: int, raw: Mapping[str, Any],
                      products: Mapping[str, Product]) -> ResolvedLine:
        label = f"items[{index}]"
        quantity = parse_decimal(
            raw.get("quantity"), f"{label}.quantity", required=True, strictly_positive=True, places=QUANTITY_PLACES
        )
        name = parse_str(raw.get("name"), maxlen=100)
        description = parse_str(raw.get("description"))

        product_id = parse_str(raw.get("product_id"))
        if product_id:
            # Catalog data wins over anything the client sent.
            product = products[product_id]
            return ResolvedLine(
                product_id=product.id,
                name=name or product.name,
                description=description if description is not None else product.description,
                quantity=quantity,
                unit=product.unit,
                unit_price_excluding_tax=product.price_excluding_tax,
                vat_rate=product.vat_rate,
                amount_excluding_tax=ZERO,
                tax=ZERO,
            )

        if not name:
            raise ValidationError(f"{label}.name is required for a custom line")
        unit_price = parse_decimal(
            raw.get("unit_price_excluding_tax"), f"{label}.unit_price_excluding_tax",
            required=True, minimum=ZERO, places=PRICE_PLACES,
        )
        vat_rate = parse_enum(VatRate, raw.get("vat_rate"), f"{label}.vat_rate", required=True)
        unit = parse_enum(ProductUnit, raw.get("unit"), f"{label}.unit") or ProductUnit.UNIT

        if parse_bool(raw.get("save_as_product")):
            product_id = self._save_as_product(organization_id, name, description, unit_price, vat_rate, unit)

        return ResolvedLine(
            product_id=product_id,
            name=name,
            description=description,
            quantity=quantity,
            unit=unit,
            unit_price_excluding_tax=unit_price,
            vat_rate=vat_rate,
            amount_excluding_tax=ZERO,
            tax=ZERO,
        )

    @staticmethod
    def _save_as_product(organization_id, name, description, unit_price, vat_rate, unit) -> str:
        product = Product(
            organization_id=organization_id,
            name=name,
            description=description or "",
            price_excluding_tax=unit_price,
            vat_rate=vat_rate,
            unit=unit,
        )
        db.session.add(product)
        db.session.flush()
        logger.info("Saved custom line %r as product %s", name, product.id)
        return product.id
