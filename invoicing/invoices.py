# invoicing/invoices.py
from __future__ import annotations

from flask import Blueprint, current_app, request
from flask_login import current_user

from .extensions import limiter
from .serializers import invoice_to_dict, page_to_dict, payment_to_dict
from .services.invoices import invoice_service
from .services.stats import invoice_stats
from .utils.guards import current_organization_id, organization_required
from .utils.responses import json_body, success


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _dispatcher():
    return current_app.extensions["invoicing.dispatcher"]


def _send_limit() -> str:
    return current_app.config.get("SEND_RATE_LIMIT", "20 per minute")


# =========================================================
# Collection
# =========================================================
@invoices_bp.route("", methods=["POST"])
@organization_required
def create_invoice():
    invoice = invoice_service.create(current_user.id, current_organization_id(), json_body())
    current_app.logger.info("Invoice %s created by user %s", invoice.id, current_user.id)
    return success("Invoice created", invoice_to_dict(invoice), 201)


@invoices_bp.route("", methods=["GET"])
@organization_required
def list_invoices():
    page = invoice_service.list(current_organization_id(), request.args.to_dict())
    return success("Invoices retrieved", page_to_dict(page, "invoices"))


@invoices_bp.route("/stats", methods=["GET"])
@organization_required
def stats():
    return success("Invoice statistics retrieved", invoice_stats(current_organization_id()))


@invoices_bp.route("/customer/<customer_id>", methods=["GET"])
@organization_required
def list_customer_invoices(customer_id: str):
    page = invoice_service.list_for_customer(customer_id, current_organization_id(), request.args.to_dict())
    return success("Customer invoices retrieved", page_to_dict(page, "invoices"))


# =========================================================
# Single invoice
# =========================================================
@invoices_bp.route("/<invoice_id>", methods=["GET"])
@organization_required
def get_invoice(invoice_id: str):
    invoice = invoice_service.get_with_details(invoice_id, current_organization_id())
    return success("Invoice retrieved", invoice_to_dict(invoice))


@invoices_bp.route("/<invoice_id>", methods=["PUT"])
@organization_required
def update_invoice(invoice_id: str):
    invoice = invoice_service.update(invoice_id, current_organization_id(), json_body())
    return success("Invoice updated", invoice_to_dict(invoice))


@invoices_bp.route("/<invoice_id>", methods=["DELETE"])
@organization_required
def delete_invoice(invoice_id: str):
    invoice_service.delete(invoice_id, current_organization_id())
    current_app.logger.info("Invoice %s deleted by user %s", invoice_id, current_user.id)
    return success("Invoice deleted")


# =========================================================
# Payments
# =========================================================
@invoices_bp.route("/<invoice_id>/payments", methods=["POST"])
@organization_required
def create_payment(invoice_id: str):
    payment = invoice_service.create_payment(invoice_id, current_organization_id(), json_body())
    return success("Payment recorded", payment_to_dict(payment), 201)


# =========================================================
# Sending
# =========================================================
@invoices_bp.route("/<invoice_id>/send", methods=["POST"])
@organization_required
@limiter.limit(_send_limit)
def send_invoice(invoice_id: str):
    invoice = _dispatcher().send_by_email(invoice_service, invoice_id, current_organization_id(), current_user.id)
    return success("Invoice sent by email", invoice_to_dict(invoice))


@invoices_bp.route("/<invoice_id>/send-with-payment-link", methods=["POST"])
@organization_required
@limiter.limit(_send_limit)
def send_invoice_with_payment_link(invoice_id: str):
    data = json_body()
    invoice = _dispatcher().send_with_payment_link(
        invoice_service,
        invoice_id,
        current_organization_id(),
        current_user.id,
        success_url=data.get("success_url"),
        cancel_url=data.get("cancel_url"),
    )
    return success("Invoice sent by email with payment link", invoice_to_dict(invoice))
