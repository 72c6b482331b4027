# invoicing/quotes.py
from __future__ import annotations

from flask import Blueprint, current_app, request
from flask_login import current_user

from .extensions import limiter
from .serializers import page_to_dict, quote_to_dict
from .services.quotes import quote_service
from .services.stats import quote_stats
from .utils.guards import current_organization_id, organization_required
from .utils.responses import json_body, success


quotes_bp = Blueprint("quotes", __name__, url_prefix="/api/quotes")


@quotes_bp.route("", methods=["POST"])
@organization_required
def create_quote():
    quote = quote_service.create(current_user.id, current_organization_id(), json_body())
    current_app.logger.info("Quote %s created by user %s", quote.id, current_user.id)
    return success("Quote created", quote_to_dict(quote), 201)


@quotes_bp.route("", methods=["GET"])
@organization_required
def list_quotes():
    page = quote_service.list(current_organization_id(), request.args.to_dict())
    return success("Quotes retrieved", page_to_dict(page, "quotes"))


@quotes_bp.route("/stats", methods=["GET"])
@organization_required
def stats():
    return success("Quote statistics retrieved", quote_stats(current_organization_id()))


@quotes_bp.route("/customer/<customer_id>", methods=["GET"])
@organization_required
def list_customer_quotes(customer_id: str):
    page = quote_service.list_for_customer(customer_id, current_organization_id(), request.args.to_dict())
    return success("Customer quotes retrieved", page_to_dict(page, "quotes"))


@quotes_bp.route("/<quote_id>", methods=["GET"])
@organization_required
def get_quote(quote_id: str):
    quote = quote_service.get_with_details(quote_id, current_organization_id())
    return success("Quote retrieved", quote_to_dict(quote))


@quotes_bp.route("/<quote_id>", methods=["PUT"])
@organization_required
def update_quote(quote_id: str):
    quote = quote_service.update(quote_id, current_organization_id(), json_body())
    return success("Quote updated", quote_to_dict(quote))


@quotes_bp.route("/<quote_id>", methods=["DELETE"])
@organization_required
def delete_quote(quote_id: str):
    quote_service.delete(quote_id, current_organization_id())
    current_app.logger.info("Quote %s deleted by user %s", quote_id, current_user.id)
    return success("Quote deleted")


@quotes_bp.route("/<quote_id>/send", methods=["POST"])
@organization_required
@limiter.limit(lambda: current_app.config.get("SEND_RATE_LIMIT", "20 per minute"))
def send_quote(quote_id: str):
    dispatcher = current_app.extensions["invoicing.dispatcher"]
    quote = dispatcher.send_by_email(quote_service, quote_id, current_organization_id(), current_user.id)
    return success("Quote sent by email", quote_to_dict(quote))
