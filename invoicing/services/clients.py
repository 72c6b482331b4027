# invoicing/services/clients.py
"""
HTTP clients for the sibling services: PDF rendering, email delivery and the
payment provider.

Calls are synchronous with a bounded timeout. Any transport error, timeout
or non-2xx answer becomes an ``UpstreamError``; the caller's request fails
and nothing is retried.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import requests
from flask import current_app

from invoicing.errors import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0


class ServiceClient:
    service_name = "service"

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT, session: requests.Session | None = None):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        # Without an injected session each call is a one-shot requests.post.
        self.session = session

    def _post(self, path: str, payload: dict, failure_message: str) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            post = self.session.post if self.session is not None else requests.post
            r = post(url, json=payload, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as exc:
            logger.error("%s call failed: POST %s (%s)", self.service_name, url, exc)
            raise UpstreamError(failure_message) from exc
        return r


class PdfClient(ServiceClient):
    service_name = "PDF service"

    def render(self, kind: str, document: dict, organization: dict) -> bytes:
        r = self._post(
            f"/api/pdf/{kind}",
            {kind: document, "organization": organization},
            failure_message="PDF generation failed",
        )
        if not r.content:
            logger.error("PDF service returned an empty body for %s %s", kind, document.get("id"))
            raise UpstreamError("PDF generation failed")
        return r.content


class EmailClient(ServiceClient):
    service_name = "Email service"

    def send_with_attachment(self, *, to: str, subject: str, html: str, attachment: bytes, filename: str) -> None:
        self._post(
            "/api/email/send-with-attachment",
            {
                "to": [to],
                "subject": subject,
                "html": html,
                "attachment": base64.b64encode(attachment).decode("ascii"),
                "filename": filename,
            },
            failure_message="Email sending failed",
        )


class PaymentProviderClient(ServiceClient):
    service_name = "Payment provider"

    def create_checkout_session(
        self,
        *,
        amount_minor_units: int,
        currency: str,
        description: str,
        connected_account_id: str,
        application_fee_minor_units: int,
        invoice_id: str,
        customer_email: str,
        success_url: str,
        cancel_url: str,
    ) -> str:
        r = self._post(
            "/api/stripe/create-checkout-session",
            {
                "amount": amount_minor_units,
                "currency": currency,
                "description": description,
                "connected_account_id": connected_account_id,
                "application_fee_amount": application_fee_minor_units,
                "invoice_id": invoice_id,
                "customer_email": customer_email,
                "success_url": success_url,
                "cancel_url": cancel_url,
            },
            failure_message="Payment link creation failed",
        )
        url = _checkout_url(r)
        if not url:
            logger.error("Payment provider answered without a checkout url for invoice %s", invoice_id)
            raise UpstreamError("Payment link creation failed")
        return url


def _checkout_url(r: requests.Response) -> str | None:
    try:
        body: Any = r.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    if isinstance(data, dict) and data.get("url"):
        return data["url"]
    return body.get("checkout_url") or body.get("url")


def clients_from_config(config=None) -> tuple[PdfClient, EmailClient, PaymentProviderClient]:
    cfg = config if config is not None else current_app.config
    timeout = float(cfg.get("OUTBOUND_TIMEOUT_SECONDS", DEFAULT_TIMEOUT))
    return (
        PdfClient(cfg.get("PDF_SERVICE_URL"), timeout),
        EmailClient(cfg.get("EMAIL_SERVICE_URL"), timeout),
        PaymentProviderClient(cfg.get("PAYMENT_SERVICE_URL"), timeout),
    )
