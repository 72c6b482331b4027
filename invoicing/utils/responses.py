# invoicing/utils/responses.py
from __future__ import annotations

from typing import Any

from flask import jsonify, request

from invoicing.errors import ValidationError


def success(message: str, data: Any = None, status: int = 200):
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def error(message: str, status: int):
    return jsonify({"success": False, "message": message}), status


def json_body() -> dict:
    """Request JSON object; anything else is a 400."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
