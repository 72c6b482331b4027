# invoicing/utils/guards.py

from __future__ import annotations

from functools import wraps
from typing import Callable, Any

from flask import abort
from flask_login import login_required, current_user


def current_organization_id() -> str | None:
    return getattr(current_user, "organization_id", None)


def organization_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """
    Allow only authenticated users attached to an organization.
    401 without identity (login_required), 403 without an organization.
    """
    @wraps(view)
    @login_required
    def wrapped(*args, **kwargs):
        if not current_organization_id():
            abort(403, description="No organization associated with this user")
        return view(*args, **kwargs)

    return wrapped
