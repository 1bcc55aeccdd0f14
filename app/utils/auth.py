"""Bearer-token guard for admin endpoints.

Credential issuance lives outside this service; the admin console is handed
``ADMIN_API_TOKEN`` and sends it as ``Authorization: Bearer <token>``.
"""

from __future__ import annotations

import hmac
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, request

from app.errors import UnauthorizedError


def _presented_token() -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def require_admin(view: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        expected = str(current_app.config.get("ADMIN_API_TOKEN") or "")
        if expected and not hmac.compare_digest(_presented_token().encode(), expected.encode()):
            raise UnauthorizedError(message="Admin token required")
        return view(*args, **kwargs)

    return wrapper
