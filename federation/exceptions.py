"""
federation/exceptions.py
─────────────────────────────────────────────────────────────────────
Domain errors and the JSON error envelope.

Every error leaves the API as
    {"success": false, "message": "...", "errors": {...}}
"""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ConflictError(APIException):
    status_code    = status.HTTP_409_CONFLICT
    default_detail = "The resource is in a conflicting state."
    default_code   = "conflict"


class BusinessRuleViolation(APIException):
    status_code    = status.HTTP_400_BAD_REQUEST
    default_detail = "The request breaks a business rule."
    default_code   = "business_rule"


class AccountLocked(APIException):
    status_code    = status.HTTP_403_FORBIDDEN
    default_detail = "Account is temporarily locked."
    default_code   = "account_locked"


class PaymentFailed(APIException):
    status_code    = status.HTTP_402_PAYMENT_REQUIRED
    default_detail = "The payment could not be processed."
    default_code   = "payment_failed"


def _first_message(detail) -> str:
    if isinstance(detail, list) and detail:
        return _first_message(detail[0])
    if isinstance(detail, dict):
        if "detail" in detail:
            return _first_message(detail["detail"])
        return "Validation failed."
    return str(detail)


def federation_exception_handler(exc, context):
    """Wrap DRF's default error response into the federation envelope."""
    response = exception_handler(exc, context)
    if response is None:
        # unhandled → Django returns 500, Sentry picks it up in production
        return None

    detail = response.data
    body = {
        "success": False,
        "message": _first_message(detail),
        "errors":  detail if isinstance(detail, dict) and "detail" not in detail else {},
    }
    if response.status_code >= 500:
        logger.error("API error %s: %s", response.status_code, body["message"])
    return Response(body, status=response.status_code, headers=_auth_headers(response))


def _auth_headers(response) -> dict:
    headers = {}
    for name in ("WWW-Authenticate", "Retry-After"):
        if response.has_header(name):
            headers[name] = response[name]
    return headers


def api_response(data=None, message: str = "OK", status_code: int = status.HTTP_200_OK) -> Response:
    """Success envelope used by every view."""
    return Response({"success": True, "message": message, "data": data}, status=status_code)
