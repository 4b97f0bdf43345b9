# Overview: JSON response envelope used by every API route.

from flask import jsonify

from .errors import StorefrontError


def envelope(status: int, message: str, data: dict | list | None = None):
    """Render {status, message, data} with the matching HTTP status."""
    return jsonify({"status": status, "message": message, "data": data if data is not None else {}}), status


def error_response(exc: StorefrontError):
    return envelope(exc.http_status, exc.message, exc.details)
