"""HTTP blueprints. Error bodies: {"error": message, "kind": kind, "details": {...}}."""


def error_response(e: Exception):
    body = {
        "error": str(e),
        "kind": getattr(e, "kind", "validation_error"),
        "details": getattr(e, "details", {}),
    }
    return body, getattr(e, "http_status", 400)
