"""
Parsers of provider error responses.

Each parser receives the raw response body and returns a readable
message or None. Bodies that are not the expected JSON yield None.
"""

import json


def _load(body: str):
    try:
        return json.loads(body)
    except ValueError:
        return None


def parse_error_object(body: str) -> str | None:
    """
    Parse ``{"error": {"message": ..., "fields": {...}}}`` (Bitbucket Cloud).
    """
    data = _load(body)
    if not isinstance(data, dict) or not isinstance(data.get("error"), dict):
        return None
    error = data["error"]
    message = error.get("message")
    if not message:
        return None
    fields = error.get("fields")
    if isinstance(fields, dict) and fields:
        details = ", ".join(f"Field '{k}': {v}" for k, v in fields.items())
        return f"{message}. {details}"
    return str(message)


def parse_errors_list(body: str) -> str | None:
    """Parse ``{"errors": [{"message": ...}]}`` (Bitbucket Server)."""
    data = _load(body)
    if not isinstance(data, dict):
        return None
    errors = data.get("errors")
    if not isinstance(errors, list) or not errors:
        return None
    first = errors[0]
    if isinstance(first, dict) and first.get("message"):
        return str(first["message"])
    return None


def parse_message_with_errors(body: str) -> str | None:
    """
    Parse ``{"message": ..., "errors": [...]}`` (GitHub, Gitea).

    Validation errors are appended to the message.
    """
    data = _load(body)
    if not isinstance(data, dict) or not data.get("message"):
        return None
    message = str(data["message"])
    errors = data.get("errors")
    if isinstance(errors, list) and errors:
        parts = []
        for error in errors:
            if isinstance(error, dict):
                parts.append(str(error.get("message") or error.get("code") or error))
            else:
                parts.append(str(error))
        message += ": " + "; ".join(parts)
    return message


def parse_message(body: str) -> str | None:
    """Parse ``{"message": ...}`` or ``{"error": ...}`` (GitLab, Azure DevOps)."""
    data = _load(body)
    if not isinstance(data, dict):
        return None
    message = data.get("message") or data.get("error")
    if message is None:
        return None
    if isinstance(message, (dict, list)):
        return json.dumps(message)
    return str(message)
