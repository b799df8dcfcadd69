"""
Status payload helpers shared by all providers.

Payloads are always produced by ``json.dumps`` so user supplied text
never needs manual escaping.
"""

import json
from typing import Any

ELLIPSIS = "…"


def truncate(text: str | None, max_length: int) -> str | None:
    """Cut text longer than max_length, marking the cut with an ellipsis."""
    if text is None or len(text) <= max_length:
        return text
    return text[:max_length - 2] + ELLIPSIS


def _drop_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_none(v) for v in value]
    return value


def build_payload(fields: dict[str, Any]) -> str:
    """
    Serialize status fields into a JSON request body.

    Args:
        fields: Payload fields; None values are omitted

    Returns:
        Request body
    """
    return json.dumps(_drop_none(fields), ensure_ascii=False)
