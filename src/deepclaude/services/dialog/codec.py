"""Wire codec for upstream event lines and outgoing frames.

Upstream bodies are newline-delimited ``data: <json>`` lines ending with
``data: [DONE]``. Outgoing frames are compact JSON, base64-encoded, written
back to back with no delimiter; clients base64-decode each block themselves.
"""

from __future__ import annotations

import base64
import json
from typing import Any

from deepclaude.core.exceptions import UpstreamParseError
from deepclaude.schemas.chat import OutgoingFrame


DATA_PREFIX = "data:"
SENTINEL = "[DONE]"


def wire_payload(line: str) -> str | None:
    """Return the text after the ``data:`` prefix, or None for other lines."""
    stripped = line.strip()
    if not stripped.startswith(DATA_PREFIX):
        return None
    return stripped[len(DATA_PREFIX) :].strip()


def is_sentinel(payload: str) -> bool:
    return payload == SENTINEL


def decode_event(payload: str) -> dict[str, Any]:
    """Parse one upstream event, raising UpstreamParseError on bad input."""
    try:
        event = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise UpstreamParseError(
            f"Invalid JSON in upstream event: {exc.msg}", line=payload
        ) from exc
    if not isinstance(event, dict):
        raise UpstreamParseError(
            "Upstream event is not a JSON object", line=payload
        )
    return event


_TRUE_STRINGS = frozenset({"true", "t", "y", "1"})


def is_end_flag(value: Any) -> bool:
    """Read the ``is_end`` marker the way lenient JSON readers do."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def build_frame(event: dict[str, Any], text: str) -> OutgoingFrame:
    event_id = event.get("id")
    model = event.get("model")
    return OutgoingFrame(
        id=None if event_id is None else str(event_id),
        event="finish" if is_end_flag(event.get("is_end")) else "chat",
        data=text,
        model=None if model is None else str(model),
    )


def _b64(raw: bytes) -> bytes:
    return base64.b64encode(raw)


def encode_frame(frame: OutgoingFrame) -> bytes:
    return _b64(frame.model_dump_json().encode("utf-8"))


def encode_error_frame(code: int, message: str) -> bytes:
    body = json.dumps(
        {"error": {"errCode": code, "errMsg": message}},
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return _b64(f"data: {body}\n\n".encode())


def decode_frame(blob: bytes | str) -> dict[str, Any]:
    """Inverse of :func:`encode_frame` for a single block."""
    return json.loads(base64.b64decode(blob).decode("utf-8"))
