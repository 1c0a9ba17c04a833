"""Parsing of device output."""

from __future__ import annotations

import json
from typing import Any

from ..exceptions import InvalidResponseError

_UNDEFINED = "undefined"


def parse_eval_response(text: str) -> Any:
    """Parse the output of an eval command.

    The device prints ``JSON.stringify(<expression>)`` followed by a line
    ending. ``JSON.stringify(undefined)`` prints ``undefined``, which is
    returned as None.

    Args:
        text: Output collected after the eval command

    Returns:
        Decoded JSON value

    Raises:
        InvalidResponseError: If the output is not valid JSON
    """
    stripped = text.strip()
    if not stripped:
        raise InvalidResponseError("Empty eval response")
    if stripped == _UNDEFINED:
        return None

    try:
        return json.loads(stripped)
    except json.JSONDecodeError as e:
        raise InvalidResponseError(f"Eval response is not JSON: {stripped!r}") from e
