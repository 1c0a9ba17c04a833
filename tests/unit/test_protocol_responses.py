"""Test eval response parsing."""

from __future__ import annotations

import pytest

from puckjs.exceptions import InvalidResponseError, ProtocolError
from puckjs.protocol.responses import parse_eval_response


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("2\r\n", 2),
        ("3.5\n", 3.5),
        ('"hello"\r\n', "hello"),
        ("true\r\n", True),
        ("null\r\n", None),
        ('{"x":1,"y":[1,2]}\r\n', {"x": 1, "y": [1, 2]}),
    ],
)
def test_parse_json_values(text: str, expected: object) -> None:
    assert parse_eval_response(text) == expected


def test_parse_undefined_as_none() -> None:
    """JSON.stringify(undefined) prints 'undefined'."""
    assert parse_eval_response("undefined\r\n") is None


def test_parse_malformed_raises() -> None:
    with pytest.raises(InvalidResponseError, match="not JSON"):
        parse_eval_response("Uncaught ReferenceError\r\n")


def test_parse_empty_raises() -> None:
    with pytest.raises(ProtocolError, match="Empty"):
        parse_eval_response("\r\n")
