"""Helpers for emitting data into generated JavaScript."""

import json
from typing import Any


def js_literal(value: Any) -> str:
    """
    JSON-encode ``value`` for inlining in a script.

    ``<``, ``>`` and ``&`` are escaped so SVG markup can never close the
    surrounding ``<script>`` element; U+2028/U+2029 are escaped because they
    terminate JavaScript string literals.
    """
    encoded = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return (
        encoded.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def js_comment_safe(text: str) -> str:
    """Make text safe to place inside a ``/* ... */`` or ``//`` comment."""
    return text.replace("*/", "* /").replace("\n", " ").replace("\r", " ")
