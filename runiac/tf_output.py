"""Reading and rendering the values of Terraform outputs."""

from __future__ import annotations

import json
import math
from collections.abc import Iterable
from typing import Any

from runiac.errors import OutputKeyNotFound


def parse_outputs(text: str, keys: Iterable[str] | None = None) -> dict[str, Any]:
    """Return the values of ``terraform output -json`` text for ``keys``.

    With ``keys`` of ``None`` every output is returned. A requested key with no
    value raises :class:`OutputKeyNotFound`; text that is not an object of
    objects raises :class:`ValueError`.
    """
    outputs = json.loads(text)
    if not isinstance(outputs, dict) or not all(
        isinstance(entry, dict) or entry is None for entry in outputs.values()
    ):
        raise ValueError("terraform output is not an object of objects")
    wanted = list(outputs) if keys is None else list(keys)
    result: dict[str, Any] = {}
    for key in wanted:
        entry = outputs.get(key) or {}
        if "value" not in entry:
            raise OutputKeyNotFound(key)
        result[key] = entry["value"]
    return result


_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _to_json(value: Any) -> str:
    text = json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    for char, escape in _JSON_ESCAPES.items():
        text = text.replace(char, escape)
    return text


def _plain(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "+Inf" if value > 0 else "-Inf"
        return repr(value)
    return str(value)


def output_to_string(value: Any) -> str:
    """Render an output value: lists and maps as compact JSON, others plainly."""
    if isinstance(value, (dict, list, tuple)):
        return _to_json(value)
    return _plain(value)


def first_and_last_index(s: str, first: str, last: str) -> tuple[int, int]:
    """Return the index of the first ``first`` and of the last ``last`` in ``s``, or -1."""
    return s.find(first), s.rfind(last)