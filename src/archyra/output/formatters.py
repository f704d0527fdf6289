"""Human/JSON rendering of ServiceResult.

Human output is a status line followed by indented ``key: value`` pairs;
nested values are shown as compact JSON. ``--json`` dumps the whole
result model.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from archyra.services.result import ServiceResult


def _format_value(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return _json.dumps(value, separators=(",", ":"))
    if value is None:
        return "-"
    return str(value)


def _format_data_human(data: dict[str, Any]) -> str:
    return "\n".join(f"  {key}: {_format_value(value)}" for key, value in data.items())


def format_result(result: ServiceResult, *, json_output: bool = False) -> str:
    """Format a ServiceResult for display.

    Args:
        result: The service result to format.
        json_output: Return JSON instead of human-readable text.
    """
    if json_output:
        return result.model_dump_json(indent=2)
    if not result.ok:
        message = result.error.message if result.error else "Unknown error"
        code = f" [{result.error.code}]" if result.error else ""
        return f"ERROR: {result.op}{code}: {message}"
    lines = [f"OK: {result.op}"]
    if result.data:
        lines.append(_format_data_human(result.data))
    return "\n".join(lines)
