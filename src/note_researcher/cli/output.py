"""JSON output helpers for the note-researcher CLI.

Command results are printed to stdout as minified JSON envelopes of the form
``{"success": bool, "data": ..., "error": str | null}``. Progress notices go
to stderr, so stdout stays machine-readable.
"""

import json
import sys
from typing import Any, Mapping, NoReturn, Optional


def emit(data: Any) -> None:
    """Emit JSON to stdout."""
    print(json.dumps(data, separators=(",", ":"), default=str))


def emit_success(data: Any) -> None:
    emit({"success": True, "data": data, "error": None})


def emit_error(
    message: str,
    code: str = "INTERNAL_ERROR",
    *,
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Emit an error envelope to stderr and exit with code 1.

    Args:
        message: Human-readable error description.
        code: Error code in SCREAMING_SNAKE_CASE (e.g. RUN_BUSY, NOT_FOUND).
        details: Optional additional error context.

    Raises:
        SystemExit: Always exits with code 1.
    """
    envelope = {
        "success": False,
        "data": {"error_code": code, **(dict(details) if details else {})},
        "error": message,
    }
    print(json.dumps(envelope, separators=(",", ":"), default=str), file=sys.stderr)
    sys.exit(1)
