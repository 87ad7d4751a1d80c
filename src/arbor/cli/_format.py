"""Output helpers shared by the tree commands.

Human output is aligned plain-text tables. Machine output (``--json``) is
wrapped in an envelope carrying the schema version and the command name.
"""

from __future__ import annotations

import json
from collections.abc import Collection, Sequence
from datetime import datetime, timezone
from typing import Any

# Bump on breaking changes to the JSON envelope or its payloads
SCHEMA_VERSION = 1

MAX_LINES = 100
NUMERIC_COLUMNS = frozenset({"Level", "Count", "Children"})


def json_envelope(command: str, data: Any) -> dict[str, Any]:
    """Wrap a command's payload in the JSON output envelope."""
    return {
        "schema_version": SCHEMA_VERSION,
        "command": command,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }


def write_output(text: str, output: str | None, label: str) -> None:
    """Print *text*, or save it to *output* and print a one-line receipt."""
    if not output:
        print(text)
        return
    with open(output, "w", encoding="utf-8") as f:
        f.write(text)
    size_kb = len(text.encode("utf-8")) / 1024
    print(f"Wrote {label} to {output} ({size_kb:.1f}KB)")


def print_json(command: str, data: Any, output: str | None = None) -> None:
    """Emit *data* inside the JSON envelope."""
    text = json.dumps(json_envelope(command, data), indent=2, default=str, ensure_ascii=False)
    write_output(text, output, f"{command} output")


def truncate_value(value: Any, max_chars: int = 60) -> str:
    """Render a value as one line of at most *max_chars* characters.

    Strings are shown as-is, anything else as JSON. Cut values end in "…".
    """
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 1] + "…"


def print_table(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    *,
    indent: int = 2,
    right_align: Collection[str] = NUMERIC_COLUMNS,
) -> list[str]:
    """Lay out rows under *headers* with a rule line between them.

    Columns named in *right_align* are right-justified. Cells past the
    last header are dropped. Returns the lines without printing them.
    """
    if not rows:
        return []

    widths = [max([len(h), *(len(row[i]) for row in rows if i < len(row))]) for i, h in enumerate(headers)]
    prefix = " " * indent

    def cell(i: int, text: str) -> str:
        return text.rjust(widths[i]) if headers[i] in right_align else text.ljust(widths[i])

    lines = [
        prefix + "  ".join(h.ljust(w) for h, w in zip(headers, widths)).rstrip(),
        prefix + "  ".join("─" * w for w in widths),
    ]
    for row in rows:
        lines.append(prefix + "  ".join(cell(i, text) for i, text in enumerate(row[: len(headers)])).rstrip())
    return lines


def print_lines(lines: Sequence[str], max_lines: int = MAX_LINES) -> None:
    """Print up to *max_lines* lines and say how many were left out."""
    for line in lines[:max_lines]:
        print(line)
    hidden = len(lines) - max_lines
    if hidden > 0:
        print(f"\n  # ... {hidden} more lines not shown")


def print_ctas(ctas: Sequence[str]) -> None:
    """Print follow-up command suggestions."""
    print()
    for cta in ctas:
        print(f"  → {cta}")
