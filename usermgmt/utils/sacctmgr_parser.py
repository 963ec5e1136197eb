"""Utilities for parsing sacctmgr output."""

from __future__ import annotations

from usermgmt.models.users import ListedUsers

# Cell separator of ``sacctmgr --parsable`` output
CELL_SEPARATOR = "|"


def _parse_row(line: str) -> list[str]:
    cells = line.strip().split(CELL_SEPARATOR)
    # Every line ends with a separator, so the last cell is always empty
    cells.pop()
    return cells


def parse_listed_users(output: str) -> ListedUsers | None:
    """Turn ``sacctmgr --parsable show assoc`` text into headers and rows.

    Returns None for empty output. The first line is the header line.
    """
    lines = [line for line in output.splitlines() if line.strip()]
    if not lines:
        return None
    headers = _parse_row(lines[0])
    rows = [_parse_row(line) for line in lines[1:]]
    return ListedUsers(headers=headers, rows=rows)
