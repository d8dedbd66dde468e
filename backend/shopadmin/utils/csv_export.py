"""CSV rendering for report downloads."""

import csv
import io
from typing import List


def rows_to_csv(rows: List[dict]) -> str:
    """Render dict rows as CSV text.

    The header comes from the first row's keys; an empty list renders an
    empty document. Nested values are written with `str()`.
    """
    if not rows:
        return ""
    headers = list(rows[0].keys())
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell(row.get(h)) for h in headers])
    return buf.getvalue()


def _cell(value):
    if value is None:
        return ""
    return value
