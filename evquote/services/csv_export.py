from __future__ import annotations

import csv
import io
from datetime import datetime
from typing import Optional

from evquote.services.render import NUMERIC_COLUMNS, RenderedDocument
from evquote.utils.formatters import plain_number

BOM = "\ufeff"


def export_csv(doc: RenderedDocument) -> bytes:
    """UTF-8 with BOM so spreadsheet apps pick the right encoding."""
    buf = io.StringIO()
    w = csv.writer(buf, lineterminator="\n")
    w.writerow([c.label for c in doc.columns])
    for row in doc.rows:
        cells = []
        for key in doc.column_keys:
            v = row.raw(key)
            cells.append(plain_number(v) if key in NUMERIC_COLUMNS else v)
        w.writerow(cells)
    return (BOM + buf.getvalue()).encode("utf-8")


def csv_filename(doc: RenderedDocument, now: Optional[datetime] = None) -> str:
    ts = int((now or datetime.now()).timestamp() * 1000)
    return f"evquote_{doc.doc_type}_{doc.language}_{ts}.csv"
