from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence

from sheets_uploader.exceptions import EncodingError

# Rows are written with a CRLF terminator so that the csv module treats both
# "\r" and "\n" as quote-worthy on every interpreter; the terminator is then
# swapped for the requested one.
_WRITER_TERMINATOR = "\r\n"


def is_blank(record: Sequence[str]) -> bool:
    """True when every cell of the record is an empty string."""
    return all(cell == "" for cell in record)


def encode_rows(rows: Iterable[Sequence[str]], use_crlf: bool = False) -> bytes:
    """Encode a grid of cell strings as UTF-8 CSV.

    Fully blank rows are dropped rather than written as empty lines. Quoting
    follows the csv module's minimal dialect: fields holding a comma, a quote
    or a line break (``\\n`` or ``\\r``) are quoted, with embedded quotes
    doubled.

    Raises:
        EncodingError: If the csv writer or the text encoding fails.
    """
    line_end = "\r\n" if use_crlf else "\n"
    out = io.StringIO()
    row_buf = io.StringIO()
    writer = csv.writer(
        row_buf,
        delimiter=",",
        quotechar='"',
        doublequote=True,
        quoting=csv.QUOTE_MINIMAL,
        lineterminator=_WRITER_TERMINATOR,
    )
    written = 0
    try:
        for row in rows:
            record = list(row)
            if is_blank(record):
                continue
            writer.writerow(record)
            line = row_buf.getvalue()
            row_buf.seek(0)
            row_buf.truncate()
            out.write(line[: -len(_WRITER_TERMINATOR)])
            out.write(line_end)
            written += 1
        return out.getvalue().encode("utf-8")
    except (csv.Error, OSError, UnicodeEncodeError) as exc:
        raise EncodingError(
            f"could not encode CSV: {exc}",
            context={"rows_written": written},
        ) from exc
