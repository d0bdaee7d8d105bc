"""
Source adapters for the LedgerMap engine.

Each adapter turns one kind of materialized input into a SourceDocument of
RawRows; everything after that is shared by the pipeline.

- spreadsheet: sheets of 2-D cells (file reader: openpyxl)
- positioned text: pages of fragments (file reader: pdfplumber)
- delimited text: comma-separated lines with quote toggling
"""

import io
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pdfplumber
import structlog
from openpyxl import load_workbook

from ledgermap.engine.extraction import group_fragments_into_rows
from ledgermap.engine.models import RawRow, SourceDocument, SourceKind, TextFragment
from ledgermap.exceptions import EmptySourceError, SourceReadError, UnsupportedSourceError

logger = structlog.get_logger(__name__)


PDF_EXTENSIONS = (".pdf",)
SPREADSHEET_EXTENSIONS = (".xlsx", ".xlsm")
DELIMITED_EXTENSIONS = (".csv", ".txt")
SUPPORTED_EXTENSIONS = PDF_EXTENSIONS + SPREADSHEET_EXTENSIONS + DELIMITED_EXTENSIONS

SourceInput = Union[str, Path, bytes]
FragmentLike = Union[TextFragment, Mapping[str, Any]]


# =============================================================================
# Adapters (in-memory input)
# =============================================================================

def spreadsheet_source(
    sheets: Union[Mapping[str, Sequence[Sequence[Any]]], Sequence[Tuple[str, Sequence[Sequence[Any]]]]],
    name: str = "workbook",
) -> SourceDocument:
    """
    Build a document from sheets of cell rows.

    Args:
        sheets: ``{sheet name: rows}`` or ``[(sheet name, rows), ...]``.
        name: Source name used in logs and errors.

    Returns:
        SourceDocument with one RawRow per non-empty row.
    """
    items = list(sheets.items()) if isinstance(sheets, Mapping) else list(sheets)
    rows: List[RawRow] = []
    for sheet_name, sheet_rows in items:
        for number, cells in enumerate(sheet_rows, start=1):
            cells = tuple(cells or ())
            if not any(c is not None and str(c).strip() for c in cells):
                continue
            rows.append(RawRow(cells=cells, sheet=sheet_name, row_number=number))

    return SourceDocument(
        name=name,
        kind=SourceKind.SPREADSHEET,
        rows=rows,
        sheet_names=[sheet_name for sheet_name, _ in items],
    )


def _to_fragment(item: FragmentLike) -> TextFragment:
    if isinstance(item, TextFragment):
        return item
    return TextFragment(
        text=str(item.get("text", "")),
        x=float(item.get("x", 0.0)),
        y=float(item.get("y", 0.0)),
        width=float(item.get("width", 0.0)),
        height=float(item.get("height", 0.0)),
    )


def positioned_text_source(
    pages: Sequence[Sequence[FragmentLike]],
    name: str = "document",
    tolerance: float = 5.0,
) -> SourceDocument:
    """
    Build a document from pages of positioned fragments.

    Fragments are grouped into text rows per page (1-based page numbers).
    """
    rows: List[RawRow] = []
    for page_number, fragments in enumerate(pages, start=1):
        rows.extend(group_fragments_into_rows(
            (_to_fragment(f) for f in fragments),
            tolerance=tolerance,
            page=page_number,
        ))

    return SourceDocument(
        name=name,
        kind=SourceKind.POSITIONED_TEXT,
        rows=rows,
        page_count=len(pages),
    )


def split_delimited_line(line: str, delimiter: str = ",") -> List[str]:
    """
    Split one delimited line.

    A double quote toggles the inside-field state and is not kept; a
    delimiter inside quotes does not split. Fields are trimmed.
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    fields.append("".join(current).strip())
    return fields


def delimited_source(
    lines: Union[str, Iterable[str]],
    name: str = "delimited",
    delimiter: str = ",",
) -> SourceDocument:
    """Build a document from comma-separated lines; blank lines are skipped."""
    if isinstance(lines, str):
        lines = lines.splitlines()

    rows = [
        RawRow(cells=tuple(split_delimited_line(line, delimiter)), row_number=number)
        for number, line in enumerate(lines, start=1)
        if line.strip()
    ]
    return SourceDocument(name=name, kind=SourceKind.DELIMITED_TEXT, rows=rows)


# =============================================================================
# File readers
# =============================================================================

def _open_target(source: SourceInput) -> Union[str, io.BytesIO]:
    return io.BytesIO(source) if isinstance(source, bytes) else str(source)


def read_pdf(source: SourceInput, name: Optional[str] = None, tolerance: float = 5.0) -> SourceDocument:
    """
    Read a PDF text layer into a positioned-text document.

    Args:
        source: Path or raw bytes.
        name: Source name; defaults to the file name.
        tolerance: Row grouping tolerance in points.
    """
    name = name or (Path(source).name if not isinstance(source, bytes) else "document.pdf")
    logger.info("Reading PDF", source=name)

    pages: List[List[TextFragment]] = []
    try:
        with pdfplumber.open(_open_target(source)) as pdf:
            for page in pdf.pages:
                words = page.extract_words() or []
                pages.append([
                    TextFragment(
                        text=w["text"],
                        x=float(w["x0"]),
                        y=float(w["top"]),
                        width=float(w["x1"]) - float(w["x0"]),
                        height=float(w["bottom"]) - float(w["top"]),
                    )
                    for w in words
                ])
    except Exception as e:
        logger.error("PDF read failed", source=name, error=str(e))
        raise SourceReadError(name, str(e)) from e

    if not pages or not any(pages):
        raise EmptySourceError(name)

    document = positioned_text_source(pages, name=name, tolerance=tolerance)
    logger.info("PDF read complete", source=name, pages=document.page_count, rows=len(document.rows))
    return document


def read_workbook(source: SourceInput, name: Optional[str] = None) -> SourceDocument:
    """Read every sheet of an Excel workbook (cached values, not formulas)."""
    name = name or (Path(source).name if not isinstance(source, bytes) else "workbook.xlsx")
    logger.info("Reading workbook", source=name)

    sheets: List[Tuple[str, List[Tuple[Any, ...]]]] = []
    try:
        wb = load_workbook(filename=_open_target(source), data_only=True, read_only=True)
        try:
            for ws in wb.worksheets:
                sheets.append((ws.title, [tuple(r) for r in ws.iter_rows(values_only=True)]))
        finally:
            wb.close()
    except Exception as e:
        logger.error("Workbook read failed", source=name, error=str(e))
        raise SourceReadError(name, str(e)) from e

    document = spreadsheet_source(sheets, name=name)
    if not document.rows:
        raise EmptySourceError(name)

    logger.info(
        "Workbook read complete",
        source=name,
        sheets=len(document.sheet_names),
        rows=len(document.rows),
    )
    return document


def read_delimited(source: SourceInput, name: Optional[str] = None) -> SourceDocument:
    """Read a UTF-8 comma-separated file (BOM tolerated)."""
    name = name or (Path(source).name if not isinstance(source, bytes) else "data.csv")
    logger.info("Reading delimited text", source=name)

    try:
        data = source if isinstance(source, bytes) else Path(source).read_bytes()
        text = data.decode("utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Delimited read failed", source=name, error=str(e))
        raise SourceReadError(name, str(e)) from e

    document = delimited_source(text, name=name)
    if not document.rows:
        raise EmptySourceError(name)

    logger.info("Delimited read complete", source=name, rows=len(document.rows))
    return document


def read_source(
    source: SourceInput,
    filename: Optional[str] = None,
    tolerance: float = 5.0,
) -> SourceDocument:
    """
    Read any supported file, choosing the reader by extension.

    Args:
        source: Path or raw bytes.
        filename: Required for bytes; selects the reader and names the source.
        tolerance: Row grouping tolerance for PDFs.

    Raises:
        UnsupportedSourceError: Unknown extension.
        SourceReadError: File could not be opened or parsed.
        EmptySourceError: File holds no rows or text at all.
    """
    if isinstance(source, bytes) and not filename:
        raise UnsupportedSourceError("<bytes>", list(SUPPORTED_EXTENSIONS))

    name = filename or Path(source).name
    if not isinstance(source, bytes) and not Path(source).exists():
        raise SourceReadError(name, "file not found")

    suffix = Path(name).suffix.lower()
    if suffix in PDF_EXTENSIONS:
        return read_pdf(source, name=name, tolerance=tolerance)
    if suffix in SPREADSHEET_EXTENSIONS:
        return read_workbook(source, name=name)
    if suffix in DELIMITED_EXTENSIONS:
        return read_delimited(source, name=name)
    raise UnsupportedSourceError(name, list(SUPPORTED_EXTENSIONS))
