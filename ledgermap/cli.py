"""
Command line interface for LedgerMap.

Thin Typer wrapper over the engine orchestrator:

- ``ingest``: read a PDF, workbook or CSV, print the classified entries and
  optionally write CSV / JSON exports
- ``reconcile``: reconcile a file against reported totals from YAML and/or
  its own "Total" lines
- ``batch``: process several files concurrently
"""
from pathlib import Path
from typing import Annotated, Dict, List, NoReturn, Optional

import typer
import yaml

from ledgermap.engine.batch import BatchProcessor
from ledgermap.engine.export import (
    financial_data_to_csv,
    financial_data_to_json,
    format_amount,
    reconciliation_to_json,
)
from ledgermap.engine.models import ReportedTotal
from ledgermap.engine.orchestrator import PipelineOptions, process_file
from ledgermap.engine.reconciliation import summarize_reconciliation
from ledgermap.engine.statements import summarize_statements
from ledgermap.exceptions import LedgerMapError
from ledgermap.logging_config import configure_logging
from ledgermap.services.numeric_parser import get_numeric_parser

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Classify trial balances and statement exports into IFRS categories and reconcile them.",
)

SOURCE_ARGUMENT = typer.Argument(exists=True, dir_okay=False, readable=True, help="PDF, XLSX or CSV file.")


def load_reported_totals(path: Path) -> Dict[str, ReportedTotal]:
    """
    Read reported totals from YAML.

    Accepts ``Category: 1234`` or ``Category: {amount: 1234, pages: [3]}``.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise typer.BadParameter(f"Cannot read totals file {path}: {e}") from e

    if not isinstance(raw, dict):
        raise typer.BadParameter(f"Totals file {path} must map categories to amounts")

    parser = get_numeric_parser()
    totals = {}
    for category, value in raw.items():
        entry = value if isinstance(value, dict) else {"amount": value}
        amount = parser.parse(entry.get("amount")).value
        if amount is None:
            raise typer.BadParameter(f"Totals file {path}: no amount for {category}")
        pages = entry.get("pages") or ()
        if not isinstance(pages, (list, tuple)):
            pages = (pages,)
        try:
            pages = tuple(int(p) for p in pages)
        except (TypeError, ValueError) as e:
            raise typer.BadParameter(f"Totals file {path}: bad pages for {category}") from e
        totals[str(category)] = ReportedTotal(amount=amount, pages=pages)
    return totals


def _fail(error: LedgerMapError) -> NoReturn:
    typer.echo(f"Error [{error.error_code}]: {error.message}", err=True)
    raise typer.Exit(1)


@app.callback()
def main(
    log_level: Annotated[Optional[str], typer.Option(help="Override LOG_LEVEL.")] = None,
    log_json: Annotated[Optional[bool], typer.Option("--log-json/--log-console", help="Log format.")] = None,
) -> None:
    """Configure logging before any command runs."""
    configure_logging(level=log_level, json_output=log_json)


@app.command("ingest")
def ingest_cmd(
    path: Annotated[Path, SOURCE_ARGUMENT],
    company: Annotated[Optional[str], typer.Option(help="Company name (default: from filename).")] = None,
    period: Annotated[Optional[str], typer.Option(help="Report period (default: year in filename).")] = None,
    period_end: Annotated[Optional[str], typer.Option(help="Entry date YYYY-MM-DD.")] = None,
    csv_out: Annotated[Optional[Path], typer.Option("--csv", help="Write entries as CSV.")] = None,
    json_out: Annotated[Optional[Path], typer.Option("--json", help="Write the dataset as JSON.")] = None,
) -> None:
    """Extract and classify entries from one file."""
    try:
        result = process_file(path, company_name=company, report_period=period, period_end=period_end)
    except LedgerMapError as e:
        _fail(e)

    data = result.data
    typer.echo(f"{data.company_name} | {data.report_period} | {len(data.entries)} entries")
    for entry in data.entries:
        typer.echo(
            f"  {entry.id:<10} {entry.description[:40]:<40} {format_amount(entry.amount):>14}  "
            f"{entry.high_level_category.value} / {entry.main_grouping} / {entry.ifrs_category}"
        )

    summary = summarize_statements(data)
    typer.echo(
        f"Total assets {format_amount(summary.balance_sheet.total_assets)} | "
        f"Net income {format_amount(summary.income_statement.net_income)}"
    )

    if csv_out:
        csv_out.write_text(financial_data_to_csv(data) + "\n", encoding="utf-8")
        typer.echo(f"Wrote {csv_out}")
    if json_out:
        json_out.write_text(financial_data_to_json(data), encoding="utf-8")
        typer.echo(f"Wrote {json_out}")


@app.command("reconcile")
def reconcile_cmd(
    path: Annotated[Path, SOURCE_ARGUMENT],
    totals: Annotated[
        Optional[Path],
        typer.Option(exists=True, dir_okay=False, help="YAML of reported totals per IFRS category."),
    ] = None,
    from_document: Annotated[
        bool,
        typer.Option("--from-document/--no-from-document", help="Also read 'Total' lines from the file."),
    ] = True,
    json_out: Annotated[Optional[Path], typer.Option("--json", help="Write results as JSON.")] = None,
) -> None:
    """Reconcile mapped category sums against reported totals."""
    reported = load_reported_totals(totals) if totals else None
    options = PipelineOptions.from_settings()
    options.extract_totals = from_document

    try:
        result = process_file(path, reported_totals=reported, options=options)
    except LedgerMapError as e:
        _fail(e)

    for r in result.reconciliation:
        reported_text = format_amount(r.reported_total) if r.reported_total is not None else "-"
        typer.echo(
            f"{r.status.value:<15} {r.category:<40} mapped {format_amount(r.mapped_total):>14} "
            f"reported {reported_text:>14} diff {format_amount(r.difference):>12}"
        )

    counts = summarize_reconciliation(result.reconciliation)
    typer.echo(", ".join(f"{k}: {v}" for k, v in counts.items()))

    if json_out:
        json_out.write_text(reconciliation_to_json(result.reconciliation), encoding="utf-8")
        typer.echo(f"Wrote {json_out}")


@app.command("batch")
def batch_cmd(
    paths: Annotated[List[Path], typer.Argument(exists=True, dir_okay=False, help="Files to process.")],
    concurrency: Annotated[Optional[int], typer.Option(min=1, help="Files processed at once.")] = None,
) -> None:
    """Process several files concurrently."""
    batch = BatchProcessor(max_concurrency=concurrency).process_sync(paths)

    for item in batch.items:
        if item.status == "success":
            typer.echo(f"ok      {item.file}: {len(item.result.data.entries)} entries")
        else:
            typer.echo(f"failed  {item.file}: {item.error['message']}")

    typer.echo(f"{batch.successful} succeeded, {batch.failed} failed")
    if batch.failed:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
