from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import typer
import yaml
from rich import print
from rich.logging import RichHandler

# If not installed in editable mode, add repo root to PYTHONPATH
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from orderparse.config import get_settings
from orderparse.errors import OrderParseError
from orderparse.extract.pipeline import parse_attachment
from orderparse.extract.schema import ParseFailure, export_json_schema
from orderparse.ingest.formats import classify_attachment, guess_mime_type
from orderparse.ingest.pdf_text import extract_pdf_text

app = typer.Typer(add_completion=False, help="Order attachment row extraction")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )


def _load_columns_file(path: Path) -> list:
    # YAML is a superset of JSON, so one loader covers both
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("columns", [])
    if not isinstance(data, list):
        typer.secho(f"{path}: expected a list of columns", fg="red")
        raise typer.Exit(1)
    return data


@app.command()
def parse(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="PDF/XLSX/XLS"),
    columns: Path = typer.Option(
        ..., "--columns", "-c", exists=True, help="Column definitions (YAML or JSON)"
    ),
    mime: str = typer.Option(None, "--mime", help="Declared mime type (guessed if omitted)"),
    out: Path = typer.Option(None, "--out", "-o", help="Write the response JSON here"),
    provider: str = typer.Option("openai", help="AI client: openai | mock"),
):
    """
    Run the full extraction cascade on one attachment.
    """
    data = file.read_bytes()
    try:
        result = asyncio.run(
            parse_attachment(
                file.name,
                mime or guess_mime_type(file.name),
                data,
                _load_columns_file(columns),
                provider=provider,
            )
        )
    except OrderParseError as e:
        typer.secho(f"{e} (status {e.status_hint})", fg="red")
        raise typer.Exit(1)

    if isinstance(result, ParseFailure):
        typer.secho(f"{result.error} (status {result.status_hint})", fg="red")
        raise typer.Exit(2)

    json_text = json.dumps(result.to_payload(), indent=2, ensure_ascii=False)
    if out:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json_text, encoding="utf-8")
        print(
            f"[green]✓[/green] {result.detected_rows} rows via "
            f"{result.parser_model} → {out}"
        )
    else:
        print(json_text)


@app.command()
def classify(
    file: Path = typer.Argument(..., help="Attachment path"),
    mime: str = typer.Option(None, "--mime"),
):
    """Print the detected attachment kind."""
    kind = classify_attachment(file.name, mime or guess_mime_type(file.name))
    if kind is None:
        typer.secho("unsupported", fg="yellow")
        raise typer.Exit(1)
    print(kind.value)


@app.command()
def text(file: Path = typer.Argument(..., exists=True, dir_okay=False)):
    """Print the locally extracted text of a PDF."""
    extracted = extract_pdf_text(file.read_bytes())
    if not extracted.strip():
        typer.secho("No text layer found", fg="yellow")
        raise typer.Exit(1)
    print(extracted)


@app.command()
def schema(
    out: Path = typer.Option(None, "--out", "-o", help="Defaults to settings.schema_file"),
):
    """Export the parse request JSON schema."""
    target = out or get_settings().schema_file
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(export_json_schema(), indent=2), encoding="utf-8")
    print(f"[green]✓[/green] wrote {target}")


if __name__ == "__main__":
    app()
