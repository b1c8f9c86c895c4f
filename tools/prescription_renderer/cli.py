"""
Prescription Renderer CLI

Renders prescription JSON records to PDF from the command line, for
checking layouts without running the API.
"""

import json
import logging
import sys
from pathlib import Path

import click

import config
from asset_store import LocalAssetStore
from errors import PdfOutputError, PrescriptionDataError
from models.design_tokens import DesignTokens
from pdf_generator import pdf_filename, write_prescription_pdf


def _load_input(path: Path):
    """Accept either {"prescription": ..., "branding": ...} or a bare prescription record"""
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict) and isinstance(data.get("prescription"), dict):
        return data["prescription"], data.get("branding")
    return data, None


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Log asset lookups and page breaks')
def cli(verbose):
    """Prescription Renderer - render Medizo prescriptions to PDF"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument('input_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Output PDF path (defaults to prescription-<id>.pdf next to the input)')
@click.option('--assets-dir', '-a', type=click.Path(exists=True, file_okay=False, path_type=Path), default=None,
              help='Directory holding branding images (defaults to the configured asset stores)')
@click.option('--tokens', '-t', 'tokens_file', type=click.Path(dir_okay=False), default=None,
              help='Design token JSON file')
@click.option('--report', is_flag=True, help='Print the page layout report as JSON')
def render(input_file, output, assets_dir, tokens_file, report):
    """Render one prescription JSON file to PDF"""
    record, branding = _load_input(input_file)

    if output is None:
        prescription_id = (record.get("id") or record.get("_id")) if isinstance(record, dict) else None
        output = input_file.parent / pdf_filename(prescription_id or input_file.stem)

    asset_store = LocalAssetStore(str(assets_dir)) if assets_dir else config.build_asset_store()
    tokens = DesignTokens.from_file(tokens_file)

    try:
        result = write_prescription_pdf(
            record, output, branding=branding, asset_store=asset_store, tokens=tokens,
        )
    except PrescriptionDataError as e:
        click.echo(f"Error: {e}", err=True)
        for error in e.errors:
            location = ".".join(str(p) for p in error.get("loc", [])) or "<root>"
            click.echo(f"  {location}: {error.get('msg')}", err=True)
        sys.exit(2)
    except PdfOutputError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)

    if report:
        click.echo(json.dumps(result.layout.to_dict(), indent=2))
    else:
        click.echo(f"Wrote {output} ({result.page_count} pages)")


@cli.command('tokens')
@click.argument('output', type=click.Path(dir_okay=False))
def export_tokens(output):
    """Write the default design tokens to a JSON file for customisation"""
    DesignTokens.default().save(output)
    click.echo(f"Wrote default design tokens to {output}")
