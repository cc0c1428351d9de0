from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

import typer

from cardstamp.config import load_config, write_default_config
from cardstamp.constants import DEFAULT_ARCHIVE_NAME, DEFAULT_DOCUMENT_NAME, VALID_RECORD_ERROR_POLICIES
from cardstamp.decoders.image_decoder import load_design_asset
from cardstamp.errors import CardStampError
from cardstamp.export import BatchExporter, ExportOptions
from cardstamp.log import setup_logging
from cardstamp.models import DesignAsset, StudentRecord
from cardstamp.overlay_model import OverlayModel
from cardstamp.records import FIELD_LABELS, load_records
from cardstamp.render.compositor import render_card
from cardstamp.render.transform import fit_preview_size
from cardstamp.template_loader import default_template_payload, load_template_payload, template_directory

app = typer.Typer(add_completion=False, no_args_is_help=True, help="CardStamp ID card batch renderer.")
LOGGER = logging.getLogger("cardstamp")

_FORMATS = {"zip": "archive", "pdf": "document"}


def _find_template_path(template_arg: str | None) -> Path | None:
    """Resolve template name or path to a .json file.

    Returns None to signal "use built-in default".
    """
    if not template_arg:
        return None
    candidate = Path(template_arg)
    if candidate.exists():
        return candidate
    cfg_path = template_directory() / f"{template_arg}.json"
    if cfg_path.exists():
        return cfg_path
    return None


def _load_payload(template: str | None) -> dict[str, Any]:
    tpl_path = _find_template_path(template)
    if tpl_path is None:
        if template:
            typer.secho(f"Template not found: {template}", err=True, fg=typer.colors.RED)
            raise typer.Exit(1)
        LOGGER.info("Template: built-in default")
        return default_template_payload()
    try:
        payload = load_template_payload(tpl_path)
    except (OSError, ValueError) as exc:
        typer.secho(f"Template load failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)
    LOGGER.info("Template: %s", tpl_path)
    return payload


def _prepare(
    design_path: Path,
    records_path: Path,
    template: str | None,
    cfg: dict[str, Any],
) -> tuple[DesignAsset, OverlayModel, list[StudentRecord]]:
    try:
        design = load_design_asset(design_path)
    except RuntimeError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(1)
    try:
        records = load_records(records_path)
    except (OSError, ValueError) as exc:
        typer.secho(f"Records load failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)

    payload = _load_payload(template)
    preview_w = int(payload.get("preview_width") or 0)
    preview_h = int(payload.get("preview_height") or 0)
    if design.is_image and (preview_w <= 0 or preview_h <= 0):
        # Overlay positions are preview pixels; fall back to the editor's default preview box.
        fitted = fit_preview_size(design.natural_size, cfg["preview_max_width"], cfg["preview_max_height"])
        preview_w, preview_h = int(round(fitted[0])), int(round(fitted[1]))
    design.set_preview_size(preview_w, preview_h)
    if template is None:
        payload["font_family"] = cfg["font_family"]
    return design, OverlayModel.from_payload(payload), records


@app.command()
def render(
    design_path: Path = typer.Argument(..., exists=True, resolve_path=True, dir_okay=False, help="Design image."),
    records_path: Path = typer.Option(..., "--records", exists=True, resolve_path=True, dir_okay=False, help="CSV/JSON/YAML record file."),
    template: str | None = typer.Option(None, "--template", help="Template name or .json file path (default: built-in default)."),
    output_format: str = typer.Option("zip", "--format", help="Container format: zip|pdf"),
    out: Path | None = typer.Option(None, "--out", help="Output file or directory."),
    on_record_error: str | None = typer.Option(None, "--on-record-error", help="abort|skip"),
    config_path: Path | None = typer.Option(None, "--config", help="Config file (default: user config)."),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Render one card per record and pack them into a ZIP archive or a PDF."""
    setup_logging(log_level)
    cfg = load_config(config_path)

    kind = _FORMATS.get(output_format.lower())
    if kind is None:
        typer.secho(f"format must be zip or pdf, got: {output_format!r}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)
    if on_record_error is not None and on_record_error.lower() not in VALID_RECORD_ERROR_POLICIES:
        typer.secho(f"--on-record-error must be abort or skip, got: {on_record_error!r}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)

    design, model, records = _prepare(design_path, records_path, template, cfg)

    options = ExportOptions.from_config(cfg)
    options.photo_base_dir = records_path.parent
    if on_record_error is not None:
        options.on_record_error = on_record_error.lower()
    default_name = options.archive_name if kind == "archive" else options.document_name
    target = out or (design_path.parent / (default_name or (DEFAULT_ARCHIVE_NAME if kind == "archive" else DEFAULT_DOCUMENT_NAME)))

    def _progress(index: int, total: int, name: str) -> None:
        LOGGER.info("[%d/%d] %s", index + 1, total, name or "<unnamed>")

    exporter = BatchExporter(design, model, options)
    t0 = time.perf_counter()
    try:
        if kind == "archive":
            result = exporter.export_archive(records, target, progress=_progress)
        else:
            result = exporter.export_document(records, target, progress=_progress)
    except CardStampError as exc:
        typer.secho(f"Export failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)

    if result is None:
        if not design.is_image:
            typer.echo("Design is not an image; nothing exported.")
        else:
            typer.echo("No records found; nothing exported.")
        raise typer.Exit(0)

    typer.echo(
        f"Done. rendered={result.rendered} entries={result.entries} skipped={len(result.skipped)} "
        f"({time.perf_counter() - t0:.2f}s) -> {result.target}"
    )
    if result.skipped:
        typer.secho("Skipped:", fg=typer.colors.YELLOW)
        for name in result.skipped:
            typer.secho(f"  {name or '<unnamed>'}", fg=typer.colors.YELLOW)


@app.command()
def preview(
    design_path: Path = typer.Argument(..., exists=True, resolve_path=True, dir_okay=False, help="Design image."),
    records_path: Path = typer.Option(..., "--records", exists=True, resolve_path=True, dir_okay=False),
    template: str | None = typer.Option(None, "--template", help="Template name or .json file path."),
    out: Path = typer.Option(Path("preview.png"), "--out", help="PNG file for the rendered card."),
    config_path: Path | None = typer.Option(None, "--config"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Render the first record only, for checking a layout."""
    setup_logging(log_level)
    cfg = load_config(config_path)
    design, model, records = _prepare(design_path, records_path, template, cfg)
    if not records:
        typer.echo("No records found; nothing rendered.")
        raise typer.Exit(0)
    font_path = Path(cfg["font_path"]) if cfg.get("font_path") else None
    try:
        card = render_card(design, model.snapshot(), records[0], font_path=font_path, photo_base_dir=records_path.parent)
    except CardStampError as exc:
        typer.secho(f"Preview failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)
    out.parent.mkdir(parents=True, exist_ok=True)
    card.save(out, format="PNG", optimize=True)
    typer.echo(f"Preview written: {out} ({card.width}x{card.height})")


@app.command("fields")
def list_fields() -> None:
    """List the record attributes a field overlay can bind to."""
    for key, label in FIELD_LABELS.items():
        typer.echo(f"{key.value:<16} {label}")


@app.command("init-config")
def init_config(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config file."),
) -> None:
    path = write_default_config(force=force)
    typer.echo(f"Config initialized: {path}")


@app.command()
def gui(
    design: Path | None = typer.Option(
        None,
        "--design",
        exists=True,
        resolve_path=True,
        dir_okay=False,
        help="Open this design on startup.",
    ),
    records: Path | None = typer.Option(
        None,
        "--records",
        exists=True,
        resolve_path=True,
        dir_okay=False,
        help="Load this record file on startup.",
    ),
) -> None:
    """Open the template editor."""
    try:
        from cardstamp.gui import launch_gui
    except Exception as exc:
        typer.secho(f"GUI is unavailable: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)

    try:
        launch_gui(startup_design=design, startup_records=records)
    except Exception as exc:
        typer.secho(f"GUI failed to start: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
