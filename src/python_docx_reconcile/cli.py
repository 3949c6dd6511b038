"""Command-line interface for python-docx-reconcile.

Provides commands for inspecting reviewed Word documents and importing
their edits and comments back into markdown.
"""

from pathlib import Path
from typing import Annotated

import typer

from . import __version__
from .config import DEFAULT_SETTINGS, load_settings
from .errors import DocxReconcileError
from .extraction import extract_entities
from .importer import import_reviewed_document
from .registry import build_image_registry, read_image_registry, write_image_registry
from .sections import find_section_boundary

app = typer.Typer(
    name="docx-reconcile",
    help="Bring reviewer edits and comments from Word documents back into markdown.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"docx-reconcile version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Bring reviewer edits and comments from Word documents back into markdown."""
    pass


@app.command()
def comments(
    file: Annotated[Path, typer.Argument(help="Path to the .docx file")],
) -> None:
    """List comments with their anchor text."""
    try:
        entities = extract_entities(file)
    except DocxReconcileError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if not entities.comments:
        typer.echo("No comments found")
        return

    for comment in entities.comments:
        anchor = entities.anchors.get(comment.id)
        typer.echo(f"[{comment.id}] {comment.author} ({comment.date}): {comment.text}")
        if anchor is None:
            typer.echo("    anchor: (not found)")
        elif anchor.is_empty:
            typer.echo(f"    anchor: (point) at {anchor.document_position}")
        else:
            typer.echo(f'    anchor: "{anchor.anchor_text}" at {anchor.document_position}')
    for warning in entities.warnings:
        typer.echo(f"Warning: {warning}", err=True)


@app.command()
def tables(
    file: Annotated[Path, typer.Argument(help="Path to the .docx file")],
) -> None:
    """Print the document's tables as pipe tables."""
    try:
        entities = extract_entities(file)
    except DocxReconcileError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if not entities.tables:
        typer.echo("No tables found")
        return

    typer.echo("\n\n".join(table.to_markdown() for table in entities.tables))


@app.command("import")
def import_command(
    file: Annotated[Path, typer.Argument(help="Path to the reviewed .docx file")],
    converted: Annotated[
        Path, typer.Argument(help="Text the document converter produced for the .docx")
    ],
    source: Annotated[
        Path | None, typer.Option("--source", "-s", help="Markdown the document was built from")
    ] = None,
    registry_dir: Annotated[
        Path | None,
        typer.Option("--registry-dir", help="Project directory holding .rev/image-registry.json"),
    ] = None,
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="YAML file with calibration settings")
    ] = None,
    section: Annotated[
        str | None, typer.Option("--section", help="Heading of the section being imported")
    ] = None,
    next_section: Annotated[
        str | None, typer.Option("--next-section", help="Heading of the following section")
    ] = None,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
    quiet: Annotated[
        bool, typer.Option("--quiet", "-q", help="Do not report placement problems")
    ] = False,
) -> None:
    """Import tracked changes and comments into annotated markdown."""
    try:
        settings = load_settings(config) if config else DEFAULT_SETTINGS
        rendered_text = converted.read_text(encoding="utf-8")
        source_text = source.read_text(encoding="utf-8") if source else None
        registry = read_image_registry(registry_dir) if registry_dir else None

        boundary = None
        if section:
            boundary = find_section_boundary(
                extract_entities(file).full_text, section, next_section
            )
            if boundary is None:
                typer.echo(f"Warning: section heading not found: {section}", err=True)

        result = import_reviewed_document(
            file,
            rendered_text,
            source_text,
            registry=registry,
            settings=settings,
            section_boundary=boundary,
            quiet=quiet,
        )
    except (DocxReconcileError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if output:
        output.write_text(result.text, encoding="utf-8")
        typer.echo(f"Imported {file} and saved to {output}")
    else:
        typer.echo(result.text)

    typer.echo(str(result.stats), err=True)
    if not quiet:
        for message in result.messages:
            typer.echo(f"  {message}", err=True)


@app.command()
def registry(
    files: Annotated[list[Path], typer.Argument(help="Markdown files, in document order")],
    directory: Annotated[
        Path | None,
        typer.Option("--dir", "-d", help="Project directory (default: first file's directory)"),
    ] = None,
) -> None:
    """Build the image registry used to restore figures on import."""
    try:
        content = "\n\n".join(path.read_text(encoding="utf-8") for path in files)
        image_registry = build_image_registry(content)
        path = write_image_registry(directory or files[0].parent, image_registry)
    except (DocxReconcileError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Registered {len(image_registry)} image(s) in {path}")


if __name__ == "__main__":
    app()
