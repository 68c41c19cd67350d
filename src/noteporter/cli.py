"""Command-line interface for noteporter."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from . import __version__
from .core.importer import Importer
from .logging_config import setup_logging
from .models.config import ArchiveConfig, ImporterSettings
from .models.messages import MessageType, ProgressPayload
from .providers import available_providers
from .providers.onenote import progress_to_string


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="noteporter",
        description="Convert note exports (Evernote, OneNote, Markdown, HTML) into a zip archive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert an Evernote export
  noteporter "First Notebook.enex" -o notes.zip

  # Mix formats; images next to Markdown files are picked up
  noteporter notes/*.md export.enex -o notes.zip

  # Import OneNote notebooks through Microsoft Graph
  noteporter --onenote --token "$GRAPH_TOKEN" -o onenote.zip
        """,
    )

    parser.add_argument("files", nargs="*", type=Path, help="Export files to convert")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--list-providers",
        action="store_true",
        help="List supported formats and exit",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=Path("notes.zip"),
        help="Archive to write (default: notes.zip)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        metavar="FILE",
        help="YAML settings file",
    )

    onenote_group = parser.add_argument_group("onenote")
    onenote_group.add_argument("--onenote", action="store_true", help="Import from OneNote")
    onenote_group.add_argument(
        "--token",
        type=str,
        metavar="TOKEN",
        help="Microsoft Graph access token (or set access_token in the config file)",
    )

    archive_group = parser.add_argument_group("archive")
    archive_group.add_argument(
        "--store",
        action="store_true",
        help="Store entries without compression",
    )

    output_group = parser.add_argument_group("output control")
    output_group.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    output_group.add_argument("--log-file", type=str, default=None, help="Also write logs to this file")
    output_group.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    output_group.add_argument("--quiet", "-q", action="store_true", help="Suppress output")

    return parser


def list_providers(console: Console) -> int:
    for info in available_providers():
        extensions = ", ".join(info.supported_extensions) or info.type.value
        console.print(f"[bold]{info.id}[/bold]  {info.name} ({extensions})")
        if info.examples:
            console.print(f"    e.g. {', '.join(info.examples)}")
    return 0


def run_import(args: argparse.Namespace) -> int:
    """Run the importer with given arguments."""
    console = Console()

    if not args.files and not args.onenote:
        console.print("[red]Error:[/red] Please provide export files or --onenote")
        return 1

    try:
        settings = ImporterSettings.from_yaml_file(args.config) if args.config else ImporterSettings()
        if args.token:
            settings.access_token = args.token
        archive_config = ArchiveConfig(compression="stored") if args.store else ArchiveConfig()
    except Exception as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 1

    async def run() -> int:
        if not args.quiet:
            console.print(f"[bold blue]noteporter[/bold blue] v{__version__}")
            console.print(f"Output: {args.output}")
            console.print()

        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
                disable=args.quiet,
            ) as progress:
                task = progress.add_task("Starting...", total=None)

                def report(message: object) -> None:
                    text = progress_to_string(message) if isinstance(message, ProgressPayload) else str(message)
                    progress.update(task, description=f"[cyan]{text}")

                settings.reporter = report

                async with Importer(settings, archive_config) as importer:
                    async for message in importer.run(args.files, onenote=args.onenote):
                        if message.type == MessageType.ERROR and not args.quiet:
                            console.print(f"[red]Failed:[/red] {message.message}")
                        elif message.type == MessageType.NOTE and args.verbose and message.note:
                            console.print(f"[green]Imported:[/green] {message.note.title}")

                    progress.update(task, description="[cyan]Writing archive...")
                    await importer.save_archive(args.output)

            stats = importer.stats
            if not args.quiet:
                console.print("[bold]Results:[/bold]")
                console.print(f"  Files processed: {stats.files_processed}")
                console.print(f"  Files skipped: {stats.files_skipped}")
                console.print(f"  Notes imported: {stats.notes_imported}")
                console.print(f"  Attachments: {stats.attachments} ({stats.duplicate_attachments} duplicates)")
                console.print(f"  Errors: {stats.errors}")
                console.print(f"  Archive: {args.output} ({stats.archive_bytes / 1024:.1f} KB)")
                console.print(f"  Duration: {stats.duration_seconds:.1f}s")

            return 0 if stats.errors == 0 else 1

        except Exception as e:
            console.print(f"[red]Error:[/red] {e}")
            if args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    return asyncio.run(run())


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if args.verbose else "ERROR" if args.quiet else args.log_level
    setup_logging(level=level, log_file=args.log_file)

    if args.list_providers:
        return list_providers(Console())

    return run_import(args)


if __name__ == "__main__":
    sys.exit(main())
