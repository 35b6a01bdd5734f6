from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional

from .batch import process_batch
from .console import ConsoleReporter
from .errors import ScanError, SettingsError
from .logging_config import configure_logging
from .presets import PRESET_NAMES, apply_preset
from .report import build_report, save_report_csv, save_report_json
from .settings import SUPPORTED_FORMATS, ConvertSettings, format_available


EXIT_OK = 0
EXIT_FATAL = 1
EXIT_BAD_SETTINGS = 2

# CLI dest -> ConvertSettings field, for flags that default to "not given".
_SETTING_FLAGS = {
    "input": "input_dir",
    "out": "output_dir",
    "format": "output_format",
    "quality": "quality",
    "width": "resize_width",
    "height": "resize_height",
    "overwrite": "overwrite",
    "workers": "workers",
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bic",
        description="Bulk Image Converter: re-encode a folder of images",
    )
    sub = p.add_subparsers(dest="command", required=True)

    conv = sub.add_parser("convert", help="Convert every file under the input directory")

    # Locations
    conv.add_argument("--input", type=Path, default=None, help="Input directory (default: ./input)")
    conv.add_argument("--out", type=Path, default=None, help="Output directory (default: ./output)")
    conv.add_argument("--flat", action="store_true", help="Write all outputs directly into --out")
    conv.add_argument(
        "--overwrite",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Replace existing outputs (default: on)",
    )

    # Format
    conv.add_argument("--format", choices=SUPPORTED_FORMATS + ("jpeg",), default=None, help="Output format (default: webp)")
    conv.add_argument("--quality", type=int, default=None, help="Quality 0-100 (default: 90)")
    conv.add_argument("--preset", choices=PRESET_NAMES, default=None, help="Start from a named preset")
    conv.add_argument("--keep-metadata", action="store_true", help="Keep EXIF / ICC data")

    # Resize
    conv.add_argument("--width", type=int, default=None, help="Max width (keeps aspect)")
    conv.add_argument("--height", type=int, default=None, help="Max height (keeps aspect)")
    conv.add_argument("--allow-upscale", action="store_true", help="Allow enlarging pixels")

    # Encoder knobs
    conv.add_argument("--webp-lossless", action="store_true", help="WebP lossless mode")
    conv.add_argument("--webp-near-lossless", action="store_true", help="WebP near-lossless mode")
    conv.add_argument("--webp-effort", type=int, default=None, help="WebP effort 0-6 (default: 6)")
    conv.add_argument(
        "--avif-lossless",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="AVIF lossless mode (default: on)",
    )
    conv.add_argument("--avif-effort", type=int, default=None, help="AVIF effort 0-9 (default: 4)")

    # Run
    conv.add_argument("--workers", type=int, default=None, help="Parallel conversions (default: CPU count)")
    conv.add_argument("--progress", action="store_true", help="Show a progress bar")
    conv.add_argument("--report", action="store_true", help="Write report.json and report.csv to --out")
    conv.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    conv.add_argument("--log-file", type=Path, default=None, help="Also write a debug log here")

    sub.add_parser("formats", help="List output formats and whether this install can write them")

    return p


def settings_from_args(args: argparse.Namespace) -> ConvertSettings:
    """Defaults, then the preset, then whatever was given explicitly."""
    settings = ConvertSettings()
    if args.preset:
        settings = apply_preset(args.preset, settings)

    overrides: Dict[str, Any] = {
        field: getattr(args, dest)
        for dest, field in _SETTING_FLAGS.items()
        if getattr(args, dest) is not None
    }
    if args.flat:
        overrides["mirror_subdirs"] = False
    if args.keep_metadata:
        overrides["strip_metadata"] = False
    if args.allow_upscale:
        overrides["allow_upscale"] = True

    webp: Dict[str, Any] = {}
    if args.webp_lossless:
        webp["lossless"] = True
    if args.webp_near_lossless:
        webp["near_lossless"] = True
    if args.webp_effort is not None:
        webp["effort"] = args.webp_effort
    if webp:
        overrides["webp"] = replace(settings.webp, **webp)

    avif: Dict[str, Any] = {}
    if args.avif_lossless is not None:
        avif["lossless"] = args.avif_lossless
    if args.avif_effort is not None:
        avif["effort"] = args.avif_effort
    if avif:
        overrides["avif"] = replace(settings.avif, **avif)

    return replace(settings, **overrides)


def run_convert(args: argparse.Namespace, reporter: ConsoleReporter) -> int:
    settings = settings_from_args(args)

    try:
        if args.progress:
            with reporter.progress() as progress:
                bar = progress.add_task("Converting", total=None)

                def on_start(tasks):
                    reporter.found(tasks, settings.large_batch_threshold)
                    progress.update(bar, total=len(tasks))

                results, summary = process_batch(
                    settings,
                    on_start=on_start,
                    on_result=reporter.result,
                    progress_callback=lambda done, total: progress.update(bar, completed=done),
                )
        else:
            results, summary = process_batch(
                settings,
                on_start=lambda tasks: reporter.found(tasks, settings.large_batch_threshold),
                on_result=reporter.result,
            )
    except SettingsError as e:
        reporter.error(f"Invalid settings: {e}")
        return EXIT_BAD_SETTINGS
    except ScanError as e:
        reporter.error(f"Error reading directory: {e}")
        return EXIT_FATAL

    reporter.summary(summary)

    if args.report:
        out_dir = Path(settings.output_dir)
        report = build_report(results, summary)

        json_path = out_dir / "report.json"
        save_report_json(report, json_path)

        csv_path = out_dir / "report.csv"
        save_report_csv(report, csv_path)

        reporter.console.print(f"Report written: {json_path}")
        reporter.console.print(f"CSV written   : {csv_path}")

    return EXIT_OK


def run_formats(reporter: ConsoleReporter) -> int:
    for fmt in SUPPORTED_FORMATS:
        if format_available(fmt):
            reporter.console.print(f"[green]{fmt:<5} available[/green]")
        else:
            reporter.console.print(f"[yellow]{fmt:<5} missing from this Pillow build[/yellow]")
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    reporter = ConsoleReporter()

    if args.command == "convert":
        configure_logging(verbose=args.verbose, log_file=args.log_file)
        return run_convert(args, reporter)

    if args.command == "formats":
        return run_formats(reporter)

    parser.print_help()
    return EXIT_BAD_SETTINGS
