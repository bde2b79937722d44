#!/usr/bin/env python3

import argparse
from collections.abc import Callable, Sequence

from receiptlens.runtime import parse_log_level, set_log_level


def _coerce_exit_code(code: object) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1


def _run_command(command: Callable[[argparse.Namespace], None], args: argparse.Namespace) -> int:
    """
    Normalize command handlers that call sys.exit().

    This keeps process termination centralized in this module's entrypoint.
    """
    try:
        command(args)
    except SystemExit as exc:
        return _coerce_exit_code(exc.code)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="receiptlens",
        description="Receipt text extraction CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  extract <text-file|->      Extract a structured record from OCR text
  serve [--host] [--port]    Start the extraction HTTP server

Environment:
  RECEIPTLENS_ENHANCEMENT_URL enables --enhance (OpenAI-compatible endpoint)
  RECEIPTLENS_LOG_LEVEL       DEBUG, INFO, WARNING or ERROR
""",
    )
    parser.add_argument("--log-level", default=None, help="Override RECEIPTLENS_LOG_LEVEL for this run")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # extract command
    extract_parser = subparsers.add_parser("extract", help="Extract a structured record from OCR text")
    extract_parser.add_argument("text_file", help="Path to a file with OCR text, or - for stdin")
    extract_parser.add_argument(
        "--ocr-confidence", type=float, default=1.0, help="Confidence reported by the OCR step (default: 1.0)"
    )
    extract_parser.add_argument("--enhance", action="store_true", help="Run the enhancement pass when configured")
    extract_parser.add_argument(
        "--date-order", choices=["MDY", "DMY"], default=None, help="Reading of ambiguous dates like 03/04/2025"
    )
    extract_parser.add_argument("--encoding", default="utf-8", help="Text file encoding (default: utf-8)")
    extract_parser.add_argument("--compact", action="store_true", help="Print JSON on a single line")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start the extraction HTTP server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to (default: 8000)")

    args = parser.parse_args(argv)

    if args.log_level:
        level = parse_log_level(args.log_level)
        if level is None:
            print(f"Unknown log level: {args.log_level}")
            return 1
        set_log_level(level)

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == "extract":
        from receiptlens.cli.receipt import cmd_extract

        return _run_command(cmd_extract, args)
    elif args.command == "serve":
        from receiptlens.cli.receipt import cmd_serve

        return _run_command(cmd_serve, args)

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
