#!/usr/bin/env python3
"""
Disputes CLI

Command-line access to stored and received dispute payloads.

Usage:
    disputes <command> [options]

Commands:
    decode      Decode a single dispute payload and print its summary
    inspect     Decode a stored dispute list, one row per dispute
    config      Show the effective configuration
"""

from __future__ import annotations

import argparse
import json
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from disputes import __version__
from disputes.codec import decode_dispute, decode_dispute_list, dispute_digest
from disputes.config import ConfigError, get_config_manager
from disputes.dispute import Dispute
from disputes.errors import DecodeError, DisputeError
from disputes.observability import configure_logging


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"
    TABLE = "table"
    TEXT = "text"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.JSON:
        return json.dumps(data, indent=2, default=str)
    elif fmt == OutputFormat.YAML:
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    elif fmt == OutputFormat.TABLE:
        return _format_table(data)
    else:
        return str(data)


def _format_table(data: Any) -> str:
    """Format data as ASCII table."""
    if isinstance(data, list) and data and isinstance(data[0], dict):
        headers = list(data[0].keys())
        rows = [[str(row.get(h, ""))[:40] for h in headers] for row in data]
        widths = [max(len(h), max(len(r[i]) for r in rows)) for i, h in enumerate(headers)]

        lines = []
        lines.append(" | ".join(h.ljust(widths[i]) for i, h in enumerate(headers)))
        lines.append("-+-".join("-" * w for w in widths))
        for row in rows:
            lines.append(" | ".join(c.ljust(widths[i]) for i, c in enumerate(row)))
        return "\n".join(lines)
    elif isinstance(data, dict):
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    return str(data)


def dispute_summary(dispute: Dispute) -> Dict[str, Any]:
    """Flat view of a dispute for display."""
    result = dispute.dispute_result
    return {
        "id": dispute.id,
        "trade_id": dispute.short_trade_id,
        "opener": "buyer" if dispute.dispute_opener_is_buyer else "seller",
        "opener_is_offerer": dispute.dispute_opener_is_offerer,
        "opening_date": dispute.opening_date.isoformat(),
        "support_ticket": dispute.is_support_ticket,
        "closed": dispute.is_closed,
        "messages": len(dispute.dispute_direct_messages),
        "winner": result.winner.value if result is not None and result.winner is not None else "",
        "digest": dispute_digest(dispute)[:16],
    }


class DisputesCLI:
    """Main CLI application."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="disputes",
            description="Inspect dispute payloads and stored dispute lists",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"disputes {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=[f.value for f in OutputFormat],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument(
            "--config", "-c",
            help="YAML configuration file",
        )
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress non-essential output",
        )

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()

    def _register_commands(self) -> None:
        decode = self.subparsers.add_parser("decode", help="Decode a single dispute payload")
        decode.add_argument("file", help="Path to the payload")
        decode.add_argument("--lenient", action="store_true", help="Skip JSON Schema validation")

        inspect = self.subparsers.add_parser("inspect", help="Decode a stored dispute list")
        inspect.add_argument("file", help="Path to the dispute list")
        inspect.add_argument("--lenient", action="store_true", help="Skip JSON Schema validation")

        config = self.subparsers.add_parser("config", help="Show effective configuration")
        config.add_argument("--validate", action="store_true", help="Validate instead of showing")

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 0

        try:
            if parsed.config:
                get_config_manager().load_from_file(parsed.config)
            configure_logging()

            fmt = OutputFormat(parsed.format)
            result = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))

            return 0

        except CLIError as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

        except (ConfigError, DisputeError) as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return 1

    def _dispatch(self, args: argparse.Namespace) -> Any:
        handler = getattr(self, f"_handle_{args.command}", None)
        if handler is None:
            raise CLIError(f"Unknown command: {args.command}")
        return handler(args)

    @staticmethod
    def _read(path_arg: str) -> bytes:
        path = Path(path_arg)
        try:
            return path.read_bytes()
        except OSError as e:
            raise CLIError(f"Cannot read {path}: {e.strerror or e}", exit_code=2) from e

    def _handle_decode(self, args: argparse.Namespace) -> Any:
        payload = self._read(args.file)
        try:
            dispute = decode_dispute(payload, strict=False if args.lenient else None)
        except DecodeError as e:
            raise CLIError(e.description) from e
        return dispute_summary(dispute)

    def _handle_inspect(self, args: argparse.Namespace) -> Any:
        payload = self._read(args.file)
        try:
            result = decode_dispute_list(payload, strict=False if args.lenient else None)
        except DecodeError as e:
            raise CLIError(e.description) from e

        if result.failures and not args.quiet:
            for failure in result.failures:
                print(
                    f"Skipped dispute #{failure.index} ({failure.dispute_id or 'unknown id'}): "
                    f"{failure.description}",
                    file=sys.stderr,
                )
        return [dispute_summary(d) for d in result.disputes]

    def _handle_config(self, args: argparse.Namespace) -> Any:
        mgr = get_config_manager()
        if args.validate:
            errors = mgr.validate()
            return {"valid": len(errors) == 0, "errors": errors}
        return mgr.config.to_dict()


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    cli = DisputesCLI()
    return cli.run(argv)


if __name__ == "__main__":
    sys.exit(main())
