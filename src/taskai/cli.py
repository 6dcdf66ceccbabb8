#!/usr/bin/env python3
"""
TASKAI - CLI Interface
======================
Command-line tool for generating and working through task backlogs.

Usage:
    taskai gen spec.md --prefix API > backlog.yaml
    taskai next backlog.yaml
    taskai mark-done backlog.yaml --task API-1
    taskai validate backlog.yaml
    taskai status backlog.yaml
    taskai schema
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import SUPPORTED_LANGUAGES, Settings
from .errors import BacklogFileError, TaskaiError
from .generator import BacklogGenerator
from .manager import BacklogManager
from .schema import dumps, json_schema


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskai",
        description="TASKAI - structured task backlogs for AI agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  taskai gen spec.md --prefix API -o backlog.yaml   Generate a backlog from a spec
  taskai next backlog.yaml                          List tasks ready to work on
  taskai next backlog.yaml --json                   Same, as JSON
  taskai mark-done backlog.yaml --task API-1        Mark a task as done
  taskai validate backlog.yaml                      Check ids, references and cycles
  taskai status backlog.yaml                        Show progress for every task
  taskai schema                                     Print the document JSON Schema
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # GEN command
    gen_parser = subparsers.add_parser("gen", help="Generate a backlog from a specification")
    gen_parser.add_argument("spec_file", help="Path to the specification file")
    gen_parser.add_argument("--lang", choices=SUPPORTED_LANGUAGES, help="Prompt language")
    gen_parser.add_argument("--style", help="Backlog style (standard, detailed, minimal)")
    gen_parser.add_argument("--prefix", help="Task id prefix hint, e.g. API")
    gen_parser.add_argument("-o", "--output", help="Write the backlog here instead of stdout")

    # NEXT command
    next_parser = subparsers.add_parser("next", help="List tasks ready to work on")
    next_parser.add_argument("backlog_file", help="Path to the backlog file")
    next_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # MARK-DONE command
    done_parser = subparsers.add_parser("mark-done", help="Mark a task as done")
    done_parser.add_argument("backlog_file", help="Path to the backlog file")
    done_parser.add_argument("--task", required=True, help="ID of the task to mark as done")
    done_parser.add_argument("--strict", action="store_true", help="Fail if the task is already done")

    # VALIDATE command
    validate_parser = subparsers.add_parser("validate", help="Validate a backlog file")
    validate_parser.add_argument("backlog_file", help="Path to the backlog file")

    # STATUS command
    status_parser = subparsers.add_parser("status", help="Show backlog progress")
    status_parser.add_argument("backlog_file", help="Path to the backlog file")

    # SCHEMA command
    subparsers.add_parser("schema", help="Print the backlog JSON Schema")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: a command is required", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    try:
        return _dispatch(args)
    except TaskaiError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


def _dispatch(args: argparse.Namespace) -> int:
    manager = BacklogManager()

    if args.command == "gen":
        spec_path = Path(args.spec_file)
        if not spec_path.exists() or spec_path.is_dir():
            raise TaskaiError(f"Specification file not found: {spec_path}", rule="file-error")

        settings = Settings.from_env()
        overrides = {k: v for k, v in (("lang", args.lang), ("style", args.style)) if v}
        if overrides:
            settings = settings.model_copy(update=overrides)

        try:
            description = spec_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise BacklogFileError(f"Cannot read specification file {spec_path}: {e}") from e

        generator = BacklogGenerator(settings)
        backlog = generator.generate(description, id_prefix=args.prefix)

        if args.output:
            manager.save(backlog, args.output)
            print(f"✅ Generated: {args.output} ({len(backlog.all_tasks())} tasks)")
        else:
            print(dumps(backlog), end="")

    elif args.command == "next":
        ready = manager.next(args.backlog_file)
        if args.json:
            print(json.dumps([t.model_dump(mode="json", exclude_none=True) for t in ready], indent=2))
        else:
            print(manager.render_ready(ready))

    elif args.command == "mark-done":
        task = manager.mark_done(args.backlog_file, args.task, strict=args.strict)
        print(f"Task {task.id} marked as done.")

    elif args.command == "validate":
        backlog = manager.validate(args.backlog_file)
        print(f"✅ Valid: {backlog.project} ({len(backlog.all_tasks())} tasks)")

    elif args.command == "status":
        backlog = manager.load(args.backlog_file)
        print(manager.status_report(backlog))

    elif args.command == "schema":
        print(json.dumps(json_schema(), indent=2))

    return 0


if __name__ == "__main__":
    sys.exit(main())
