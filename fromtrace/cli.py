"""Command line access to an operation log"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from fromtrace.api.service import ErrorResponse, ProvenanceService
from fromtrace.core.config import settings
from fromtrace.core.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fromtrace", description="Inspect a provenance operation log")
    parser.add_argument("--db", type=Path, default=settings.DB_PATH, help="Operation log database")
    parser.add_argument("--locs", type=Path, default=settings.LOC_DB_PATH, help="Location database")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)

    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="Print the record stored under an id")
    show.add_argument("record_id")

    has = sub.add_parser("has", help="Exit 0 if the record exists, 1 otherwise")
    has.add_argument("record_id")

    traverse = sub.add_parser("traverse", help="Trace one character back to its roots")
    traverse.add_argument("record_id")
    traverse.add_argument("char_index", type=int)
    traverse.add_argument("--json", action="store_true", help="Print the raw response")

    return parser


async def run(args: argparse.Namespace) -> int:
    service = await ProvenanceService.open(args.db, args.locs, batched=False)
    try:
        if args.command == "show":
            record = await service.get_record(args.record_id)
            if record is None:
                print(f"Not found: {args.record_id}", file=sys.stderr)
                return 1
            print(json.dumps(record, indent=2, ensure_ascii=False))
            return 0

        if args.command == "has":
            return 0 if await service.has_record(args.record_id) else 1

        response = await service.traverse(args.record_id, args.char_index)
        if args.json or isinstance(response, ErrorResponse):
            print(response.model_dump_json(indent=2))
            return 1 if isinstance(response, ErrorResponse) else 0

        for step in response.steps:
            record = step["operationLog"]
            char_index = step["charIndex"]
            value = record["value"]
            print(f"{record['action']:<32} {record['id']}  [{char_index}] {value[char_index:char_index + 1]!r}")
            location = step["resolvedLocation"]
            if location:
                print(f"    at {location['file_name']}:{location['line']}:{location['column']}")
        if response.error:
            print(f"Interrupted: {response.error.kind.value} ({response.error.message})")
            return 2
        return 0
    finally:
        await service.close()


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
