#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from datetime import UTC, datetime
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from temporalfacts.app import FactEngine
from temporalfacts.common import configure_logging
from temporalfacts.domain.errors import NotFoundError
from temporalfacts.domain.model import EntityType, FactStatus
from temporalfacts.domain.temporal.query import ALL_STATUSES

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from temporalfacts.domain.model import Fact

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Query the temporal fact store")
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        help="Logging level name (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve = subparsers.add_parser("resolve", help="Resolve a name to an entity")
    resolve.add_argument("name", type=str, help="Name or alias to resolve")
    resolve.add_argument(
        "--type",
        dest="entity_type",
        choices=[member.value for member in EntityType],
        help="Restrict resolution to one entity type",
    )

    facts = subparsers.add_parser("facts", help="List facts valid at an instant")
    facts.add_argument("--entity", type=str, help="Entity id or name")
    facts.add_argument(
        "--at",
        type=str,
        help="ISO-8601 date or timestamp (UTC); defaults to now",
    )
    facts.add_argument("--topic", type=str, help="Keywords the fact text must contain")
    facts.add_argument(
        "--status",
        choices=[*(member.value for member in FactStatus), ALL_STATUSES],
        default=FactStatus.CANONICAL.value,
        help="Status view (default: %(default)s)",
    )
    facts.add_argument("--limit", type=int, help="Maximum number of facts to print")

    timeline = subparsers.add_parser("timeline", help="Show an entity's fact history")
    timeline.add_argument("entity", type=str, help="Entity id or name")
    timeline.add_argument("--start", type=str, help="Earliest valid_at to include")
    timeline.add_argument("--end", type=str, help="Latest valid_at to include")

    diff = subparsers.add_parser("diff", help="Compare the fact snapshots at two instants")
    diff.add_argument("--start", type=str, required=True, help="Earlier instant")
    diff.add_argument("--end", type=str, required=True, help="Later instant")
    diff.add_argument("--topic", type=str, help="Keywords the fact text must contain")
    diff.add_argument("--entity", type=str, help="Entity id or name")

    conflicts = subparsers.add_parser("conflicts", help="List candidate fact conflicts")
    conflicts.add_argument("--entity", type=str, help="Entity id or name")
    conflicts.add_argument("--topic", type=str, help="Keywords the fact text must contain")

    return parser.parse_args(list(argv))


def _parse_iso_datetime(value: str) -> datetime:
    try:
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        dt = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid ISO timestamp: {value}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _optional_datetime(value: str | None) -> datetime | None:
    return _parse_iso_datetime(value) if value else None


def _validate(args: argparse.Namespace) -> None:
    """Reject malformed argument values before touching the store."""

    _optional_datetime(getattr(args, "at", None))
    if getattr(args, "limit", None) is not None and args.limit < 1:
        raise ValueError("--limit must be positive")
    start = _optional_datetime(getattr(args, "start", None))
    end = _optional_datetime(getattr(args, "end", None))
    if start and end and start > end:
        raise ValueError("--start must not be after --end")


def _open_engine() -> FactEngine:
    return FactEngine.open()


def _entity_id(engine: FactEngine, reference: str | None) -> UUID | None:
    return None if reference is None else _entity_ref(engine, reference)


def _entity_ref(engine: FactEngine, reference: str) -> UUID:
    try:
        return UUID(reference)
    except ValueError:
        pass
    resolved = engine.resolve_entity(reference)
    if resolved is None:
        raise NotFoundError(f"No entity matches {reference!r}")
    return resolved.entity.id


def _format_fact(fact: Fact) -> str:
    end = fact.invalid_at.date().isoformat() if fact.invalid_at else "now"
    start = fact.valid_at.date().isoformat()
    return f"{start} .. {end}  [{fact.status}]  {fact.text}  ({fact.id})"


def _print_facts(facts: Sequence[Fact], empty: str = "No facts found.") -> None:
    if not facts:
        print(empty)
        return
    for fact in facts:
        print(_format_fact(fact))


def _run_command(engine: FactEngine, args: argparse.Namespace) -> None:
    if args.command == "resolve":
        entity_type = EntityType(args.entity_type) if args.entity_type else None
        resolved = engine.resolve_entity(args.name, entity_type)
        if resolved is None:
            print(f"No entity matches {args.name!r}")
            return
        entity = resolved.entity
        print(
            f"{entity.canonical_name} ({entity.entity_type}) {entity.id} "
            f"via {resolved.match_kind} [{resolved.confidence:.2f}]"
        )
        if entity.alias_texts:
            print(f"aliases: {', '.join(entity.alias_texts)}")
    elif args.command == "facts":
        facts = engine.query(
            topic=args.topic,
            at=_optional_datetime(args.at),
            entity_id=_entity_id(engine, args.entity),
            status=args.status if args.status == ALL_STATUSES else FactStatus(args.status),
            limit=args.limit,
        )
        _print_facts(facts)
    elif args.command == "timeline":
        timeline = engine.timeline(
            _entity_ref(engine, args.entity),
            _optional_datetime(args.start),
            _optional_datetime(args.end),
        )
        _print_facts(timeline.facts, empty="Timeline is empty.")
    elif args.command == "diff":
        result = engine.diff(
            _parse_iso_datetime(args.start),
            _parse_iso_datetime(args.end),
            topic=args.topic,
            entity_id=_entity_id(engine, args.entity),
        )
        for label, facts in (
            ("added", result.added),
            ("removed", result.removed),
            ("unchanged", result.unchanged),
        ):
            print(f"{label}: {len(facts)}")
            for fact in facts:
                print(f"  {_format_fact(fact)}")
    elif args.command == "conflicts":
        conflicts = engine.find_conflicts(_entity_id(engine, args.entity), args.topic)
        if not conflicts:
            print("No conflicts found.")
        for conflict in conflicts:
            print(f"similarity {conflict.similarity:.2f}")
            print(f"  {_format_fact(conflict.first)}")
            print(f"  {_format_fact(conflict.second)}")
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        _validate(parsed_args)
        configure_logging(level=parsed_args.log_level)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    try:
        _run_command(_open_engine(), parsed_args)
    except Exception as exc:  # noqa: BLE001
        log.debug("Command %s failed", parsed_args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
