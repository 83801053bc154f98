"""Minimal CLI entrypoint for attendee resolution."""

from __future__ import annotations

import argparse
import json
from collections import Counter
from pathlib import Path
from typing import Any
from typing import Sequence
from uuid import uuid4

import jsonschema

from core.config import DEFAULT_CONFIG, ResolutionConfig
from core.models import Attendee, EntityResolutionResult, ManualOverride, OverrideType
from core.structured_logging import emit_json_event
from resolution import AttendeeResolver
from storage import SQLiteProfileStore


PROJECT_ROOT = Path(__file__).resolve().parent.parent
SCHEMAS_DIR = PROJECT_ROOT / "schemas"
RESULT_SCHEMA_PATH = SCHEMAS_DIR / "resolution_result.schema.json"


def _resolve_command_run_id(args: argparse.Namespace) -> str:
    """Resolve run_id from CLI args or create one for command-level tracing."""
    explicit = getattr(args, "run_id", None)
    if explicit:
        return str(explicit)
    return str(uuid4())


def _emit_cli_event(
    event_type: str,
    *,
    run_id: str,
    command: str,
    **payload: Any,
) -> str:
    """Emit one structured CLI event line with standard fields."""
    return emit_json_event(
        event_type=event_type,
        run_id=run_id,
        command=command,
        **payload,
    )


def _load_config(args: argparse.Namespace) -> ResolutionConfig:
    if getattr(args, "config", None):
        return ResolutionConfig.from_file(args.config)
    return DEFAULT_CONFIG


def _load_result_schema() -> dict[str, Any]:
    if not RESULT_SCHEMA_PATH.exists():
        raise FileNotFoundError(f"Schema file not found: {RESULT_SCHEMA_PATH}")
    return json.loads(RESULT_SCHEMA_PATH.read_text(encoding="utf-8"))


def _validated_payload(result: EntityResolutionResult, schema: dict[str, Any]) -> dict[str, Any]:
    payload = result.to_dict()
    try:
        jsonschema.validate(payload, schema)
    except jsonschema.ValidationError as exc:
        raise ValueError(f"Result validation failed: {exc.message}") from exc
    return payload


def _build_resolver(args: argparse.Namespace, run_id: str) -> AttendeeResolver:
    store = SQLiteProfileStore(args.db)
    return AttendeeResolver(store, config=_load_config(args), run_id=run_id)


def _cmd_resolve(args: argparse.Namespace) -> int:
    """Resolve a single attendee and print the result as an event."""
    run_id = _resolve_command_run_id(args)
    resolver = _build_resolver(args, run_id)
    result = resolver.resolve_attendee(args.email, args.name)
    payload = _validated_payload(result, _load_result_schema())
    _emit_cli_event(
        "cli_resolve_completed",
        run_id=run_id,
        command="resolve",
        db=str(args.db),
        storage=resolver.storage_status(),
        result=payload,
    )
    return 0


def _read_attendees(path: Path) -> list[Attendee]:
    if not path.exists():
        raise FileNotFoundError(f"Attendee file not found: {path}")
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError("Invalid attendee file: expected a JSON list")

    attendees = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValueError(f"Invalid attendee at index {index}: expected an object")
        attendees.append(
            Attendee(
                email=str(item.get("email") or ""),
                display_name=item.get("display_name") or item.get("name"),
            )
        )
    return attendees


def _cmd_resolve_batch(args: argparse.Namespace) -> int:
    """Resolve a JSON list of attendees and write results as JSONL."""
    run_id = _resolve_command_run_id(args)
    attendees = _read_attendees(Path(args.attendee_file))
    schema = _load_result_schema()
    resolver = _build_resolver(args, run_id)
    results = resolver.resolve_attendees(attendees)

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as handle:
        for result in results:
            payload = _validated_payload(result, schema)
            handle.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")

    methods = Counter(result.method.value for result in results)
    _emit_cli_event(
        "cli_resolve_batch_completed",
        run_id=run_id,
        command="resolve-batch",
        db=str(args.db),
        output=str(output_path),
        resolved=len(results),
        created=sum(1 for result in results if result.created_new_entity),
        methods=dict(sorted(methods.items())),
        storage=resolver.storage_status(),
    )
    return 0


def _cmd_override_add(args: argparse.Namespace) -> int:
    """Record a manual override for an email or display name."""
    run_id = _resolve_command_run_id(args)
    if not args.person and not args.company:
        raise ValueError("override requires --person or --company")

    store = SQLiteProfileStore(args.db)
    if args.person and store.find_person_by_id(args.person) is None:
        raise ValueError(f"Person not found: {args.person}")
    if args.company and store.find_company_by_id(args.company) is None:
        raise ValueError(f"Company not found: {args.company}")

    override = store.create_override(
        ManualOverride(
            override_type=OverrideType(args.override_type),
            source_identifier=args.source,
            target_person_id=args.person,
            target_company_id=args.company,
            reason=args.reason,
            confidence=args.confidence,
            created_by=args.created_by,
        )
    )
    _emit_cli_event(
        "cli_override_added",
        run_id=run_id,
        command="override add",
        db=str(args.db),
        override_id=override.id,
        override_type=override.override_type.value,
        source_identifier=override.source_identifier,
        target_person_id=override.target_person_id,
        target_company_id=override.target_company_id,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Create argument parser for the prebrief CLI."""
    parser = argparse.ArgumentParser(
        prog="prebrief",
        description="Resolve meeting attendees to people and companies",
    )
    parser.add_argument("--version", action="version", version="prebrief 0.1.0")

    subparsers = parser.add_subparsers(dest="command")

    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Resolve one attendee email (and optional display name)",
    )
    resolve_parser.add_argument("email", help="Attendee email address")
    resolve_parser.add_argument("--name", help="Attendee display name from the calendar")
    resolve_parser.add_argument("--db", default="prebrief.db", help="SQLite DB path")
    resolve_parser.add_argument("--config", help="Optional JSON resolver config")
    resolve_parser.add_argument("--run-id", help="Optional explicit run ID for logging")
    resolve_parser.set_defaults(func=_cmd_resolve)

    batch_parser = subparsers.add_parser(
        "resolve-batch",
        help="Resolve a JSON list of attendees into a JSONL result file",
    )
    batch_parser.add_argument("attendee_file", help="Path to JSON list of {email, display_name}")
    batch_parser.add_argument("--output", default="resolutions.jsonl", help="Output JSONL path")
    batch_parser.add_argument("--db", default="prebrief.db", help="SQLite DB path")
    batch_parser.add_argument("--config", help="Optional JSON resolver config")
    batch_parser.add_argument("--run-id", help="Optional explicit run ID for logging")
    batch_parser.set_defaults(func=_cmd_resolve_batch)

    override_parser = subparsers.add_parser(
        "override",
        help="Manual override operations",
    )
    override_subparsers = override_parser.add_subparsers(dest="override_command")
    override_subparsers.required = True

    override_add_parser = override_subparsers.add_parser(
        "add",
        help="Pin an email or display name to a person/company",
    )
    override_add_parser.add_argument("--source", required=True, help="Email or display name to override")
    override_add_parser.add_argument(
        "--type",
        dest="override_type",
        required=True,
        choices=[item.value for item in OverrideType],
        help="Override type",
    )
    override_add_parser.add_argument("--person", help="Target person ID")
    override_add_parser.add_argument("--company", help="Target company ID")
    override_add_parser.add_argument("--reason", help="Why the override exists")
    override_add_parser.add_argument(
        "--created-by",
        default="manual-review",
        help="Human/operator identifier written to entity_overrides.created_by",
    )
    override_add_parser.add_argument(
        "--confidence",
        type=float,
        default=1.0,
        help="Confidence reported when the override is applied",
    )
    override_add_parser.add_argument("--db", default="prebrief.db", help="SQLite DB path")
    override_add_parser.add_argument("--run-id", help="Optional explicit run ID for logging")
    override_add_parser.set_defaults(func=_cmd_override_add)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Execute CLI and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 0

    try:
        return int(args.func(args))
    except Exception as exc:
        run_id = _resolve_command_run_id(args)
        _emit_cli_event(
            "cli_error",
            run_id=run_id,
            level="error",
            command=str(getattr(args, "command", "unknown")),
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return 1


def cli() -> None:
    """Console-script entrypoint."""
    raise SystemExit(main())


if __name__ == "__main__":
    raise SystemExit(main())
