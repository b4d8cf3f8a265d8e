"""Plan, apply and import Casdoor resources from a YAML configuration.

This module serves as a CLI wrapper around casdoor_provider.core.engine.
"""
from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from casdoor_provider.config import ProviderConfig, load_settings
from casdoor_provider.core.casdoor import CasdoorError, create_client_from_config
from casdoor_provider.core.engine import ApplyResult, ChangeAction, Engine, PlannedChange, load_configuration
from casdoor_provider.core.errors import ProviderError
from casdoor_provider.core.reconcile import redact
from casdoor_provider.core.resources import RESOURCE_TYPES, get_descriptor
from casdoor_provider.core.state import StateError, StateStore, record_to_dict
from scripts import audit

_SYMBOLS = {
    ChangeAction.CREATE: "+",
    ChangeAction.UPDATE: "~",
    ChangeAction.REPLACE: "-/+",
    ChangeAction.DELETE: "-",
}


def _print_diagnostic(summary: str, detail: str) -> None:
    print(f"Error: {summary}\n\n  {detail}\n", file=sys.stderr)


def _state_store(args: argparse.Namespace, config: ProviderConfig) -> StateStore:
    return StateStore(args.state or config.state_path)


def _build_engine(args: argparse.Namespace, config: ProviderConfig) -> Engine:
    client = create_client_from_config(config)
    return Engine(client, _state_store(args, config), mask_sentinel=config.mask_sentinel)


def _print_plan(changes: list[PlannedChange]) -> int:
    pending = [c for c in changes if c.action is not ChangeAction.NOOP]
    if not pending:
        print("No changes. Casdoor matches the configuration.")
        return 0
    for change in pending:
        suffix = f" ({', '.join(change.changed)})" if change.action in (ChangeAction.UPDATE, ChangeAction.REPLACE) else ""
        print(f"  {_SYMBOLS[change.action]:>3} {change.address}{suffix}")
    counts = {action: sum(1 for c in pending if c.action is action) for action in _SYMBOLS}
    print(
        f"\nPlan: {counts[ChangeAction.CREATE]} to add, {counts[ChangeAction.UPDATE]} to change, "
        f"{counts[ChangeAction.REPLACE]} to replace, {counts[ChangeAction.DELETE]} to destroy."
    )
    return len(pending)


def _report(result: ApplyResult, args: argparse.Namespace, config: ProviderConfig) -> None:
    for change, exc in result.failures:
        _print_diagnostic(exc.summary, f"{change.address}: {exc.detail}")
    audit.record_result(result, operator=args.operator, organization=config.organization_name)


def main() -> None:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Casdoor resource manager")
    parser.add_argument("--state", default=None, help="State file (default: CASDOOR_STATE_PATH or .casdoor/terraform.tfstate.json)")
    parser.add_argument("--operator", default=os.environ.get("USER", "automation"),
                        help="Operator identifier for audit logs")
    parser.add_argument("--log-level", type=str.upper, default=os.environ.get("CASDOOR_LOG_LEVEL", "WARNING").upper(),
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    sub = parser.add_subparsers(dest="cmd")

    sp = sub.add_parser("plan", help="Show the changes apply would make")
    sp.add_argument("-f", "--file", required=True)

    sa = sub.add_parser("apply", help="Create, update and delete resources to match the configuration")
    sa.add_argument("-f", "--file", required=True)

    si = sub.add_parser("import", help="Bring an existing Casdoor object under management")
    si.add_argument("address")
    si.add_argument("id")

    sub.add_parser("refresh", help="Re-read every managed object into state")

    ss = sub.add_parser("show", help="Print managed resources from state")
    ss.add_argument("address", nargs="?")
    ss.add_argument("--json", action="store_true", dest="as_json")

    sd = sub.add_parser("destroy", help="Delete managed resources")
    sd.add_argument("--target", action="append", default=None)

    sub.add_parser("types", help="List supported resource types")

    args = parser.parse_args()
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    if not args.cmd:
        parser.print_help()
        return

    if args.cmd == "types":
        for type_name in sorted(RESOURCE_TYPES):
            print(type_name)
        return

    config = load_settings()

    if args.cmd == "show":
        try:
            records = _state_store(args, config).load()
        except StateError as e:
            print(f"[show] Error: {e}", file=sys.stderr)
            sys.exit(1)
        if args.address:
            if args.address not in records:
                parser.error(f"{args.address} is not in state")
            records = {args.address: records[args.address]}
        for record in records.values():
            try:
                fields = get_descriptor(record.type_name).fields
            except KeyError as e:
                print(f"[show] Error: {record.address}: {e.args[0]}", file=sys.stderr)
                sys.exit(1)
            record.attributes = redact(fields, record.attributes)
            if args.as_json:
                print(json.dumps(record_to_dict(record), indent=2, sort_keys=True))
            else:
                print(f"# {record.address} ({record.status})")
                for key, value in sorted(record.attributes.items()):
                    print(f"    {key} = {value!r}")
        return

    try:
        engine = _build_engine(args, config)
    except ProviderError as e:
        _print_diagnostic(e.summary, e.detail)
        sys.exit(1)
    except CasdoorError as e:
        _print_diagnostic("Unable to Create Casdoor Client", str(e))
        sys.exit(1)

    try:
        if args.cmd == "plan":
            desired = load_configuration(args.file)
            records = engine.refresh(engine.store.load())
            _print_plan(engine.plan(desired, records))
        elif args.cmd == "apply":
            desired = load_configuration(args.file)
            result = engine.apply(desired)
            _report(result, args, config)
            counts = {action: sum(1 for c in result.applied if c.action is action) for action in _SYMBOLS}
            print(
                f"Apply {'complete' if result.ok else 'finished with errors'}! Resources: "
                f"{counts[ChangeAction.CREATE] + counts[ChangeAction.REPLACE]} added, "
                f"{counts[ChangeAction.UPDATE]} changed, "
                f"{counts[ChangeAction.DELETE] + counts[ChangeAction.REPLACE]} destroyed."
            )
            if not result.ok:
                sys.exit(1)
        elif args.cmd == "import":
            try:
                engine.import_resource(args.address, args.id)
            except ProviderError as e:
                audit.record_import(
                    args.address, args.id, operator=args.operator, organization=config.organization_name, error=e,
                )
                raise
            audit.record_import(args.address, args.id, operator=args.operator, organization=config.organization_name)
            print(f"Import successful: {args.id} -> {args.address}")
        elif args.cmd == "refresh":
            before = set(engine.store.load())
            records = engine.refresh_state()
            for address in sorted(before - set(records)):
                audit.record_removed(address, operator=args.operator, organization=config.organization_name)
                print(f"  - {address} (no longer exists)")
            print(f"Refreshed {len(records)} resource(s).")
        elif args.cmd == "destroy":
            result = engine.destroy(args.target)
            _report(result, args, config)
            print(f"Destroy {'complete' if result.ok else 'finished with errors'}! {len(result.applied)} destroyed.")
            if not result.ok:
                sys.exit(1)
        else:
            parser.print_help()
    except ProviderError as e:
        _print_diagnostic(e.summary, e.detail)
        sys.exit(1)
    except StateError as e:
        print(f"[{args.cmd}] Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
