from __future__ import annotations

import argparse
import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Hashable, Optional

import yaml

from checktree import __version__
from checktree.core.checktree import CheckTree
from checktree.core.config import TreeConfig, load_config
from checktree.core.models import CheckReport, StateChange
from checktree.core.source import load_records
from checktree.core.tree import NotFoundError, ValidationError
from checktree.core.tri_state import state_name

logger = logging.getLogger(__name__)


class _AppendOperation(argparse.Action):
    """Collect --check/--uncheck/--check-all/--uncheck-all in command-line order."""

    def __call__(self, parser, namespace, values, option_string=None):
        operations = list(getattr(namespace, self.dest, None) or [])
        operations.append((self.const, values))
        setattr(namespace, self.dest, operations)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tri-state checkbox tree CLI")
    parser.add_argument("--cli", action="store_true", help="Run in CLI mode")
    parser.add_argument("--tree", type=Path, help="YAML or JSON file with the tree records")
    parser.add_argument("--config", type=Path, default=Path("config.yaml"), help="Config file")
    parser.add_argument(
        "--check",
        dest="operations",
        action=_AppendOperation,
        const="check",
        metavar="ID",
        help="Check a node and cascade (repeatable)",
    )
    parser.add_argument(
        "--uncheck",
        dest="operations",
        action=_AppendOperation,
        const="uncheck",
        metavar="ID",
        help="Uncheck a node and cascade (repeatable)",
    )
    parser.add_argument(
        "--check-all",
        dest="operations",
        action=_AppendOperation,
        const="check_all",
        nargs=0,
        help="Check every node",
    )
    parser.add_argument(
        "--uncheck-all",
        dest="operations",
        action=_AppendOperation,
        const="uncheck_all",
        nargs=0,
        help="Uncheck every node",
    )
    parser.add_argument(
        "--no-cascade",
        dest="cascade",
        action="store_const",
        const=False,
        default=None,
        help="Do not push check/uncheck down to descendants",
    )
    parser.add_argument("--checked-field", help="Record field holding the initial checked flag")
    parser.add_argument("--json", action="store_true", help="Print report as JSON")
    parser.add_argument("--report", type=Path, help="Write report to file")
    parser.add_argument("--errors-log", type=Path, help="Errors JSONL log path")
    parser.add_argument("--verbose", action="store_true", help="Log cascade details to stderr")
    return parser


def _resolve_errors_log_path(args: argparse.Namespace, config: TreeConfig) -> Optional[Path]:
    if args.errors_log:
        return args.errors_log
    if config.errors_log_path:
        return Path(config.errors_log_path)
    if args.tree:
        return args.tree.with_suffix(".errors.jsonl")
    return None


def _log_error(
    errors_log: Optional[Path],
    tree_path: Optional[Path],
    operation: str,
    exc: Exception,
    node_id: Optional[Hashable] = None,
) -> None:
    if not errors_log:
        return
    payload = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "tree": str(tree_path) if tree_path else None,
        "operation": operation,
        "node_id": node_id,
        "exception_class": exc.__class__.__name__,
        "exception_message": str(exc),
        "exception_traceback": traceback.format_exc(),
    }
    try:
        errors_log.parent.mkdir(parents=True, exist_ok=True)
        with errors_log.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, default=str) + "\n")
    except OSError as log_exc:
        print(f"Could not write errors log {errors_log}: {log_exc}", file=sys.stderr)


def _run_operation(checks: CheckTree, operation: str, node_id: Optional[str]) -> None:
    if operation == "check":
        checks.check(_resolve_id(checks, node_id))
    elif operation == "uncheck":
        checks.uncheck(_resolve_id(checks, node_id))
    elif operation == "check_all":
        checks.check_all()
    elif operation == "uncheck_all":
        checks.uncheck_all()
    else:
        raise ValueError(f"Unknown operation: {operation}")


def _resolve_id(checks: CheckTree, raw: Optional[str]) -> Hashable:
    # Ids typed on the command line are strings; YAML sources often use ints.
    if raw in checks.tree:
        return raw
    try:
        as_int = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return raw
    return as_int if as_int in checks.tree else raw


def _build_report(report: CheckReport, tree_path: Path, config: TreeConfig) -> dict:
    return {
        "version": __version__,
        "tree": str(tree_path),
        "cascade": config.cascade,
        "checked_field": config.checked_field,
        "nodes": len(report.states),
        "reconciled": report.reconciled,
        "events": report.events,
        "checked_ids": report.checked_ids,
        "states": [
            {"id": node_id, "state": state_name(state)}
            for node_id, state in report.states.items()
        ],
    }


def _write_report_text(payload: dict) -> str:
    lines = [
        f"Version: {payload.get('version', '')}",
        f"Tree: {payload.get('tree', '')}",
        f"Cascade: {payload['cascade']}",
        f"Nodes: {payload['nodes']}",
        f"Reconciled on load: {payload['reconciled']}",
        f"State change events: {payload['events']}",
        f"Checked ids: {', '.join(str(i) for i in payload['checked_ids']) or '-'}",
        "States:",
    ]
    width = max((len(str(row["id"])) for row in payload["states"]), default=0)
    for row in payload["states"]:
        lines.append(f"  {str(row['id']).ljust(width)}: {row['state']}")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.cli:
        print("Use --cli to run in headless mode.")
        return 1

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if not args.tree:
        print("Missing required --tree")
        return 1

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Invalid config {args.config}: {exc}")
        return 1
    config = config.with_overrides(cascade=args.cascade, checked_field=args.checked_field)
    errors_log = _resolve_errors_log_path(args, config)

    try:
        records = load_records(args.tree)
        checks = CheckTree.from_records(records, config)
    except (OSError, UnicodeDecodeError, yaml.YAMLError, ValidationError) as exc:
        _log_error(errors_log, args.tree, "load", exc, getattr(exc, "node_id", None))
        print(f"Could not load tree {args.tree}: {exc}")
        return 1

    events: list[StateChange] = []
    checks.on_state_changed(events.append)

    for operation, value in args.operations or []:
        try:
            _run_operation(checks, operation, value)
        except NotFoundError as exc:
            _log_error(errors_log, args.tree, operation, exc, exc.node_id)
            print(str(exc))
            return 1
        logger.debug("%s %s: %d events so far", operation, value or "", len(events))

    payload = _build_report(checks.report(events=len(events)), args.tree, config)
    output = json.dumps(payload, indent=2, default=str) if args.json else _write_report_text(payload)
    if args.report:
        args.report.write_text(output)
    print(output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
