"""Operator command line for managing Nexus prover nodes.

Usage:
    nexus-fleet create NODE_ID
    nexus-fleet list
    nexus-fleet status NODE_ID
    nexus-fleet remove --index 1 3
    nexus-fleet logs --index 2
    nexus-fleet remove-all
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass

from nexus_fleet.config import settings
from nexus_fleet.errors import BuildError, FleetError, InvalidNodeId
from nexus_fleet.lifecycle import BatchTeardownResult, LifecycleManager
from nexus_fleet.logging_config import setup_logging
from nexus_fleet.metrics import write_metrics
from nexus_fleet.providers.base import NodeState, ResourceUsage
from nexus_fleet.registry import get_runtime, get_scheduler
from nexus_fleet.schemas import BatchTeardownModel, NodeInfoModel, NodeStatusModel, StatusReportModel
from nexus_fleet.status import StatusReporter
from nexus_fleet.version import __version__


ROW_FORMAT = "%-5s %-20s %-12s %-15s %-15s"
RULE = "-" * 62


@dataclass
class Console:
    lifecycle: LifecycleManager
    reporter: StatusReporter


def format_bytes(value: int) -> str:
    """Format a byte count like ``docker stats`` does (e.g. 12.5MiB)."""
    if value < 1024:
        return f"{value}B"
    size = value / 1024
    for unit in ("KiB", "MiB"):
        if size < 1024:
            return f"{size:.2f}{unit}"
        size /= 1024
    return f"{size:.2f}GiB"


def format_usage(usage: ResourceUsage) -> tuple[str, str]:
    if not usage.available:
        return "N/A", "N/A"
    return f"{usage.cpu_percent:.2f}%", format_bytes(usage.memory_used)


def _resolve_selectors(console: Console, selectors: list[str], by_index: bool) -> list[str]:
    """Map CLI selectors to node ids, reporting unusable ones as skipped."""
    if not by_index:
        return selectors
    node_ids = console.lifecycle.registry.list_node_ids()
    resolved = []
    for selector in selectors:
        if selector.isdigit() and 1 <= int(selector) <= len(node_ids):
            resolved.append(node_ids[int(selector) - 1])
        else:
            print(f"Skipped: {selector}", file=sys.stderr)
    return resolved


def _print_batch(batch: BatchTeardownResult, as_json: bool) -> int:
    if as_json:
        print(BatchTeardownModel.from_batch(batch).model_dump_json(indent=2))
    else:
        for outcome in batch.outcomes:
            if outcome.ok:
                print(f"Node {outcome.node_id} has been removed.")
            else:
                print(f"Failed to remove node {outcome.node_id}: {outcome.error}", file=sys.stderr)
    return 0 if batch.success else 1


# =============================================================================
# Commands
# =============================================================================

def cmd_create(args: argparse.Namespace, console: Console) -> int:
    node = console.lifecycle.create(args.node_id, rebuild=args.rebuild)
    if args.json:
        print(NodeInfoModel.from_info(node).model_dump_json(indent=2))
    else:
        print(f"Node {node.node_id} started in container {node.container_name} ({node.container_id[:12]})")
        print(f"Log file: {node.log_path}")
    if node.state == NodeState.EXITED:
        print(f"Node {node.node_id} exited right after start; check 'nexus-fleet logs {node.node_id}'", file=sys.stderr)
        return 1
    return 0


def cmd_list(args: argparse.Namespace, console: Console) -> int:
    report = console.reporter.list_all()
    if args.json:
        print(StatusReportModel.from_report(report).model_dump_json(indent=2))
        return 0

    print("Registered nodes:")
    print(RULE)
    print(ROW_FORMAT % ("No", "Node ID", "Status", "CPU", "Memory"))
    print(RULE)
    for node in report.nodes:
        cpu, mem = format_usage(node.usage)
        print(ROW_FORMAT % (node.index, node.node_id, node.state.value, cpu, mem))
    print(RULE)
    if report.failed:
        print("Failed to start node(s) (exited):")
        for node_id in report.failed:
            print(f"- {node_id}")
    return 0


def cmd_status(args: argparse.Namespace, console: Console) -> int:
    node = console.reporter.get(args.node_id)
    if args.json:
        print(NodeStatusModel.from_status(node).model_dump_json(indent=2))
    elif node.state == NodeState.ABSENT:
        print(f"Node {node.node_id} does not exist.")
    else:
        cpu, mem = format_usage(node.usage)
        print(ROW_FORMAT % ("No", "Node ID", "Status", "CPU", "Memory"))
        print(ROW_FORMAT % ("-", node.node_id, node.state.value, cpu, mem))
        if node.error:
            print(f"Status unavailable: {node.error}", file=sys.stderr)
    return 1 if node.state == NodeState.ABSENT else 0


def cmd_remove(args: argparse.Namespace, console: Console) -> int:
    node_ids = _resolve_selectors(console, args.selectors, args.index)
    if not node_ids:
        print("No nodes selected.")
        return 1
    return _print_batch(console.lifecycle.batch_teardown(node_ids), args.json)


def cmd_remove_all(args: argparse.Namespace, console: Console) -> int:
    if not console.lifecycle.registry.list_node_ids():
        if args.json:
            print(BatchTeardownModel.from_batch(BatchTeardownResult()).model_dump_json(indent=2))
        else:
            print("No nodes found.")
        return 0
    if not args.yes:
        answer = input("Are you sure you want to remove ALL nodes? (y/n) ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Cancelled.")
            return 0
    code = _print_batch(console.lifecycle.teardown_all(), args.json)
    if code == 0 and not args.json:
        print("All nodes have been removed.")
    return code


def cmd_logs(args: argparse.Namespace, console: Console) -> int:
    resolved = _resolve_selectors(console, [args.selector], args.index)
    if not resolved:
        return 1
    node_id = resolved[0]
    print(f"Showing logs for node: {node_id} (Ctrl-C to stop)", file=sys.stderr)
    try:
        for line in console.reporter.stream_logs(node_id, follow=not args.no_follow, tail=args.tail):
            print(line, flush=True)
    except KeyboardInterrupt:
        print(file=sys.stderr)
    return 0


def cmd_restart(args: argparse.Namespace, console: Console) -> int:
    node = console.lifecycle.restart(args.node_id)
    print(f"Node {node.node_id} restarted ({node.state.value})")
    return 0


def cmd_build(args: argparse.Namespace, console: Console) -> int:
    image = console.lifecycle.build_image(force=args.force)
    print(f"Image {image} is ready")
    return 0


def cmd_prune(args: argparse.Namespace, console: Console) -> int:
    pruned = console.lifecycle.prune_schedules()
    for entry in pruned:
        print(f"Removed orphan schedule entry {entry}")
    if not pruned:
        print("Nothing to prune.")
    return 0


# =============================================================================
# Entry point
# =============================================================================

def _tail(value: str) -> int | str:
    if value == "all":
        return value
    if not value.isdigit():
        raise argparse.ArgumentTypeError("expected a line count or 'all'")
    return int(value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nexus-fleet",
        description="Run and supervise Nexus prover nodes in Docker containers.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        default=None,
        help="Diagnostic log level (default: settings)",
    )
    parser.add_argument("--log-format", choices=["text", "json"], default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create", help="Build the image if needed and start a node")
    p.add_argument("node_id", help="Node id (the prover credential)")
    p.add_argument("--rebuild", action="store_true", help="Rebuild the node image first")
    p.add_argument("--json", action="store_true")
    p.set_defaults(func=cmd_create)

    p = sub.add_parser("list", help="Show every node with status and resource usage")
    p.add_argument("--json", action="store_true")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("status", help="Show one node's status and resource usage")
    p.add_argument("node_id")
    p.add_argument("--json", action="store_true")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("remove", help="Remove selected nodes")
    p.add_argument("selectors", nargs="+", help="Node ids, or list numbers with --index")
    p.add_argument("--index", action="store_true", help="Select nodes by their number in 'list'")
    p.add_argument("--json", action="store_true")
    p.set_defaults(func=cmd_remove)

    p = sub.add_parser("logs", help="Follow a node's logs")
    p.add_argument("selector", help="Node id, or list number with --index")
    p.add_argument("--index", action="store_true", help="Select the node by its number in 'list'")
    p.add_argument("--no-follow", action="store_true", help="Print current logs and exit")
    p.add_argument("--tail", type=_tail, default="all", help="Lines to show from the end (default: all)")
    p.set_defaults(func=cmd_logs)

    p = sub.add_parser("remove-all", help="Remove every node")
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    p.add_argument("--json", action="store_true")
    p.set_defaults(func=cmd_remove_all)

    p = sub.add_parser("restart", help="Recreate a node's container in place")
    p.add_argument("node_id")
    p.set_defaults(func=cmd_restart)

    p = sub.add_parser("build", help="Build the node image")
    p.add_argument("--force", action="store_true", help="Rebuild even if the image exists")
    p.set_defaults(func=cmd_build)

    p = sub.add_parser("prune", help="Remove cleanup entries of nodes that no longer exist")
    p.set_defaults(func=cmd_prune)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level=args.log_level, fmt=args.log_format)

    runtime = get_runtime()
    console = Console(
        lifecycle=LifecycleManager(runtime, get_scheduler()),
        reporter=StatusReporter(runtime),
    )

    try:
        return args.func(args, console)
    except InvalidNodeId as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except BuildError as e:
        print(f"error: {e}", file=sys.stderr)
        if e.build_log:
            print(e.build_log, file=sys.stderr)
        return 1
    except FleetError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        write_metrics(settings.metrics_textfile)


if __name__ == "__main__":
    sys.exit(main())
