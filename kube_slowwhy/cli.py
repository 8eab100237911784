import argparse
import logging
import sys

from kube_slowwhy.config import OUTPUT_FORMATS, load_config
from kube_slowwhy.engine import Engine, diagnose
from kube_slowwhy.errors import KubeSlowwhyError
from kube_slowwhy.loader import load_snapshot
from kube_slowwhy.model import SEVERITY_ORDER
from kube_slowwhy.output import filter_by_severity, output_report

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kube-slowwhy",
        description="Diagnose slow or unhealthy Kubernetes clusters from a snapshot",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze a collected cluster snapshot")
    analyze.add_argument("snapshot", help="Path to snapshot JSON or YAML")
    analyze.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Output format (table, json, yaml)",
    )
    analyze.add_argument(
        "--raw",
        action="store_true",
        help="Print per-rule findings without correlation",
    )
    analyze.add_argument(
        "--parallel", action="store_true", help="Evaluate rules on a thread pool"
    )
    analyze.add_argument(
        "--min-severity",
        choices=list(SEVERITY_ORDER),
        default=None,
        help="Hide findings below this severity",
    )
    analyze.add_argument("--enable-categories", nargs="*", default=None)
    analyze.add_argument("--disable-categories", nargs="*", default=None)
    analyze.add_argument("--verbose", action="store_true")

    return parser


def run_analyze(args: argparse.Namespace) -> int:
    config = load_config(args)
    snapshot = load_snapshot(args.snapshot)

    engine = Engine(
        enabled_categories=config.enabled_categories,
        disabled_categories=config.disabled_categories,
        parallel=config.parallel,
        max_workers=config.max_workers,
    )
    report = diagnose(snapshot, engine=engine, correlate=config.correlate)
    report = filter_by_severity(report, config.min_severity)

    output_report(report, config.output_format)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
    )

    try:
        return run_analyze(args)
    except KubeSlowwhyError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return EXIT_ERROR
