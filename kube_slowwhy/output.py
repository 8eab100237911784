import json

import yaml

from kube_slowwhy.errors import ConfigError
from kube_slowwhy.model import Report, severity_rank

TABLE_HEADER = ("SEVERITY", "ID", "CATEGORY", "TITLE", "CONFIDENCE")
COLUMN_PADDING = 2

# ----------------------------
# Output formatting
# ----------------------------


def filter_by_severity(report: Report, min_severity: str) -> Report:
    threshold = severity_rank(min_severity)
    return Report(
        schema_version=report.schema_version,
        findings=tuple(
            f for f in report.findings if severity_rank(f.severity) >= threshold
        ),
    )


def _align(rows: list[tuple[str, ...]]) -> list[str]:
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    lines = []
    for row in rows:
        cells = [
            cell.ljust(widths[i] + COLUMN_PADDING) if i < len(row) - 1 else cell
            for i, cell in enumerate(row)
        ]
        lines.append("".join(cells))
    return lines


def render_table(report: Report) -> str:
    rows = [TABLE_HEADER]
    for f in report.findings:
        rows.append(
            (
                f.severity.upper(),
                f.id,
                f.category,
                f.title,
                f"{f.confidence * 100:.0f}%",
            )
        )
    lines = _align(rows)

    for f in report.findings:
        lines.append("")
        lines.append(f"--- {f.id} ---")
        lines.append(f"Summary: {f.summary}")
        if f.reasoning:
            lines.append(f"Reasoning: {f.reasoning}")
        if f.evidence:
            lines.append("Evidence:")
            for ev in f.evidence:
                lines.append(f"  [{ev.type}] {ev.message}")
                if ev.ref:
                    lines.append(f"         ref: {ev.ref}")
        if f.next_steps:
            lines.append("Next Steps:")
            for i, step in enumerate(f.next_steps, start=1):
                lines.append(f"  {i}. {step}")

    return "\n".join(lines) + "\n"


def render_report(report: Report, fmt: str = "table") -> str:
    """
    Render a report without mutating it.
    """
    if fmt == "json":
        return json.dumps(report.to_dict(), indent=2) + "\n"
    if fmt == "yaml":
        return yaml.safe_dump(report.to_dict(), sort_keys=False)
    if fmt == "table":
        return render_table(report)
    raise ConfigError(f"Unknown output format {fmt!r}")


def output_report(report: Report, fmt: str = "table") -> None:
    print(render_report(report, fmt), end="")
