import copy
import logging
import math

from kube_slowwhy.model import (
    EVIDENCE_RESOURCE,
    EVIDENCE_TYPES,
    Finding,
    severity_rank,
)

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "|"


def root_cause_key(finding: Finding) -> str:
    """
    Category plus the sorted, unique refs of all resource evidence.

    Derived on demand; never stored on the finding.
    """
    refs = sorted(
        {ev.ref for ev in finding.evidence if ev.type == EVIDENCE_RESOURCE}
    )
    return KEY_SEPARATOR.join([finding.category, *refs])


def merge_pair(primary: Finding, secondary: Finding) -> Finding:
    """
    Fold secondary into primary in place and return primary.

    id, title, summary, timestamp and category stay the primary's.
    """
    if severity_rank(secondary.severity) > severity_rank(primary.severity):
        primary.severity = secondary.severity
    if secondary.confidence > primary.confidence:
        primary.confidence = secondary.confidence

    seen = {ev.dedup_key() for ev in primary.evidence}
    for ev in secondary.evidence:
        key = ev.dedup_key()
        if key not in seen:
            primary.evidence.append(ev)
            seen.add(key)

    steps = set(primary.next_steps)
    for step in secondary.next_steps:
        if step not in steps:
            primary.next_steps.append(step)
            steps.add(step)

    return primary


def merge_findings(findings: list[Finding]) -> list[Finding]:
    # dict preserves first-seen key order
    buckets: dict[str, Finding] = {}
    for f in findings:
        key = root_cause_key(f)
        if key in buckets:
            logger.debug("Merging finding %r into %r", f.id, buckets[key].id)
            merge_pair(buckets[key], f)
        else:
            buckets[key] = f
    return list(buckets.values())


def round_half_up(value: float, ndigits: int = 2) -> float:
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def boost_confidence(finding: Finding) -> float:
    """
    Reward agreement across evidence types.

    +0.15 for >=3 distinct types, +0.10 for 2, and +0.05 for >=5 items.
    Rounded once, then clamped to 1.0.
    """
    distinct_types = len(finding.evidence_types())
    confidence = finding.confidence

    if distinct_types >= 3:
        confidence += 0.15
    elif distinct_types >= 2:
        confidence += 0.10

    if len(finding.evidence) >= 5:
        confidence += 0.05

    return min(1.0, round_half_up(confidence))


def build_reasoning(finding: Finding) -> str:
    counts = finding.evidence_types()
    parts = [f"confidence={finding.confidence * 100:.0f}%"]

    for ev_type in EVIDENCE_TYPES:
        if ev_type in counts:
            parts.append(f"{counts[ev_type]} {ev_type} source(s)")

    if len(counts) >= 3:
        parts.append("strong cross-signal agreement")
    elif len(counts) == 2:
        parts.append("cross-signal agreement")

    return "; ".join(parts)


def sort_key(finding: Finding) -> tuple[int, float, str]:
    return (-severity_rank(finding.severity), -finding.confidence, finding.id)


class Correlator:
    """
    Merges root-cause duplicates, re-scores and orders findings.

    Steps:
    1. group by root_cause_key (first seen is the primary)
    2. merge duplicates: max severity, max confidence, union of
       evidence and next steps
    3. boost confidence for cross-signal agreement
    4. build reasoning text
    5. stable sort: severity desc, confidence desc, id asc
    """

    def correlate(self, findings: list[Finding]) -> list[Finding]:
        merged = merge_findings([copy.deepcopy(f) for f in findings])

        for f in merged:
            f.confidence = boost_confidence(f)
            f.reasoning = build_reasoning(f)

        # sorted() is stable
        result = sorted(merged, key=sort_key)
        logger.debug(
            "Correlated %d finding(s) into %d", len(findings), len(result)
        )
        return result


def correlate(findings: list[Finding]) -> list[Finding]:
    return Correlator().correlate(findings)
