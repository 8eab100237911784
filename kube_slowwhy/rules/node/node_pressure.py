from kube_slowwhy.model import (
    EVIDENCE_EVENT,
    EVIDENCE_RESOURCE,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
    Evidence,
    Finding,
    unique_evidence,
    utcnow,
)
from kube_slowwhy.rules.base_rule import AnalysisRule
from kube_slowwhy.snapshot import ClusterSnapshot, Condition, EventInfo

PRESSURE_CONDITIONS = ("DiskPressure", "MemoryPressure", "PIDPressure")

EVICTION_KEYWORDS = (
    "Evicted",
    "eviction",
    "NodeHasDiskPressure",
    "NodeHasMemoryPressure",
    "NodeHasPIDPressure",
    "OOMKilling",
    "SystemOOM",
)

NEXT_STEPS = {
    "DiskPressure": [
        "Check disk usage on the node",
        "Review pod ephemeral storage usage",
        "Consider expanding node disk or cleaning images",
    ],
    "MemoryPressure": [
        "Review pod memory requests and limits",
        "Check for memory leaks in workloads",
        "Consider adding nodes or increasing node memory",
    ],
    "PIDPressure": [
        "Check for fork bombs or runaway processes",
        "Review pod PID limits",
        "Inspect node process table",
    ],
}


def is_eviction_related(reason: str, message: str) -> bool:
    combined = f"{reason} {message}".lower()
    return any(kw.lower() in combined for kw in EVICTION_KEYWORDS)


def find_eviction_events(
    events: tuple[EventInfo, ...], node_name: str
) -> list[EventInfo]:
    matched = []
    for ev in events:
        if not is_eviction_related(ev.reason, ev.message):
            continue
        if node_name in ev.involved_object or node_name in ev.message:
            matched.append(ev)
    return matched


def condition_slug(cond_type: str) -> str:
    return cond_type.replace(" ", "-").lower()


def pressure_confidence(eviction_count: int) -> float:
    confidence = 0.7
    if eviction_count > 0:
        confidence += 0.15
    if eviction_count > 3:
        confidence += 0.10
    return min(1.0, confidence)


def pressure_severity(cond_type: str, eviction_count: int) -> str:
    if eviction_count > 0:
        return SEVERITY_CRITICAL
    if cond_type in ("MemoryPressure", "DiskPressure"):
        return SEVERITY_HIGH
    return SEVERITY_MEDIUM


class NodePressureRule(AnalysisRule):
    """
    Detects nodes reporting resource pressure conditions.

    Signals:
    - Node.status.conditions[type in {DiskPressure, MemoryPressure,
      PIDPressure}].status == "True"
    - Eviction / OOM events that reference the node

    Interpretation:
    Under pressure the kubelet starts evicting Pods and the scheduler
    avoids the node, which shows up as slow rollouts, restarts and
    Pending workloads. Eviction events on the same node confirm the
    pressure is actively hurting workloads.

    Scope:
    - One finding per (node, condition) pair
    - Deterministic (node state & event-based)

    Exclusions:
    - Does not inspect kubelet eviction thresholds
    - Does not detect NotReady nodes
    """

    name = "node-pressure"
    category = "node-health"

    def evaluate(self, snapshot: ClusterSnapshot) -> list[Finding]:
        findings = []

        for node in snapshot.nodes:
            for cond in node.conditions:
                if cond.type not in PRESSURE_CONDITIONS or cond.status != "True":
                    continue
                findings.append(self._finding(snapshot, node.name, cond))

        return findings

    def _finding(
        self, snapshot: ClusterSnapshot, node_name: str, cond: Condition
    ) -> Finding:
        evidence = [
            Evidence(
                type=EVIDENCE_RESOURCE,
                ref=f"node/{node_name}",
                message=f"Condition {cond.type} is True: {cond.message}",
                data={
                    "condition": cond.type,
                    "status": cond.status,
                    "reason": cond.reason,
                },
            )
        ]

        related = find_eviction_events(snapshot.events, node_name)
        for ev in related:
            evidence.append(
                Evidence(
                    type=EVIDENCE_EVENT,
                    ref=ev.involved_object,
                    message=ev.message,
                    data={"reason": ev.reason, "count": str(ev.count)},
                )
            )

        summary = f"Node {node_name} reports {cond.type} (reason: {cond.reason})."
        if related:
            summary += f" {len(related)} eviction-related event(s) correlated."

        return Finding(
            id=f"node-pressure-{node_name}-{condition_slug(cond.type)}",
            title=f"Node {node_name} has {cond.type}",
            category=self.category,
            severity=pressure_severity(cond.type, len(related)),
            confidence=pressure_confidence(len(related)),
            summary=summary,
            evidence=unique_evidence(evidence),
            next_steps=list(
                NEXT_STEPS.get(cond.type, ["Investigate node conditions"])
            ),
            timestamp=utcnow(),
        )
