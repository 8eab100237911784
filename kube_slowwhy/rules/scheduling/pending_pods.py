from kube_slowwhy.model import (
    EVIDENCE_EVENT,
    EVIDENCE_RESOURCE,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    Evidence,
    Finding,
    unique_evidence,
    utcnow,
)
from kube_slowwhy.rules.base_rule import AnalysisRule
from kube_slowwhy.snapshot import ClusterSnapshot, EventInfo, PodInfo

UNKNOWN_CATEGORY = "unknown"

# Order matters: the first category with a matching keyword wins
SCHEDULING_REASONS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("insufficient-cpu", ("Insufficient cpu", "cpu")),
    ("insufficient-memory", ("Insufficient memory", "memory")),
    ("taint", ("had taint", "untolerated taint", "NoSchedule", "NoExecute")),
    (
        "affinity",
        ("node affinity", "node(s) didn't match", "affinity", "anti-affinity"),
    ),
    ("unschedulable", ("unschedulable", "SchedulingDisabled")),
)

CATEGORY_ORDER = tuple(cat for cat, _ in SCHEDULING_REASONS) + (UNKNOWN_CATEGORY,)

NEXT_STEPS = {
    "insufficient-cpu": [
        "Review CPU requests across the cluster",
        "Consider adding nodes or increasing node size",
        "Check for pods with excessive CPU requests",
    ],
    "insufficient-memory": [
        "Review memory requests across the cluster",
        "Consider adding nodes or increasing node memory",
        "Check for pods with excessive memory requests",
    ],
    "taint": [
        "Review node taints and pod tolerations",
        "Check if taints were recently added",
        "Verify pod tolerations match node taints",
    ],
    "affinity": [
        "Review pod affinity and anti-affinity rules",
        "Check node labels match pod nodeSelector",
        "Consider relaxing affinity constraints",
    ],
    "unschedulable": [
        "Check if nodes are cordoned",
        "Uncordon nodes if maintenance is complete",
    ],
    UNKNOWN_CATEGORY: [
        "Inspect pod events with kubectl describe",
        "Check scheduler logs for details",
    ],
}


def find_pod_events(events: tuple[EventInfo, ...], pod: PodInfo) -> list[EventInfo]:
    return [
        ev
        for ev in events
        if ev.involved_object == pod.event_ref
        or (ev.namespace == pod.namespace and pod.name in ev.name)
    ]


def collect_messages(pod: PodInfo, events: list[EventInfo]) -> list[str]:
    msgs = []
    for c in pod.conditions:
        if c.message:
            msgs.append(c.message)
        if c.reason:
            msgs.append(c.reason)
    for ev in events:
        msgs.extend((ev.message, ev.reason))
    return msgs


def classify_scheduling_reason(pod: PodInfo, events: list[EventInfo]) -> str:
    messages = [m.lower() for m in collect_messages(pod, events)]
    for category, keywords in SCHEDULING_REASONS:
        for kw in keywords:
            needle = kw.lower()
            if any(needle in msg for msg in messages):
                return category
    return UNKNOWN_CATEGORY


def pending_confidence(pending_count: int, total_pods: int) -> float:
    if total_pods == 0:
        return 0.5
    confidence = 0.6
    if pending_count >= 3:
        confidence += 0.15
    if pending_count / total_pods > 0.1:
        confidence += 0.15
    return min(1.0, confidence)


def pending_severity(count: int, category: str) -> str:
    if count >= 5:
        return SEVERITY_CRITICAL
    if category in ("insufficient-cpu", "insufficient-memory"):
        return SEVERITY_HIGH if count >= 2 else SEVERITY_MEDIUM
    if category in ("taint", "affinity"):
        return SEVERITY_MEDIUM
    return SEVERITY_LOW


class PendingPodsRule(AnalysisRule):
    """
    Groups Pending Pods by the scheduling failure that keeps them there.

    Signals:
    - Pod.status.phase == "Pending"
    - PodScheduled condition message / reason
    - FailedScheduling-style events on the Pod

    Interpretation:
    Each Pending Pod is classified by the first matching keyword category
    (insufficient-cpu, insufficient-memory, taint, affinity,
    unschedulable), falling back to "unknown". One finding is produced
    per non-empty category, so a cluster-wide capacity shortage shows up
    as a single, high-confidence finding rather than one per Pod.

    Exclusions:
    - Does not evaluate PVC binding (see storage-issues)
    - Does not model preemption
    """

    name = "pending-pods"
    category = "scheduling"

    def evaluate(self, snapshot: ClusterSnapshot) -> list[Finding]:
        buckets: dict[str, list[tuple[PodInfo, list[EventInfo]]]] = {}

        for pod in snapshot.pods:
            if pod.phase != "Pending":
                continue
            events = find_pod_events(snapshot.events, pod)
            cat = classify_scheduling_reason(pod, events)
            buckets.setdefault(cat, []).append((pod, events))

        total_pods = len(snapshot.pods)
        return [
            self._finding(cat, buckets[cat], total_pods)
            for cat in CATEGORY_ORDER
            if cat in buckets
        ]

    def _finding(
        self,
        cat: str,
        pods: list[tuple[PodInfo, list[EventInfo]]],
        total_pods: int,
    ) -> Finding:
        evidence = []
        for pod, events in pods:
            evidence.append(
                Evidence(
                    type=EVIDENCE_RESOURCE,
                    ref=pod.ref,
                    message=f"Pod is Pending (reason: {cat})",
                    data={"namespace": pod.namespace, "nodeName": pod.node_name},
                )
            )
            for ev in events:
                evidence.append(
                    Evidence(
                        type=EVIDENCE_EVENT,
                        ref=ev.involved_object,
                        message=ev.message,
                        data={"reason": ev.reason, "count": str(ev.count)},
                    )
                )

        count = len(pods)
        return Finding(
            id=f"pending-pods-{cat}",
            title=f"{count} Pending pod(s) due to {cat}",
            category=self.category,
            severity=pending_severity(count, cat),
            confidence=pending_confidence(count, total_pods),
            summary=(
                f"{count} pod(s) stuck in Pending state. "
                f"Most common scheduling failure: {cat}."
            ),
            evidence=unique_evidence(evidence),
            next_steps=list(NEXT_STEPS[cat]),
            timestamp=utcnow(),
        )
