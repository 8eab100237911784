from kube_slowwhy.model import (
    EVIDENCE_EVENT,
    EVIDENCE_LOG,
    EVIDENCE_RESOURCE,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    Evidence,
    Finding,
    truncate,
    unique_evidence,
    utcnow,
)
from kube_slowwhy.rules.base_rule import AnalysisRule
from kube_slowwhy.snapshot import ClusterSnapshot, EventInfo, PodInfo

RESTART_THRESHOLD = 3

COREDNS_LABELS = ("coredns", "kube-dns")

DNS_LOG_PATTERNS = (
    "SERVFAIL",
    "timeout",
    "i/o timeout",
    "connection refused",
    "no such host",
    "NXDOMAIN",
)

DNS_EVENT_REASONS = ("BackOff", "CrashLoopBackOff", "Unhealthy", "Failed", "OOMKilled")

NEXT_STEPS = [
    "Check CoreDNS pod logs for errors",
    "Review CoreDNS Corefile configuration",
    "Verify upstream DNS resolver connectivity",
    "Check CoreDNS resource limits and OOM kills",
    "Test DNS resolution from within pods",
]


def is_coredns_name(name: str) -> bool:
    lower = name.lower()
    return any(label in lower for label in COREDNS_LABELS)


def find_coredns_pods(snapshot: ClusterSnapshot) -> list[PodInfo]:
    pods: list[PodInfo] = []
    seen: set[tuple[str, str]] = set()

    for pod in snapshot.kube_system.pods:
        if is_coredns_name(pod.name):
            pods.append(pod)
            seen.add((pod.name, pod.namespace))

    for pod in snapshot.pods:
        if pod.namespace != "kube-system" or not is_coredns_name(pod.name):
            continue
        if (pod.name, pod.namespace) in seen:
            continue
        seen.add((pod.name, pod.namespace))
        pods.append(pod)

    return pods


def find_dns_events(
    events: tuple[EventInfo, ...], dns_pods: list[PodInfo]
) -> list[EventInfo]:
    pod_refs = {p.event_ref for p in dns_pods}
    reasons = {r.lower() for r in DNS_EVENT_REASONS}
    return [
        ev
        for ev in events
        if ev.involved_object in pod_refs and ev.reason.lower() in reasons
    ]


def find_dns_log_evidence(events: tuple[EventInfo, ...]) -> list[Evidence]:
    evidence = []
    for ev in events:
        if not is_coredns_name(ev.involved_object):
            continue
        message = ev.message.lower()
        for pattern in DNS_LOG_PATTERNS:
            if pattern.lower() in message:
                evidence.append(
                    Evidence(
                        type=EVIDENCE_LOG,
                        ref=ev.involved_object,
                        message=truncate(ev.message),
                        data={"pattern": pattern},
                    )
                )
                break
    return evidence


def dns_confidence(
    crashlooping: int, high_restarts: int, event_count: int, log_patterns: int
) -> float:
    confidence = 0.5
    if crashlooping > 0:
        confidence += 0.25
    if high_restarts > 0:
        confidence += 0.10
    if event_count > 0:
        confidence += 0.10
    if log_patterns > 0:
        confidence += 0.10
    return min(1.0, confidence)


def dns_severity(crashlooping: int, high_restarts: int, total_dns_pods: int) -> str:
    if crashlooping > 0 and crashlooping >= total_dns_pods:
        return SEVERITY_CRITICAL
    if crashlooping > 0:
        return SEVERITY_HIGH
    if high_restarts > 0:
        return SEVERITY_MEDIUM
    return SEVERITY_LOW


class DNSInstabilityRule(AnalysisRule):
    """
    Detects an unhealthy cluster DNS (CoreDNS / kube-dns).

    Signals:
    - CoreDNS containers in CrashLoopBackOff or with repeated restarts
    - CoreDNS Pods outside the Running phase
    - BackOff / Unhealthy / OOMKilled events on CoreDNS Pods
    - Resolver failure patterns (SERVFAIL, timeouts, NXDOMAIN, ...) in
      CoreDNS event messages

    Interpretation:
    Almost every in-cluster request starts with a DNS lookup, so a
    degraded CoreDNS shows up as cluster-wide latency long before it
    shows up as outright failures.

    Exclusions:
    - Does not query the DNS service directly
    - Does not read container logs; log evidence comes from event messages
    """

    name = "dns-instability"
    category = "dns"

    def evaluate(self, snapshot: ClusterSnapshot) -> list[Finding]:
        dns_pods = find_coredns_pods(snapshot)
        if not dns_pods:
            return []

        evidence: list[Evidence] = []
        crashlooping = 0
        high_restarts = 0

        for pod in dns_pods:
            for c in pod.containers:
                data = {"container": c.name, "restartCount": str(c.restart_count)}
                if c.state.waiting_reason == "CrashLoopBackOff":
                    crashlooping += 1
                    evidence.append(
                        Evidence(
                            type=EVIDENCE_RESOURCE,
                            ref=pod.ref,
                            message=f"Container {c.name} is in CrashLoopBackOff",
                            data=data,
                        )
                    )
                elif c.restart_count >= RESTART_THRESHOLD:
                    high_restarts += 1
                    evidence.append(
                        Evidence(
                            type=EVIDENCE_RESOURCE,
                            ref=pod.ref,
                            message=f"Container {c.name} has {c.restart_count} restarts",
                            data=data,
                        )
                    )

            if pod.phase != "Running":
                evidence.append(
                    Evidence(
                        type=EVIDENCE_RESOURCE,
                        ref=pod.ref,
                        message=f"CoreDNS pod is in {pod.phase} phase",
                    )
                )

        dns_events = find_dns_events(snapshot.events, dns_pods)
        for ev in dns_events:
            evidence.append(
                Evidence(
                    type=EVIDENCE_EVENT,
                    ref=ev.involved_object,
                    message=truncate(ev.message),
                    data={"reason": ev.reason, "count": str(ev.count)},
                )
            )

        log_evidence = find_dns_log_evidence(snapshot.events)
        evidence.extend(log_evidence)

        if not evidence:
            return []

        summary = [f"{len(dns_pods)} CoreDNS pod(s) inspected."]
        if crashlooping:
            summary.append(f"{crashlooping} crashlooping.")
        if high_restarts:
            summary.append(f"{high_restarts} with high restart count.")
        if dns_events:
            summary.append(f"{len(dns_events)} warning event(s).")

        return [
            Finding(
                id="dns-instability",
                title="DNS instability detected",
                category=self.category,
                severity=dns_severity(crashlooping, high_restarts, len(dns_pods)),
                confidence=dns_confidence(
                    crashlooping, high_restarts, len(dns_events), len(log_evidence)
                ),
                summary=" ".join(summary),
                evidence=unique_evidence(evidence),
                next_steps=list(NEXT_STEPS),
                timestamp=utcnow(),
            )
        ]
