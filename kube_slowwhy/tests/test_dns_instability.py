import pytest

from kube_slowwhy.rules.networking.dns_instability import (
    DNSInstabilityRule,
    find_coredns_pods,
)
from kube_slowwhy.snapshot import ClusterSnapshot

# ----------------------------
# Snapshot helpers
# ----------------------------


def coredns_pod(name, restarts=0, crashloop=False, phase="Running"):
    state = {"waiting": {"reason": "CrashLoopBackOff"}} if crashloop else {"running": {}}
    return {
        "name": name,
        "namespace": "kube-system",
        "phase": phase,
        "containers": [
            {
                "name": "coredns",
                "ready": not crashloop,
                "restartCount": restarts,
                "state": state,
            }
        ],
    }


def event(pod_name, reason, message, name=None):
    return {
        "namespace": "kube-system",
        "name": name or f"{pod_name}.{reason.lower()}",
        "reason": reason,
        "message": message,
        "involvedObject": f"Pod/kube-system/{pod_name}",
        "count": 3,
    }


def evaluate(doc):
    return DNSInstabilityRule().evaluate(ClusterSnapshot.from_dict(doc))


# ----------------------------
# Tests
# ----------------------------


def test_no_coredns_pods():
    findings = evaluate(
        {
            "kubeSystem": {
                "pods": [{"name": "kube-proxy-abc", "namespace": "kube-system"}]
            }
        }
    )
    assert findings == []


def test_healthy_coredns():
    findings = evaluate(
        {
            "kubeSystem": {
                "pods": [
                    coredns_pod("coredns-abc123"),
                    coredns_pod("coredns-def456", restarts=1),
                ]
            }
        }
    )
    assert findings == []


def test_crashloop_with_backoff_event_is_high():
    findings = evaluate(
        {
            "kubeSystem": {
                "pods": [
                    coredns_pod("coredns-abc123", restarts=15, crashloop=True),
                    coredns_pod("coredns-def456"),
                ]
            },
            "events": [
                event("coredns-abc123", "BackOff", "Back-off restarting failed container")
            ],
        }
    )

    assert len(findings) == 1
    f = findings[0]
    assert f.id == "dns-instability"
    assert f.category == "dns"
    assert f.severity == "high"
    assert f.confidence >= 0.8
    assert f.confidence == pytest.approx(0.85)
    types = {ev.type for ev in f.evidence}
    assert {"resource", "event"} <= types
    assert f.evidence[0].message == "Container coredns is in CrashLoopBackOff"
    assert f.evidence[0].data == {"container": "coredns", "restartCount": "15"}
    assert f.summary == "2 CoreDNS pod(s) inspected. 1 crashlooping. 1 warning event(s)."


def test_all_pods_crashlooping_is_critical():
    findings = evaluate(
        {
            "kubeSystem": {
                "pods": [
                    coredns_pod("coredns-a", crashloop=True),
                    coredns_pod("coredns-b", crashloop=True),
                ]
            }
        }
    )

    assert findings[0].severity == "critical"
    assert findings[0].confidence == pytest.approx(0.75)


def test_high_restarts_is_medium():
    findings = evaluate({"kubeSystem": {"pods": [coredns_pod("coredns-a", restarts=5)]}})

    f = findings[0]
    assert f.severity == "medium"
    assert f.confidence == pytest.approx(0.6)
    assert f.evidence[0].message == "Container coredns has 5 restarts"


def test_not_running_pod_adds_evidence():
    findings = evaluate(
        {"kubeSystem": {"pods": [coredns_pod("coredns-a", phase="Pending")]}}
    )

    f = findings[0]
    assert f.severity == "low"
    assert f.evidence[0].message == "CoreDNS pod is in Pending phase"


def test_event_reason_must_match():
    findings = evaluate(
        {
            "kubeSystem": {"pods": [coredns_pod("coredns-a")]},
            "events": [event("coredns-a", "Pulled", "Container image pulled")],
        }
    )
    assert findings == []


def test_event_reason_case_insensitive():
    findings = evaluate(
        {
            "kubeSystem": {"pods": [coredns_pod("coredns-a")]},
            "events": [event("coredns-a", "unhealthy", "Readiness probe failed")],
        }
    )
    assert [ev.type for ev in findings[0].evidence] == ["event"]


def test_log_patterns_add_log_evidence():
    findings = evaluate(
        {
            "kubeSystem": {"pods": [coredns_pod("coredns-a")]},
            "events": [
                event(
                    "coredns-a",
                    "DNSError",
                    "[ERROR] plugin/errors: 2 example.com. A: read udp i/o timeout",
                )
            ],
        }
    )

    f = findings[0]
    assert [ev.type for ev in f.evidence] == ["log"]
    # first matching pattern wins
    assert f.evidence[0].data == {"pattern": "timeout"}
    assert f.confidence == pytest.approx(0.6)


def test_long_log_messages_truncated():
    long_message = "SERVFAIL " + "x" * 400
    findings = evaluate(
        {
            "kubeSystem": {"pods": [coredns_pod("coredns-a")]},
            "events": [event("coredns-a", "DNSError", long_message)],
        }
    )

    msg = findings[0].evidence[0].message
    assert len(msg) == 256
    assert msg.endswith("...")


def test_coredns_pods_deduplicated_across_sources():
    snapshot = ClusterSnapshot.from_dict(
        {
            "kubeSystem": {"pods": [coredns_pod("coredns-a")]},
            "pods": [
                coredns_pod("coredns-a"),
                coredns_pod("coredns-b"),
                {"name": "coredns-lookalike", "namespace": "default", "phase": "Running"},
            ],
        }
    )

    pods = find_coredns_pods(snapshot)
    assert [p.name for p in pods] == ["coredns-a", "coredns-b"]


def test_kube_dns_name_matches():
    findings = evaluate(
        {"pods": [dict(coredns_pod("KUBE-DNS-1", crashloop=True))]}
    )
    assert findings[0].severity == "critical"
