import time

import pytest

from kube_slowwhy.engine import Engine, diagnose, get_default_rules
from kube_slowwhy.errors import RuleContractError
from kube_slowwhy.model import Evidence, Finding
from kube_slowwhy.rules.base_rule import AnalysisRule
from kube_slowwhy.snapshot import ClusterSnapshot

# ----------------------------
# Fixtures
# ----------------------------

UNHEALTHY_CLUSTER = {
    "nodes": [
        {
            "name": "worker-1",
            "conditions": [
                {"type": "DiskPressure", "status": "True", "reason": "KubeletHasDiskPressure"}
            ],
        }
    ],
    "pods": [
        {
            "name": "api-0",
            "namespace": "default",
            "phase": "Pending",
            "conditions": [
                {
                    "type": "PodScheduled",
                    "status": "False",
                    "message": "0/3 nodes are available: 3 Insufficient cpu.",
                }
            ],
        },
        {"name": "web-0", "namespace": "default", "phase": "Running"},
    ],
    "pvcs": [{"name": "data", "namespace": "default", "phase": "Pending"}],
    "kubeSystem": {
        "pods": [
            {
                "name": "coredns-abc",
                "namespace": "kube-system",
                "phase": "Running",
                "containers": [
                    {
                        "name": "coredns",
                        "restartCount": 9,
                        "state": {"waiting": {"reason": "CrashLoopBackOff"}},
                    }
                ],
            }
        ]
    },
}


class StaticRule(AnalysisRule):
    def __init__(self, name, category, ids, delay=0.0):
        self.name = name
        self.category = category
        self.ids = ids
        self.delay = delay

    def evaluate(self, snapshot):
        if self.delay:
            time.sleep(self.delay)
        return [
            Finding(
                id=i,
                title=i,
                category=self.category,
                severity="low",
                confidence=0.5,
                evidence=[Evidence("resource", f"x/{i}", "m")],
            )
            for i in self.ids
        ]


class BrokenRule(AnalysisRule):
    name = "broken"
    category = "broken"

    def __init__(self, output):
        self.output = output

    def evaluate(self, snapshot):
        return self.output


# ----------------------------
# Tests
# ----------------------------


def test_default_rules_registered_in_order():
    assert [r.name for r in get_default_rules()] == [
        "node-pressure",
        "pending-pods",
        "dns-instability",
        "storage-issues",
    ]


def test_analyze_concatenates_in_registration_order():
    report = Engine().analyze(ClusterSnapshot.from_dict(UNHEALTHY_CLUSTER))

    assert report.schema_version == "v1"
    assert [f.id for f in report.findings] == [
        "node-pressure-worker-1-diskpressure",
        "pending-pods-insufficient-cpu",
        "dns-instability",
        "storage-issue",
    ]


def test_analyze_does_not_correlate():
    report = Engine().analyze(ClusterSnapshot.from_dict(UNHEALTHY_CLUSTER))
    assert all(f.reasoning == "" for f in report.findings)


def test_empty_snapshot_yields_empty_report():
    report = Engine().analyze(ClusterSnapshot())
    assert report.findings == ()


def test_parallel_matches_sequential():
    snapshot = ClusterSnapshot.from_dict(UNHEALTHY_CLUSTER)
    # earlier rules finish last, so completion order is reversed
    rules = [
        StaticRule(f"r{i}", "c", [f"r{i}-a", f"r{i}-b"], delay=0.01 * (8 - i))
        for i in range(8)
    ]

    sequential = Engine(rules).analyze(snapshot)
    parallel = Engine(rules, parallel=True, max_workers=8).analyze(snapshot)

    assert [f.id for f in parallel.findings] == [f.id for f in sequential.findings]
    assert [f.id for f in parallel.findings][:2] == ["r0-a", "r0-b"]


def test_register_appends_rule():
    engine = Engine([])
    engine.register(StaticRule("extra", "misc", ["extra-1"]))

    report = engine.analyze(ClusterSnapshot())
    assert [f.id for f in report.findings] == ["extra-1"]


def test_enabled_categories_filter():
    engine = Engine(enabled_categories=["dns", "storage"])
    report = engine.analyze(ClusterSnapshot.from_dict(UNHEALTHY_CLUSTER))

    assert [f.category for f in report.findings] == ["dns", "storage"]


def test_disabled_categories_filter():
    engine = Engine(disabled_categories=["node-health"])
    report = engine.analyze(ClusterSnapshot.from_dict(UNHEALTHY_CLUSTER))

    assert "node-health" not in {f.category for f in report.findings}
    assert len(report.findings) == 3


@pytest.mark.parametrize(
    "output",
    [
        None,
        [{"id": "not-a-finding"}],
        [Finding(id="x", title="x", category="", severity="low", confidence=0.5,
                 evidence=[Evidence("resource", "a", "b")])],
        [Finding(id="x", title="x", category="c", severity="low", confidence=0.5)],
        [Finding(id="x", title="x", category="c", severity="low", confidence=1.5,
                 evidence=[Evidence("resource", "a", "b")])],
        [Finding(id="x", title="x", category="c", severity="urgent", confidence=0.5,
                 evidence=[Evidence("resource", "a", "b")])],
    ],
)
def test_rule_contract_enforced(output):
    with pytest.raises(RuleContractError):
        Engine([BrokenRule(output)]).analyze(ClusterSnapshot())


def test_diagnose_correlates_and_orders():
    report = diagnose(ClusterSnapshot.from_dict(UNHEALTHY_CLUSTER))

    severities = [f.severity for f in report.findings]
    assert severities == sorted(
        severities, key=["critical", "high", "medium", "low"].index
    )
    assert all(f.reasoning.startswith("confidence=") for f in report.findings)


def test_diagnose_raw_skips_correlation():
    report = diagnose(ClusterSnapshot.from_dict(UNHEALTHY_CLUSTER), correlate=False)
    assert report.findings[0].id == "node-pressure-worker-1-diskpressure"
    assert report.findings[0].reasoning == ""
