import json
import os

import pytest

from kube_slowwhy.engine import diagnose
from kube_slowwhy.loader import load_snapshot

BASE_DIR = os.path.dirname(__file__)
FIXTURE_DIR = os.path.join(BASE_DIR, "coredns_crashloop")

# Fields that are stable across runs (timestamp is not)
COMPARED_FIELDS = ("id", "title", "category", "severity", "reasoning", "summary")


def load_json(name: str):
    with open(os.path.join(FIXTURE_DIR, name)) as f:
        return json.load(f)


def test_coredns_crashloop_golden():
    # one of two CoreDNS replicas crashlooping with resolver timeouts
    snapshot = load_snapshot(os.path.join(FIXTURE_DIR, "input.json"))
    expected = load_json("expected.json")

    result = diagnose(snapshot).to_dict()

    assert len(result["findings"]) == len(expected["findings"])
    for got, want in zip(result["findings"], expected["findings"]):
        for key in COMPARED_FIELDS:
            assert got[key] == want[key], key
        assert got["confidence"] == pytest.approx(want["confidence"])
        assert [
            {"type": e["type"], "ref": e["ref"], "message": e["message"]}
            for e in got["evidence"]
        ] == want["evidence"]
        assert got["nextSteps"]


def test_lookalike_outside_kube_system_ignored():
    snapshot = load_snapshot(os.path.join(FIXTURE_DIR, "input.json"))

    (finding,) = diagnose(snapshot).findings

    assert all("lookalike" not in ev.ref for ev in finding.evidence)
