from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

SCHEMA_VERSION = "v1"

# ----------------------------
# Evidence types / severities
# ----------------------------

EVIDENCE_RESOURCE = "resource"
EVIDENCE_EVENT = "event"
EVIDENCE_LOG = "log"
EVIDENCE_METRIC = "metric"

# Fixed order used when explaining evidence mix
EVIDENCE_TYPES = (EVIDENCE_RESOURCE, EVIDENCE_EVENT, EVIDENCE_LOG, EVIDENCE_METRIC)

SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"
SEVERITY_CRITICAL = "critical"

SEVERITY_ORDER = {
    SEVERITY_LOW: 0,
    SEVERITY_MEDIUM: 1,
    SEVERITY_HIGH: 2,
    SEVERITY_CRITICAL: 3,
}

MAX_MESSAGE_LEN = 256


def severity_rank(severity: str) -> int:
    """Unknown severities rank below 'low'."""
    return SEVERITY_ORDER.get(severity, -1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(ts: str | None) -> datetime | None:
    if not ts:
        return None
    return datetime.fromisoformat(ts.replace("Z", "+00:00"))


def truncate(text: str, limit: int = MAX_MESSAGE_LEN) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


# ----------------------------
# Findings
# ----------------------------


@dataclass(frozen=True)
class Evidence:
    """
    Single observation backing a finding.
    """

    type: str
    ref: str
    message: str
    data: dict[str, str] = field(default_factory=dict)

    def dedup_key(self) -> tuple[str, str, str]:
        return (self.type, self.ref, self.message)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": self.type,
            "ref": self.ref,
            "message": self.message,
        }
        if self.data:
            out["data"] = dict(self.data)
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Evidence":
        return cls(
            type=raw.get("type", ""),
            ref=raw.get("ref", ""),
            message=raw.get("message", ""),
            data={str(k): str(v) for k, v in (raw.get("data") or {}).items()},
        )


@dataclass
class Finding:
    """
    One diagnosed issue.

    Rules create findings; only the correlator changes severity,
    confidence, reasoning, evidence and next_steps afterwards.
    """

    id: str
    title: str
    category: str
    severity: str
    confidence: float
    summary: str = ""
    evidence: list[Evidence] = field(default_factory=list)
    next_steps: list[str] = field(default_factory=list)
    reasoning: str = ""
    timestamp: datetime = field(default_factory=utcnow)
    schema_version: str = SCHEMA_VERSION

    def evidence_types(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for ev in self.evidence:
            counts[ev.type] = counts.get(ev.type, 0) + 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "schemaVersion": self.schema_version,
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "severity": self.severity,
            "confidence": self.confidence,
        }
        if self.reasoning:
            out["reasoning"] = self.reasoning
        out["summary"] = self.summary
        out["evidence"] = [ev.to_dict() for ev in self.evidence]
        out["nextSteps"] = list(self.next_steps)
        out["timestamp"] = format_timestamp(self.timestamp)
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Finding":
        return cls(
            schema_version=raw.get("schemaVersion", SCHEMA_VERSION),
            id=raw.get("id", ""),
            title=raw.get("title", ""),
            category=raw.get("category", ""),
            severity=raw.get("severity", SEVERITY_LOW),
            confidence=float(raw.get("confidence", 0.0)),
            reasoning=raw.get("reasoning", ""),
            summary=raw.get("summary", ""),
            evidence=[Evidence.from_dict(e) for e in raw.get("evidence") or []],
            next_steps=list(raw.get("nextSteps") or []),
            timestamp=parse_timestamp(raw.get("timestamp")) or utcnow(),
        )


def unique_evidence(items: list[Evidence]) -> list[Evidence]:
    """
    Drop repeated (type, ref, message) triples, keeping first occurrence.
    """
    seen: set[tuple[str, str, str]] = set()
    out = []
    for ev in items:
        key = ev.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        out.append(ev)
    return out


@dataclass(frozen=True)
class Report:
    findings: tuple[Finding, ...] = ()
    schema_version: str = SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "findings": [f.to_dict() for f in self.findings],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Report":
        return cls(
            schema_version=raw.get("schemaVersion", SCHEMA_VERSION),
            findings=tuple(Finding.from_dict(f) for f in raw.get("findings") or []),
        )


def new_report(findings: list[Finding]) -> Report:
    return Report(findings=tuple(findings))
