from kube_slowwhy.model import (
    EVIDENCE_EVENT,
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
from kube_slowwhy.snapshot import ClusterSnapshot, EventInfo

STORAGE_EVENT_REASONS = (
    "FailedAttachVolume",
    "FailedMount",
    "FailedDetach",
    "VolumeFailedRecycle",
    "VolumeFailedDelete",
    "ProvisioningFailed",
    "ExternalProvisioning",
)

# Case-sensitive on purpose: "CSI" and "csi" are listed separately
STORAGE_EVENT_KEYWORDS = (
    "AttachVolume",
    "MountVolume",
    "CSI",
    "csi",
    "volume",
    "disk",
    "FailedMount",
)

NEXT_STEPS = [
    "Check PVC events with kubectl describe pvc",
    "Verify StorageClass provisioner is running",
    "Check CSI driver pod health",
    "Review node volume attachment limits",
    "Verify cloud provider permissions for volume operations",
]


def is_storage_event(ev: EventInfo) -> bool:
    reason = ev.reason.lower()
    if any(reason == r.lower() for r in STORAGE_EVENT_REASONS):
        return True
    combined = f"{ev.reason} {ev.message}"
    return any(kw in combined for kw in STORAGE_EVENT_KEYWORDS)


def find_storage_events(events: tuple[EventInfo, ...]) -> list[EventInfo]:
    matched = []
    seen: set[tuple[str, str]] = set()
    for ev in events:
        key = (ev.namespace, ev.name)
        if key in seen:
            continue
        if is_storage_event(ev):
            seen.add(key)
            matched.append(ev)
    return matched


def storage_class_or_none(name: str) -> str:
    return name or "<none>"


def storage_confidence(pending_pvcs: int, event_count: int) -> float:
    confidence = 0.5
    if pending_pvcs > 0:
        confidence += 0.20
    if pending_pvcs > 2:
        confidence += 0.10
    if event_count > 0:
        confidence += 0.15
    if event_count > 3:
        confidence += 0.10
    return min(1.0, confidence)


def storage_severity(pending_pvcs: int, event_count: int) -> str:
    if pending_pvcs >= 3 or event_count >= 5:
        return SEVERITY_CRITICAL
    if pending_pvcs > 0 and event_count > 0:
        return SEVERITY_HIGH
    if pending_pvcs > 0 or event_count > 2:
        return SEVERITY_MEDIUM
    return SEVERITY_LOW


class StorageIssuesRule(AnalysisRule):
    """
    Detects storage provisioning and attachment problems.

    Signals:
    - PersistentVolumeClaims stuck in phase "Pending"
    - PersistentVolumes in phase "Failed"
    - FailedMount / FailedAttachVolume / ProvisioningFailed events, or
      events mentioning volumes, disks or CSI

    Interpretation:
    Pods that depend on unbound claims or unattachable volumes never
    start, and slow CSI attach/detach cycles stall rollouts.

    Exclusions:
    - Does not verify StorageClass provisioner deployments
    - Does not inspect node attach limits
    """

    name = "storage-issues"
    category = "storage"

    def evaluate(self, snapshot: ClusterSnapshot) -> list[Finding]:
        evidence: list[Evidence] = []
        pending_pvcs = 0

        for pvc in snapshot.pvcs:
            if pvc.phase != "Pending":
                continue
            pending_pvcs += 1
            evidence.append(
                Evidence(
                    type=EVIDENCE_RESOURCE,
                    ref=pvc.ref,
                    message=(
                        "PVC is Pending (storageClass: "
                        f"{storage_class_or_none(pvc.storage_class_name)})"
                    ),
                    data={
                        "namespace": pvc.namespace,
                        "storageClass": pvc.storage_class_name,
                        "volumeName": pvc.volume_name,
                    },
                )
            )

        for pv in snapshot.pvs:
            if pv.phase != "Failed":
                continue
            evidence.append(
                Evidence(
                    type=EVIDENCE_RESOURCE,
                    ref=pv.ref,
                    message=(
                        "PV is in Failed phase (storageClass: "
                        f"{storage_class_or_none(pv.storage_class_name)})"
                    ),
                    data={
                        "storageClass": pv.storage_class_name,
                        "claimRef": pv.claim_ref,
                    },
                )
            )

        storage_events = find_storage_events(snapshot.events)
        for ev in storage_events:
            evidence.append(
                Evidence(
                    type=EVIDENCE_EVENT,
                    ref=ev.involved_object,
                    message=truncate(ev.message),
                    data={
                        "reason": ev.reason,
                        "count": str(ev.count),
                        "namespace": ev.namespace,
                    },
                )
            )

        if not evidence:
            return []

        summary = []
        if pending_pvcs:
            summary.append(f"{pending_pvcs} PVC(s) stuck in Pending.")
        if storage_events:
            summary.append(
                f"{len(storage_events)} storage-related warning event(s)."
            )

        return [
            Finding(
                id="storage-issue",
                title="Storage provisioning/attachment issue",
                category=self.category,
                severity=storage_severity(pending_pvcs, len(storage_events)),
                confidence=storage_confidence(pending_pvcs, len(storage_events)),
                summary=" ".join(summary),
                evidence=unique_evidence(evidence),
                next_steps=list(NEXT_STEPS),
                timestamp=utcnow(),
            )
        ]
