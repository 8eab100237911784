from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from kube_slowwhy.model import parse_timestamp

SNAPSHOT_SCHEMA_VERSION = "v1"


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_ts(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class Condition:
    """
    Node or Pod condition (type/status/reason/message).
    """

    type: str
    status: str
    reason: str = ""
    message: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Condition":
        return cls(
            type=_as_str(raw.get("type")),
            status=_as_str(raw.get("status")),
            reason=_as_str(raw.get("reason")),
            message=_as_str(raw.get("message")),
        )


@dataclass(frozen=True)
class ContainerState:
    waiting_reason: str = ""
    waiting_message: str = ""
    running: bool = False
    terminated_reason: str = ""
    exit_code: int | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> "ContainerState":
        raw = raw or {}
        waiting = raw.get("waiting") or {}
        terminated = raw.get("terminated") or {}
        return cls(
            waiting_reason=_as_str(waiting.get("reason")),
            waiting_message=_as_str(waiting.get("message")),
            running=bool(raw.get("running")),
            terminated_reason=_as_str(terminated.get("reason")),
            exit_code=(
                _as_int(terminated.get("exitCode"))
                if "exitCode" in terminated
                else None
            ),
        )


@dataclass(frozen=True)
class ContainerInfo:
    name: str
    ready: bool = False
    restart_count: int = 0
    state: ContainerState = field(default_factory=ContainerState)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ContainerInfo":
        return cls(
            name=_as_str(raw.get("name")),
            ready=bool(raw.get("ready", False)),
            restart_count=_as_int(raw.get("restartCount")),
            state=ContainerState.from_dict(raw.get("state")),
        )


@dataclass(frozen=True)
class NodeInfo:
    name: str
    conditions: tuple[Condition, ...] = ()
    allocatable: dict[str, str] = field(default_factory=dict)
    capacity: dict[str, str] = field(default_factory=dict)
    unschedulable: bool = False

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "NodeInfo":
        return cls(
            name=_as_str(raw.get("name")),
            conditions=tuple(
                Condition.from_dict(c) for c in raw.get("conditions") or []
            ),
            allocatable={k: _as_str(v) for k, v in (raw.get("allocatable") or {}).items()},
            capacity={k: _as_str(v) for k, v in (raw.get("capacity") or {}).items()},
            unschedulable=bool(raw.get("unschedulable", False)),
        )


@dataclass(frozen=True)
class PodInfo:
    name: str
    namespace: str
    phase: str = ""
    conditions: tuple[Condition, ...] = ()
    containers: tuple[ContainerInfo, ...] = ()
    node_name: str = ""
    qos_class: str = ""

    @property
    def ref(self) -> str:
        return f"pod/{self.namespace}/{self.name}"

    @property
    def event_ref(self) -> str:
        """Involved-object form used by collected events."""
        return f"Pod/{self.namespace}/{self.name}"

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "PodInfo":
        return cls(
            name=_as_str(raw.get("name")),
            namespace=_as_str(raw.get("namespace")),
            phase=_as_str(raw.get("phase")),
            conditions=tuple(
                Condition.from_dict(c) for c in raw.get("conditions") or []
            ),
            containers=tuple(
                ContainerInfo.from_dict(c) for c in raw.get("containers") or []
            ),
            node_name=_as_str(raw.get("nodeName")),
            qos_class=_as_str(raw.get("qosClass")),
        )


@dataclass(frozen=True)
class EventInfo:
    namespace: str
    name: str
    reason: str = ""
    message: str = ""
    type: str = ""
    involved_object: str = ""  # "<Kind>/<namespace>/<name>"
    count: int = 0
    first_timestamp: datetime | None = None
    last_timestamp: datetime | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "EventInfo":
        return cls(
            namespace=_as_str(raw.get("namespace")),
            name=_as_str(raw.get("name")),
            reason=_as_str(raw.get("reason")),
            message=_as_str(raw.get("message")),
            type=_as_str(raw.get("type")),
            involved_object=_as_str(raw.get("involvedObject")),
            count=_as_int(raw.get("count")),
            first_timestamp=_as_ts(raw.get("firstTimestamp")),
            last_timestamp=_as_ts(raw.get("lastTimestamp")),
        )


@dataclass(frozen=True)
class PVCInfo:
    name: str
    namespace: str
    phase: str = ""
    volume_name: str = ""
    storage_class_name: str = ""
    capacity: dict[str, str] = field(default_factory=dict)

    @property
    def ref(self) -> str:
        return f"pvc/{self.namespace}/{self.name}"

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "PVCInfo":
        return cls(
            name=_as_str(raw.get("name")),
            namespace=_as_str(raw.get("namespace")),
            phase=_as_str(raw.get("phase")),
            volume_name=_as_str(raw.get("volumeName")),
            storage_class_name=_as_str(raw.get("storageClassName")),
            capacity={k: _as_str(v) for k, v in (raw.get("capacity") or {}).items()},
        )


@dataclass(frozen=True)
class PVInfo:
    name: str
    phase: str = ""
    storage_class_name: str = ""
    capacity: dict[str, str] = field(default_factory=dict)
    claim_ref: str = ""

    @property
    def ref(self) -> str:
        return f"pv/{self.name}"

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "PVInfo":
        return cls(
            name=_as_str(raw.get("name")),
            phase=_as_str(raw.get("phase")),
            storage_class_name=_as_str(raw.get("storageClassName")),
            capacity={k: _as_str(v) for k, v in (raw.get("capacity") or {}).items()},
            claim_ref=_as_str(raw.get("claimRef")),
        )


@dataclass(frozen=True)
class DaemonSetInfo:
    name: str
    desired_number_scheduled: int = 0
    current_number_scheduled: int = 0
    number_ready: int = 0
    number_misscheduled: int = 0
    number_unavailable: int = 0

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "DaemonSetInfo":
        return cls(
            name=_as_str(raw.get("name")),
            desired_number_scheduled=_as_int(raw.get("desiredNumberScheduled")),
            current_number_scheduled=_as_int(raw.get("currentNumberScheduled")),
            number_ready=_as_int(raw.get("numberReady")),
            number_misscheduled=_as_int(raw.get("numberMisscheduled")),
            number_unavailable=_as_int(raw.get("numberUnavailable")),
        )


@dataclass(frozen=True)
class KubeSystemHealth:
    """
    Reduced view of system-critical kube-system workloads.
    """

    daemon_sets: tuple[DaemonSetInfo, ...] = ()
    pods: tuple[PodInfo, ...] = ()

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> "KubeSystemHealth":
        raw = raw or {}
        return cls(
            daemon_sets=tuple(
                DaemonSetInfo.from_dict(d) for d in raw.get("daemonSets") or []
            ),
            pods=tuple(PodInfo.from_dict(p) for p in raw.get("pods") or []),
        )


@dataclass(frozen=True)
class ClusterSnapshot:
    """
    Immutable point-in-time view of all cluster objects relevant to diagnosis.

    Every sequence is a tuple and is never None, so rules can iterate
    without guarding.
    """

    nodes: tuple[NodeInfo, ...] = ()
    pods: tuple[PodInfo, ...] = ()
    events: tuple[EventInfo, ...] = ()
    pvcs: tuple[PVCInfo, ...] = ()
    pvs: tuple[PVInfo, ...] = ()
    kube_system: KubeSystemHealth = field(default_factory=KubeSystemHealth)
    schema_version: str = SNAPSHOT_SCHEMA_VERSION
    collected_at: datetime | None = None
    since: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ClusterSnapshot":
        return cls(
            schema_version=_as_str(raw.get("schemaVersion")) or SNAPSHOT_SCHEMA_VERSION,
            collected_at=_as_ts(raw.get("collectedAt")),
            since=_as_str(raw.get("since")),
            nodes=tuple(NodeInfo.from_dict(n) for n in raw.get("nodes") or []),
            pods=tuple(PodInfo.from_dict(p) for p in raw.get("pods") or []),
            events=tuple(EventInfo.from_dict(e) for e in raw.get("events") or []),
            pvcs=tuple(PVCInfo.from_dict(p) for p in raw.get("pvcs") or []),
            pvs=tuple(PVInfo.from_dict(p) for p in raw.get("pvs") or []),
            kube_system=KubeSystemHealth.from_dict(raw.get("kubeSystem")),
        )
