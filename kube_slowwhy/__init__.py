from kube_slowwhy.correlator import Correlator, correlate
from kube_slowwhy.engine import Engine, diagnose, get_default_rules
from kube_slowwhy.loader import load_snapshot
from kube_slowwhy.model import Evidence, Finding, Report
from kube_slowwhy.snapshot import ClusterSnapshot

__version__ = "0.1.0"

__all__ = [
    "ClusterSnapshot",
    "Correlator",
    "Engine",
    "Evidence",
    "Finding",
    "Report",
    "correlate",
    "diagnose",
    "get_default_rules",
    "load_snapshot",
]
