import json
import logging
import os
from typing import Any

import yaml

from kube_slowwhy.errors import SnapshotLoadError
from kube_slowwhy.snapshot import ClusterSnapshot

logger = logging.getLogger(__name__)

YAML_EXTENSIONS = (".yaml", ".yml")

# ----------------------------
# Snapshot file loading
# ----------------------------


def load_json(path: str) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_yaml(path: str) -> Any:
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def load_document(path: str) -> dict[str, Any]:
    """
    Read a snapshot document from JSON or YAML, chosen by extension.
    """
    if not os.path.isfile(path):
        raise SnapshotLoadError(f"Snapshot file not found: {path}")

    try:
        if path.lower().endswith(YAML_EXTENSIONS):
            doc = load_yaml(path)
        else:
            doc = load_json(path)
    except (json.JSONDecodeError, yaml.YAMLError, UnicodeDecodeError) as e:
        raise SnapshotLoadError(f"Cannot parse snapshot {path}: {e}") from e
    except OSError as e:
        raise SnapshotLoadError(f"Cannot read snapshot {path}: {e}") from e

    if not isinstance(doc, dict):
        raise SnapshotLoadError(
            f"Snapshot {path} must contain a mapping, got {type(doc).__name__}"
        )
    return doc


def load_snapshot(path: str) -> ClusterSnapshot:
    logger.info("Loading snapshot from %s", path)
    doc = load_document(path)
    try:
        snapshot = ClusterSnapshot.from_dict(doc)
    except (AttributeError, TypeError) as e:
        raise SnapshotLoadError(f"Malformed snapshot {path}: {e}") from e
    logger.debug(
        "Snapshot: %d node(s), %d pod(s), %d event(s), %d pvc(s), %d pv(s)",
        len(snapshot.nodes),
        len(snapshot.pods),
        len(snapshot.events),
        len(snapshot.pvcs),
        len(snapshot.pvs),
    )
    return snapshot
