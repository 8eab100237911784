class KubeSlowwhyError(Exception):
    """
    Base class for all errors raised by kube_slowwhy.
    """


class SnapshotLoadError(KubeSlowwhyError):
    """
    Snapshot file is missing, unreadable, or not a mapping.
    """


class RuleContractError(KubeSlowwhyError, ValueError):
    """
    A rule returned output that breaks the Finding contract.
    """


class ConfigError(KubeSlowwhyError, ValueError):
    pass
