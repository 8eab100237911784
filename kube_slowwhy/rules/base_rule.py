from kube_slowwhy.model import Finding
from kube_slowwhy.snapshot import ClusterSnapshot


class AnalysisRule:
    """
    Base class for all diagnostic rules.

    A rule is a pure function of the snapshot: it must not mutate it,
    must not depend on other rules, and returns an empty list when it
    finds no signal.
    """

    # ---- Metadata (mandatory) ----
    name: str = "BaseRule"
    category: str = "generic"

    def evaluate(self, snapshot: ClusterSnapshot) -> list[Finding]:
        """
        Must return a list of Finding, each with:
        - non-empty category
        - at least one Evidence item
        - severity in {low, medium, high, critical}
        - confidence in [0, 1]
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
