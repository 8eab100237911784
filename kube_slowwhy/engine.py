import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from kube_slowwhy.correlator import Correlator
from kube_slowwhy.errors import RuleContractError
from kube_slowwhy.model import SEVERITY_ORDER, Finding, Report, new_report
from kube_slowwhy.rules.base_rule import AnalysisRule
from kube_slowwhy.rules.networking.dns_instability import DNSInstabilityRule
from kube_slowwhy.rules.node.node_pressure import NodePressureRule
from kube_slowwhy.rules.scheduling.pending_pods import PendingPodsRule
from kube_slowwhy.rules.storage.storage_issues import StorageIssuesRule
from kube_slowwhy.snapshot import ClusterSnapshot

logger = logging.getLogger(__name__)


def get_default_rules() -> list[AnalysisRule]:
    return [
        NodePressureRule(),
        PendingPodsRule(),
        DNSInstabilityRule(),
        StorageIssuesRule(),
    ]


def validate_findings(rule: AnalysisRule, findings: object) -> list[Finding]:
    """
    Enforce the evaluate() output contract for a single rule.
    """
    if not isinstance(findings, list):
        raise RuleContractError(f"{rule.name}.evaluate() must return a list")

    for f in findings:
        if not isinstance(f, Finding):
            raise RuleContractError(
                f"{rule.name}.evaluate() must return Finding objects, "
                f"got {type(f).__name__}"
            )
        if not f.category:
            raise RuleContractError(f"{rule.name}: finding {f.id!r} has no category")
        if not f.evidence:
            raise RuleContractError(f"{rule.name}: finding {f.id!r} has no evidence")
        if f.severity not in SEVERITY_ORDER:
            raise RuleContractError(
                f"{rule.name}: finding {f.id!r} has unknown severity {f.severity!r}"
            )
        if not isinstance(f.confidence, (int, float)) or not (
            0.0 <= f.confidence <= 1.0
        ):
            raise RuleContractError(
                f"{rule.name}: finding {f.id!r} confidence must be within [0, 1]"
            )

    return findings


class Engine:
    """
    Runs every registered rule against one snapshot.

    Findings are concatenated in rule registration order, even when rules
    are evaluated in parallel. The engine does not correlate.
    """

    def __init__(
        self,
        rules: Iterable[AnalysisRule] | None = None,
        *,
        enabled_categories: Iterable[str] | None = None,
        disabled_categories: Iterable[str] | None = None,
        parallel: bool = False,
        max_workers: int | None = None,
    ):
        self.rules: list[AnalysisRule] = (
            list(rules) if rules is not None else get_default_rules()
        )
        self.enabled_categories = (
            set(enabled_categories) if enabled_categories else None
        )
        self.disabled_categories = (
            set(disabled_categories) if disabled_categories else None
        )
        self.parallel = parallel
        self.max_workers = max_workers

    def register(self, rule: AnalysisRule) -> None:
        self.rules.append(rule)

    def active_rules(self) -> list[AnalysisRule]:
        active = []
        for rule in self.rules:
            category = getattr(rule, "category", None)
            if self.enabled_categories and category not in self.enabled_categories:
                logger.debug("Skipping '%s' (category '%s' not enabled)", rule.name, category)
                continue
            if self.disabled_categories and category in self.disabled_categories:
                logger.debug("Skipping '%s' (category '%s' disabled)", rule.name, category)
                continue
            active.append(rule)
        return active

    def _run_rule(
        self, rule: AnalysisRule, snapshot: ClusterSnapshot
    ) -> list[Finding]:
        findings = validate_findings(rule, rule.evaluate(snapshot))
        if findings:
            logger.debug(
                "Rule '%s' matched (%d finding(s))", rule.name, len(findings)
            )
        return findings

    def analyze(self, snapshot: ClusterSnapshot) -> Report:
        rules = self.active_rules()
        logger.debug("Evaluating %d rule(s)", len(rules))

        if self.parallel and len(rules) > 1:
            # map() yields in submission order, not completion order
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                per_rule = list(
                    pool.map(lambda r: self._run_rule(r, snapshot), rules)
                )
        else:
            per_rule = [self._run_rule(rule, snapshot) for rule in rules]

        findings: list[Finding] = []
        for rule_findings in per_rule:
            findings.extend(rule_findings)

        return new_report(findings)


def diagnose(
    snapshot: ClusterSnapshot,
    *,
    engine: Engine | None = None,
    correlate: bool = True,
) -> Report:
    """
    Run the engine and, unless disabled, the correlator.
    """
    engine = engine or Engine()
    report = engine.analyze(snapshot)
    if not correlate:
        return report
    return new_report(Correlator().correlate(list(report.findings)))
