"""Statistical test selection.

The selector is an ordered decision table of ``(predicate, outcome)`` rows
evaluated top to bottom; the first row whose predicate holds decides the
test. Each row can be inspected and tested on its own through
:data:`DECISION_TABLE`.

Precedence, highest first:

- time-to-event: stratified, then covariates, then plain log-rank
- continuous: paired, repeated measures, two groups, more than two groups
- binary: paired, repeated measures, stratified, small expected counts
- count / ordinal: repeated or overdispersed -> GLMM, then rank tests
- unresolved data type: conservative rank-based fallback
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from trialplan.analysis.classifier import Classification
from trialplan.policy import DEFAULT_POLICY, MethodologyPolicy
from trialplan.schema.base import (
    STATISTICAL_TESTS,
    ComparisonCardinality,
    DataType,
    DistributionAssumption,
    Hypothesis,
    Sidedness,
    StatisticalTest as T,
    normalize_label,
)
from trialplan.schema.validator import ValidationResult

logger = logging.getLogger(__name__)

_CONTINUOUS = DataType.CONTINUOUS.value
_BINARY = DataType.BINARY.value
_COUNT = DataType.COUNT.value
_ORDINAL = DataType.ORDINAL.value
_TTE = DataType.TIME_TO_EVENT.value

_TWO_GROUP = ComparisonCardinality.TWO_GROUP.value
_MULTI_GROUP = ComparisonCardinality.MULTI_GROUP.value
_PARAMETRIC = DistributionAssumption.PARAMETRIC.value


@dataclass(frozen=True)
class RuleOutcome:
    """What a decision row selects when it matches."""

    test: str
    rationale: str
    assumptions: tuple[str, ...]
    alternatives: tuple[str, ...] = ()


@dataclass(frozen=True)
class DecisionRule:
    name: str
    predicate: Callable[[Classification, MethodologyPolicy], bool]
    outcome: RuleOutcome

    def matches(self, classification: Classification, policy: MethodologyPolicy) -> bool:
        return self.predicate(classification, policy)


@dataclass(frozen=True)
class TestSelection:
    """Selected primary test with its assumptions and adjustment flags."""

    __test__ = False  # not a pytest test class

    primary_test: str
    rationale: str
    assumptions: tuple[str, ...]
    requires_covariates: bool
    requires_stratification: bool
    alternative_tests: tuple[str, ...] = ()
    rule: str = ""

    def to_dict(self) -> dict:
        return {
            "primary_test": self.primary_test,
            "rationale": self.rationale,
            "assumptions": list(self.assumptions),
            "requires_covariates": self.requires_covariates,
            "requires_stratification": self.requires_stratification,
            "alternative_tests": list(self.alternative_tests),
            "rule": self.rule,
        }


def _is(data_type: str):
    return lambda c: c.data_type == data_type


_tte, _cont, _bin, _cnt, _ord = (_is(t) for t in (_TTE, _CONTINUOUS, _BINARY, _COUNT, _ORDINAL))

_SURVIVAL_ASSUMPTIONS = ("proportional hazards", "independent censoring", "non-informative censoring")

DECISION_TABLE: tuple[DecisionRule, ...] = (
    # Time-to-event
    DecisionRule(
        "tte_stratified_with_covariates",
        lambda c, p: _tte(c) and c.has_stratification and c.has_covariates,
        RuleOutcome(
            T.COX_REGRESSION.value,
            "Stratified time-to-event comparison with covariates: stratified Cox proportional hazards model",
            _SURVIVAL_ASSUMPTIONS + ("covariates measured at baseline", "baseline hazard may differ between strata"),
            (T.LOG_RANK.value,),
        ),
    ),
    DecisionRule(
        "tte_stratified_cox_policy",
        lambda c, p: _tte(c) and c.has_stratification and p.stratified_survival_test == T.COX_REGRESSION.value,
        RuleOutcome(
            T.COX_REGRESSION.value,
            "Stratified time-to-event comparison: stratified Cox proportional hazards model",
            _SURVIVAL_ASSUMPTIONS + ("baseline hazard may differ between strata",),
            (T.LOG_RANK.value,),
        ),
    ),
    DecisionRule(
        "tte_stratified",
        lambda c, p: _tte(c) and c.has_stratification,
        RuleOutcome(
            T.LOG_RANK.value,
            "Stratified time-to-event comparison: log-rank test stratified by the randomisation "
            "factors (Cochran-Mantel-Haenszel combination across strata)",
            _SURVIVAL_ASSUMPTIONS + ("treatment effect homogeneous across strata",),
            (T.COX_REGRESSION.value,),
        ),
    ),
    DecisionRule(
        "tte_unadjusted",
        lambda c, p: _tte(c) and not c.has_covariates,
        RuleOutcome(
            T.LOG_RANK.value,
            "Time-to-event comparison between groups: log-rank test",
            _SURVIVAL_ASSUMPTIONS,
            (T.COX_REGRESSION.value,),
        ),
    ),
    DecisionRule(
        "tte_with_covariates",
        lambda c, p: _tte(c),
        RuleOutcome(
            T.COX_REGRESSION.value,
            "Time-to-event with covariates: Cox regression adjusts for baseline prognostic factors",
            _SURVIVAL_ASSUMPTIONS + ("covariates measured at baseline",),
            (T.LOG_RANK.value,),
        ),
    ),
    # Continuous
    DecisionRule(
        "continuous_paired_nonparametric",
        lambda c, p: _cont(c) and c.is_paired and c.distribution_assumption != _PARAMETRIC,
        RuleOutcome(
            T.WILCOXON_SIGNED_RANK.value,
            "Paired continuous data without a normality assumption: Wilcoxon signed-rank test",
            ("paired observations", "symmetric distribution of differences"),
            (T.T_TEST.value,),
        ),
    ),
    DecisionRule(
        "continuous_paired_parametric",
        lambda c, p: _cont(c) and c.is_paired,
        RuleOutcome(
            T.T_TEST.value,
            "Paired continuous data with normal distribution: paired t-test",
            ("paired observations", "normal distribution of differences", "independent pairs"),
            (T.WILCOXON_SIGNED_RANK.value,),
        ),
    ),
    DecisionRule(
        "continuous_repeated_measures",
        lambda c, p: _cont(c) and c.repeated_measures,
        RuleOutcome(
            T.MMRM.value,
            "Continuous endpoint measured repeatedly over time: mixed model for repeated measures",
            ("repeated measures over time", "missing at random (MAR)", "unstructured covariance"),
            (T.ANCOVA.value, T.GLMM.value),
        ),
    ),
    DecisionRule(
        "continuous_two_group_covariates",
        lambda c, p: _cont(c) and c.comparison_cardinality == _TWO_GROUP and c.has_covariates,
        RuleOutcome(
            T.ANCOVA.value,
            "Two independent groups with covariates: ANCOVA increases power",
            ("baseline covariate linearity", "homogeneity of regression slopes", "normally distributed residuals"),
            (T.T_TEST.value, T.MANN_WHITNEY.value),
        ),
    ),
    DecisionRule(
        "continuous_two_group_parametric",
        lambda c, p: _cont(c) and c.comparison_cardinality == _TWO_GROUP and c.distribution_assumption == _PARAMETRIC,
        RuleOutcome(
            T.T_TEST.value,
            "Two independent groups with normal distribution: two-sample t-test",
            ("normal distribution within groups", "independent observations",
             "homogeneity of variance (or Welch correction)"),
            (T.MANN_WHITNEY.value, T.ANCOVA.value),
        ),
    ),
    DecisionRule(
        "continuous_two_group_nonparametric",
        lambda c, p: _cont(c) and c.comparison_cardinality == _TWO_GROUP,
        RuleOutcome(
            T.MANN_WHITNEY.value,
            "Two independent groups with non-normal distribution: Mann-Whitney U test",
            ("independent observations", "ordinal or continuous data", "similar distribution shapes"),
            (T.T_TEST.value,),
        ),
    ),
    DecisionRule(
        "continuous_multi_group_covariates",
        lambda c, p: _cont(c) and c.has_covariates,
        RuleOutcome(
            T.ANCOVA.value,
            "Multiple groups with covariates: ANCOVA",
            ("baseline covariate linearity", "homogeneity of regression slopes", "normally distributed residuals"),
            (T.ANOVA.value, T.KRUSKAL_WALLIS.value),
        ),
    ),
    DecisionRule(
        "continuous_multi_group_parametric",
        lambda c, p: _cont(c) and c.distribution_assumption == _PARAMETRIC,
        RuleOutcome(
            T.ANOVA.value,
            "Multiple independent groups with normal distribution: one-way ANOVA",
            ("normal distribution within groups", "homogeneity of variance", "independent observations"),
            (T.KRUSKAL_WALLIS.value,),
        ),
    ),
    DecisionRule(
        "continuous_multi_group_nonparametric",
        lambda c, p: _cont(c),
        RuleOutcome(
            T.KRUSKAL_WALLIS.value,
            "Multiple independent groups with non-normal distribution: Kruskal-Wallis test",
            ("independent observations", "ordinal or continuous data"),
            (T.ANOVA.value,),
        ),
    ),
    # Binary
    DecisionRule(
        "binary_paired",
        lambda c, p: _bin(c) and c.is_paired,
        RuleOutcome(
            T.MCNEMAR.value,
            "Paired binary data (before/after or matched pairs): McNemar's test",
            ("paired observations", "binary outcome", "inference based on discordant pairs"),
        ),
    ),
    DecisionRule(
        "binary_repeated_measures",
        lambda c, p: _bin(c) and c.repeated_measures,
        RuleOutcome(
            T.GLMM.value,
            "Binary endpoint measured repeatedly: logistic generalised linear mixed model",
            ("binary outcome", "random subject effect captures within-subject correlation",
             "missing at random (MAR)"),
            (T.CHI_SQUARE.value,),
        ),
    ),
    DecisionRule(
        "binary_stratified",
        lambda c, p: _bin(c) and c.has_stratification,
        RuleOutcome(
            T.COCHRAN_MANTEL_HAENSZEL.value,
            "Groups compared with stratification factors: Cochran-Mantel-Haenszel test controls for strata",
            ("independent observations", "binary outcome", "stratification factors defined",
             "homogeneous odds ratios across strata"),
            (T.CHI_SQUARE.value, T.FISHER_EXACT.value),
        ),
    ),
    DecisionRule(
        "binary_small_expected_counts",
        lambda c, p: _bin(c) and c.small_expected_counts,
        RuleOutcome(
            T.FISHER_EXACT.value,
            "Binary outcome with small expected cell counts: Fisher's exact test",
            ("independent observations", "binary outcome", "fixed margins"),
            (T.CHI_SQUARE.value,),
        ),
    ),
    DecisionRule(
        "binary",
        lambda c, p: _bin(c),
        RuleOutcome(
            T.CHI_SQUARE.value,
            "Independent groups with binary outcome: chi-square test",
            ("independent observations", "binary outcome", "expected cell counts of at least 5"),
            (T.FISHER_EXACT.value, T.COCHRAN_MANTEL_HAENSZEL.value),
        ),
    ),
    # Count and ordinal
    DecisionRule(
        "count_or_ordinal_repeated_or_overdispersed",
        lambda c, p: (_cnt(c) or _ord(c)) and (c.repeated_measures or c.overdispersed),
        RuleOutcome(
            T.GLMM.value,
            "Repeated or overdispersed discrete outcome: generalised linear mixed model",
            ("discrete outcome", "overdispersion modelled (negative binomial or random effects)",
             "random subject effect captures within-subject correlation"),
        ),
    ),
    DecisionRule(
        "count",
        lambda c, p: _cnt(c),
        RuleOutcome(
            T.GLMM.value,
            "Count data: Poisson or negative binomial generalised linear model",
            ("count outcome", "overdispersion handled (negative binomial)", "independent observations"),
        ),
    ),
    DecisionRule(
        "ordinal_paired",
        lambda c, p: _ord(c) and c.is_paired,
        RuleOutcome(
            T.WILCOXON_SIGNED_RANK.value,
            "Paired ordinal data: Wilcoxon signed-rank test",
            ("paired observations", "ordinal scale", "symmetric distribution of differences"),
        ),
    ),
    DecisionRule(
        "ordinal_two_group",
        lambda c, p: _ord(c) and c.comparison_cardinality == _TWO_GROUP,
        RuleOutcome(
            T.MANN_WHITNEY.value,
            "Two independent groups with ordinal outcome: Mann-Whitney U test",
            ("independent observations", "ordinal scale", "similar distribution shapes"),
        ),
    ),
    DecisionRule(
        "ordinal_multi_group",
        lambda c, p: _ord(c),
        RuleOutcome(
            T.KRUSKAL_WALLIS.value,
            "Multiple groups with ordinal outcome: Kruskal-Wallis test",
            ("independent observations", "ordinal scale"),
        ),
    ),
    # Unresolved data type
    DecisionRule(
        "fallback_paired",
        lambda c, p: c.is_paired,
        RuleOutcome(
            T.WILCOXON_SIGNED_RANK.value,
            "Data type unresolved: conservative rank-based test for paired data",
            ("paired observations", "no distributional assumption"),
        ),
    ),
    DecisionRule(
        "fallback_multi_group",
        lambda c, p: c.comparison_cardinality == _MULTI_GROUP,
        RuleOutcome(
            T.KRUSKAL_WALLIS.value,
            "Data type unresolved: conservative rank-based test for several groups",
            ("independent observations", "no distributional assumption"),
        ),
    ),
    DecisionRule(
        "fallback",
        lambda c, p: True,
        RuleOutcome(
            T.MANN_WHITNEY.value,
            "Data type unresolved: conservative rank-based test",
            ("independent observations", "no distributional assumption"),
        ),
    ),
)

_COVARIATE_ADJUSTING = frozenset({T.ANCOVA.value, T.COX_REGRESSION.value, T.MMRM.value, T.GLMM.value})
_STRATIFYING = frozenset({
    T.COCHRAN_MANTEL_HAENSZEL.value,
    T.LOG_RANK.value,
    T.COX_REGRESSION.value,
    T.ANCOVA.value,
    T.MMRM.value,
    T.GLMM.value,
})
_PAIRED_TESTS = frozenset({
    T.T_TEST.value,
    T.WILCOXON_SIGNED_RANK.value,
    T.MCNEMAR.value,
    T.MMRM.value,
    T.GLMM.value,
})
_TESTS_BY_DATA_TYPE = {
    _CONTINUOUS: frozenset({
        T.T_TEST.value, T.ANCOVA.value, T.ANOVA.value, T.MMRM.value,
        T.MANN_WHITNEY.value, T.WILCOXON_SIGNED_RANK.value, T.KRUSKAL_WALLIS.value,
    }),
    _BINARY: frozenset({
        T.CHI_SQUARE.value, T.FISHER_EXACT.value, T.MCNEMAR.value,
        T.COCHRAN_MANTEL_HAENSZEL.value, T.GLMM.value,
    }),
    _TTE: frozenset({T.LOG_RANK.value, T.COX_REGRESSION.value}),
    _ORDINAL: frozenset({
        T.MANN_WHITNEY.value, T.KRUSKAL_WALLIS.value, T.WILCOXON_SIGNED_RANK.value, T.GLMM.value,
    }),
    _COUNT: frozenset({T.GLMM.value}),
}


def select(
    classification: Classification,
    hypothesis: str = Hypothesis.SUPERIORITY.value,
    sided: str = Sidedness.TWO_SIDED.value,
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> TestSelection:
    """Select the primary test for *classification*.

    The last row of :data:`DECISION_TABLE` always matches, so a selection is
    returned for every classification.
    """
    hypothesis = normalize_label(hypothesis) or Hypothesis.SUPERIORITY.value
    sided = normalize_label(sided) or Sidedness.TWO_SIDED.value

    rule = next(r for r in DECISION_TABLE if r.matches(classification, policy))
    outcome = rule.outcome
    logger.debug("Decision row '%s' selected %s", rule.name, outcome.test)

    assumptions = outcome.assumptions
    if hypothesis == Hypothesis.NON_INFERIORITY.value:
        assumptions += ("pre-specified, clinically justified non-inferiority margin",)
    elif hypothesis == Hypothesis.EQUIVALENCE.value:
        assumptions += ("pre-specified, clinically justified equivalence margin",)

    requires_covariates = classification.requires_covariate_adjustment or (
        outcome.test == T.GLMM.value and classification.has_covariates
    )

    return TestSelection(
        primary_test=outcome.test,
        rationale=f"{outcome.rationale}. {_hypothesis_note(hypothesis, sided, policy)}",
        assumptions=assumptions,
        requires_covariates=requires_covariates,
        requires_stratification=classification.requires_stratified_analysis,
        alternative_tests=outcome.alternatives,
        rule=rule.name,
    )


def _hypothesis_note(hypothesis: str, sided: str, policy: MethodologyPolicy) -> str:
    alpha = policy.alpha_for(sided)
    side = "one-sided" if sided == Sidedness.ONE_SIDED.value else "two-sided"
    if hypothesis == Hypothesis.NON_INFERIORITY.value:
        return (f"Non-inferiority is concluded if the confidence bound for the treatment "
                f"difference lies within the margin ({side} alpha = {alpha}).")
    if hypothesis == Hypothesis.EQUIVALENCE.value:
        return (f"Equivalence is assessed with two one-sided tests against the equivalence "
                f"margins (alpha = {alpha} each).")
    return f"Superiority is tested {side} at alpha = {alpha}."


def validate_test_selection(test: str, classification: Classification) -> ValidationResult:
    """Check a selected test against the endpoint it will analyse."""
    result = ValidationResult()

    if test not in STATISTICAL_TESTS:
        result.add_error(
            "UNKNOWN_TEST",
            f"Statistical test '{test}' is not a recognised test identifier.",
            field="test",
        )
        return result

    allowed = _TESTS_BY_DATA_TYPE.get(classification.data_type)
    if allowed is not None and test not in allowed:
        result.add_warning(
            "TEST_DATA_TYPE_MISMATCH",
            f"{test} may not be appropriate for {classification.data_type} endpoints.",
            field="test",
        )

    if classification.is_paired and test not in _PAIRED_TESTS:
        result.add_warning(
            "PAIRED_TEST_REQUIRED",
            "Paired data requires a paired test (paired t-test, Wilcoxon signed-rank or McNemar).",
            field="paired",
        )

    if classification.has_covariates and test not in _COVARIATE_ADJUSTING:
        result.add_warning(
            "COVARIATES_NOT_ADJUSTED",
            f"Covariates are specified but {test} does not adjust for them.",
            field="covariates",
            recommendation="Report the covariates as supportive or choose a model-based analysis.",
        )

    if classification.has_stratification and test not in _STRATIFYING:
        result.add_warning(
            "STRATIFICATION_NOT_APPLIED",
            f"Stratification factors are specified but {test} does not account for them.",
            field="stratification_factors",
        )

    return result
