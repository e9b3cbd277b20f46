"""Endpoint classification.

Maps a declared endpoint onto the structural properties that drive test
selection: how many groups are compared, whether a normal-theory analysis is
plausible, and whether stratification or covariate adjustment is required.

Classification is pure and total. Ambiguous input never raises; it resolves
to the most conservative classification and the orchestrator reports the
ambiguity through :func:`validate_classification`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType

import numpy as np
from scipy.stats.contingency import expected_freq

from trialplan.policy import DEFAULT_POLICY, MethodologyPolicy
from trialplan.schema.base import (
    ComparisonCardinality,
    DataType,
    DistributionAssumption,
    Endpoint,
)
from trialplan.schema.validator import ValidationResult

logger = logging.getLogger(__name__)

_DATA_TYPES = {t.value: t for t in DataType}

_NUMBER_WORDS = MappingProxyType({
    "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "twelve": 12,
    "multi": 3, "multiple": 3,
})
_ARM_COUNT = re.compile(
    r"\b(\d+|" + "|".join(_NUMBER_WORDS) + r")[\s\-]*(?:arm|arms|group|groups)\b"
)
_VERSUS = re.compile(r"\s+(?:vs\.?|versus)\s+")
_CLAUSE = re.compile(r"[;:,()\n]|(?<!vs)\.(?:\s|$)")
# Words that end an arm label: "drug vs placebo in change vs baseline" names two arms.
_CONNECTORS = frozenset({
    "in", "at", "on", "for", "of", "from", "to", "with", "by", "over", "during", "after", "and",
})
_MAX_ARM_WORDS = 3
_NON_NORMAL = re.compile(
    r"non[\s\-]?normal|skew|non[\s\-]?parametric|\bmedian\b|\brank|log[\s\-]?normal"
)

_MEASUREMENT_SCALE = MappingProxyType({
    DataType.CONTINUOUS.value: "continuous",
    DataType.BINARY.value: "categorical",
    DataType.COUNT.value: "discrete",
    DataType.ORDINAL.value: "discrete",
    DataType.TIME_TO_EVENT.value: "time",
})

# First matching pattern wins; the last entry of each table is the fallback.
_SUBTYPES = MappingProxyType({
    DataType.CONTINUOUS.value: (
        (r"\bchange\b|change from baseline", "change_from_baseline"),
        (r"\bauc\b|area under", "area_under_curve"),
        (r"percent|%", "percent_change"),
        (r"\bslope\b", "slope"),
        (r"\bratio\b", "ratio"),
        (r"", "absolute_value"),
    ),
    DataType.BINARY.value: (
        (r"respon", "response_rate"),
        (r"remission", "remission"),
        (r"\bcure", "cure"),
        (r"disease[\s\-]free", "disease_free"),
        (r"", "event_occurrence"),
    ),
    DataType.TIME_TO_EVENT.value: (
        (r"overall survival|\bos\b", "overall_survival"),
        (r"progression[\s\-]free|\bpfs\b", "progression_free_survival"),
        (r"time to progression|\bttp\b", "time_to_progression"),
        (r"disease[\s\-]free survival|\bdfs\b", "disease_free_survival"),
        (r"time to response", "time_to_response"),
        (r"", "time_to_recurrence"),
    ),
    DataType.ORDINAL.value: (
        (r"likert", "likert_scale"),
        (r"severity", "severity_score"),
        (r"\bpain\b", "pain_scale"),
        (r"\bqol\b|quality of life", "quality_of_life"),
        (r"", "functional_status"),
    ),
    DataType.COUNT.value: (
        (r"adverse|\baes?\b", "adverse_events"),
        (r"exacerbation", "exacerbations"),
        (r"hospitali[sz]ation", "hospitalizations"),
        (r"seizure", "seizures"),
        (r"", "lesions"),
    ),
})


@dataclass(frozen=True)
class Classification:
    """Structural classification of one endpoint.

    ``data_type`` is ``None`` when the endpoint's declared data type is not
    one of the recognised values.
    """

    comparison_cardinality: str
    distribution_assumption: str
    requires_stratified_analysis: bool
    requires_covariate_adjustment: bool
    data_type: str | None = None
    subtype: str | None = None
    measurement_scale: str | None = None
    number_of_groups: int = 2
    repeated_measures: bool = False
    small_expected_counts: bool = False
    overdispersed: bool = False
    has_covariates: bool = False
    has_stratification: bool = False

    @property
    def is_paired(self) -> bool:
        return self.comparison_cardinality == ComparisonCardinality.SINGLE_GROUP_PAIRED.value

    def to_dict(self) -> dict:
        return {
            "comparison_cardinality": self.comparison_cardinality,
            "distribution_assumption": self.distribution_assumption,
            "requires_stratified_analysis": self.requires_stratified_analysis,
            "requires_covariate_adjustment": self.requires_covariate_adjustment,
            "data_type": self.data_type,
            "subtype": self.subtype,
            "measurement_scale": self.measurement_scale,
            "number_of_groups": self.number_of_groups,
            "repeated_measures": self.repeated_measures,
            "small_expected_counts": self.small_expected_counts,
            "overdispersed": self.overdispersed,
            "has_covariates": self.has_covariates,
            "has_stratification": self.has_stratification,
        }


def classify(
    endpoint: Endpoint,
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> Classification:
    """Classify *endpoint*. Never raises for a constructed :class:`Endpoint`."""
    data_type = _DATA_TYPES.get(endpoint.data_type)
    text = f"{endpoint.name} {endpoint.description}".lower()
    number_of_groups = _number_of_groups(endpoint)

    if endpoint.paired:
        cardinality = ComparisonCardinality.SINGLE_GROUP_PAIRED
    elif number_of_groups > 2:
        cardinality = ComparisonCardinality.MULTI_GROUP
    else:
        cardinality = ComparisonCardinality.TWO_GROUP

    has_covariates = bool(endpoint.covariates)
    has_stratification = bool(endpoint.stratification_factors)

    classification = Classification(
        comparison_cardinality=cardinality.value,
        distribution_assumption=_distribution(endpoint, data_type, text, policy).value,
        requires_stratified_analysis=has_stratification,
        requires_covariate_adjustment=has_covariates
        and data_type in (DataType.CONTINUOUS, DataType.TIME_TO_EVENT),
        data_type=data_type.value if data_type else None,
        subtype=_subtype(data_type, endpoint.name.lower(), endpoint.description.lower()),
        measurement_scale=_MEASUREMENT_SCALE.get(data_type.value) if data_type else None,
        number_of_groups=number_of_groups,
        repeated_measures=endpoint.repeated_measures,
        small_expected_counts=data_type == DataType.BINARY
        and _has_small_expected_counts(endpoint, number_of_groups, policy),
        overdispersed=endpoint.overdispersed,
        has_covariates=has_covariates,
        has_stratification=has_stratification,
    )
    logger.debug("Classified endpoint '%s': %s", endpoint.name, classification)
    return classification


def _number_of_groups(endpoint: Endpoint) -> int:
    """Declared group count, raised when the wording names more than two arms."""
    groups = endpoint.number_of_groups
    if groups > 2:
        return groups
    text = f"{endpoint.name} {endpoint.description}".lower()
    implied = max(_stated_arm_count(text), _versus_arm_count(endpoint.description.lower()))
    return implied if implied > 2 else groups


def _stated_arm_count(text: str) -> int:
    counts = [
        int(m.group(1)) if m.group(1).isdigit() else _NUMBER_WORDS[m.group(1)]
        for m in _ARM_COUNT.finditer(text)
    ]
    return max(counts, default=0)


def _versus_arm_count(description: str) -> int:
    """Arms named by the longest single "A vs B vs C" chain in *description*.

    Each clause is checked on its own, and a chain only continues through a
    short label without connecting words, so separate "X vs Y" phrases never
    add up to more than two arms.
    """
    best = 0
    for clause in _CLAUSE.split(description):
        segments = _VERSUS.split(clause)
        arms = 1
        for middle in segments[1:-1]:
            words = middle.split()
            if len(words) > _MAX_ARM_WORDS or _CONNECTORS.intersection(words):
                best = max(best, arms + 1)
                arms = 1
            else:
                arms += 1
        if len(segments) > 1:
            best = max(best, arms + 1)
    return best


def _distribution(
    endpoint: Endpoint,
    data_type: DataType | None,
    text: str,
    policy: MethodologyPolicy,
) -> DistributionAssumption:
    if data_type is None:
        return DistributionAssumption.NONPARAMETRIC
    if data_type == DataType.CONTINUOUS:
        small_n = (
            endpoint.expected_n_per_arm is not None
            and endpoint.expected_n_per_arm < policy.small_sample_per_arm
        )
        if endpoint.non_normal or small_n or _NON_NORMAL.search(text):
            return DistributionAssumption.NONPARAMETRIC
        return DistributionAssumption.PARAMETRIC
    if data_type == DataType.ORDINAL:
        return DistributionAssumption.NONPARAMETRIC
    # Survival methods are rank-based; binary and count endpoints have their own models.
    return DistributionAssumption.UNSPECIFIED


def _subtype(data_type: DataType | None, name: str, description: str) -> str | None:
    if data_type is None:
        return None
    for pattern, subtype in _SUBTYPES[data_type.value]:
        if re.search(pattern, name) or (pattern and re.search(pattern, description)):
            return subtype
    return None


def _has_small_expected_counts(
    endpoint: Endpoint,
    number_of_groups: int,
    policy: MethodologyPolicy,
) -> bool:
    """Whether the planned arm-by-outcome table has a small expected cell."""
    n = endpoint.expected_n_per_arm
    p = endpoint.expected_event_rate
    if n is None or p is None or n <= 0 or not 0 <= p <= 1:
        return False
    arms = max(number_of_groups, 2)
    planned = np.array([[n * p, n * (1 - p)]] * arms, dtype=float)
    if (planned.sum(axis=0) == 0).any():
        # An event rate of exactly 0 or 1 leaves an empty outcome column.
        return True
    expected = expected_freq(planned)
    return bool((expected < policy.min_expected_cell_count).any())


def validate_classification(classification: Classification) -> ValidationResult:
    """Flag classifications that cannot support a sound analysis."""
    result = ValidationResult()

    if classification.data_type is None:
        result.add_error(
            "UNRESOLVED_DATA_TYPE",
            "Endpoint data type is not one of "
            f"{', '.join(t.value for t in DataType)}; a rank-based fallback was used.",
            field="data_type",
            recommendation="Declare the endpoint data type explicitly.",
        )

    if classification.number_of_groups < 2:
        result.add_warning(
            "TOO_FEW_GROUPS",
            "Number of groups must be at least 2.",
            field="number_of_groups",
        )

    if classification.is_paired and classification.number_of_groups > 2:
        result.add_warning(
            "PAIRED_MULTI_GROUP",
            "Paired design only supports 2 groups.",
            field="paired",
            recommendation="Use a repeated-measures model for more than two conditions.",
        )

    if classification.is_paired and classification.data_type == DataType.TIME_TO_EVENT.value:
        result.add_warning(
            "PAIRED_TIME_TO_EVENT",
            "Time-to-event endpoints typically use independent groups.",
            field="paired",
        )

    return result


def recommended_covariates(classification: Classification) -> list[str]:
    """Covariates conventionally adjusted for with this kind of endpoint."""
    recommendations: list[str] = []
    if classification.data_type == DataType.CONTINUOUS.value:
        if classification.subtype == "change_from_baseline":
            recommendations.append("baseline_value")
        recommendations.extend(["age", "sex", "baseline_severity"])
    elif classification.data_type == DataType.BINARY.value:
        recommendations.extend(["baseline_risk_factors", "disease_duration"])
    elif classification.data_type == DataType.TIME_TO_EVENT.value:
        recommendations.extend(["baseline_prognostic_factors", "stage", "performance_status"])
    return recommendations


def recommended_stratification(classification: Classification) -> list[str]:
    """Stratification factors conventionally used at randomisation."""
    recommendations: list[str] = []
    if classification.number_of_groups == 2:
        recommendations.extend(["site", "baseline_severity"])
    if classification.data_type == DataType.TIME_TO_EVENT.value:
        recommendations.extend(["stage", "risk_group"])
    return recommendations
