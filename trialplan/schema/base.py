"""Core record types for trial-design input.

Everything in this module is supplied from outside the engine and is frozen
once constructed: the engine reads endpoints and design flags but never
mutates them.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class DataType(str, Enum):
    CONTINUOUS = "continuous"
    BINARY = "binary"
    COUNT = "count"
    ORDINAL = "ordinal"
    TIME_TO_EVENT = "time_to_event"


class EndpointRole(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    EXPLORATORY = "exploratory"


class Hypothesis(str, Enum):
    SUPERIORITY = "superiority"
    NON_INFERIORITY = "non_inferiority"
    EQUIVALENCE = "equivalence"


class Sidedness(str, Enum):
    ONE_SIDED = "one_sided"
    TWO_SIDED = "two_sided"


class ComparisonCardinality(str, Enum):
    TWO_GROUP = "two_group"
    MULTI_GROUP = "multi_group"
    SINGLE_GROUP_PAIRED = "single_group_paired"


class DistributionAssumption(str, Enum):
    PARAMETRIC = "parametric"
    NONPARAMETRIC = "nonparametric"
    UNSPECIFIED = "unspecified"


class StatisticalTest(str, Enum):
    T_TEST = "t_test"
    ANCOVA = "ancova"
    ANOVA = "anova"
    CHI_SQUARE = "chi_square"
    FISHER_EXACT = "fisher_exact"
    COCHRAN_MANTEL_HAENSZEL = "cochran_mantel_haenszel"
    LOG_RANK = "log_rank"
    COX_REGRESSION = "cox_regression"
    MANN_WHITNEY = "mann_whitney"
    WILCOXON_SIGNED_RANK = "wilcoxon_signed_rank"
    MMRM = "mmrm"
    MCNEMAR = "mcnemar"
    KRUSKAL_WALLIS = "kruskal_wallis"
    GLMM = "glmm"


STATISTICAL_TESTS: frozenset[str] = frozenset(t.value for t in StatisticalTest)

# Spellings seen in upstream trial-design records, keyed by normalised label.
_LABEL_SYNONYMS: dict[str, str] = {
    "survival": "time_to_event",
    "tte": "time_to_event",
    "time_to_event_data": "time_to_event",
    "event_time": "time_to_event",
    "dichotomous": "binary",
    "responder": "binary",
    "numeric": "continuous",
    "ordered_categorical": "ordinal",
    "counts": "count",
    "noninferiority": "non_inferiority",
    "ni": "non_inferiority",
    "equivalent": "equivalence",
    "superior": "superiority",
    "two": "two_sided",
    "2_sided": "two_sided",
    "twosided": "two_sided",
    "one": "one_sided",
    "1_sided": "one_sided",
    "onesided": "one_sided",
}

_SEPARATORS = re.compile(r"[\s\-]+")


def normalize_label(value: Any) -> str:
    """Lower-case a categorical label and fold separators to underscores.

    Unknown labels are returned normalised but otherwise untouched so that
    callers can report them instead of silently substituting a default.
    """
    if isinstance(value, Enum):
        value = value.value
    if value is None:
        return ""
    text = _SEPARATORS.sub("_", str(value).strip().lower())
    return _LABEL_SYNONYMS.get(text, text)


def _as_unique_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    cleaned = (str(v).strip() for v in value)
    return tuple(dict.fromkeys(v for v in cleaned if v))


class _Record(BaseModel):
    """Frozen record accepting both snake_case and camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Endpoint(_Record):
    """A declared trial endpoint. Identity is ``name`` within one design."""

    name: str
    data_type: str
    description: str = ""
    type: str = EndpointRole.SECONDARY.value
    hypothesis: str = Hypothesis.SUPERIORITY.value
    sided: str = Sidedness.TWO_SIDED.value
    paired: bool = False
    covariates: tuple[str, ...] = ()
    stratification_factors: tuple[str, ...] = ()
    id: str | None = None
    variable: str = ""
    number_of_groups: int = 2
    repeated_measures: bool = False
    non_normal: bool = False
    expected_n_per_arm: int | None = None
    expected_event_rate: float | None = None
    overdispersed: bool = False

    @field_validator("name", mode="before")
    @classmethod
    def _require_name(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            raise ValueError("endpoint name is required")
        return str(value).strip()

    @field_validator("data_type", mode="before")
    @classmethod
    def _require_data_type(cls, value: Any) -> str:
        label = normalize_label(value)
        if not label:
            raise ValueError("endpoint dataType is required")
        return label

    @field_validator("type", "hypothesis", "sided", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> str:
        return normalize_label(value)

    @field_validator("covariates", "stratification_factors", mode="before")
    @classmethod
    def _unique(cls, value: Any) -> tuple[str, ...]:
        return _as_unique_tuple(value)

    @property
    def is_primary(self) -> bool:
        return self.type == EndpointRole.PRIMARY.value


class SampleSizeResult(_Record):
    """Outcome of an external sample-size calculation. Consumed, never produced."""

    method: str
    power: float
    alpha: float
    total_sample_size: int
    per_arm: tuple[int, ...] = ()
    effect_size: float | None = None
    dropout_rate: float | None = None
    assumptions: tuple[str, ...] = ()

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> str:
        return normalize_label(value)

    @field_validator("per_arm", mode="before")
    @classmethod
    def _per_arm(cls, value: Any) -> tuple[int, ...]:
        if value is None:
            return ()
        if isinstance(value, (int, float)):
            return (int(value),)
        return tuple(int(v) for v in value)


class MissingDataStrategy(_Record):
    """How missing endpoint data will be handled in the primary analysis."""

    primary_method: str
    sensitivity_analyses: tuple[str, ...] = ()
    assumptions: tuple[str, ...] = ()
    justification: str = ""


class InterimAnalysisPlan(_Record):
    planned: bool = True
    number_of_analyses: int = Field(default=1, ge=0)
    timing_fractions: tuple[float, ...] = ()
    timing_criteria: tuple[str, ...] = ()
    boundary_type: str = "obrien_fleming"
    futility_boundary: str | None = None

    @field_validator("boundary_type", mode="before")
    @classmethod
    def _normalize_boundary(cls, value: Any) -> str:
        return normalize_label(value) or "obrien_fleming"


class SubgroupSpec(_Record):
    name: str
    variable: str = ""
    categories: tuple[str, ...] = ()
    rationale: str = ""
    method: str | None = None
    pre_specified: bool = True
    test_for_interaction: bool = True
    adjust_for_multiplicity: bool = False


class StudyDesign(_Record):
    """Design flags driving analysis-population generation."""

    design: str = "parallel"  # parallel, crossover, factorial, adaptive
    arms: int = 2
    blinding: str = "double"
    has_run_in: bool = False
    has_safety_follow_up: bool = False
    primary_endpoint_type: str = "efficacy"  # efficacy, safety

    @field_validator("design", "blinding", "primary_endpoint_type", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> str:
        return normalize_label(value)


def coerce_endpoint(value: Endpoint | Mapping[str, Any]) -> Endpoint:
    """Return *value* as an :class:`Endpoint`, validating plain mappings.

    Raises:
        pydantic.ValidationError: If the record is structurally incomplete
            (for example it has no ``name`` or no ``dataType``).
        TypeError: If *value* is neither an Endpoint nor a mapping.
    """
    if isinstance(value, Endpoint):
        return value
    if isinstance(value, Mapping):
        return Endpoint.model_validate(dict(value))
    raise TypeError(f"Expected an Endpoint or a mapping, got {type(value).__name__}")
