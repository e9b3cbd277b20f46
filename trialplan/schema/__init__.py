"""trialplan schema module: input records and validation results."""

from trialplan.schema.base import (
    STATISTICAL_TESTS,
    ComparisonCardinality,
    DataType,
    DistributionAssumption,
    Endpoint,
    EndpointRole,
    Hypothesis,
    InterimAnalysisPlan,
    MissingDataStrategy,
    SampleSizeResult,
    Sidedness,
    StatisticalTest,
    StudyDesign,
    SubgroupSpec,
    coerce_endpoint,
    normalize_label,
)
from trialplan.schema.validator import (
    ValidationIssue,
    ValidationResult,
    validate_endpoint,
    validate_sample_size,
)

__all__ = [
    "STATISTICAL_TESTS",
    "ComparisonCardinality",
    "DataType",
    "DistributionAssumption",
    "Endpoint",
    "EndpointRole",
    "Hypothesis",
    "InterimAnalysisPlan",
    "MissingDataStrategy",
    "SampleSizeResult",
    "Sidedness",
    "StatisticalTest",
    "StudyDesign",
    "SubgroupSpec",
    "ValidationIssue",
    "ValidationResult",
    "coerce_endpoint",
    "normalize_label",
    "validate_endpoint",
    "validate_sample_size",
]
