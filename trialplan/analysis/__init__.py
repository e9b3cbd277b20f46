"""trialplan analysis module: classification, test selection, mapping and consistency checks."""

from trialplan.analysis.classifier import (
    Classification,
    classify,
    recommended_covariates,
    recommended_stratification,
    validate_classification,
)
from trialplan.analysis.consistency import (
    METHOD_ENDPOINT_COMPATIBILITY,
    check_primary_endpoints,
    check_protocol_consistency,
    check_sample_size_consistency,
    check_sap_consistency,
    check_unique_endpoint_names,
)
from trialplan.analysis.mapping import (
    MappingResult,
    MultiplicityAssessment,
    StatisticalMethod,
    assess_multiplicity,
    check_endpoint_consistency,
    map_endpoint_to_test,
    map_multiple_endpoints,
    mappings_frame,
    methods_summary,
    unique_covariates,
    unique_stratification_factors,
    unique_tests,
)
from trialplan.analysis.selector import (
    DECISION_TABLE,
    DecisionRule,
    RuleOutcome,
    TestSelection,
    select,
    validate_test_selection,
)

__all__ = [
    "Classification",
    "DECISION_TABLE",
    "DecisionRule",
    "METHOD_ENDPOINT_COMPATIBILITY",
    "MappingResult",
    "MultiplicityAssessment",
    "RuleOutcome",
    "StatisticalMethod",
    "TestSelection",
    "assess_multiplicity",
    "check_endpoint_consistency",
    "check_primary_endpoints",
    "check_protocol_consistency",
    "check_sample_size_consistency",
    "check_sap_consistency",
    "check_unique_endpoint_names",
    "classify",
    "map_endpoint_to_test",
    "map_multiple_endpoints",
    "mappings_frame",
    "methods_summary",
    "recommended_covariates",
    "recommended_stratification",
    "select",
    "unique_covariates",
    "unique_stratification_factors",
    "unique_tests",
    "validate_classification",
    "validate_test_selection",
]
