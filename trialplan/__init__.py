"""trialplan: statistical methodology decisions for clinical trial analysis plans."""

from trialplan.analysis import (
    Classification,
    MappingResult,
    StatisticalMethod,
    TestSelection,
    check_protocol_consistency,
    check_sample_size_consistency,
    check_sap_consistency,
    classify,
    map_endpoint_to_test,
    map_multiple_endpoints,
    select,
)
from trialplan.policy import DEFAULT_POLICY, MethodologyPolicy
from trialplan.reporting import (
    interim_analysis_section,
    method_description,
    missing_data_section,
    subgroup_analysis_section,
)
from trialplan.schema import Endpoint, SampleSizeResult, ValidationResult
from trialplan.workflow import (
    AnalysisSet,
    StatisticalAnalysisPlan,
    assemble_plan,
    check_plan,
    generate_analysis_sets,
    validate_analysis_sets,
)

__version__ = "0.1.0"

__all__ = [
    "AnalysisSet",
    "Classification",
    "DEFAULT_POLICY",
    "Endpoint",
    "MappingResult",
    "MethodologyPolicy",
    "SampleSizeResult",
    "StatisticalAnalysisPlan",
    "StatisticalMethod",
    "TestSelection",
    "ValidationResult",
    "assemble_plan",
    "check_plan",
    "check_protocol_consistency",
    "check_sample_size_consistency",
    "check_sap_consistency",
    "classify",
    "generate_analysis_sets",
    "interim_analysis_section",
    "map_endpoint_to_test",
    "map_multiple_endpoints",
    "method_description",
    "missing_data_section",
    "select",
    "subgroup_analysis_section",
    "validate_analysis_sets",
]
