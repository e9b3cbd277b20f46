"""trialplan workflow module: analysis populations and plan assembly."""

from trialplan.workflow.analysis_sets import (
    AnalysisSet,
    generate_analysis_sets,
    is_nested_within,
    nesting_chain,
    validate_analysis_sets,
)
from trialplan.workflow.plan import (
    SensitivityAnalysis,
    StatisticalAnalysisPlan,
    assemble_plan,
    check_plan,
    default_missing_data_strategy,
    default_sensitivity_analyses,
)

__all__ = [
    "AnalysisSet",
    "SensitivityAnalysis",
    "StatisticalAnalysisPlan",
    "assemble_plan",
    "check_plan",
    "default_missing_data_strategy",
    "default_sensitivity_analyses",
    "generate_analysis_sets",
    "is_nested_within",
    "nesting_chain",
    "validate_analysis_sets",
]
