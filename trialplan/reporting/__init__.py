"""trialplan reporting module: analysis-plan section text."""

from trialplan.reporting.methods import (
    describe_boundary,
    describe_missing_data_method,
    describe_test,
)
from trialplan.reporting.sections import (
    SectionBlock,
    analysis_set_definitions,
    analysis_set_table,
    analysis_sets_section,
    assignment_rules_section,
    general_principles_section,
    interim_analysis_section,
    method_description,
    missing_data_section,
    multiplicity_section,
    render_plan,
    sample_size_section,
    sap_outline,
    sensitivity_analyses_section,
    statistical_methods_section,
    subgroup_analysis_section,
)

__all__ = [
    "SectionBlock",
    "analysis_set_definitions",
    "analysis_set_table",
    "analysis_sets_section",
    "assignment_rules_section",
    "describe_boundary",
    "describe_missing_data_method",
    "describe_test",
    "general_principles_section",
    "interim_analysis_section",
    "method_description",
    "missing_data_section",
    "multiplicity_section",
    "render_plan",
    "sample_size_section",
    "sap_outline",
    "sensitivity_analyses_section",
    "statistical_methods_section",
    "subgroup_analysis_section",
]
