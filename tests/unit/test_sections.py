"""Tests for analysis-plan section text."""
import pytest

from trialplan.analysis.mapping import assess_multiplicity, map_endpoint_to_test, map_multiple_endpoints
from trialplan.reporting.methods import (
    TEST_DETAILS,
    describe_boundary,
    describe_missing_data_method,
    describe_test,
    missing_data_method_key,
)
from trialplan.reporting.sections import (
    INTERIM_OUTLINE,
    METHOD_OUTLINE,
    MISSING_DATA_OUTLINE,
    NO_INTERIM,
    NO_MISSING_DATA_STRATEGY,
    NO_SAMPLE_SIZE,
    NO_SUBGROUPS,
    NOT_APPLICABLE,
    SAP_OUTLINE,
    SUBGROUP_OUTLINE,
    SectionBlock,
    analysis_sets_section,
    assignment_rules_section,
    interim_analysis_section,
    method_description,
    missing_data_section,
    multiplicity_section,
    sample_size_section,
    sap_outline,
    statistical_methods_section,
    subgroup_analysis_section,
)
from trialplan.schema.base import STATISTICAL_TESTS
from trialplan.workflow.analysis_sets import generate_analysis_sets


class TestSectionBlock:
    def test_rejects_unknown_part(self):
        with pytest.raises(ValueError, match="not in the outline"):
            SectionBlock("T", ("A",), {"A": "a", "B": "b"})

    def test_rejects_missing_part(self):
        with pytest.raises(ValueError, match="have no text"):
            SectionBlock("T", ("A", "B"), {"A": "a"})

    def test_parts_read_only(self):
        block = SectionBlock("T", ("A",), {"A": "a"})
        with pytest.raises(TypeError):
            block.parts["A"] = "changed"

    def test_markdown_headings(self):
        block = SectionBlock("Title", ("First", "Second"), {"First": "one", "Second": "two"})
        assert block.to_markdown() == "## Title\n\n### First\n\none\n\n### Second\n\ntwo\n"

    def test_labelled_markdown(self):
        block = SectionBlock("E", ("Type", "List"), {"Type": "primary", "List": "- a\n- b"}, labelled=True)
        md = block.to_markdown()
        assert "**Type**: primary" in md
        assert "**List**:\n- a\n- b" in md

    def test_keys_follow_outline(self):
        block = SectionBlock("T", ("B", "A"), {"A": "a", "B": "b"})
        assert block.keys() == ["B", "A"]
        assert list(block.to_dict()["parts"]) == ["B", "A"]


class TestMethodReference:
    def test_every_test_documented(self):
        assert set(TEST_DETAILS) == STATISTICAL_TESTS

    def test_model_name_first(self):
        lines = describe_test("ancova")
        assert lines[0] == "Analysis of Covariance (ANCOVA)"
        assert lines[-1].startswith("**Effect Estimate**")

    def test_unknown_test_placeholder(self):
        assert describe_test("bayesian_borrowing") == [
            "bayesian borrowing",
            "",
            "Detailed methodology will be specified in the final SAP.",
        ]

    def test_glmm_family(self):
        assert "- Distribution: Negative binomial (handles overdispersion), log link" in describe_test("glmm", "count")

    def test_missing_data_synonyms(self):
        assert missing_data_method_key("Multiple Imputation") == "mi"
        assert missing_data_method_key("MMRM") == "mmrm"
        assert describe_missing_data_method("something new") == "Detailed methodology to be specified."

    def test_boundaries(self):
        assert describe_boundary("Pocock")[0].startswith("The Pocock boundary")
        assert describe_boundary("custom_spending") == (
            "Stopping boundaries will follow the custom spending method.",
        )


class TestMethodDescription:
    def test_outline(self, hba1c_endpoint):
        m = map_endpoint_to_test(hba1c_endpoint)
        block = method_description(m.endpoint, m.statistical_method, 300)
        assert block.keys() == list(METHOD_OUTLINE)
        assert block.title == "HbA1c change"
        assert block["Analysis Model"].startswith("Analysis of Covariance (ANCOVA)")
        assert block["Covariates"] == "- baseline_HbA1c"
        assert block["Stratification Factors"] == "None."
        assert block["Significance Level"] == "Two-sided alpha = 0.05"
        assert block["Sample Size"] == "300 subjects (based on power analysis)"

    def test_one_sided(self, endpoint_factory):
        m = map_endpoint_to_test(endpoint_factory(sided="one_sided", hypothesis="non_inferiority"))
        block = method_description(m.endpoint, m.statistical_method)
        assert block["Significance Level"] == "One-sided alpha = 0.025"
        assert block["Hypothesis"] == "non-inferiority"
        assert block["Sample Size"] == "See the sample size justification."

    def test_sample_size_record(self, hba1c_endpoint, t_test_sample_size):
        m = map_endpoint_to_test(hba1c_endpoint)
        block = method_description(m.endpoint, m.statistical_method, t_test_sample_size)
        assert block["Sample Size"].startswith("300 subjects")

    def test_method_as_mapping(self, hba1c_endpoint):
        m = map_endpoint_to_test(hba1c_endpoint)
        block = method_description(m.endpoint, m.statistical_method.to_dict())
        assert block["Analysis Model"].startswith("Analysis of Covariance (ANCOVA)")
        assert block["Covariates"] == "- baseline_HbA1c"
        assert block["Statistical Method"] == m.statistical_method.description

    def test_missing_method(self, hba1c_endpoint):
        block = method_description(hba1c_endpoint, None)
        assert block["Statistical Method"] == "To be specified."
        assert block["Analysis Model"].splitlines() == [
            "Statistical method to be specified",
            "",
            "Detailed methodology will be specified in the final SAP.",
        ]
        assert block["Assumptions"] == "None stated."

    def test_markdown(self, responder_endpoint):
        m = map_endpoint_to_test(responder_endpoint)
        md = method_description(m.endpoint, m.statistical_method).to_markdown()
        assert md.startswith("### Responder rate\n")
        assert "**Statistical Method**: Groups compared with stratification factors" in md
        assert "**Stratification Factors**:\n- region" in md


class TestMissingDataSection:
    @pytest.mark.parametrize("strategy", [None, {}])
    def test_absent_strategy(self, strategy):
        block = missing_data_section(strategy)
        assert block.keys() == list(MISSING_DATA_OUTLINE)
        assert block["Primary Analysis Method"].startswith(NO_MISSING_DATA_STRATEGY)
        assert block["Sensitivity Analyses"] == NOT_APPLICABLE

    def test_strategy(self):
        block = missing_data_section({
            "primaryMethod": "MMRM",
            "sensitivityAnalyses": ["MI", "tipping_point"],
            "assumptions": ["Missing at random (MAR)"],
        })
        assert block["Primary Analysis Method"].startswith("**Method**: MMRM")
        assert "1. **MI**: Multiple Imputation" in block["Sensitivity Analyses"]
        assert "2. **tipping_point**: Tipping point analysis" in block["Sensitivity Analyses"]
        assert block["Justification"] == "To be provided."


class TestInterimSection:
    @pytest.mark.parametrize("interim", [
        None,
        {},
        {"planned": False},
        {"numberOfAnalyses": 0},
    ])
    def test_not_planned(self, interim):
        block = interim_analysis_section(interim)
        assert block.keys() == list(INTERIM_OUTLINE)
        assert block["Overview"].startswith(NO_INTERIM)
        assert block["Timing"] == NOT_APPLICABLE

    def test_planned(self):
        block = interim_analysis_section({
            "numberOfAnalyses": 2,
            "timingFractions": [0.33, 0.67],
            "boundaryType": "O'Brien Fleming",
        })
        assert block["Overview"].startswith("2 interim analyses")
        assert "after 33% of the planned information" in block["Timing"]
        assert "3 analyses (2 interim + 1 final)" in block["Alpha Allocation"]

    def test_timing_criteria_win(self):
        block = interim_analysis_section({
            "timingFractions": [0.5],
            "timingCriteria": ["After 150 events"],
            "boundaryType": "pocock",
        })
        assert block["Timing"] == "- **Interim Analysis 1**: After 150 events"
        assert "The Pocock boundary" in block["Stopping Boundaries"]
        assert "1 interim analysis will" in block["Overview"]


class TestSubgroupSection:
    def test_none(self):
        block = subgroup_analysis_section([])
        assert block.keys() == list(SUBGROUP_OUTLINE)
        assert block["Overview"].startswith(NO_SUBGROUPS)

    def test_subgroups(self):
        block = subgroup_analysis_section([
            {"name": "Age", "variable": "AGEGR1", "categories": ["<65", ">=65"]},
            {"name": "Region", "adjustForMultiplicity": True},
        ])
        subgroups = block["Pre-specified Subgroups"]
        assert "#### 1. Age" in subgroups
        assert "**Categories**: <65, >=65" in subgroups
        assert "**Variable**: Region" in subgroups
        assert "Interaction p-value < 0.1" in block["Statistical Methodology"]
        assert block["Multiplicity Considerations"].startswith(
            "Multiplicity adjustment will be applied to: Region."
        )


class TestAnalysisSetSections:
    def test_table_and_definitions(self):
        block = analysis_sets_section(generate_analysis_sets(has_run_in=True))
        assert "| Modified Intent-to-Treat Set | mITT | primary efficacy |" in block["Summary"]
        assert "#### 2. Modified Intent-to-Treat Set (mITT)" in block["Definitions"]

    def test_empty(self):
        assert analysis_sets_section([])["Definitions"] == NOT_APPLICABLE

    def test_hierarchy_follows_sets(self):
        block = assignment_rules_section(generate_analysis_sets(has_run_in=True))
        assert block["Hierarchy"].splitlines() == [
            "- All subjects in FAS are in SAF",
            "- All subjects in mITT are in FAS",
            "- All subjects in PPS are in mITT",
            "- All subjects in PKS are in SAF",
        ]

    def test_default_hierarchy(self):
        assert "- All subjects in PPS are in FAS" in assignment_rules_section()["Hierarchy"]


class TestDocumentSections:
    @pytest.mark.parametrize("sample_size", [None, {}])
    def test_no_sample_size(self, sample_size):
        assert sample_size_section(sample_size)["Sample Size Calculation"].startswith(NO_SAMPLE_SIZE)

    def test_sample_size(self, t_test_sample_size):
        block = sample_size_section(t_test_sample_size)
        calc = block["Sample Size Calculation"]
        assert "- **Total Sample Size**: 300 subjects" in calc
        assert "- **Per Arm**: 150 / 150 subjects" in calc
        assert "- **Power**: 90%" in calc
        assert "inflated by 10%" in block["Justification"]
        assert "assumes a common SD of 1.1%" in block["Justification"]

    def test_statistical_methods_grouped_by_role(self, trial_endpoints):
        block = statistical_methods_section(map_multiple_endpoints(trial_endpoints))
        assert block["Primary Endpoint Analysis"].startswith("#### HbA1c change")
        assert "#### Fasting plasma glucose" in block["Secondary Endpoint Analyses"]
        assert "#### Time to rescue medication" in block["Exploratory Analyses"]

    def test_statistical_methods_empty_roles(self, hba1c_endpoint):
        block = statistical_methods_section(map_multiple_endpoints([hba1c_endpoint]))
        assert block["Secondary Endpoint Analyses"] == "No secondary endpoints are defined."

    def test_multiplicity(self, hba1c_endpoint, responder_endpoint):
        needed = assess_multiplicity(map_multiple_endpoints([hba1c_endpoint, responder_endpoint]))
        block = multiplicity_section(needed)
        assert block["Assessment"].startswith("Multiple primary endpoints (2).")
        assert "alpha = 0.025" in block["Adjustment"]
        assert multiplicity_section(None)["Adjustment"] == NOT_APPLICABLE

    def test_multiplicity_without_primary(self, endpoint_factory):
        none = assess_multiplicity(map_multiple_endpoints([endpoint_factory(type="secondary")]))
        assert multiplicity_section(none)["Assessment"].startswith("No primary endpoint defined;")

    def test_sap_outline(self):
        block = sap_outline()
        assert len(block.keys()) == len(SAP_OUTLINE) == 12
        assert block.to_markdown().startswith("# Statistical Analysis Plan (SAP)\n")
        assert "- 3.5 Analysis Set Assignment Rules" in block["3. Analysis Populations"]
