"""Tests for analysis plan assembly and plan-level checks."""
import pytest
from pydantic import ValidationError

from trialplan.workflow.plan import (
    StatisticalAnalysisPlan,
    assemble_plan,
    check_plan,
    default_missing_data_strategy,
    default_sensitivity_analyses,
)
from trialplan.workflow.analysis_sets import generate_analysis_sets


@pytest.fixture
def plan(trial_endpoints, t_test_sample_size):
    return assemble_plan(
        "A 24-week study of drug X in type 2 diabetes",
        trial_endpoints,
        sample_size=t_test_sample_size,
    )


class TestAssemblePlan:
    def test_components(self, plan, trial_endpoints):
        assert isinstance(plan, StatisticalAnalysisPlan)
        assert len(plan.mappings) == len(trial_endpoints)
        assert [m.test for m in plan.statistical_methods] == [m.test for m in plan.mappings]
        assert [s.abbreviation for s in plan.analysis_sets] == ["FAS", "PPS", "SAF", "PKS"]
        assert plan.missing_data_strategy.primary_method == "MMRM"
        assert not plan.multiplicity.needed
        assert [e.name for e in plan.primary_endpoints] == ["HbA1c change"]

    def test_plain_records(self):
        plan = assemble_plan(
            "Plain records",
            [{"name": "HbA1c change", "type": "primary", "dataType": "continuous"}],
            study_design={"hasRunIn": True, "design": "crossover"},
            interim_analysis={"numberOfAnalyses": 1},
            subgroups=[{"name": "Age"}],
        )
        assert plan.study_design.has_run_in
        assert [s.abbreviation for s in plan.analysis_sets] == ["FAS", "mITT", "PPS", "SAF", "PKS"]
        assert plan.interim_analysis.number_of_analyses == 1
        assert plan.subgroup_analyses[0].name == "Age"

    def test_rejects_incomplete_record(self):
        with pytest.raises(ValidationError):
            assemble_plan("Bad", [{"name": "No data type"}])

    def test_explicit_missing_data_strategy(self, trial_endpoints):
        plan = assemble_plan("T", trial_endpoints, missing_data_strategy={"primaryMethod": "complete_case"})
        assert plan.missing_data_strategy.primary_method == "complete_case"
        assert [s.method for s in plan.sensitivity_analyses] == ["per_protocol"]

    def test_default_sensitivity_analyses(self, plan):
        assert [s.method for s in plan.sensitivity_analyses] == ["per_protocol", "tipping_point"]

    def test_deterministic(self, trial_endpoints, t_test_sample_size):
        a = assemble_plan("T", trial_endpoints, sample_size=t_test_sample_size)
        b = assemble_plan("T", trial_endpoints, sample_size=t_test_sample_size)
        assert a.to_dict() == b.to_dict()
        assert a.to_markdown() == b.to_markdown()


class TestDefaults:
    def test_continuous_primary(self, hba1c_endpoint):
        strategy = default_missing_data_strategy([hba1c_endpoint])
        assert strategy.primary_method == "MMRM"
        assert "tipping_point" in strategy.sensitivity_analyses

    def test_survival_primary(self, survival_endpoint):
        assert default_missing_data_strategy([survival_endpoint]).primary_method == "complete_case"

    def test_binary_primary(self, responder_endpoint):
        assert default_missing_data_strategy([responder_endpoint]).primary_method == "MI"

    def test_no_endpoints(self):
        assert default_missing_data_strategy([]).primary_method == "MI"

    def test_sensitivity_without_pps(self):
        sets = [s for s in generate_analysis_sets() if s.abbreviation != "PPS"]
        assert default_sensitivity_analyses(None, sets) == []


class TestCheckPlan:
    def test_clean_plan(self, plan):
        result = check_plan(plan)
        assert result.valid
        assert result.errors == []

    def test_no_primary_reported_once(self, endpoint_factory, t_test_sample_size):
        plan = assemble_plan(
            "No primary",
            [endpoint_factory(name="A", type="secondary"), endpoint_factory(name="B", type="secondary")],
            sample_size=t_test_sample_size,
        )
        result = check_plan(plan)
        assert not result.valid
        assert result.error_codes == ["NO_PRIMARY_ENDPOINT"]

    def test_sample_size_mismatch(self, trial_endpoints):
        plan = assemble_plan(
            "Mismatch",
            trial_endpoints,
            sample_size={"method": "log_rank_test", "power": 0.9, "alpha": 0.05, "totalSampleSize": 400},
        )
        assert check_plan(plan).error_codes == ["METHOD_ENDPOINT_MISMATCH"]

    def test_endpoint_mapping_errors_block_sign_off(self):
        plan = assemble_plan(
            "Unresolved",
            [{"name": "A", "type": "primary", "dataType": "weird", "variable": "AVAL"}],
        )
        assert plan.mappings[0].validation.error_codes == ["UNRESOLVED_DATA_TYPE"]
        result = check_plan(plan)
        assert not result.valid
        assert "UNRESOLVED_DATA_TYPE" in result.error_codes

    def test_endpoint_mapping_warnings_included(self, plan):
        assert "MISSING_VARIABLE" in check_plan(plan).warning_codes

    def test_interim_and_subgroup_warnings(self, trial_endpoints):
        plan = assemble_plan(
            "Adaptive",
            trial_endpoints,
            interim_analysis={"numberOfAnalyses": 1},
            subgroups=[{"name": "Region"}],
        )
        codes = check_plan(plan).warning_codes
        assert "INTERIM_ANALYSIS_PLANNED" in codes
        assert "SUBGROUP_ANALYSIS_PLANNED" in codes


class TestPlanRendering:
    def test_markdown_order(self, plan):
        md = plan.to_markdown()
        assert md.startswith("# Statistical Analysis Plan: A 24-week study of drug X in type 2 diabetes\n")
        headings = [
            "## General Statistical Principles",
            "## Analysis Sets",
            "## Analysis Set Assignment Rules",
            "## Sample Size Justification",
            "## Statistical Methods",
            "## Multiplicity",
            "## Missing Data Handling",
            "## Interim Analysis",
            "## Subgroup Analysis",
            "## Sensitivity Analyses",
        ]
        positions = [md.index(f"\n{h}\n") for h in headings]
        assert positions == sorted(positions)

    def test_boilerplate_for_absent_components(self, plan):
        md = plan.to_markdown()
        assert "No interim analyses are planned" in md
        assert "No pre-specified subgroup analyses are planned" in md

    def test_summary(self, plan):
        summary = plan.summary()
        assert "**HbA1c change** (primary): ancova" in summary
        assert "**Analysis Sets**: FAS, PPS, SAF, PKS" in summary

    def test_to_dict(self, plan):
        d = plan.to_dict()
        assert d["sample_size"]["total_sample_size"] == 300
        assert d["interim_analysis"] is None
        assert [s["abbreviation"] for s in d["analysis_sets"]] == ["FAS", "PPS", "SAF", "PKS"]
