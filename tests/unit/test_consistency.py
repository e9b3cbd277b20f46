"""Tests for cross-component consistency checks."""
import pytest

from trialplan.analysis.consistency import (
    METHOD_ENDPOINT_COMPATIBILITY,
    check_primary_endpoints,
    check_protocol_consistency,
    check_sample_size_consistency,
    check_sap_consistency,
    check_unique_endpoint_names,
)
from trialplan.analysis.mapping import map_multiple_endpoints
from trialplan.workflow.analysis_sets import generate_analysis_sets


@pytest.fixture
def two_primaries(hba1c_endpoint, endpoint_factory):
    return [hba1c_endpoint, endpoint_factory(name="Body weight change")]


@pytest.fixture
def secondaries_only(endpoint_factory):
    return [
        endpoint_factory(name="Weight", type="secondary"),
        endpoint_factory(name="Waist", type="secondary"),
    ]


def _sap(endpoints, **overrides):
    mappings = map_multiple_endpoints(endpoints)
    plan = {
        "endpoints": endpoints,
        "analysis_sets": generate_analysis_sets(),
        "statistical_methods": [m.statistical_method for m in mappings],
        "missing_data_strategy": {"primary_method": "MMRM"},
    }
    plan.update(overrides)
    return plan


class TestPrimaryEndpoints:
    def test_single_primary(self, trial_endpoints):
        result = check_primary_endpoints(trial_endpoints)
        assert result.valid
        assert result.warnings == []

    def test_no_primary(self, secondaries_only):
        result = check_primary_endpoints(secondaries_only)
        assert not result.valid
        assert result.error_codes == ["NO_PRIMARY_ENDPOINT"]

    def test_empty(self):
        assert check_primary_endpoints([]).error_codes == ["NO_PRIMARY_ENDPOINT"]

    def test_accepts_mapping_results(self, trial_endpoints):
        assert check_primary_endpoints(map_multiple_endpoints(trial_endpoints)).valid

    def test_duplicate_names(self, endpoint_factory):
        result = check_unique_endpoint_names([endpoint_factory(), endpoint_factory(type="secondary")])
        assert result.error_codes == ["DUPLICATE_ENDPOINT_NAME"]


class TestProtocolConsistency:
    def test_multiple_primaries_warn_once(self, two_primaries):
        result = check_protocol_consistency(two_primaries)
        assert result.valid
        assert result.errors == []
        assert len(result.warnings) == 1
        assert "Multiple primary endpoints" in result.warnings[0].message

    def test_no_primary(self, secondaries_only):
        result = check_protocol_consistency(secondaries_only)
        assert not result.valid
        assert result.error_codes == ["NO_PRIMARY_ENDPOINT"]

    def test_interim_and_subgroups(self, trial_endpoints):
        result = check_protocol_consistency(
            trial_endpoints, has_interim_analysis=True, has_subgroup_analysis=True,
        )
        assert result.valid
        assert result.warning_codes == ["INTERIM_ANALYSIS_PLANNED", "SUBGROUP_ANALYSIS_PLANNED"]

    def test_plain_records(self):
        result = check_protocol_consistency([
            {"name": "A", "type": "primary", "dataType": "continuous"},
            {"name": "B", "type": "secondary", "dataType": "binary"},
        ])
        assert result.valid
        assert result.warnings == []


class TestSapConsistency:
    def test_complete_plan(self, trial_endpoints):
        result = check_sap_consistency(_sap(trial_endpoints))
        assert result.valid
        assert result.warnings == []

    def test_multiple_primaries_warn_once(self, two_primaries):
        result = check_sap_consistency(_sap(two_primaries))
        assert result.errors == []
        assert len(result.warnings) == 1
        assert "Multiple primary endpoints" in result.warnings[0].message

    def test_no_primary(self, secondaries_only):
        result = check_sap_consistency(_sap(secondaries_only))
        assert not result.valid
        assert result.error_codes == ["NO_PRIMARY_ENDPOINT"]

    def test_missing_components(self, trial_endpoints):
        result = check_sap_consistency(
            _sap(trial_endpoints, analysis_sets=[], statistical_methods=[], missing_data_strategy=None)
        )
        assert set(result.error_codes) == {"NO_ANALYSIS_SETS", "NO_STATISTICAL_METHODS"}
        assert set(result.warning_codes) == {"ENDPOINT_METHOD_COUNT_MISMATCH", "NO_MISSING_DATA_STRATEGY"}

    def test_method_count_mismatch(self, trial_endpoints):
        plan = _sap(trial_endpoints)
        plan["statistical_methods"] = plan["statistical_methods"][:2]
        assert check_sap_consistency(plan).warning_codes == ["ENDPOINT_METHOD_COUNT_MISMATCH"]


class TestSampleSizeConsistency:
    def test_consistent(self, t_test_sample_size, trial_endpoints):
        result = check_sample_size_consistency(t_test_sample_size, trial_endpoints)
        assert result.valid
        assert result.warnings == []

    def test_log_rank_against_continuous_primary(self, trial_endpoints):
        result = check_sample_size_consistency(
            {"method": "log_rank_test", "power": 0.9, "alpha": 0.05, "totalSampleSize": 400},
            trial_endpoints,
        )
        assert not result.valid
        assert result.error_codes == ["METHOD_ENDPOINT_MISMATCH"]
        assert "log_rank_test" in result.errors[0].message
        assert "continuous" in result.errors[0].message

    def test_uses_first_primary(self, hba1c_endpoint, survival_endpoint):
        sample_size = {"method": "cox_regression", "power": 0.8, "alpha": 0.05, "totalSampleSize": 500}
        assert not check_sample_size_consistency(sample_size, [hba1c_endpoint, survival_endpoint]).valid
        assert check_sample_size_consistency(sample_size, [survival_endpoint, hba1c_endpoint]).valid

    def test_no_primary(self, t_test_sample_size, secondaries_only):
        result = check_sample_size_consistency(t_test_sample_size, secondaries_only)
        assert result.error_codes == ["NO_PRIMARY_ENDPOINT"]

    def test_unknown_method(self, trial_endpoints):
        result = check_sample_size_consistency(
            {"method": "simulation", "power": 0.85, "alpha": 0.05, "totalSampleSize": 250},
            trial_endpoints,
        )
        assert result.valid
        assert result.warning_codes == ["UNKNOWN_SAMPLE_SIZE_METHOD"]

    def test_low_power_and_arm_totals(self, trial_endpoints):
        result = check_sample_size_consistency(
            {"method": "ancova", "power": 0.7, "alpha": 0.05, "totalSampleSize": 200, "perArm": [90, 90]},
            trial_endpoints,
        )
        assert result.valid
        assert result.warning_codes == ["LOW_POWER", "PER_ARM_TOTAL_MISMATCH"]

    @pytest.mark.parametrize("method,data_type", [
        ("mann_whitney", "ordinal"),
        ("fisher_exact_test", "binary"),
        ("negative_binomial", "count"),
    ])
    def test_compatibility_table(self, method, data_type):
        assert data_type in METHOD_ENDPOINT_COMPATIBILITY[method]
