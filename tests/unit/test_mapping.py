"""Tests for endpoint-to-method mapping and multiplicity assessment."""
import pytest
from pydantic import ValidationError

from trialplan.analysis.mapping import (
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


class TestMapEndpointToTest:
    def test_hba1c_scenario(self, hba1c_endpoint):
        m = map_endpoint_to_test(hba1c_endpoint)
        assert m.test == "ancova"
        assert m.statistical_method.covariates == ("baseline_HbA1c",)
        assert m.statistical_method.stratification_factors is None
        assert m.validation.errors == []
        assert m.validation.valid

    def test_responder_scenario(self, responder_endpoint):
        m = map_endpoint_to_test(responder_endpoint)
        assert m.test == "cochran_mantel_haenszel"
        assert m.statistical_method.stratification_factors == ("region",)
        assert m.statistical_method.covariates is None
        assert m.validation.valid

    def test_accepts_plain_record(self):
        m = map_endpoint_to_test({
            "name": "HbA1c change",
            "type": "primary",
            "dataType": "continuous",
            "covariates": ["baseline_HbA1c"],
        })
        assert m.test == "ancova"

    def test_rejects_record_without_data_type(self):
        with pytest.raises(ValidationError):
            map_endpoint_to_test({"name": "HbA1c change"})

    def test_method_description_is_rationale(self, hba1c_endpoint):
        m = map_endpoint_to_test(hba1c_endpoint)
        assert m.statistical_method.description == m.test_selection.rationale
        assert m.statistical_method.assumptions == m.test_selection.assumptions

    def test_idempotent(self, hba1c_endpoint):
        assert map_endpoint_to_test(hba1c_endpoint) == map_endpoint_to_test(hba1c_endpoint)

    def test_missing_hypothesis(self, endpoint_factory):
        m = map_endpoint_to_test(endpoint_factory(hypothesis=""))
        assert "MISSING_HYPOTHESIS" in m.validation.error_codes
        assert not m.validation.valid
        assert "Superiority" in m.test_selection.rationale

    def test_unresolved_hypothesis(self, endpoint_factory):
        m = map_endpoint_to_test(endpoint_factory(hypothesis="futility"))
        assert "UNRESOLVED_HYPOTHESIS" in m.validation.error_codes

    def test_unresolved_sidedness_is_a_warning(self, endpoint_factory):
        m = map_endpoint_to_test(endpoint_factory(sided="both ways", covariates=["b"]))
        assert m.validation.valid
        assert "UNRESOLVED_SIDEDNESS" in m.validation.warning_codes
        assert "two-sided" in m.test_selection.rationale

    def test_unknown_endpoint_type(self, endpoint_factory):
        m = map_endpoint_to_test(endpoint_factory(type="key secondary"))
        assert "UNKNOWN_ENDPOINT_TYPE" in m.validation.warning_codes

    def test_unresolved_data_type_still_maps(self, endpoint_factory):
        m = map_endpoint_to_test(endpoint_factory(dataType="interval censored"))
        assert m.test == "mann_whitney"
        assert m.validation.error_codes == ["UNRESOLVED_DATA_TYPE"]

    def test_endpoint_warnings_collected(self, hba1c_endpoint):
        codes = map_endpoint_to_test(hba1c_endpoint).validation.warning_codes
        assert "MISSING_VARIABLE" in codes
        assert "INSUFFICIENT_DESCRIPTION" in codes

    def test_to_dict(self, responder_endpoint):
        d = map_endpoint_to_test(responder_endpoint).to_dict()
        assert d["statistical_method"]["test"] == "cochran_mantel_haenszel"
        assert d["validation"]["valid"] is True


class TestMultipleEndpoints:
    def test_order_preserved(self, trial_endpoints):
        mappings = map_multiple_endpoints(trial_endpoints)
        assert [m.endpoint.name for m in mappings] == [e.name for e in trial_endpoints]
        assert [m.test for m in mappings] == [
            "ancova", "ancova", "cochran_mantel_haenszel", "log_rank",
        ]

    def test_unique_collections(self, trial_endpoints):
        mappings = map_multiple_endpoints(trial_endpoints)
        assert unique_tests(mappings) == ["ancova", "cochran_mantel_haenszel", "log_rank"]
        assert unique_covariates(mappings) == ["baseline_HbA1c", "baseline_FPG"]
        assert unique_stratification_factors(mappings) == ["region"]

    def test_consistency_warnings(self, trial_endpoints):
        result = check_endpoint_consistency(map_multiple_endpoints(trial_endpoints))
        assert result.valid
        assert set(result.warning_codes) == {"COVARIATE_SETS_DIFFER", "STRATIFIED_RANDOMIZATION"}

    def test_primary_methods_differ(self, hba1c_endpoint, responder_endpoint):
        result = check_endpoint_consistency(
            map_multiple_endpoints([hba1c_endpoint, responder_endpoint])
        )
        assert "PRIMARY_METHODS_DIFFER" in result.warning_codes
        assert "MULTIPLE_PRIMARY_ENDPOINTS" in result.warning_codes

    def test_methods_summary(self, trial_endpoints):
        summary = methods_summary(map_multiple_endpoints(trial_endpoints))
        assert summary["primary"].startswith("HbA1c change:")
        assert "Covariates: baseline_HbA1c." in summary["primary"]
        assert summary["secondary"] == [
            "Fasting plasma glucose: ancova",
            "HbA1c < 7% responder: cochran mantel haenszel",
        ]
        assert summary["exploratory"] == ["Time to rescue medication: log rank"]

    def test_frame(self, trial_endpoints):
        frame = mappings_frame(map_multiple_endpoints(trial_endpoints))
        assert list(frame.columns) == [
            "endpoint", "type", "data_type", "test", "covariates",
            "stratification_factors", "valid", "n_errors", "n_warnings",
        ]
        assert len(frame) == 4
        assert frame.loc[0, "test"] == "ancova"
        assert frame.loc[2, "stratification_factors"] == "region"
        assert frame["valid"].all()

    def test_empty_frame(self):
        frame = mappings_frame([])
        assert frame.empty
        assert "test" in frame.columns


class TestMultiplicity:
    def test_single_primary(self, trial_endpoints):
        a = assess_multiplicity(map_multiple_endpoints(trial_endpoints))
        assert not a.needed
        assert a.number_of_comparisons == 1
        assert a.adjusted_alpha == 0.05

    def test_no_primary(self, endpoint_factory):
        mappings = map_multiple_endpoints([endpoint_factory(type="secondary")])
        a = assess_multiplicity(mappings)
        assert not a.needed
        assert a.reason == "No primary endpoint defined"
        assert a.number_of_comparisons == 0

    def test_multiple_primaries(self, hba1c_endpoint, responder_endpoint):
        a = assess_multiplicity(map_multiple_endpoints([hba1c_endpoint, responder_endpoint]))
        assert a.needed
        assert a.method == "bonferroni"
        assert a.reason == "Multiple primary endpoints (2)"
        assert a.adjusted_alpha == pytest.approx(0.025)

    def test_many_secondaries(self, hba1c_endpoint, endpoint_factory):
        secondaries = [
            endpoint_factory(name=f"Secondary {i}", type="secondary") for i in range(4)
        ]
        a = assess_multiplicity(map_multiple_endpoints([hba1c_endpoint, *secondaries]), alpha=0.04)
        assert a.needed
        assert a.number_of_comparisons == 4
        assert a.adjusted_alpha == pytest.approx(0.01)
