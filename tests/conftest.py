"""
Pytest Configuration and Shared Fixtures

Endpoint records and design inputs shared across the unit tests.
"""

import pytest

from trialplan.policy import MethodologyPolicy
from trialplan.schema.base import Endpoint, SampleSizeResult


def make_endpoint(**overrides) -> Endpoint:
    """Build an endpoint from camelCase or snake_case keys with sane defaults."""
    record = {
        "name": "Primary outcome",
        "description": "Change from baseline to week 24 in the primary efficacy measure",
        "type": "primary",
        "dataType": "continuous",
        "hypothesis": "superiority",
        "sided": "two_sided",
        "variable": "CHG",
    }
    record.update(overrides)
    return Endpoint.model_validate(record)


@pytest.fixture
def endpoint_factory():
    return make_endpoint


@pytest.fixture
def hba1c_endpoint():
    return Endpoint.model_validate({
        "name": "HbA1c change",
        "type": "primary",
        "dataType": "continuous",
        "covariates": ["baseline_HbA1c"],
        "hypothesis": "superiority",
        "sided": "two_sided",
    })


@pytest.fixture
def responder_endpoint():
    return Endpoint.model_validate({
        "name": "Responder rate",
        "type": "primary",
        "dataType": "binary",
        "stratificationFactors": ["region"],
    })


@pytest.fixture
def survival_endpoint():
    return make_endpoint(
        name="Overall survival",
        description="Time from randomization to death from any cause",
        dataType="time_to_event",
        variable="AVAL",
    )


@pytest.fixture
def trial_endpoints(hba1c_endpoint):
    """A realistic mixed endpoint set with a single primary endpoint."""
    return [
        hba1c_endpoint,
        make_endpoint(
            name="Fasting plasma glucose",
            type="secondary",
            covariates=["baseline_FPG"],
            variable="FPG",
        ),
        make_endpoint(
            name="HbA1c < 7% responder",
            type="secondary",
            dataType="binary",
            stratificationFactors=["region"],
            variable="RESP",
        ),
        make_endpoint(
            name="Time to rescue medication",
            type="exploratory",
            dataType="time_to_event",
            variable="TTRESC",
        ),
    ]


@pytest.fixture
def t_test_sample_size():
    return SampleSizeResult.model_validate({
        "method": "two_sample_t_test",
        "power": 0.9,
        "alpha": 0.05,
        "totalSampleSize": 300,
        "perArm": [150, 150],
        "effectSize": 0.4,
        "dropoutRate": 0.1,
        "assumptions": ["a common SD of 1.1%"],
    })


@pytest.fixture
def cox_policy():
    return MethodologyPolicy(stratified_survival_test="cox_regression")
