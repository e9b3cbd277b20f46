"""Endpoint -> statistical method mapping.

Composes classification and test selection per endpoint and collects the
validation findings of each step into one :class:`MappingResult`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import pandas as pd

from trialplan.analysis.classifier import Classification, classify, validate_classification
from trialplan.analysis.consistency import check_primary_endpoints
from trialplan.analysis.selector import TestSelection, select, validate_test_selection
from trialplan.policy import DEFAULT_POLICY, MethodologyPolicy
from trialplan.schema.base import (
    DataType,
    Endpoint,
    EndpointRole,
    Hypothesis,
    Sidedness,
    coerce_endpoint,
)
from trialplan.schema.validator import ValidationResult, validate_endpoint

logger = logging.getLogger(__name__)

_HYPOTHESES = {h.value for h in Hypothesis}
_SIDEDNESS = {s.value for s in Sidedness}
_ROLES = {r.value for r in EndpointRole}


@dataclass(frozen=True)
class StatisticalMethod:
    test: str
    description: str
    assumptions: tuple[str, ...]
    covariates: tuple[str, ...] | None = None
    stratification_factors: tuple[str, ...] | None = None

    def to_dict(self) -> dict:
        return {
            "test": self.test,
            "description": self.description,
            "assumptions": list(self.assumptions),
            "covariates": list(self.covariates) if self.covariates is not None else None,
            "stratification_factors": (
                list(self.stratification_factors)
                if self.stratification_factors is not None else None
            ),
        }


@dataclass(frozen=True)
class MappingResult:
    """Everything derived for one endpoint."""

    endpoint: Endpoint
    classification: Classification
    test_selection: TestSelection
    statistical_method: StatisticalMethod
    validation: ValidationResult

    @property
    def test(self) -> str:
        return self.statistical_method.test

    def to_dict(self) -> dict:
        return {
            "endpoint": self.endpoint.model_dump(),
            "classification": self.classification.to_dict(),
            "test_selection": self.test_selection.to_dict(),
            "statistical_method": self.statistical_method.to_dict(),
            "validation": self.validation.to_dict(),
        }


@dataclass(frozen=True)
class MultiplicityAssessment:
    needed: bool
    reason: str
    number_of_comparisons: int
    method: str | None = None
    adjusted_alpha: float | None = None

    def to_dict(self) -> dict:
        return {
            "needed": self.needed,
            "reason": self.reason,
            "number_of_comparisons": self.number_of_comparisons,
            "method": self.method,
            "adjusted_alpha": self.adjusted_alpha,
        }


def map_endpoint_to_test(
    endpoint: Endpoint | Mapping[str, Any],
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> MappingResult:
    """Classify *endpoint*, select its test and validate both steps.

    Raises:
        pydantic.ValidationError: If *endpoint* is a mapping without a
            ``name`` or ``dataType``.
    """
    endpoint = coerce_endpoint(endpoint)
    preflight = ValidationResult()

    hypothesis = endpoint.hypothesis
    if not hypothesis:
        preflight.add_error(
            "MISSING_HYPOTHESIS",
            f"Endpoint '{endpoint.name}' has no hypothesis type; superiority was assumed.",
            field="hypothesis",
        )
        hypothesis = Hypothesis.SUPERIORITY.value
    elif hypothesis not in _HYPOTHESES:
        preflight.add_error(
            "UNRESOLVED_HYPOTHESIS",
            f"Hypothesis '{hypothesis}' for endpoint '{endpoint.name}' is not one of "
            f"{', '.join(sorted(_HYPOTHESES))}; superiority was assumed.",
            field="hypothesis",
        )
        hypothesis = Hypothesis.SUPERIORITY.value

    sided = endpoint.sided
    if sided not in _SIDEDNESS:
        preflight.add_warning(
            "UNRESOLVED_SIDEDNESS",
            f"Sidedness '{sided}' for endpoint '{endpoint.name}' is not recognised; "
            "a two-sided test was assumed.",
            field="sided",
        )
        sided = Sidedness.TWO_SIDED.value

    if endpoint.type not in _ROLES:
        preflight.add_warning(
            "UNKNOWN_ENDPOINT_TYPE",
            f"Endpoint type '{endpoint.type}' for '{endpoint.name}' is not primary, "
            "secondary or exploratory.",
            field="type",
        )

    classification = classify(endpoint, policy)
    selection = select(classification, hypothesis, sided, policy)

    method = StatisticalMethod(
        test=selection.primary_test,
        description=selection.rationale,
        assumptions=selection.assumptions,
        covariates=endpoint.covariates if selection.requires_covariates else None,
        stratification_factors=(
            endpoint.stratification_factors if selection.requires_stratification else None
        ),
    )

    validation = preflight.merge(
        validate_classification(classification),
        validate_test_selection(selection.primary_test, classification),
        validate_endpoint(endpoint, policy),
    )
    if validation.errors:
        logger.debug("Endpoint '%s' mapped with errors: %s", endpoint.name, validation.error_codes)

    return MappingResult(
        endpoint=endpoint,
        classification=classification,
        test_selection=selection,
        statistical_method=method,
        validation=validation,
    )


def map_multiple_endpoints(
    endpoints: Iterable[Endpoint | Mapping[str, Any]],
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> list[MappingResult]:
    """Map each endpoint independently, preserving order."""
    return [map_endpoint_to_test(endpoint, policy) for endpoint in endpoints]


def check_endpoint_consistency(mappings: list[MappingResult]) -> ValidationResult:
    """Cross-endpoint checks over already mapped endpoints."""
    result = check_primary_endpoints([m.endpoint for m in mappings])

    primary_tests = {m.test for m in mappings if m.endpoint.is_primary}
    if len(primary_tests) > 1:
        result.add_warning(
            "PRIMARY_METHODS_DIFFER",
            "Different statistical methods for primary endpoints; ensure this is intentional.",
        )

    continuous = [
        frozenset(m.endpoint.covariates)
        for m in mappings
        if m.endpoint.data_type == DataType.CONTINUOUS.value
    ]
    if len(set(continuous)) > 1 and unique_covariates(mappings):
        result.add_warning(
            "COVARIATE_SETS_DIFFER",
            "Continuous endpoints use different covariates; ensure this is intentional.",
            field="covariates",
        )

    if unique_stratification_factors(mappings):
        result.add_warning(
            "STRATIFIED_RANDOMIZATION",
            "Stratification factors defined; ensure randomization is stratified accordingly.",
            field="stratification_factors",
        )

    return result


def _test_label(test: str) -> str:
    return test.replace("_", " ")


def methods_summary(mappings: list[MappingResult]) -> dict[str, Any]:
    """Short per-role description of the planned analyses."""
    primary = []
    for m in mappings:
        if not m.endpoint.is_primary:
            continue
        method = m.statistical_method
        text = f"{m.endpoint.name}: {method.description} Statistical test: {_test_label(method.test)}."
        if method.covariates:
            text += f" Covariates: {', '.join(method.covariates)}."
        if method.stratification_factors:
            text += f" Stratification: {', '.join(method.stratification_factors)}."
        primary.append(text)

    def _brief(role: str) -> list[str]:
        return [
            f"{m.endpoint.name}: {_test_label(m.test)}"
            for m in mappings if m.endpoint.type == role
        ]

    return {
        "primary": "\n\n".join(primary),
        "secondary": _brief(EndpointRole.SECONDARY.value),
        "exploratory": _brief(EndpointRole.EXPLORATORY.value),
    }


def unique_tests(mappings: list[MappingResult]) -> list[str]:
    return list(dict.fromkeys(m.test for m in mappings))


def unique_covariates(mappings: list[MappingResult]) -> list[str]:
    return list(dict.fromkeys(c for m in mappings for c in m.endpoint.covariates))


def unique_stratification_factors(mappings: list[MappingResult]) -> list[str]:
    return list(dict.fromkeys(f for m in mappings for f in m.endpoint.stratification_factors))


def assess_multiplicity(
    mappings: list[MappingResult],
    alpha: float | None = None,
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> MultiplicityAssessment:
    """Decide whether the endpoint set needs a multiplicity adjustment.

    More than one primary endpoint, or more than
    ``policy.many_secondary_endpoints`` secondary endpoints, triggers a
    Bonferroni adjustment over the endpoints of that role.
    """
    alpha = policy.two_sided_alpha if alpha is None else alpha
    primary = [m for m in mappings if m.endpoint.is_primary]
    secondary = [m for m in mappings if m.endpoint.type == EndpointRole.SECONDARY.value]

    if len(primary) > 1:
        n = len(primary)
        return MultiplicityAssessment(
            needed=True,
            reason=f"Multiple primary endpoints ({n})",
            number_of_comparisons=n,
            method="bonferroni",
            adjusted_alpha=alpha / n,
        )
    if len(secondary) > policy.many_secondary_endpoints:
        n = len(secondary)
        return MultiplicityAssessment(
            needed=True,
            reason=f"Many secondary endpoints ({n}); consider adjustment",
            number_of_comparisons=n,
            method="bonferroni",
            adjusted_alpha=alpha / n,
        )
    if not primary:
        return MultiplicityAssessment(
            needed=False,
            reason="No primary endpoint defined",
            number_of_comparisons=0,
            adjusted_alpha=alpha,
        )
    return MultiplicityAssessment(
        needed=False,
        reason="Single primary endpoint",
        number_of_comparisons=1,
        adjusted_alpha=alpha,
    )


def mappings_frame(mappings: list[MappingResult]) -> pd.DataFrame:
    """One row per endpoint, for tabular display by the calling application."""
    rows = [
        {
            "endpoint": m.endpoint.name,
            "type": m.endpoint.type,
            "data_type": m.endpoint.data_type,
            "test": m.test,
            "covariates": ", ".join(m.statistical_method.covariates or ()),
            "stratification_factors": ", ".join(m.statistical_method.stratification_factors or ()),
            "valid": m.validation.valid,
            "n_errors": len(m.validation.errors),
            "n_warnings": len(m.validation.warnings),
        }
        for m in mappings
    ]
    columns = [
        "endpoint", "type", "data_type", "test", "covariates",
        "stratification_factors", "valid", "n_errors", "n_warnings",
    ]
    return pd.DataFrame(rows, columns=columns)
