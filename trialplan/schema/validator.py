"""Validation results and parameter-level validators.

Two severities only: an *error* blocks sign-off of the protocol or analysis
plan, a *warning* is advisory and never blocks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from trialplan.policy import DEFAULT_POLICY, MethodologyPolicy
from trialplan.schema.base import (
    DataType,
    Endpoint,
    Hypothesis,
    SampleSizeResult,
)

ERROR = "error"
WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    """A single finding raised by a check."""

    code: str
    message: str
    field: str = ""
    severity: str = ERROR
    recommendation: str = ""

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "field": self.field,
            "severity": self.severity,
            "recommendation": self.recommendation,
        }


@dataclass
class ValidationResult:
    """Outcome of one or more checks."""

    valid: bool = True
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    def add_error(self, code: str, message: str, field: str = "", recommendation: str = "") -> None:
        self.errors.append(
            ValidationIssue(code, message, field, ERROR, recommendation)
        )
        self.valid = False

    def add_warning(self, code: str, message: str, field: str = "", recommendation: str = "") -> None:
        self.warnings.append(
            ValidationIssue(code, message, field, WARNING, recommendation)
        )

    @property
    def error_codes(self) -> list[str]:
        return [issue.code for issue in self.errors]

    @property
    def warning_codes(self) -> list[str]:
        return [issue.code for issue in self.warnings]

    def merge(self, *others: ValidationResult) -> ValidationResult:
        """Combine this result with *others* into a new result."""
        merged = ValidationResult(
            valid=self.valid,
            errors=list(self.errors),
            warnings=list(self.warnings),
        )
        for other in others:
            merged.errors.extend(other.errors)
            merged.warnings.extend(other.warnings)
            merged.valid = merged.valid and other.valid
        merged.valid = merged.valid and not merged.errors
        return merged

    def deduplicated(self) -> ValidationResult:
        """Drop repeated identical issues, keeping the first."""
        return ValidationResult(
            valid=self.valid,
            errors=_unique_issues(self.errors),
            warnings=_unique_issues(self.warnings),
        )

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
        }


def _unique_issues(issues: Iterable[ValidationIssue]) -> list[ValidationIssue]:
    seen: set[tuple[str, str, str]] = set()
    unique: list[ValidationIssue] = []
    for issue in issues:
        key = (issue.code, issue.field, issue.message)
        if key in seen:
            continue
        seen.add(key)
        unique.append(issue)
    return unique


def validate_endpoint(
    endpoint: Endpoint,
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> ValidationResult:
    """Check a single endpoint definition for completeness.

    Structural problems (no name, no data type) never reach this function:
    they are rejected when the :class:`Endpoint` is constructed.
    """
    result = ValidationResult()

    if not endpoint.variable.strip():
        result.add_warning(
            "MISSING_VARIABLE",
            f"Endpoint '{endpoint.name}' has no analysis variable name.",
            field="variable",
            recommendation="Name the dataset variable that carries this endpoint.",
        )

    if endpoint.data_type == DataType.CONTINUOUS.value and not endpoint.covariates:
        result.add_warning(
            "NO_COVARIATES",
            f"No covariates specified for continuous endpoint '{endpoint.name}'.",
            field="covariates",
            recommendation="Consider including the baseline value as a covariate (ANCOVA).",
        )

    if endpoint.hypothesis in (Hypothesis.NON_INFERIORITY.value, Hypothesis.EQUIVALENCE.value):
        result.add_warning(
            "MARGIN_JUSTIFICATION",
            f"{endpoint.hypothesis.replace('_', '-')} design for '{endpoint.name}' "
            "requires a clinically justified margin.",
            field="hypothesis",
            recommendation="Document the margin and the regulatory guidance it follows.",
        )

    if endpoint.is_primary and len(endpoint.description.strip()) < policy.min_primary_description_length:
        result.add_warning(
            "INSUFFICIENT_DESCRIPTION",
            f"Primary endpoint '{endpoint.name}' description should be more detailed.",
            field="description",
            recommendation="Include timing, measurement method and clinical relevance.",
        )

    return result


def validate_sample_size(
    sample_size: SampleSizeResult,
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> ValidationResult:
    """Check the parameters of an externally computed sample size."""
    result = ValidationResult()

    if not 0 < sample_size.power < 1:
        result.add_error(
            "INVALID_POWER",
            f"Power must lie strictly between 0 and 1, got {sample_size.power}.",
            field="power",
        )
    elif sample_size.power < policy.min_power:
        result.add_warning(
            "SUBOPTIMAL_POWER",
            f"Power is {sample_size.power:.0%}, below the conventional {policy.min_power:.0%}.",
            field="power",
            recommendation="Standard practice is 80% or 90% power.",
        )

    if not 0 < sample_size.alpha < 1:
        result.add_error(
            "INVALID_ALPHA",
            f"Alpha must lie strictly between 0 and 1, got {sample_size.alpha}.",
            field="alpha",
        )
    elif sample_size.alpha > policy.max_alpha:
        result.add_warning(
            "HIGH_ALPHA",
            f"Alpha {sample_size.alpha} is above the conventional {policy.max_alpha} level.",
            field="alpha",
            recommendation="Standard practice is alpha = 0.05 (two-sided).",
        )

    if sample_size.total_sample_size <= 0:
        result.add_error(
            "INVALID_SAMPLE_SIZE",
            "Total sample size must be positive.",
            field="total_sample_size",
        )

    if any(n <= 0 for n in sample_size.per_arm):
        result.add_error(
            "INVALID_ARM_SIZE",
            "Every arm must have a positive sample size.",
            field="per_arm",
        )

    if sample_size.dropout_rate is not None:
        if not 0 <= sample_size.dropout_rate < 1:
            result.add_error(
                "INVALID_DROPOUT_RATE",
                "Dropout rate must be in [0, 1).",
                field="dropout_rate",
            )
        elif sample_size.dropout_rate > policy.high_dropout_rate:
            result.add_warning(
                "HIGH_DROPOUT",
                f"Dropout rate exceeds {policy.high_dropout_rate:.0%}.",
                field="dropout_rate",
                recommendation="High dropout may compromise study validity; plan mitigation.",
            )

    return result
