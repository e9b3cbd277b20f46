"""Cross-component consistency checks.

Each check is independent, reads only its arguments and returns a
:class:`ValidationResult`; callers combine them with
:meth:`ValidationResult.merge`.
"""

from __future__ import annotations

import logging
from collections import Counter
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from trialplan.policy import DEFAULT_POLICY, MethodologyPolicy
from trialplan.schema.base import DataType, Endpoint, SampleSizeResult, coerce_endpoint
from trialplan.schema.validator import ValidationResult

logger = logging.getLogger(__name__)

# Sample-size method -> primary endpoint data types it is valid for.
METHOD_ENDPOINT_COMPATIBILITY: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "two_sample_t_test": (DataType.CONTINUOUS.value,),
    "paired_t_test": (DataType.CONTINUOUS.value,),
    "ancova": (DataType.CONTINUOUS.value,),
    "mmrm": (DataType.CONTINUOUS.value,),
    "mann_whitney": (DataType.CONTINUOUS.value, DataType.ORDINAL.value),
    "two_proportion_test": (DataType.BINARY.value,),
    "chi_square_test": (DataType.BINARY.value,),
    "fisher_exact_test": (DataType.BINARY.value,),
    "log_rank_test": (DataType.TIME_TO_EVENT.value,),
    "cox_regression": (DataType.TIME_TO_EVENT.value,),
    "poisson": (DataType.COUNT.value,),
    "negative_binomial": (DataType.COUNT.value,),
    "proportional_odds": (DataType.ORDINAL.value,),
})


NO_PRIMARY_MESSAGE = "No primary endpoint defined; at least one is required."


def _as_endpoint(item: Any) -> Endpoint:
    # Mapping results carry their endpoint; plain records are validated.
    endpoint = getattr(item, "endpoint", item)
    return coerce_endpoint(endpoint)


def _endpoints(items: Iterable[Any]) -> list[Endpoint]:
    return [_as_endpoint(item) for item in items]


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def check_primary_endpoints(endpoints: Iterable[Any]) -> ValidationResult:
    """Exactly one primary endpoint: none is an error, several a warning.

    Args:
        endpoints: Endpoint records, plain mappings or mapping results.

    Returns:
        A ValidationResult with NO_PRIMARY_ENDPOINT as an error or
        MULTIPLE_PRIMARY_ENDPOINTS as a warning.
    """
    result = ValidationResult()
    primary = [e for e in _endpoints(endpoints) if e.is_primary]

    if not primary:
        result.add_error(
            "NO_PRIMARY_ENDPOINT",
            NO_PRIMARY_MESSAGE,
            field="endpoints",
            recommendation="Designate the endpoint the trial is powered on as primary.",
        )
    elif len(primary) > 1:
        result.add_warning(
            "MULTIPLE_PRIMARY_ENDPOINTS",
            f"Multiple primary endpoints ({len(primary)}) defined; "
            "multiplicity adjustment required.",
            field="endpoints",
            recommendation="Specify a multiplicity adjustment method (e.g. Bonferroni, Holm).",
        )
    return result


def check_unique_endpoint_names(endpoints: Iterable[Any]) -> ValidationResult:
    """Endpoint names identify endpoints, so each may be used only once.

    Args:
        endpoints: Endpoint records, plain mappings or mapping results.

    Returns:
        A ValidationResult with one DUPLICATE_ENDPOINT_NAME error per
        repeated name.
    """
    result = ValidationResult()
    counts = Counter(e.name for e in _endpoints(endpoints))
    for name, count in counts.items():
        if count > 1:
            result.add_error(
                "DUPLICATE_ENDPOINT_NAME",
                f"Endpoint name '{name}' is used {count} times; names must be unique.",
                field="endpoints",
            )
    return result


def check_sample_size_consistency(
    sample_size: SampleSizeResult | Mapping[str, Any],
    endpoints: Iterable[Any],
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> ValidationResult:
    """Check an external sample-size result against the primary endpoint.

    Args:
        sample_size: The sample-size result, or a mapping of its fields.
        endpoints: Endpoint records, plain mappings or mapping results. Only
            the first primary endpoint is compared with the method.
        policy: Supplies the minimum acceptable power.

    Returns:
        A ValidationResult. A method that does not fit the primary
        endpoint data type is an error; unknown methods, low power and
        per-arm sizes that do not add up are warnings.
    """
    if not isinstance(sample_size, SampleSizeResult):
        sample_size = SampleSizeResult.model_validate(dict(sample_size))

    result = ValidationResult()
    primary = [e for e in _endpoints(endpoints) if e.is_primary]

    if not primary:
        result.add_error(
            "NO_PRIMARY_ENDPOINT",
            NO_PRIMARY_MESSAGE,
            field="endpoints",
        )
    else:
        endpoint = primary[0]
        compatible = METHOD_ENDPOINT_COMPATIBILITY.get(sample_size.method)
        if compatible is None:
            result.add_warning(
                "UNKNOWN_SAMPLE_SIZE_METHOD",
                f"Sample size method '{sample_size.method}' is not in the compatibility "
                "table; compatibility with the primary endpoint was not checked.",
                field="method",
            )
        elif endpoint.data_type not in compatible:
            result.add_error(
                "METHOD_ENDPOINT_MISMATCH",
                f"Sample size method ({sample_size.method}) does not match primary "
                f"endpoint type ({endpoint.data_type}).",
                field="method",
                recommendation=f"Use a method valid for {endpoint.data_type} endpoints.",
            )

    if sample_size.power < policy.min_power:
        result.add_warning(
            "LOW_POWER",
            f"Power is {sample_size.power:.0%}, below conventional {policy.min_power:.0%}.",
            field="power",
            recommendation="Consider increasing sample size to achieve 80% or 90% power.",
        )

    if sample_size.per_arm and sum(sample_size.per_arm) != sample_size.total_sample_size:
        result.add_warning(
            "PER_ARM_TOTAL_MISMATCH",
            f"Per-arm sizes sum to {sum(sample_size.per_arm)} but the total sample "
            f"size is {sample_size.total_sample_size}.",
            field="per_arm",
        )

    logger.debug("Sample-size consistency: %s", result.error_codes + result.warning_codes)
    return result


def check_sap_consistency(plan: Any) -> ValidationResult:
    """Completeness of an assembled statistical analysis plan.

    *plan* may be a :class:`~trialplan.workflow.plan.StatisticalAnalysisPlan`
    or any object or mapping with ``endpoints``, ``analysis_sets``,
    ``statistical_methods`` and ``missing_data_strategy``.

    Returns:
        A ValidationResult. Missing analysis sets, missing methods and a
        missing primary endpoint are errors.
    """
    result = ValidationResult()
    endpoints = list(_get(plan, "endpoints") or [])
    analysis_sets = list(_get(plan, "analysis_sets") or [])
    methods = list(_get(plan, "statistical_methods") or [])

    if not analysis_sets:
        result.add_error("NO_ANALYSIS_SETS", "No analysis sets defined.", field="analysis_sets")

    if not methods:
        result.add_error(
            "NO_STATISTICAL_METHODS", "No statistical methods defined.", field="statistical_methods"
        )

    if len(endpoints) != len(methods):
        result.add_warning(
            "ENDPOINT_METHOD_COUNT_MISMATCH",
            f"Number of endpoints ({len(endpoints)}) does not match number of "
            f"statistical methods ({len(methods)}).",
            field="statistical_methods",
            recommendation="Ensure each endpoint has a corresponding statistical method.",
        )

    if not _get(plan, "missing_data_strategy"):
        result.add_warning(
            "NO_MISSING_DATA_STRATEGY",
            "No missing data strategy defined.",
            field="missing_data_strategy",
            recommendation="Define how missing data will be handled.",
        )

    return result.merge(check_primary_endpoints(endpoints), check_unique_endpoint_names(endpoints))


def check_protocol_consistency(
    endpoints: Iterable[Any],
    has_interim_analysis: bool = False,
    has_subgroup_analysis: bool = False,
) -> ValidationResult:
    """Protocol-level statistical checks.

    Args:
        endpoints: Endpoint records, plain mappings or mapping results.
        has_interim_analysis: Whether the protocol plans interim looks.
        has_subgroup_analysis: Whether the protocol plans subgroup analyses.

    Returns:
        A ValidationResult. Interim and subgroup notes are warnings and
        never block.
    """
    endpoints = list(endpoints)
    result = check_primary_endpoints(endpoints).merge(check_unique_endpoint_names(endpoints))

    if has_interim_analysis:
        result.add_warning(
            "INTERIM_ANALYSIS_PLANNED",
            "Interim analysis planned; ensure an alpha spending function is specified.",
            field="interim_analysis",
            recommendation="Specify an O'Brien-Fleming or Pocock boundary.",
        )

    if has_subgroup_analysis:
        result.add_warning(
            "SUBGROUP_ANALYSIS_PLANNED",
            "Subgroup analyses planned; clearly label them as exploratory.",
            field="subgroup_analysis",
            recommendation="Pre-specify subgroups and interaction tests.",
        )

    return result
