"""Statistical analysis plan assembly."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from trialplan.analysis.consistency import (
    check_protocol_consistency,
    check_sample_size_consistency,
    check_sap_consistency,
)
from trialplan.analysis.mapping import (
    MappingResult,
    MultiplicityAssessment,
    StatisticalMethod,
    assess_multiplicity,
    map_multiple_endpoints,
)
from trialplan.policy import DEFAULT_POLICY, MethodologyPolicy
from trialplan.reporting.methods import missing_data_method_key
from trialplan.reporting.sections import render_plan
from trialplan.schema.base import (
    DataType,
    Endpoint,
    InterimAnalysisPlan,
    MissingDataStrategy,
    SampleSizeResult,
    StudyDesign,
    SubgroupSpec,
    coerce_endpoint,
)
from trialplan.schema.validator import ValidationResult
from trialplan.workflow.analysis_sets import (
    AnalysisSet,
    generate_analysis_sets,
    validate_analysis_sets,
)

logger = logging.getLogger(__name__)

_MAR_METHODS = ("mmrm", "mi")


@dataclass(frozen=True)
class SensitivityAnalysis:
    name: str
    description: str
    method: str = ""


@dataclass
class StatisticalAnalysisPlan:
    """Methodology artifacts for one trial design."""
    study_title: str
    endpoints: list[Endpoint] = field(default_factory=list)
    mappings: list[MappingResult] = field(default_factory=list)
    statistical_methods: list[StatisticalMethod] = field(default_factory=list)
    analysis_sets: list[AnalysisSet] = field(default_factory=list)
    study_design: StudyDesign = field(default_factory=StudyDesign)
    version: str = "1.0"
    sample_size: SampleSizeResult | None = None
    missing_data_strategy: MissingDataStrategy | None = None
    multiplicity: MultiplicityAssessment | None = None
    interim_analysis: InterimAnalysisPlan | None = None
    subgroup_analyses: list[SubgroupSpec] = field(default_factory=list)
    sensitivity_analyses: list[SensitivityAnalysis] = field(default_factory=list)

    @property
    def primary_endpoints(self) -> list[Endpoint]:
        return [e for e in self.endpoints if e.is_primary]

    def to_dict(self) -> dict:
        return {
            "study_title": self.study_title,
            "version": self.version,
            "study_design": self.study_design.model_dump(),
            "endpoints": [e.model_dump() for e in self.endpoints],
            "statistical_methods": [m.to_dict() for m in self.statistical_methods],
            "analysis_sets": [s.to_dict() for s in self.analysis_sets],
            "sample_size": self.sample_size.model_dump() if self.sample_size else None,
            "missing_data_strategy": (
                self.missing_data_strategy.model_dump() if self.missing_data_strategy else None
            ),
            "multiplicity": self.multiplicity.to_dict() if self.multiplicity else None,
            "interim_analysis": self.interim_analysis.model_dump() if self.interim_analysis else None,
            "subgroup_analyses": [s.model_dump() for s in self.subgroup_analyses],
            "sensitivity_analyses": [
                {"name": s.name, "description": s.description, "method": s.method}
                for s in self.sensitivity_analyses
            ],
        }

    def summary(self) -> str:
        lines = [f"# {self.study_title}", ""]
        for m in self.mappings:
            lines.append(f"**{m.endpoint.name}** ({m.endpoint.type}): {m.test.replace('_', ' ')}")
        if self.analysis_sets:
            lines.append(f"\n**Analysis Sets**: {', '.join(s.abbreviation for s in self.analysis_sets)}")
        if self.missing_data_strategy:
            lines.append(f"**Missing Data**: {self.missing_data_strategy.primary_method}")
        return "\n".join(lines)

    def to_markdown(self, policy: MethodologyPolicy = DEFAULT_POLICY) -> str:
        return render_plan(self, policy)


def default_missing_data_strategy(endpoints: Iterable[Endpoint]) -> MissingDataStrategy:
    """Missing-data handling suited to the (first) primary endpoint."""
    endpoints = list(endpoints)
    primary = next((e for e in endpoints if e.is_primary), endpoints[0] if endpoints else None)
    data_type = primary.data_type if primary else None

    if data_type == DataType.CONTINUOUS.value:
        return MissingDataStrategy(
            primary_method="MMRM",
            sensitivity_analyses=("MI", "PMM", "tipping_point"),
            assumptions=("Missing at random (MAR)", "Dropout does not depend on unobserved outcomes"),
            justification=(
                "MMRM uses all available post-baseline data without imputation and is "
                "valid under MAR, as recommended by ICH E9(R1)."
            ),
        )
    if data_type == DataType.TIME_TO_EVENT.value:
        return MissingDataStrategy(
            primary_method="complete_case",
            sensitivity_analyses=("tipping_point",),
            assumptions=("Non-informative censoring",),
            justification=(
                "Subjects without the event are censored at their last event-free "
                "assessment, so no imputation is needed for the primary analysis."
            ),
        )
    return MissingDataStrategy(
        primary_method="MI",
        sensitivity_analyses=("complete_case", "tipping_point"),
        assumptions=("Missing at random (MAR)",),
        justification=(
            "Multiple imputation under MAR retains all randomized subjects in the "
            "primary analysis."
        ),
    )


def default_sensitivity_analyses(
    strategy: MissingDataStrategy | None,
    analysis_sets: Iterable[AnalysisSet],
) -> list[SensitivityAnalysis]:
    analyses = []
    if any(s.abbreviation == "PPS" for s in analysis_sets):
        analyses.append(SensitivityAnalysis(
            "Per-protocol analysis",
            "The primary analysis repeated in the Per-Protocol Set.",
            method="per_protocol",
        ))
    if strategy is not None and missing_data_method_key(strategy.primary_method) in _MAR_METHODS:
        analyses.append(SensitivityAnalysis(
            "Tipping point analysis",
            "Imputed outcomes in the active arm are shifted until the primary conclusion "
            "changes, to assess departures from MAR.",
            method="tipping_point",
        ))
    return analyses


def _coerce(value: Any, model: type) -> Any:
    if value is None or isinstance(value, model):
        return value
    return model.model_validate(dict(value))


def assemble_plan(
    study_title: str,
    endpoints: Iterable[Endpoint | Mapping[str, Any]],
    *,
    study_design: StudyDesign | Mapping[str, Any] | None = None,
    sample_size: SampleSizeResult | Mapping[str, Any] | None = None,
    missing_data_strategy: MissingDataStrategy | Mapping[str, Any] | None = None,
    interim_analysis: InterimAnalysisPlan | Mapping[str, Any] | None = None,
    subgroups: Iterable[SubgroupSpec | Mapping[str, Any]] = (),
    version: str = "1.0",
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> StatisticalAnalysisPlan:
    """Run the full pipeline once for a trial design.

    Raises:
        pydantic.ValidationError: If an endpoint record has no ``name`` or
            ``dataType``.
    """
    endpoints = [coerce_endpoint(e) for e in endpoints]
    design = _coerce(study_design, StudyDesign) or StudyDesign()

    mappings = map_multiple_endpoints(endpoints, policy)
    analysis_sets = generate_analysis_sets(
        study_design=design.design,
        has_run_in=design.has_run_in,
        has_safety_follow_up=design.has_safety_follow_up,
        primary_endpoint_type=design.primary_endpoint_type,
    )
    strategy = _coerce(missing_data_strategy, MissingDataStrategy) or default_missing_data_strategy(endpoints)

    plan = StatisticalAnalysisPlan(
        study_title=study_title,
        endpoints=endpoints,
        mappings=mappings,
        statistical_methods=[m.statistical_method for m in mappings],
        analysis_sets=analysis_sets,
        study_design=design,
        version=version,
        sample_size=_coerce(sample_size, SampleSizeResult),
        missing_data_strategy=strategy,
        multiplicity=assess_multiplicity(mappings, policy=policy),
        interim_analysis=_coerce(interim_analysis, InterimAnalysisPlan),
        subgroup_analyses=[_coerce(s, SubgroupSpec) for s in subgroups],
        sensitivity_analyses=default_sensitivity_analyses(strategy, analysis_sets),
    )
    logger.info(
        "Assembled analysis plan '%s': %d endpoints, analysis sets %s",
        study_title, len(endpoints), [s.abbreviation for s in analysis_sets],
    )
    return plan


def check_plan(
    plan: StatisticalAnalysisPlan,
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> ValidationResult:
    """All plan-level checks combined, with repeated findings removed.

    Findings raised while mapping each endpoint (for example an unresolved
    data type) are included, so they block sign-off of the plan as well.
    """
    interim = plan.interim_analysis
    checks = [m.validation for m in plan.mappings]
    checks += [
        check_protocol_consistency(
            plan.endpoints,
            has_interim_analysis=bool(interim and interim.planned and interim.number_of_analyses > 0),
            has_subgroup_analysis=bool(plan.subgroup_analyses),
        ),
        validate_analysis_sets(plan.analysis_sets),
    ]
    if plan.sample_size is not None:
        checks.append(check_sample_size_consistency(plan.sample_size, plan.endpoints, policy))
    return check_sap_consistency(plan).merge(*checks).deduplicated()
