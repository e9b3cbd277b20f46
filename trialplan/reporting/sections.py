"""Analysis-plan section assembly.

Every function returns a :class:`SectionBlock`: a title plus text parts keyed
by a fixed outline. Blocks render to markdown with ``## Section`` /
``### Subsection`` headings, or ``**Label**:`` markers for labelled blocks,
so downstream document code can locate content by heading text.

None of these functions raise for missing optional input; absent data is
replaced by a fixed boilerplate sentence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from trialplan.policy import DEFAULT_POLICY, MethodologyPolicy
from trialplan.reporting.methods import (
    describe_boundary,
    describe_missing_data_method,
    describe_test,
)
from trialplan.schema.base import (
    Endpoint,
    InterimAnalysisPlan,
    MissingDataStrategy,
    SampleSizeResult,
    Sidedness,
    SubgroupSpec,
    coerce_endpoint,
)

NOT_APPLICABLE = "Not applicable."
NO_INTERIM = "No interim analyses are planned"
NO_SUBGROUPS = "No pre-specified subgroup analyses are planned"
NO_MISSING_DATA_STRATEGY = "No missing data strategy has been specified"
NO_SAMPLE_SIZE = "No sample size calculation has been provided"


@dataclass(frozen=True)
class SectionBlock:
    """A titled block of text parts rendered in outline order."""

    title: str
    outline: tuple[str, ...]
    parts: Mapping[str, str] = field(default_factory=dict)
    level: int = 2
    labelled: bool = False
    intro: str = ""

    def __post_init__(self):
        unknown = [key for key in self.parts if key not in self.outline]
        if unknown:
            raise ValueError(f"Parts {unknown} are not in the outline of '{self.title}'")
        missing = [key for key in self.outline if key not in self.parts]
        if missing:
            raise ValueError(f"Outline entries {missing} of '{self.title}' have no text")
        object.__setattr__(self, "parts", MappingProxyType(dict(self.parts)))

    def __getitem__(self, key: str) -> str:
        return self.parts[key]

    def keys(self) -> list[str]:
        return list(self.outline)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "outline": list(self.outline),
            "parts": {key: self.parts[key] for key in self.outline},
        }

    def to_markdown(self) -> str:
        lines = [f"{'#' * self.level} {self.title}", ""]
        if self.intro:
            lines.extend([self.intro, ""])
        for key in self.outline:
            text = self.parts[key]
            if self.labelled:
                if text.startswith("- "):
                    lines.append(f"**{key}**:")
                    lines.append(text)
                else:
                    lines.append(f"**{key}**: {text}")
            else:
                lines.append(f"{'#' * (self.level + 1)} {key}")
                lines.append("")
                lines.append(text)
            lines.append("")
        return "\n".join(lines).rstrip() + "\n"


def _bullets(items: Iterable[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _significance(sided: str, policy: MethodologyPolicy) -> str:
    if sided == Sidedness.ONE_SIDED.value:
        return f"One-sided alpha = {policy.alpha_for(sided)}"
    return f"Two-sided alpha = {policy.alpha_for(Sidedness.TWO_SIDED.value)}"


# ---------------------------------------------------------------------------
# Per-endpoint method description
# ---------------------------------------------------------------------------

METHOD_OUTLINE = (
    "Endpoint Type",
    "Data Type",
    "Hypothesis",
    "Significance Level",
    "Statistical Method",
    "Analysis Model",
    "Covariates",
    "Stratification Factors",
    "Assumptions",
    "Sample Size",
)


def method_description(
    endpoint: Endpoint | Mapping[str, Any],
    method: Any,
    sample_size: SampleSizeResult | int | None = None,
    policy: MethodologyPolicy = DEFAULT_POLICY,
    level: int = 3,
) -> SectionBlock:
    """Describe the planned analysis of one endpoint.

    Args:
        endpoint: The endpoint record, or a mapping of its fields.
        method: A :class:`~trialplan.analysis.mapping.StatisticalMethod`, its
            ``to_dict()`` form, or any object with ``test``, ``description``,
            ``assumptions``, ``covariates`` and ``stratification_factors``.
            Missing fields (or ``None``) render as placeholder text.
        sample_size: The sample-size result or a total subject count.
        policy: Supplies the significance levels.
        level: Heading level of the block title.

    Returns:
        A labelled :class:`SectionBlock` keyed by :data:`METHOD_OUTLINE`.
    """
    endpoint = coerce_endpoint(endpoint)
    test = _field(method, "test")
    covariates = _field(method, "covariates") or ()
    strata = _field(method, "stratification_factors") or ()
    assumptions = _field(method, "assumptions") or ()

    if isinstance(sample_size, SampleSizeResult):
        total = sample_size.total_sample_size
    else:
        total = sample_size

    parts = {
        "Endpoint Type": endpoint.type,
        "Data Type": endpoint.data_type,
        "Hypothesis": endpoint.hypothesis.replace("_", "-") or "superiority",
        "Significance Level": _significance(endpoint.sided, policy),
        "Statistical Method": _field(method, "description") or "To be specified.",
        "Analysis Model": "\n".join(describe_test(test, endpoint.data_type)),
        "Covariates": _bullets(covariates) if covariates else "None (unadjusted analysis).",
        "Stratification Factors": _bullets(strata) if strata else "None.",
        "Assumptions": _bullets(assumptions) if assumptions else "None stated.",
        "Sample Size": (
            f"{total} subjects (based on power analysis)" if total
            else "See the sample size justification."
        ),
    }
    return SectionBlock(endpoint.name, METHOD_OUTLINE, parts, level=level, labelled=True)


# ---------------------------------------------------------------------------
# Missing data
# ---------------------------------------------------------------------------

MISSING_DATA_OUTLINE = (
    "General Approach",
    "Primary Analysis Method",
    "Assumptions",
    "Justification",
    "Sensitivity Analyses",
    "Missing Data Reporting",
)


def missing_data_section(strategy: MissingDataStrategy | Mapping[str, Any] | None) -> SectionBlock:
    """Missing-data handling block; ``None`` or an empty mapping gives the boilerplate."""
    if isinstance(strategy, Mapping):
        strategy = MissingDataStrategy.model_validate(dict(strategy)) if strategy else None

    general = (
        "Missing data will be handled according to ICH E9 principles. The primary "
        "analysis will use all available data under the assumption that data are "
        "Missing at Random (MAR)."
    )
    reporting = _bullets([
        "Extent and patterns of missing data will be summarized by treatment group",
        "Reasons for missing data will be tabulated",
        "Baseline characteristics will be compared between subjects with and without missing data",
    ])

    if strategy is None:
        parts = {
            "General Approach": general,
            "Primary Analysis Method": f"{NO_MISSING_DATA_STRATEGY}.",
            "Assumptions": NOT_APPLICABLE,
            "Justification": NOT_APPLICABLE,
            "Sensitivity Analyses": NOT_APPLICABLE,
            "Missing Data Reporting": reporting,
        }
        return SectionBlock("Missing Data Handling", MISSING_DATA_OUTLINE, parts)

    sensitivity = [
        f"{i}. **{name}**: {describe_missing_data_method(name)}"
        for i, name in enumerate(strategy.sensitivity_analyses, start=1)
    ]
    parts = {
        "General Approach": general,
        "Primary Analysis Method": (
            f"**Method**: {strategy.primary_method}\n\n"
            f"{describe_missing_data_method(strategy.primary_method)}"
        ),
        "Assumptions": _bullets(strategy.assumptions) if strategy.assumptions else "None stated.",
        "Justification": strategy.justification or "To be provided.",
        "Sensitivity Analyses": (
            "To assess robustness to the missing data assumptions, the following "
            "sensitivity analyses will be conducted:\n\n" + "\n".join(sensitivity)
            if sensitivity else "No missing data sensitivity analyses are planned."
        ),
        "Missing Data Reporting": reporting,
    }
    return SectionBlock("Missing Data Handling", MISSING_DATA_OUTLINE, parts)


# ---------------------------------------------------------------------------
# Interim analysis
# ---------------------------------------------------------------------------

INTERIM_OUTLINE = (
    "Overview",
    "Timing",
    "Stopping Boundaries",
    "Stopping Rules",
    "Alpha Allocation",
)


def interim_analysis_section(
    interim: InterimAnalysisPlan | Mapping[str, Any] | None,
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> SectionBlock:
    if isinstance(interim, Mapping):
        interim = InterimAnalysisPlan.model_validate(dict(interim)) if interim else None

    if interim is None or not interim.planned or interim.number_of_analyses == 0:
        parts = {
            "Overview": (
                f"{NO_INTERIM}. The study will continue until the planned sample size is "
                "reached. Safety data will be reviewed on an ongoing basis by the Data "
                "Safety Monitoring Board (DSMB)."
            ),
            "Timing": NOT_APPLICABLE,
            "Stopping Boundaries": NOT_APPLICABLE,
            "Stopping Rules": NOT_APPLICABLE,
            "Alpha Allocation": (
                f"The full two-sided alpha of {policy.two_sided_alpha} is spent at the final analysis."
            ),
        }
        return SectionBlock("Interim Analysis", INTERIM_OUTLINE, parts)

    n = interim.number_of_analyses
    if interim.timing_criteria:
        timing = [f"**Interim Analysis {i}**: {c}" for i, c in enumerate(interim.timing_criteria, 1)]
    elif interim.timing_fractions:
        timing = [
            f"**Interim Analysis {i}**: after {fraction:.0%} of the planned information"
            for i, fraction in enumerate(interim.timing_fractions, 1)
        ]
    else:
        timing = []
    boundary = interim.boundary_type
    futility = interim.futility_boundary or "20%"

    parts = {
        "Overview": (
            f"{n} interim {'analysis' if n == 1 else 'analyses'} will be conducted to allow "
            "early stopping for efficacy or futility."
        ),
        "Timing": _bullets(timing) if timing else "Timing will be specified in the DSMB charter.",
        "Stopping Boundaries": "\n".join(
            (f"**Stopping Boundary Method**: {boundary.replace('_', ' ')}", "")
            + describe_boundary(boundary)
        ),
        "Stopping Rules": (
            "**Efficacy Stopping**: the study may stop early if the primary endpoint crosses "
            "the efficacy boundary and the DSMB recommends stopping on benefit-risk grounds.\n\n"
            f"**Futility Stopping**: the study may stop early if conditional power falls "
            f"below {futility}."
        ),
        "Alpha Allocation": (
            f"Total alpha = {policy.two_sided_alpha} (two-sided) will be allocated across "
            f"{n + 1} analyses ({n} interim + 1 final) using the "
            f"{boundary.replace('_', ' ')} spending function. The final analysis will "
            "account for the interim looks."
        ),
    }
    return SectionBlock("Interim Analysis", INTERIM_OUTLINE, parts)


# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------

SUBGROUP_OUTLINE = (
    "Overview",
    "Pre-specified Subgroups",
    "Statistical Methodology",
    "Interpretation Guidelines",
    "Multiplicity Considerations",
)


def subgroup_analysis_section(
    subgroups: Iterable[SubgroupSpec | Mapping[str, Any]] | None,
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> SectionBlock:
    specs = [
        s if isinstance(s, SubgroupSpec) else SubgroupSpec.model_validate(dict(s))
        for s in (subgroups or ())
    ]

    if not specs:
        parts = {
            "Overview": (
                f"{NO_SUBGROUPS}. Treatment effect will be assessed in the overall "
                "population only."
            ),
            "Pre-specified Subgroups": NOT_APPLICABLE,
            "Statistical Methodology": NOT_APPLICABLE,
            "Interpretation Guidelines": NOT_APPLICABLE,
            "Multiplicity Considerations": NOT_APPLICABLE,
        }
        return SectionBlock("Subgroup Analysis", SUBGROUP_OUTLINE, parts)

    entries = []
    for i, spec in enumerate(specs, start=1):
        entries.append("\n".join([
            f"#### {i}. {spec.name}",
            "",
            f"**Variable**: {spec.variable or spec.name}",
            f"**Categories**: {', '.join(spec.categories) or 'To be defined'}",
            f"**Rationale**: {spec.rationale or 'To be provided'}",
            f"**Analysis Method**: {spec.method or 'Treatment-by-subgroup interaction test'}",
        ]))

    adjusted = [s.name for s in specs if s.adjust_for_multiplicity]
    if adjusted:
        multiplicity = (
            f"Multiplicity adjustment will be applied to: {', '.join(adjusted)}. "
            "Remaining subgroup results are reported without adjustment and labelled exploratory."
        )
    else:
        multiplicity = _bullets([
            "No formal multiplicity adjustment will be applied to subgroup analyses",
            "Results will be clearly labelled as exploratory",
            "P-values will be reported without adjustment",
        ])

    parts = {
        "Overview": (
            "Subgroup analyses will explore the consistency of the treatment effect across "
            "patient subgroups. These analyses are exploratory and hypothesis-generating."
        ),
        "Pre-specified Subgroups": "\n\n".join(entries),
        "Statistical Methodology": _bullets([
            "Treatment-by-subgroup interaction will be tested for each subgroup",
            f"Interaction p-value < {policy.interaction_alpha} will be considered potentially meaningful",
            "Forest plots will display treatment effects with 95% CI within each subgroup",
        ]),
        "Interpretation Guidelines": _bullets([
            "Subgroup analyses are not powered for formal hypothesis testing",
            "Multiple subgroup analyses increase the risk of false positive findings",
            "Unexpected heterogeneity requires confirmation in future studies",
        ]),
        "Multiplicity Considerations": multiplicity,
    }
    return SectionBlock("Subgroup Analysis", SUBGROUP_OUTLINE, parts)


# ---------------------------------------------------------------------------
# Analysis sets
# ---------------------------------------------------------------------------

def analysis_set_table(sets: Iterable[Any]) -> str:
    lines = [
        "| Analysis Set | Abbreviation | Primary Use | Regulatory Note |",
        "|--------------|--------------|-------------|-----------------|",
    ]
    for s in sets:
        lines.append(
            f"| {s.name} | {s.abbreviation} | {s.primary_use.replace('_', ' ')} | {s.regulatory_note} |"
        )
    return "\n".join(lines)


def analysis_set_definitions(sets: Iterable[Any]) -> str:
    blocks = []
    for i, s in enumerate(sets, start=1):
        blocks.append("\n".join([
            f"#### {i}. {s.name} ({s.abbreviation})",
            "",
            f"**Description**: {s.description}",
            "",
            "**Inclusion Criteria**:",
            _bullets(s.inclusion_criteria),
            "",
            "**Exclusion Criteria**:",
            _bullets(s.exclusion_criteria) if s.exclusion_criteria else "- None",
            "",
            f"**Primary Use**: {s.primary_use.replace('_', ' ')}",
            f"**Regulatory Note**: {s.regulatory_note}",
        ]))
    return "\n\n".join(blocks)


def analysis_sets_section(sets: Iterable[Any]) -> SectionBlock:
    sets = list(sets)
    if not sets:
        parts = {"Summary": "No analysis sets have been defined.", "Definitions": NOT_APPLICABLE}
    else:
        parts = {"Summary": analysis_set_table(sets), "Definitions": analysis_set_definitions(sets)}
    return SectionBlock("Analysis Sets", ("Summary", "Definitions"), parts)


ASSIGNMENT_OUTLINE = ("General Principles", "Hierarchy", "Protocol Deviations", "Treatment Compliance")


def assignment_rules_section(sets: Iterable[Any] | None = None) -> SectionBlock:
    """Rules for assigning subjects to analysis sets.

    The hierarchy lines follow ``subset_of`` of *sets* when given.
    """
    if sets is None:
        hierarchy = [
            "All subjects in PPS are in FAS",
            "All subjects in FAS are in SAF",
            "PKS is a subset of SAF",
        ]
    else:
        hierarchy = [
            f"All subjects in {s.abbreviation} are in {s.subset_of}"
            for s in sets if s.subset_of
        ]
    parts = {
        "General Principles": "\n".join([
            "1. **Timing of Assignment**: analysis set membership will be determined and "
            "documented before database lock and unblinding.",
            "2. **Independence**: assignment will be performed independently of treatment "
            "allocation and outcome data.",
            "3. **Documentation**: all exclusions from analysis sets will be documented with reasons.",
        ]),
        "Hierarchy": _bullets(hierarchy) if hierarchy else NOT_APPLICABLE,
        "Protocol Deviations": "Major protocol deviations that may affect PPS inclusion:\n" + _bullets([
            "Enrollment of ineligible subjects",
            "Use of prohibited concomitant medications",
            "Treatment compliance below 80%",
            "Incorrect study medication administration",
            "Missing primary endpoint assessment without valid reason",
        ]),
        "Treatment Compliance": _bullets([
            "Compliance = (doses taken / doses prescribed) x 100%",
            "Compliance of at least 80% is required for PPS inclusion",
            "Compliance is assessed over the entire treatment period",
        ]),
    }
    return SectionBlock("Analysis Set Assignment Rules", ASSIGNMENT_OUTLINE, parts)


# ---------------------------------------------------------------------------
# Document-level sections
# ---------------------------------------------------------------------------

def general_principles_section(policy: MethodologyPolicy = DEFAULT_POLICY) -> SectionBlock:
    outline = ("Significance Level", "Missing Data", "Multiplicity", "Interim Analyses", "Software", "Data Presentation")
    parts = {
        "Significance Level": _bullets([
            f"All tests will be two-sided with alpha = {policy.two_sided_alpha} unless otherwise "
            f"specified; one-sided tests use alpha = {policy.one_sided_alpha}",
            "P-values will be reported to three decimal places (p < 0.001 for very small values)",
            "Confidence intervals will be reported at the 95% level",
        ]),
        "Missing Data": _bullets([
            "The primary analysis will use all available data",
            "Missing data patterns will be examined and reported",
            "Sensitivity analyses will assess the impact of missing data",
        ]),
        "Multiplicity": _bullets([
            f"The primary endpoint will be tested at the full alpha = {policy.two_sided_alpha} level",
            "Secondary endpoints will be tested using a hierarchical procedure where applicable",
        ]),
        "Interim Analyses": _bullets([
            "Interim analyses will be conducted as specified in the protocol",
            "The final analysis will account for interim looks",
        ]),
        "Software": _bullets([
            "SAS Version 9.4 or later, or R Version 4.0 or later",
            "Analysis programs will be validated and documented",
        ]),
        "Data Presentation": _bullets([
            "Continuous variables: mean, SD, median, Q1, Q3, min, max, n",
            "Categorical variables: frequency and percentage",
            "Time-to-event: Kaplan-Meier estimates, median with 95% CI, hazard ratios",
        ]),
    }
    return SectionBlock("General Statistical Principles", outline, parts)


SAMPLE_SIZE_OUTLINE = ("Sample Size Calculation", "Assumptions", "Justification")


def sample_size_section(
    sample_size: SampleSizeResult | Mapping[str, Any] | None,
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> SectionBlock:
    if isinstance(sample_size, Mapping):
        sample_size = SampleSizeResult.model_validate(dict(sample_size)) if sample_size else None

    if sample_size is None:
        parts = {
            "Sample Size Calculation": f"{NO_SAMPLE_SIZE}.",
            "Assumptions": NOT_APPLICABLE,
            "Justification": "Provide a sample size justification based on the primary endpoint.",
        }
        return SectionBlock("Sample Size Justification", SAMPLE_SIZE_OUTLINE, parts)

    s = sample_size
    calculation = [
        f"**Total Sample Size**: {s.total_sample_size} subjects",
        f"**Power**: {s.power:.0%}",
        f"**Significance Level**: {s.alpha}",
        f"**Statistical Method**: {s.method.replace('_', ' ')}",
    ]
    if s.per_arm:
        calculation.insert(1, f"**Per Arm**: {' / '.join(str(n) for n in s.per_arm)} subjects")
    if s.effect_size is not None:
        calculation.append(f"**Effect Size**: {s.effect_size}")
    if s.dropout_rate:
        calculation.append(f"**Expected Dropout Rate**: {s.dropout_rate:.0%}")

    difference = f"a clinically meaningful difference of {s.effect_size}" if s.effect_size is not None \
        else "a clinically meaningful difference"
    justification = (
        f"The sample size provides {s.power:.0%} power to detect {difference} between "
        f"treatment groups at a significance level of {s.alpha}."
    )
    if s.assumptions:
        justification += f" This calculation assumes {s.assumptions[0]}."
    if s.dropout_rate:
        justification += (
            f" The sample size has been inflated by {s.dropout_rate:.0%} to account for "
            "expected dropouts."
        )

    parts = {
        "Sample Size Calculation": _bullets(calculation),
        "Assumptions": _bullets(s.assumptions) if s.assumptions else "None stated.",
        "Justification": justification,
    }
    return SectionBlock("Sample Size Justification", SAMPLE_SIZE_OUTLINE, parts)


STATISTICAL_METHODS_OUTLINE = (
    "Primary Endpoint Analysis",
    "Secondary Endpoint Analyses",
    "Exploratory Analyses",
)


def statistical_methods_section(
    mappings: Iterable[Any],
    sample_size: SampleSizeResult | None = None,
    policy: MethodologyPolicy = DEFAULT_POLICY,
) -> SectionBlock:
    """Method descriptions for every mapped endpoint, grouped by role."""
    mappings = list(mappings)

    def _role(role: str, empty: str, with_size: bool = False) -> str:
        blocks = [
            method_description(
                m.endpoint, m.statistical_method,
                sample_size if with_size else None, policy, level=4,
            ).to_markdown()
            for m in mappings if m.endpoint.type == role
        ]
        return "\n".join(blocks).rstrip() if blocks else empty

    parts = {
        "Primary Endpoint Analysis": _role("primary", "No primary endpoint is defined.", True),
        "Secondary Endpoint Analyses": _role("secondary", "No secondary endpoints are defined."),
        "Exploratory Analyses": _role("exploratory", "No exploratory endpoints are defined."),
    }
    return SectionBlock("Statistical Methods", STATISTICAL_METHODS_OUTLINE, parts)


def multiplicity_section(assessment: Any) -> SectionBlock:
    if assessment is not None and not assessment.needed and assessment.number_of_comparisons == 0:
        text = f"{assessment.reason}; the multiplicity strategy cannot be determined."
        adjustment = NOT_APPLICABLE
    elif assessment is None or not assessment.needed:
        text = (
            "A single primary endpoint is tested at the full significance level; no "
            "multiplicity adjustment is required for the primary analysis."
        )
        adjustment = NOT_APPLICABLE
    else:
        text = f"{assessment.reason}. Adjustment for multiple comparisons is required."
        adjustment = (
            f"{(assessment.method or 'bonferroni').capitalize()} adjustment over "
            f"{assessment.number_of_comparisons} comparisons: each is tested at alpha = "
            f"{assessment.adjusted_alpha:.4g}."
        )
    return SectionBlock("Multiplicity", ("Assessment", "Adjustment"), {"Assessment": text, "Adjustment": adjustment})


def sensitivity_analyses_section(analyses: Iterable[Any]) -> SectionBlock:
    analyses = list(analyses)
    if not analyses:
        text = "No sensitivity analyses are planned."
    else:
        text = "\n".join(
            f"{i}. **{a.name}**: {a.description}" for i, a in enumerate(analyses, start=1)
        )
    return SectionBlock("Sensitivity Analyses", ("Planned Analyses",), {"Planned Analyses": text})


SAP_OUTLINE = (
    ("1. Introduction", ("1.1 Study Overview", "1.2 Study Objectives", "1.3 Study Design", "1.4 Study Endpoints")),
    ("2. General Statistical Considerations", (
        "2.1 Statistical Software", "2.2 Significance Level and Confidence Intervals",
        "2.3 Handling of Missing Data", "2.4 Multiplicity Adjustments", "2.5 Interim Analyses",
    )),
    ("3. Analysis Populations", (
        "3.1 Full Analysis Set (FAS)", "3.2 Per-Protocol Set (PPS)", "3.3 Safety Analysis Set (SAF)",
        "3.4 Other Analysis Sets", "3.5 Analysis Set Assignment Rules",
    )),
    ("4. Sample Size and Power", ("4.1 Sample Size Calculation", "4.2 Assumptions", "4.3 Justification")),
    ("5. Endpoint Definitions and Derivations", (
        "5.1 Primary Endpoint", "5.2 Secondary Endpoints", "5.3 Exploratory Endpoints", "5.4 Safety Endpoints",
    )),
    ("6. Statistical Methods", (
        "6.1 Primary Endpoint Analysis", "6.2 Secondary Endpoint Analyses",
        "6.3 Exploratory Analyses", "6.4 Safety Analyses",
    )),
    ("7. Subgroup Analyses", (
        "7.1 Pre-specified Subgroups", "7.2 Statistical Methodology", "7.3 Interpretation Guidelines",
    )),
    ("8. Sensitivity Analyses", (
        "8.1 Missing Data Sensitivity Analyses", "8.2 Per-Protocol Analysis", "8.3 Other Sensitivity Analyses",
    )),
    ("9. Interim Analyses", ("9.1 Timing and Methodology", "9.2 Stopping Rules", "9.3 DSMB Charter")),
    ("10. Changes from Protocol", ("10.1 Protocol Amendments", "10.2 SAP Amendments")),
    ("11. References", ()),
    ("12. Appendices", ("12.1 Statistical Formulas", "12.2 Code Specifications", "12.3 Table and Figure Shells")),
)


def sap_outline() -> SectionBlock:
    """Table of contents of a complete statistical analysis plan."""
    parts = {
        heading: _bullets(subsections) if subsections else "Literature and guidance cited in the plan."
        for heading, subsections in SAP_OUTLINE
    }
    return SectionBlock(
        "Statistical Analysis Plan (SAP)",
        tuple(heading for heading, _ in SAP_OUTLINE),
        parts,
        level=1,
    )


def render_plan(plan: Any, policy: MethodologyPolicy = DEFAULT_POLICY) -> str:
    """Render an assembled analysis plan as one markdown document, in fixed order."""
    header = [
        f"# Statistical Analysis Plan: {plan.study_title}",
        "",
        f"**Version**: {plan.version}",
        "",
    ]
    blocks = [
        general_principles_section(policy),
        analysis_sets_section(plan.analysis_sets),
        assignment_rules_section(plan.analysis_sets),
        sample_size_section(plan.sample_size, policy),
        statistical_methods_section(plan.mappings, plan.sample_size, policy),
        multiplicity_section(plan.multiplicity),
        missing_data_section(plan.missing_data_strategy),
        interim_analysis_section(plan.interim_analysis, policy),
        subgroup_analysis_section(plan.subgroup_analyses, policy),
        sensitivity_analyses_section(plan.sensitivity_analyses),
    ]
    return "\n".join(header) + "\n".join(block.to_markdown() for block in blocks)
