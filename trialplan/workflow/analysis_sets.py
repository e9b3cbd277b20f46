"""Analysis population definitions.

The standard populations are nested PPS <= FAS (or mITT) <= SAF, and PKS <=
SAF. The nesting is written into the inclusion criteria themselves: every
subset lists a "Met all <parent> criteria" line (or repeats the parent's
criteria), so the hierarchy holds by construction without comparing
subject lists.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass

from trialplan.schema.base import normalize_label
from trialplan.schema.validator import ValidationResult

logger = logging.getLogger(__name__)

PRIMARY_EFFICACY = "primary_efficacy"
SUPPORTIVE_EFFICACY = "supportive_efficacy"
SENSITIVITY = "sensitivity_analysis"
PRIMARY_SAFETY = "primary_safety"
ALL_SAFETY = "all_safety"
PHARMACOKINETICS = "pharmacokinetics"

_SAFETY_USES = (PRIMARY_SAFETY, ALL_SAFETY)

_DOSED = "Received at least one dose of study medication"


@dataclass(frozen=True)
class AnalysisSet:
    name: str
    abbreviation: str
    description: str
    inclusion_criteria: tuple[str, ...]
    exclusion_criteria: tuple[str, ...]
    primary_use: str
    regulatory_note: str
    subset_of: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "abbreviation": self.abbreviation,
            "description": self.description,
            "inclusion_criteria": list(self.inclusion_criteria),
            "exclusion_criteria": list(self.exclusion_criteria),
            "primary_use": self.primary_use,
            "regulatory_note": self.regulatory_note,
            "subset_of": self.subset_of,
        }


def generate_analysis_sets(
    study_design: str = "parallel",
    has_run_in: bool = False,
    has_safety_follow_up: bool = False,
    primary_endpoint_type: str = "efficacy",
) -> list[AnalysisSet]:
    """Build the analysis populations for a trial.

    FAS, PPS, SAF and PKS are always defined; PKS is populated at the
    sponsor's discretion. A run-in period adds a modified-ITT set, which then
    becomes the primary efficacy population.

    Args:
        study_design: parallel, crossover, factorial or adaptive.
        has_run_in: Whether the trial has a run-in period.
        has_safety_follow_up: Whether safety data are collected after treatment.
        primary_endpoint_type: efficacy or safety.

    Returns:
        The sets in order FAS, [mITT], PPS, SAF, PKS.
    """
    design = normalize_label(study_design) or "parallel"
    safety_primary = normalize_label(primary_endpoint_type) == "safety"
    crossover = design == "crossover"

    as_randomized = (
        "analyzed according to the treatment sequence assigned at randomization, by period"
        if crossover
        else "analyzed according to the treatment assigned at randomization"
    )
    as_treated = (
        "analyzed according to the treatment actually received in each period"
        if crossover
        else "analyzed according to the treatment actually received"
    )

    saf_description = f"All subjects who received at least one dose of study medication, {as_treated}."
    if has_safety_follow_up:
        saf_description += (
            " Safety data collected during the post-treatment safety follow-up period"
            " are included."
        )

    saf = AnalysisSet(
        name="Safety Analysis Set",
        abbreviation="SAF",
        description=saf_description,
        inclusion_criteria=(_DOSED,),
        exclusion_criteria=("Did not receive any study medication",),
        primary_use=PRIMARY_SAFETY if safety_primary else ALL_SAFETY,
        regulatory_note="ICH E9: Primary analysis population for safety endpoints",
    )

    fas = AnalysisSet(
        name="Full Analysis Set",
        abbreviation="FAS",
        description=(
            "All randomized subjects who received at least one dose of study medication, "
            f"{as_randomized} (intent-to-treat principle)."
        ),
        inclusion_criteria=("Randomized to treatment", _DOSED),
        exclusion_criteria=("Did not receive any study medication",),
        primary_use=SUPPORTIVE_EFFICACY if has_run_in else PRIMARY_EFFICACY,
        regulatory_note="ICH E9: Primary analysis population for efficacy endpoints",
        subset_of="SAF",
    )

    sets = [fas]
    efficacy_parent = fas

    if has_run_in:
        mitt = AnalysisSet(
            name="Modified Intent-to-Treat Set",
            abbreviation="mITT",
            description=(
                "All randomized subjects who received at least one dose of study medication "
                "during the double-blind treatment period and had at least one post-baseline "
                f"efficacy assessment, {as_randomized}."
            ),
            inclusion_criteria=(
                "Met all FAS criteria",
                "Received at least one dose during the double-blind period",
                "At least one post-baseline efficacy assessment",
            ),
            exclusion_criteria=(
                "Did not receive double-blind medication",
                "No post-baseline efficacy data",
                "Discontinued during the run-in period",
            ),
            primary_use=PRIMARY_EFFICACY,
            regulatory_note="ICH E9: Modified ITT for studies with a run-in period",
            subset_of="FAS",
        )
        sets.append(mitt)
        efficacy_parent = mitt

    pps_completion = (
        "Completed both treatment periods" if crossover
        else "Completed the study (or reached primary endpoint assessment)"
    )
    sets.append(AnalysisSet(
        name="Per-Protocol Set",
        abbreviation="PPS",
        description=(
            f"Subset of the {efficacy_parent.abbreviation} including subjects who completed the "
            "study without major protocol deviations that could substantially affect the "
            "evaluation of efficacy."
        ),
        inclusion_criteria=(
            f"Met all {efficacy_parent.abbreviation} criteria",
            pps_completion,
            "No major protocol deviations",
            "Treatment compliance of at least 80%",
        ),
        exclusion_criteria=(
            "Major protocol violations affecting efficacy assessment",
            "Treatment compliance below 80%",
            "Prohibited concomitant medication use",
            "Incorrect study medication administration",
        ),
        primary_use=SENSITIVITY,
        regulatory_note="ICH E9: Sensitivity analysis for efficacy endpoints",
        subset_of=efficacy_parent.abbreviation,
    ))

    sets.append(saf)

    sets.append(AnalysisSet(
        name="Pharmacokinetic Analysis Set",
        abbreviation="PKS",
        description="All subjects in the Safety Analysis Set who have evaluable pharmacokinetic data.",
        inclusion_criteria=(
            "Met all SAF criteria",
            "At least one evaluable PK sample",
            "No major PK sampling protocol deviations",
        ),
        exclusion_criteria=("No PK samples collected", "All PK samples non-evaluable"),
        primary_use=PHARMACOKINETICS,
        regulatory_note="ICH E9: Specialized analysis set for PK endpoints",
        subset_of="SAF",
    ))

    logger.debug("Generated analysis sets: %s", [s.abbreviation for s in sets])
    return sets


def is_nested_within(child: AnalysisSet, parent: AnalysisSet) -> bool:
    """Whether *child*'s criteria make it a subset of *parent* directly."""
    if child.subset_of == parent.abbreviation:
        return True
    if f"Met all {parent.abbreviation} criteria" in child.inclusion_criteria:
        return True
    return set(parent.inclusion_criteria) <= set(child.inclusion_criteria)


def nesting_chain(sets: list[AnalysisSet], abbreviation: str) -> list[str]:
    """Abbreviations from *abbreviation* up to its outermost enclosing set."""
    by_abbreviation = {s.abbreviation: s for s in sets}
    chain: list[str] = []
    current = by_abbreviation.get(abbreviation)
    while current is not None and current.abbreviation not in chain:
        chain.append(current.abbreviation)
        current = by_abbreviation.get(current.subset_of) if current.subset_of else None
    return chain


def validate_analysis_sets(sets: list[AnalysisSet]) -> ValidationResult:
    """Check a set of analysis populations before it is used in a plan.

    Args:
        sets: The analysis sets to check.

    Returns:
        A ValidationResult. A missing efficacy or safety population, a
        duplicate abbreviation and anything other than exactly one primary
        efficacy set are errors; an undefined parent set is a warning.
    """
    result = ValidationResult()
    abbreviations = [s.abbreviation for s in sets]

    if "FAS" not in abbreviations and "mITT" not in abbreviations:
        result.add_error(
            "MISSING_EFFICACY_SET",
            "Either FAS or mITT must be defined as the efficacy population.",
            field="analysis_sets",
        )

    if "SAF" not in abbreviations:
        result.add_error(
            "MISSING_SAFETY_SET",
            "Safety Analysis Set (SAF) is required.",
            field="analysis_sets",
        )

    for abbreviation, count in Counter(abbreviations).items():
        if count > 1:
            result.add_error(
                "DUPLICATE_ANALYSIS_SET",
                f"Analysis set abbreviation '{abbreviation}' is defined {count} times.",
                field="analysis_sets",
            )

    primary_efficacy = [s for s in sets if s.primary_use == PRIMARY_EFFICACY]
    if not primary_efficacy:
        result.add_error(
            "NO_PRIMARY_EFFICACY_SET",
            "No analysis set designated for the primary efficacy analysis.",
            field="primary_use",
        )
    elif len(primary_efficacy) > 1:
        result.add_error(
            "MULTIPLE_PRIMARY_EFFICACY_SETS",
            "Exactly one analysis set may be designated for the primary efficacy analysis; found "
            + ", ".join(s.abbreviation for s in primary_efficacy) + ".",
            field="primary_use",
        )

    if not any(s.primary_use in _SAFETY_USES for s in sets):
        result.add_error(
            "NO_SAFETY_SET_DESIGNATED",
            "No analysis set designated for the safety analysis.",
            field="primary_use",
        )

    known = set(abbreviations)
    for s in sets:
        if s.subset_of and s.subset_of not in known:
            result.add_warning(
                "UNKNOWN_PARENT_SET",
                f"{s.abbreviation} is defined as a subset of {s.subset_of}, which is not defined.",
                field="subset_of",
            )

    return result
