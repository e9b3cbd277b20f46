"""Reference text for statistical tests, missing-data methods and stopping boundaries."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from trialplan.schema.base import DataType, normalize_label


@dataclass(frozen=True)
class TestDetails:
    __test__ = False  # not a pytest test class

    model: str
    summary: str
    specification: tuple[str, ...]
    estimate: str


TEST_DETAILS: Mapping[str, TestDetails] = MappingProxyType({
    "t_test": TestDetails(
        "Two-sample t-test",
        "Mean outcomes are compared between treatment groups with a t-test. "
        "For paired designs the paired t-test is applied to within-subject differences.",
        (
            "Null hypothesis (H0): mean difference between groups = 0",
            "Test statistic: t = (mean1 - mean2) / SE",
            "Degrees of freedom: Welch-Satterthwaite approximation (unequal variances)",
        ),
        "Mean difference with 95% confidence interval",
    ),
    "ancova": TestDetails(
        "Analysis of Covariance (ANCOVA)",
        "An ANCOVA model with treatment as the main factor and the baseline value as a "
        "covariate is fitted; adjusting for baseline reduces residual variance.",
        (
            "Y = b0 + b1*Treatment + b2*Baseline + e",
            "Residual error e assumed normally distributed",
            "Primary estimand: least squares mean difference adjusted for baseline",
        ),
        "Adjusted mean difference with 95% confidence interval",
    ),
    "anova": TestDetails(
        "Analysis of Variance (ANOVA)",
        "A one-way ANOVA compares means across treatment groups.",
        (
            "Null hypothesis (H0): all group means are equal",
            "Test statistic: F = MS_between / MS_within",
            "Post-hoc comparisons: Tukey's HSD when the overall F-test is significant",
        ),
        "Pairwise mean differences with 95% confidence intervals",
    ),
    "chi_square": TestDetails(
        "Chi-square test of independence",
        "The proportion of responders is compared between treatment groups with "
        "Pearson's chi-square test.",
        (
            "Null hypothesis (H0): p_treatment = p_control",
            "Test statistic: sum of (O - E)^2 / E",
            "Additional estimates: risk ratio, odds ratio, number needed to treat",
        ),
        "Risk difference with 95% confidence interval (Wilson score method)",
    ),
    "fisher_exact": TestDetails(
        "Fisher's exact test",
        "Expected cell counts are small, so Fisher's exact test is used instead of the "
        "chi-square test.",
        (
            "Exact p-value from the hypergeometric distribution",
            "No large-sample approximation required",
        ),
        "Risk difference with exact 95% confidence interval",
    ),
    "cochran_mantel_haenszel": TestDetails(
        "Cochran-Mantel-Haenszel (CMH) test",
        "Proportions are compared while controlling for the stratification factors.",
        (
            "Null hypothesis (H0): common odds ratio = 1 across all strata",
            "Test statistic: CMH chi-square",
            "Homogeneity of odds ratios across strata assessed with the Breslow-Day test",
        ),
        "Mantel-Haenszel common odds ratio with 95% confidence interval",
    ),
    "log_rank": TestDetails(
        "Log-rank test",
        "Time-to-event distributions are compared between treatment groups with the "
        "log-rank test, stratified by the randomisation factors where specified.",
        (
            "Null hypothesis (H0): survival functions are equal for all t",
            "Kaplan-Meier curves and median time to event with 95% CI per group",
            "Event-free rates at key time points",
        ),
        "Hazard ratio from a Cox proportional hazards model with 95% CI",
    ),
    "cox_regression": TestDetails(
        "Cox proportional hazards regression",
        "A Cox regression model estimates the hazard ratio for treatment, adjusting for "
        "baseline covariates and stratifying the baseline hazard where specified.",
        (
            "h(t) = h0(t) * exp(b1*Treatment + b2*Covariate1 + ... + bk*Covariatek)",
            "Proportional hazards assessed with Schoenfeld residuals and log-log plots",
            "Primary estimand: adjusted hazard ratio for treatment",
        ),
        "Adjusted hazard ratio with 95% confidence interval",
    ),
    "mann_whitney": TestDetails(
        "Mann-Whitney U test (Wilcoxon rank-sum test)",
        "A non-parametric test is used because of non-normal distribution or ordinal data.",
        (
            "Null hypothesis (H0): distributions are identical",
            "Test statistic: U = min(U1, U2)",
        ),
        "Hodges-Lehmann estimate of the median difference with 95% confidence interval",
    ),
    "wilcoxon_signed_rank": TestDetails(
        "Wilcoxon signed-rank test",
        "A non-parametric paired test for within-subject comparisons.",
        (
            "Null hypothesis (H0): median difference = 0",
            "Test statistic: sum of signed ranks",
        ),
        "Median difference with 95% confidence interval",
    ),
    "mmrm": TestDetails(
        "Mixed Model for Repeated Measures (MMRM)",
        "An MMRM analyses all post-baseline visits, accounting for within-subject "
        "correlation.",
        (
            "Y_ij = b0 + b1*Treatment_i + b2*Visit_j + b3*Treatment_i*Visit_j + b4*Baseline_i + e_ij",
            "Covariance structure: unstructured",
            "Primary estimand: treatment difference at the primary time point",
            "Uses all available data under missing at random (MAR)",
        ),
        "Least squares mean difference at the primary visit with 95% CI",
    ),
    "mcnemar": TestDetails(
        "McNemar's test",
        "A paired test for binary outcomes (before/after or matched pairs).",
        (
            "Null hypothesis (H0): marginal probabilities are equal",
            "Test statistic: (b - c)^2 / (b + c), b and c the discordant pairs",
        ),
        "Paired odds ratio with 95% confidence interval",
    ),
    "kruskal_wallis": TestDetails(
        "Kruskal-Wallis test",
        "A non-parametric test comparing several groups.",
        (
            "Null hypothesis (H0): all groups have identical distributions",
            "Post-hoc comparisons: Dunn's test with Bonferroni correction",
        ),
        "Median differences with 95% confidence intervals",
    ),
    "glmm": TestDetails(
        "Generalized Linear Mixed Model (GLMM)",
        "A GLMM is used for count, ordinal or repeated non-normal outcomes.",
        (
            "Random effects: subject-specific intercepts",
        ),
        "Exponentiated coefficient (rate ratio or odds ratio) with 95% CI",
    ),
})

_GLMM_FAMILY = MappingProxyType({
    DataType.COUNT.value: "Negative binomial (handles overdispersion), log link",
    DataType.BINARY.value: "Binomial, logit link",
    DataType.ORDINAL.value: "Cumulative logit (proportional odds)",
})


def describe_test(test: str | None, data_type: str | None = None) -> list[str]:
    """Markdown lines describing the analysis model for *test*, model name first.

    Unknown or missing identifiers degrade to a placeholder instead of raising.
    """
    details = TEST_DETAILS.get(test) if test else None
    if details is None:
        return [
            test.replace("_", " ") if test else "Statistical method to be specified",
            "",
            "Detailed methodology will be specified in the final SAP.",
        ]
    lines = [details.model, "", details.summary, ""]
    lines.extend(f"- {item}" for item in details.specification)
    if test == "glmm":
        lines.append(f"- Distribution: {_GLMM_FAMILY.get(data_type, 'family appropriate to the outcome')}")
    lines.extend(["", f"**Effect Estimate**: {details.estimate}"])
    return lines


MISSING_DATA_METHODS: Mapping[str, str] = MappingProxyType({
    "complete_case": (
        "Complete case analysis: only subjects with complete data for the endpoint are "
        "included. Valid if data are MCAR; may be biased under MAR or MNAR."
    ),
    "locf": (
        "Last Observation Carried Forward: missing values are imputed with the last "
        "available post-baseline observation."
    ),
    "bocf": (
        "Baseline Observation Carried Forward: missing values are imputed with the baseline "
        "observation, assuming no treatment effect for subjects with missing data."
    ),
    "wocf": (
        "Worst Observation Carried Forward: missing values are imputed with the worst "
        "post-baseline observation."
    ),
    "mmrm": (
        "Mixed Model for Repeated Measures: all available data are used in a likelihood-based "
        "mixed model with treatment, visit, treatment-by-visit interaction and baseline as "
        "covariates and an unstructured covariance matrix. Valid under MAR without imputation."
    ),
    "mi": (
        "Multiple Imputation: missing values are imputed multiple times (typically 20-100) "
        "from a model of the observed data and results are combined with Rubin's rules. "
        "Valid under MAR."
    ),
    "pmm": (
        "Pattern Mixture Model: separate models are fitted for different missingness "
        "patterns, allowing exploration of MNAR scenarios."
    ),
    "tipping_point": (
        "Tipping point analysis: imputed values in the active arm are shifted progressively "
        "until the conclusion changes, showing how strong a departure from MAR is needed."
    ),
})

_MISSING_DATA_SYNONYMS = MappingProxyType({
    "multiple_imputation": "mi",
    "pattern_mixture_model": "pmm",
    "pattern_mixture": "pmm",
    "complete_case_analysis": "complete_case",
    "last_observation_carried_forward": "locf",
    "baseline_observation_carried_forward": "bocf",
})


def missing_data_method_key(method: str) -> str:
    key = normalize_label(method)
    return _MISSING_DATA_SYNONYMS.get(key, key)


def describe_missing_data_method(method: str) -> str:
    return MISSING_DATA_METHODS.get(
        missing_data_method_key(method), "Detailed methodology to be specified."
    )


BOUNDARIES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "obrien_fleming": (
        "The O'Brien-Fleming boundary will be used: stringent at early looks and "
        "approaching the conventional significance level at the final analysis.",
        "",
        "**Alpha Spending Function**: O'Brien-Fleming type (Lan-DeMets)",
        "- Early interim analyses: very stringent boundaries",
        "- Later analyses: less stringent boundaries",
        "- Preserves the overall Type I error rate",
    ),
    "pocock": (
        "The Pocock boundary will be used: the same nominal significance level at every look.",
        "",
        "**Alpha Spending Function**: Pocock type (Lan-DeMets)",
        "- All analyses use the same significance level",
        "- More liberal early stopping than O'Brien-Fleming",
    ),
    "haybittle_peto": (
        "The Haybittle-Peto boundary will be used: a fixed p < 0.001 threshold at each "
        "interim analysis with the final analysis at essentially the full alpha.",
    ),
})


def describe_boundary(boundary: str) -> tuple[str, ...]:
    return BOUNDARIES.get(
        normalize_label(boundary),
        (f"Stopping boundaries will follow the {boundary.replace('_', ' ')} method.",),
    )
