from dataclasses import dataclass

STRATIFIED_SURVIVAL_TESTS = ("log_rank", "cox_regression")


@dataclass(frozen=True)
class MethodologyPolicy:
    """Configurable thresholds and tie-breaks for methodology decisions."""
    min_expected_cell_count: float = 5.0  # Fisher's exact when any expected cell < this
    small_sample_per_arm: int = 30  # Continuous endpoints below this n/arm are treated as non-parametric
    stratified_survival_test: str = "log_rank"  # Stratified time-to-event without covariates
    min_power: float = 0.80  # Warn below this
    max_alpha: float = 0.05  # Warn above this
    two_sided_alpha: float = 0.05
    one_sided_alpha: float = 0.025
    many_secondary_endpoints: int = 3  # More than this many secondaries needs multiplicity control
    interaction_alpha: float = 0.10  # Treatment-by-subgroup interaction threshold
    min_primary_description_length: int = 20
    high_dropout_rate: float = 0.30

    def __post_init__(self):
        if self.stratified_survival_test not in STRATIFIED_SURVIVAL_TESTS:
            raise ValueError(
                f"stratified_survival_test must be one of {STRATIFIED_SURVIVAL_TESTS}, "
                f"got '{self.stratified_survival_test}'"
            )
        if self.min_expected_cell_count < 0:
            raise ValueError("min_expected_cell_count must be non-negative")

    def alpha_for(self, sided: str) -> float:
        """Nominal significance level for a test of the given sidedness."""
        return self.one_sided_alpha if sided == "one_sided" else self.two_sided_alpha


DEFAULT_POLICY = MethodologyPolicy()
