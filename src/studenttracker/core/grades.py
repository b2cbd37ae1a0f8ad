from dataclasses import dataclass
from typing import Mapping, MutableMapping, Sequence, Tuple


TERM_SLOTS: Tuple[str, ...] = ("term1", "term2", "term3", "term4")

DEFAULT_WEIGHTS: Tuple[float, float, float] = (30.0, 30.0, 40.0)

REQUIRED_WEIGHT_TOTAL = 100


class ValidationError(ValueError):
    pass


@dataclass(frozen=True)
class TermScoreInput:
    test_score: float
    assignment_score: float
    exam_score: float
    test_weight: float = DEFAULT_WEIGHTS[0]
    assignment_weight: float = DEFAULT_WEIGHTS[1]
    exam_weight: float = DEFAULT_WEIGHTS[2]

    @property
    def scores(self) -> Tuple[float, float, float]:
        return (self.test_score, self.assignment_score, self.exam_score)

    @property
    def weights(self) -> Tuple[float, float, float]:
        return (self.test_weight, self.assignment_weight, self.exam_weight)

    @property
    def total_weight(self) -> float:
        return sum(self.weights)

    def percentage(self) -> float:
        return compute_term_percentage(self.scores, self.weights)


def validate_weights(weights: Sequence[float]) -> None:
    if len(weights) != 3:
        raise ValidationError("exactly three weights are required")
    # Exact comparison: 30 + 30 + 40.0000001 is rejected.
    if sum(weights) != REQUIRED_WEIGHT_TOTAL:
        raise ValidationError("weights must sum to 100")


def compute_term_percentage(scores: Sequence[float], weights: Sequence[float]) -> float:
    """
    scores: (test, assignment, exam)
    weights: (test_weight, assignment_weight, exam_weight), must sum to 100
    percentage = Σ(score * weight) / 100

    Scores are not range-checked; out-of-range input gives out-of-range output.
    """
    if len(scores) != 3:
        raise ValidationError("exactly three scores are required")
    validate_weights(weights)

    weighted_sum = 0.0
    for score, weight in zip(scores, weights):
        weighted_sum += score * weight

    return weighted_sum / REQUIRED_WEIGHT_TOTAL


def validate_term(term: str) -> str:
    slot = (term or "").strip().lower()
    if slot not in TERM_SLOTS:
        raise ValueError(f"Unsupported term: {term}. Use term1, term2, term3 or term4.")
    return slot


def apply_term_percentage(subject: MutableMapping, term: str, inputs: TermScoreInput) -> float:
    slot = validate_term(term)
    percentage = inputs.percentage()
    subject[slot] = percentage
    return percentage


PASS_MARK = 50


def term_average(subject: Mapping) -> float:
    """Mean of the four term slots; an unset slot counts as 0."""
    total = 0.0
    for slot in TERM_SLOTS:
        total += float(subject.get(slot) or 0)
    return total / len(TERM_SLOTS)


def is_passing(average: float) -> bool:
    # Judged on the one-decimal value that is displayed.
    return round(average, 1) >= PASS_MARK
