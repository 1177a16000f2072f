"""
Mock fitness evaluation for candidate activation functions.

No network is trained. Metrics are drawn from a fixed-shape random model in
which complexity costs accuracy and a custom dataset adds a small bonus:

    accuracy = 0.85 + U(0, 0.14) - 0.005 * complexity + bonus
    loss     = (1 - accuracy) * 2 + U(0, 0.1)
    score    = accuracy * 1.5 - loss * 0.8 - complexity * 0.01

An expression without the input variable or without any function call is
forced to score -1 so it never wins a tournament.
"""

import random
from typing import Dict

from ..core.vocabulary import DEFAULT_DATASET, INPUT_VARIABLE, PARAMS
from .candidate import Candidate, generate_candidate_id
from .expression import count_complexity
from .generator import generate_expression


INVALID_SCORE = -1.0
METRIC_PRECISION = 4

BASE_ACCURACY = 0.85
ACCURACY_NOISE = 0.14
COMPLEXITY_ACCURACY_COST = 0.005
DATASET_BONUS = 0.01
LOSS_NOISE = 0.1

# Score weights
ACCURACY_WEIGHT = 1.5
LOSS_WEIGHT = 0.8
COMPLEXITY_WEIGHT = 0.01


def composite_score(accuracy: float, loss: float, complexity: int) -> float:
    """Combine metrics into the ranking score (before rounding)."""
    return (
        accuracy * ACCURACY_WEIGHT -
        loss * LOSS_WEIGHT -
        complexity * COMPLEXITY_WEIGHT
    )


def passes_validity_gate(expression: str) -> bool:
    """An activation must use the input and apply at least one function."""
    return INPUT_VARIABLE in expression and '(' in expression


def evaluate_expression(
    expression: str,
    dataset: str = DEFAULT_DATASET,
    rng=None,
    prefix: str = 'eval',
) -> Candidate:
    """
    Score an expression and wrap it in a new Candidate.

    This is the only place a score is assigned.

    Args:
        expression: Expression text
        dataset: Dataset name; anything but the default earns a small bonus
        rng: Random source with random() (defaults to the random module)
        prefix: Prefix for the candidate ID

    Returns:
        A new Candidate with freshly drawn metrics
    """
    rng = rng or random
    complexity = count_complexity(expression)

    dataset_bonus = rng.random() * DATASET_BONUS if dataset != DEFAULT_DATASET else 0.0
    accuracy = (
        BASE_ACCURACY +
        rng.random() * ACCURACY_NOISE -
        complexity * COMPLEXITY_ACCURACY_COST +
        dataset_bonus
    )
    loss = (1 - accuracy) * 2 + rng.random() * LOSS_NOISE

    score = composite_score(accuracy, loss, complexity)
    if not passes_validity_gate(expression):
        score = INVALID_SCORE

    params: Dict[str, float] = {name: rng.random() for name in PARAMS}

    return Candidate(
        id=generate_candidate_id(prefix),
        expression=expression,
        accuracy=round(accuracy, METRIC_PRECISION),
        loss=round(loss, METRIC_PRECISION),
        complexity=complexity,
        score=round(score, METRIC_PRECISION),
        params=params,
    )


def create_random_candidate(
    max_complexity: int,
    dataset: str = DEFAULT_DATASET,
    rng=None,
) -> Candidate:
    """Generate a random expression and score it."""
    expression = generate_expression(max_complexity, rng).render()
    return evaluate_expression(expression, dataset, rng, prefix='rand')
