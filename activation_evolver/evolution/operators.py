"""
Evolutionary operators: selection, crossover, and mutation.

These operators drive the evolutionary search by:
- Selecting fit candidates for reproduction
- Exchanging function-call subtrees between two parents
- Swapping a single token for another of the same kind

No operator edits a Candidate. Each returns a brand-new Candidate scored from
scratch, falling back to a fresh random one whenever the parents offer
nothing to work with.
"""

import logging
import random
from typing import List, Sequence

from ..core.vocabulary import token_category, category_members
from .candidate import Candidate
from .expression import extract_subtrees, extract_tokens, replace_token_at
from .fitness import evaluate_expression, create_random_candidate


logger = logging.getLogger(__name__)

TOURNAMENT_SIZE = 3

# Children longer than this are replaced by a fresh random candidate
MAX_EXPRESSION_LENGTH = 50


# =============================================================================
# Selection Operators
# =============================================================================

def tournament_selection(
    population: Sequence[Candidate],
    tournament_size: int = TOURNAMENT_SIZE,
    rng=None,
) -> Candidate:
    """
    Tournament selection with replacement.

    Draws tournament_size candidates uniformly and keeps the best score.
    On a tie the earliest draw wins.

    Args:
        population: Current population (must not be empty)
        tournament_size: Number of draws per tournament
        rng: Random source with choice() (defaults to the random module)

    Returns:
        The winning candidate
    """
    rng = rng or random
    best = None
    for _ in range(tournament_size):
        contestant = rng.choice(population)
        if best is None or contestant.score > best.score:
            best = contestant
    return best


def elitism_selection(
    population: Sequence[Candidate],
    n_elite: int,
) -> List[Candidate]:
    """
    Preserve the top n_elite candidates unchanged.

    Candidates are immutable, so the elites are the very same records
    (same id, same metrics).
    """
    ranked = sorted(population, key=lambda c: c.score, reverse=True)
    return ranked[:n_elite]


# =============================================================================
# Crossover
# =============================================================================

def crossover(parent1: Candidate, parent2: Candidate, config, rng=None) -> Candidate:
    """
    Subtree crossover.

    Picks a function-call subtree from each parent and replaces the first
    textual occurrence of parent1's pick with parent2's pick.

    Example:
        parent1: sin(cos(x))   pick 'cos(x)'
        parent2: tanh(abs(a))  pick 'abs(a)'
        child:   sin(abs(a))

    Args:
        parent1: Parent whose expression is rewritten
        parent2: Parent that donates a subtree
        config: EvolutionConfig (max_complexity and dataset are used)
        rng: Random source (defaults to the random module)

    Returns:
        A new child candidate, or a fresh random candidate if either parent
        has no subtrees or the child would exceed MAX_EXPRESSION_LENGTH
    """
    rng = rng or random
    subtrees1 = extract_subtrees(parent1.expression)
    subtrees2 = extract_subtrees(parent2.expression)

    if not subtrees1 or not subtrees2:
        logger.debug(
            "Crossover fallback: no subtrees in %r or %r",
            parent1.expression, parent2.expression,
        )
        return create_random_candidate(config.max_complexity, config.dataset, rng)

    subtree_to_swap = rng.choice(subtrees1)
    new_subtree = rng.choice(subtrees2)

    child_expression = parent1.expression.replace(subtree_to_swap, new_subtree, 1)

    if len(child_expression) > MAX_EXPRESSION_LENGTH:
        logger.debug("Crossover fallback: %r is too long", child_expression)
        return create_random_candidate(config.max_complexity, config.dataset, rng)

    return evaluate_expression(child_expression, config.dataset, rng, prefix='cross')


# =============================================================================
# Mutation
# =============================================================================

def mutate(candidate: Candidate, config, rng=None) -> Candidate:
    """
    Point mutation on a single token.

    A token position is chosen uniformly. Function names are swapped for a
    different function, terminals for a different terminal. Only that
    position is rewritten, not other occurrences of the same text. Tokens
    outside the vocabulary, or categories without an alternative, are kept.

    Args:
        candidate: Candidate to mutate (not modified)
        config: EvolutionConfig (max_complexity and dataset are used)
        rng: Random source (defaults to the random module)

    Returns:
        New re-scored candidate
    """
    rng = rng or random
    tokens = extract_tokens(candidate.expression)
    if not tokens:
        logger.debug("Mutation fallback: no tokens in %r", candidate.expression)
        return create_random_candidate(config.max_complexity, config.dataset, rng)

    mutation_point = rng.randrange(len(tokens))
    token_to_mutate = tokens[mutation_point]

    alternatives = [
        t for t in category_members(token_category(token_to_mutate))
        if t != token_to_mutate
    ]
    new_token = rng.choice(alternatives) if alternatives else token_to_mutate

    new_expression = replace_token_at(candidate.expression, mutation_point, new_token)
    return evaluate_expression(new_expression, config.dataset, rng, prefix='mut')
