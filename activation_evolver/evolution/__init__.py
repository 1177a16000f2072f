"""
Activation Evolver - evolutionary search over activation formulas

This module provides a genetic-programming framework for discovering
candidate activation functions as symbolic expressions.

Key components:
- Expression: tree model plus text queries (subtrees, tokens)
- Candidate: an expression with its immutable mock metrics
- Operators: tournament selection, subtree crossover, token mutation
- Engine: stateless generation transitions
- Simulation: start/pause/reset driver with history and leaderboard

Example usage:
    from activation_evolver.evolution import (
        EvolutionConfig, create_initial_population, advance_generation,
    )

    config = EvolutionConfig(population_size=20, generations=15)
    generation = create_initial_population(config, seed=7)
    while generation.generation_number < config.generations:
        generation = advance_generation(generation, config)

    print(generation.best())
"""

from .expression import (
    Terminal,
    Call,
    BinaryOp,
    ExpressionSyntaxError,
    parse_expression,
    is_well_formed,
    expression_depth,
    extract_subtrees,
    extract_tokens,
    replace_token_at,
    count_complexity,
)
from .generator import generate_expression
from .candidate import Candidate, generate_candidate_id
from .fitness import evaluate_expression, create_random_candidate, INVALID_SCORE
from .operators import tournament_selection, elitism_selection, crossover, mutate
from .engine import EvolutionConfig, Generation, create_initial_population, advance_generation
from .history import EvolutionHistory, GenerationStats, Leaderboard
from .checkpoint import EvolutionCheckpoint, generate_run_id
from .simulation import Simulation, SimulationStatus, SimulationTimer, LogEntry

__all__ = [
    # Expression model
    'Terminal',
    'Call',
    'BinaryOp',
    'ExpressionSyntaxError',
    'parse_expression',
    'is_well_formed',
    'expression_depth',
    'extract_subtrees',
    'extract_tokens',
    'replace_token_at',
    'count_complexity',
    'generate_expression',
    # Candidates and fitness
    'Candidate',
    'generate_candidate_id',
    'evaluate_expression',
    'create_random_candidate',
    'INVALID_SCORE',
    # Operators
    'tournament_selection',
    'elitism_selection',
    'crossover',
    'mutate',
    # Engine
    'EvolutionConfig',
    'Generation',
    'create_initial_population',
    'advance_generation',
    # History
    'EvolutionHistory',
    'GenerationStats',
    'Leaderboard',
    'EvolutionCheckpoint',
    'generate_run_id',
    # Driver
    'Simulation',
    'SimulationStatus',
    'SimulationTimer',
    'LogEntry',
]
