"""
Generation transitions for the formula search.

One call to advance_generation performs a full transition:
1. Rank the current population by score
2. Carry the elites over unchanged
3. Fill the rest with tournament-selected offspring (crossover or re-scored
   clone, then optional mutation)
4. Trim to the configured population size

The engine keeps no state between calls. Drivers pass the previous
Generation and the configuration in and store what comes back.
"""

import json
import logging
import random
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, Any, Optional, Tuple, Union

from ..core.vocabulary import DEFAULT_DATASET
from .candidate import Candidate
from .fitness import create_random_candidate, evaluate_expression
from .operators import tournament_selection, elitism_selection, crossover, mutate


logger = logging.getLogger(__name__)

INTEGER_FIELDS = ('population_size', 'generations', 'elitism', 'max_complexity')
RATE_FIELDS = ('mutation_rate', 'crossover_rate')


@dataclass(frozen=True)
class EvolutionConfig:
    """Configuration for an evolution run."""
    # Population parameters
    population_size: int = 20
    generations: int = 15
    elitism: int = 3

    # Evolution rates
    mutation_rate: float = 0.3
    crossover_rate: float = 0.5

    # Expression constraints
    max_complexity: int = 4

    # Dataset name (only its identity matters to the mock fitness)
    dataset: str = DEFAULT_DATASET

    def validate(self) -> None:
        """
        Check value types and ranges.

        The engine itself never calls this; drivers do before a run.

        Raises:
            ValueError: if any value has the wrong type or is out of range
        """
        for name in INTEGER_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        for name in RATE_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number, got {value!r}")

        if self.population_size < 1:
            raise ValueError(f"population_size must be >= 1, got {self.population_size}")
        if self.generations < 1:
            raise ValueError(f"generations must be >= 1, got {self.generations}")
        if not 0.0 <= self.mutation_rate <= 1.0:
            raise ValueError(f"mutation_rate {self.mutation_rate} out of range [0, 1]")
        if not 0.0 <= self.crossover_rate <= 1.0:
            raise ValueError(f"crossover_rate {self.crossover_rate} out of range [0, 1]")
        if not 0 <= self.elitism <= self.population_size:
            raise ValueError(
                f"elitism must be between 0 and population_size "
                f"({self.population_size}), got {self.elitism}"
            )
        if self.max_complexity < 1:
            raise ValueError(f"max_complexity must be >= 1, got {self.max_complexity}")
        if not isinstance(self.dataset, str) or not self.dataset:
            raise ValueError("dataset must be a non-empty string")

    def with_updates(self, **changes) -> 'EvolutionConfig':
        """Return a copy with some fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'population_size': self.population_size,
            'generations': self.generations,
            'elitism': self.elitism,
            'mutation_rate': self.mutation_rate,
            'crossover_rate': self.crossover_rate,
            'max_complexity': self.max_complexity,
            'dataset': self.dataset,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvolutionConfig':
        """Create from dictionary; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'EvolutionConfig':
        """Load configuration from a JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)


@dataclass(frozen=True)
class Generation:
    """One population snapshot and its sequence number (starting at 1)."""
    generation_number: int
    population: Tuple[Candidate, ...] = field(default_factory=tuple)

    def best(self) -> Optional[Candidate]:
        """Top scorer; the first one wins ties."""
        if not self.population:
            return None
        return max(self.population, key=lambda c: c.score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'generation_number': self.generation_number,
            'population': [c.to_dict() for c in self.population],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Generation':
        return cls(
            generation_number=data['generation_number'],
            population=tuple(Candidate.from_dict(c) for c in data['population']),
        )


def create_initial_population(
    config: EvolutionConfig,
    rng=None,
    seed: Optional[int] = None,
) -> Generation:
    """
    Create Generation 1 from fresh random candidates.

    Args:
        config: Evolution configuration
        rng: Random source (defaults to the random module)
        seed: If given and rng is not, seeds a private random.Random

    Returns:
        Generation with generation_number 1
    """
    if rng is None and seed is not None:
        rng = random.Random(seed)

    population = tuple(
        create_random_candidate(config.max_complexity, config.dataset, rng)
        for _ in range(config.population_size)
    )
    logger.debug(
        "Initialized generation 1 with %d candidates on %r",
        len(population), config.dataset,
    )
    return Generation(generation_number=1, population=population)


def advance_generation(
    current: Generation,
    config: EvolutionConfig,
    rng=None,
) -> Generation:
    """
    Evolve the next generation from the current one.

    Args:
        current: Generation to evolve from (not modified)
        config: Evolution configuration
        rng: Random source (defaults to the random module)

    Returns:
        Next generation, numbered current.generation_number + 1
    """
    rng = rng or random
    population = current.population

    # Elitism: carry over the best candidates directly
    next_population = elitism_selection(population, config.elitism)

    # Parent2 must differ from parent1, so crossover needs two distinct ids
    can_crossover = len({c.id for c in population}) > 1

    while len(next_population) < config.population_size:
        parent1 = tournament_selection(population, rng=rng)

        if rng.random() < config.crossover_rate and can_crossover:
            parent2 = tournament_selection(population, rng=rng)
            while parent2.id == parent1.id:
                parent2 = tournament_selection(population, rng=rng)
            child = crossover(parent1, parent2, config, rng)
        else:
            # Clone for mutation; the metrics are drawn again
            child = evaluate_expression(parent1.expression, config.dataset, rng, prefix='clone')

        if rng.random() < config.mutation_rate:
            child = mutate(child, config, rng)

        next_population.append(child)

    next_generation = Generation(
        generation_number=current.generation_number + 1,
        population=tuple(next_population[:config.population_size]),
    )
    logger.debug(
        "Generation %d: best score %.4f",
        next_generation.generation_number, next_generation.best().score,
    )
    return next_generation
