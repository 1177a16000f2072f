"""
Run history and cross-generation leaderboard.

EvolutionHistory is append-only: one Generation (plus its summary stats) per
completed transition, starting with Generation 1. The Leaderboard keeps the
best unique expressions seen across every generation recorded.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any, Iterable, List, Optional

import numpy as np

from .candidate import Candidate
from .engine import Generation


LEADERBOARD_SIZE = 10


@dataclass
class GenerationStats:
    """Statistics for a single generation."""
    generation: int
    best_score: float
    avg_score: float
    min_score: float
    std_score: float
    best_accuracy: float
    mean_complexity: float
    unique_expressions: int
    penalized_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def compute_generation_stats(generation: Generation) -> GenerationStats:
    """Summarize a generation's scores, accuracy and diversity."""
    population = generation.population
    scores = np.array([c.score for c in population], dtype=float)
    accuracies = np.array([c.accuracy for c in population], dtype=float)
    complexities = np.array([c.complexity for c in population], dtype=float)

    return GenerationStats(
        generation=generation.generation_number,
        best_score=float(scores.max()),
        avg_score=float(scores.mean()),
        min_score=float(scores.min()),
        std_score=float(scores.std()),
        best_accuracy=float(accuracies.max()),
        mean_complexity=float(complexities.mean()),
        unique_expressions=len({c.expression for c in population}),
        penalized_count=sum(1 for c in population if c.is_penalized),
    )


class EvolutionHistory:
    """
    Tracks evolution progress over generations.

    Stores every generation and a per-generation summary for charting.
    """

    def __init__(self):
        self.generations: List[Generation] = []
        self.stats: List[GenerationStats] = []

    def __len__(self) -> int:
        return len(self.generations)

    @property
    def latest(self) -> Optional[Generation]:
        return self.generations[-1] if self.generations else None

    def record_generation(self, generation: Generation) -> GenerationStats:
        """
        Append a completed generation.

        Raises:
            ValueError: if the generation number does not follow the last one
        """
        if self.generations:
            expected = self.generations[-1].generation_number + 1
        else:
            expected = 1
        if generation.generation_number != expected:
            raise ValueError(
                f"Expected generation {expected}, got {generation.generation_number}"
            )

        stats = compute_generation_stats(generation)
        self.generations.append(generation)
        self.stats.append(stats)
        return stats

    @property
    def score_trajectory(self) -> List[float]:
        """Best score per generation."""
        return [s.best_score for s in self.stats]

    def chart_points(self) -> List[Dict[str, float]]:
        """Per-generation best/average score and best accuracy."""
        return [
            {
                'name': s.generation,
                'bestScore': s.best_score,
                'avgScore': s.avg_score,
                'bestAccuracy': s.best_accuracy,
            }
            for s in self.stats
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Convert history to dictionary for serialization."""
        return {
            'generations': [g.to_dict() for g in self.generations],
            'stats': [s.to_dict() for s in self.stats],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvolutionHistory':
        """Restore history from dictionary."""
        history = cls()
        history.generations = [
            Generation.from_dict(g) for g in data.get('generations', [])
        ]
        history.stats = [
            GenerationStats(**s) for s in data.get('stats', [])
        ]
        return history


class Leaderboard:
    """
    Best unique expressions seen so far.

    Entries are unique by expression text; when one expression was scored
    several times the highest score is kept.
    """

    def __init__(self, capacity: int = LEADERBOARD_SIZE):
        self.capacity = capacity
        self.entries: List[Candidate] = []

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def update(self, candidates: Iterable[Candidate]) -> List[Candidate]:
        """Merge candidates into the board and return the new entries."""
        pool = sorted(
            list(self.entries) + list(candidates),
            key=lambda c: c.score,
            reverse=True,
        )

        seen_expressions = set()
        board = []
        for candidate in pool:
            if candidate.expression in seen_expressions:
                continue
            seen_expressions.add(candidate.expression)
            board.append(candidate)
            if len(board) >= self.capacity:
                break

        self.entries = board
        return board

    def clear(self) -> None:
        self.entries = []

    def best(self) -> Optional[Candidate]:
        return self.entries[0] if self.entries else None

    def to_list(self) -> List[Dict[str, Any]]:
        return [c.to_dict() for c in self.entries]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]], capacity: int = LEADERBOARD_SIZE) -> 'Leaderboard':
        board = cls(capacity)
        board.entries = [Candidate.from_dict(c) for c in data][:capacity]
        return board
