"""
Candidate representation for evolutionary formula search.

A Candidate pairs an expression with the metrics computed when it was
created. Candidates are never edited: crossover and mutation build new
expressions and score them from scratch.
"""

from dataclasses import dataclass, field
from typing import Dict, Any
import uuid


def generate_candidate_id(prefix: str = '') -> str:
    """Generate a unique candidate identifier."""
    short_uuid = uuid.uuid4().hex[:12]
    if prefix:
        return f"{prefix}_{short_uuid}"
    return short_uuid


@dataclass(frozen=True)
class Candidate:
    """
    One evolved formula and its metrics.

    Attributes:
        id: Unique identifier, assigned at creation
        expression: Canonical expression text, e.g. 'tanh(sin(x))'
        accuracy: Mock accuracy (4 decimal places)
        loss: Mock loss (4 decimal places)
        complexity: Number of symbolic tokens in the expression
        score: Composite fitness, the only ranking key (4 decimal places)
        params: Sampled values for the named parameters (informational)
    """
    id: str
    expression: str
    accuracy: float
    loss: float
    complexity: int
    score: float
    params: Dict[str, float] = field(default_factory=dict)

    @property
    def is_penalized(self) -> bool:
        """Whether the validity gate forced the score to -1."""
        return self.score == -1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            'id': self.id,
            'expression': self.expression,
            'accuracy': self.accuracy,
            'loss': self.loss,
            'complexity': self.complexity,
            'score': self.score,
            'params': dict(self.params),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Candidate':
        """Create Candidate from dictionary (e.g., loaded from JSON)."""
        return cls(
            id=data['id'],
            expression=data['expression'],
            accuracy=data['accuracy'],
            loss=data['loss'],
            complexity=data['complexity'],
            score=data['score'],
            params=dict(data.get('params', {})),
        )

    def __repr__(self) -> str:
        return (
            f"Candidate(id={self.id}, expr={self.expression!r}, "
            f"score={self.score:.4f}, acc={self.accuracy:.4f}, "
            f"complexity={self.complexity})"
        )
