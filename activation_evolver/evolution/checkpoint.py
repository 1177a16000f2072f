"""
Checkpointing for evolution runs.

Enables:
- Saving a run (config, full history, leaderboard) as JSON
- Resuming a run from the saved state
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import List, Dict, Any, Union
import json
import uuid

from filelock import FileLock

from .engine import EvolutionConfig
from .history import EvolutionHistory, Leaderboard


@dataclass
class EvolutionCheckpoint:
    """
    Checkpoint for resuming evolution runs.

    Contains all state needed to continue evolution from a saved point.
    """
    run_id: str
    generation: int
    config: Dict[str, Any]
    history: Dict[str, Any]
    leaderboard: List[Dict[str, Any]]
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvolutionCheckpoint':
        """Create from dictionary."""
        return cls(**data)

    def save(self, path: Union[str, Path]) -> Path:
        """Save checkpoint to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(str(path) + '.lock'):
            path.write_text(json.dumps(self.to_dict(), indent=2))
        return path

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'EvolutionCheckpoint':
        """Load checkpoint from JSON file."""
        path = Path(path)
        with FileLock(str(path) + '.lock'):
            data = json.loads(path.read_text())
        return cls.from_dict(data)

    def get_config(self) -> EvolutionConfig:
        return EvolutionConfig.from_dict(self.config)

    def get_history(self) -> EvolutionHistory:
        return EvolutionHistory.from_dict(self.history)

    def get_leaderboard(self) -> Leaderboard:
        return Leaderboard.from_list(self.leaderboard)


def generate_run_id() -> str:
    """Generate unique run identifier."""
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    short_uuid = uuid.uuid4().hex[:6]
    return f"evo_{timestamp}_{short_uuid}"
