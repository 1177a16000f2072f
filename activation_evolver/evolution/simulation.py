"""
Simulation driver around the stateless engine.

Simulation owns the run state the engine does not: configuration, current
generation, history, leaderboard, and a short event log. It moves between
IDLE, RUNNING and FINISHED; every tick() performs at most one generation
transition, so pausing only ever takes effect between transitions.

SimulationTimer calls tick() on a fixed interval from a single timer slot
that is always cancelled before it is re-armed.
"""

import logging
import random
import threading
from collections import deque
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Deque, Dict, Any, List, Optional, Union

from ..core.vocabulary import SIMULATION_TICK_SECONDS
from .checkpoint import EvolutionCheckpoint, generate_run_id
from .engine import EvolutionConfig, Generation, create_initial_population, advance_generation
from .history import EvolutionHistory, Leaderboard


logger = logging.getLogger(__name__)

MAX_LOG_ENTRIES = 100

# Changing any of these discards the run and starts again from Generation 1
RESET_FIELDS = ('population_size', 'max_complexity', 'dataset')


class SimulationStatus(str, Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    FINISHED = 'finished'


@dataclass
class LogEntry:
    """One line of the event log."""
    timestamp: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class Simulation:
    """
    Start/pause/reset state machine over generation transitions.

    Public methods are serialized by a re-entrant lock so a timer thread and
    a request handler never run a transition at the same time.
    """

    def __init__(
        self,
        config: Optional[EvolutionConfig] = None,
        rng=None,
        seed: Optional[int] = None,
        run_id: Optional[str] = None,
        initialize: bool = True,
    ):
        """
        Initialize the simulation.

        Args:
            config: Evolution configuration (defaults to EvolutionConfig())
            rng: Random source passed to the engine
            seed: If given and rng is not, seeds a private random.Random
            run_id: Optional run identifier (auto-generated if not provided)
            initialize: Build Generation 1 immediately
        """
        self.config = config or EvolutionConfig()
        self.config.validate()
        if rng is None and seed is not None:
            rng = random.Random(seed)
        self.rng = rng
        self.run_id = run_id or generate_run_id()

        self.status = SimulationStatus.IDLE
        self.current_generation: Optional[Generation] = None
        self.history = EvolutionHistory()
        self.leaderboard = Leaderboard()
        self.logs: Deque[LogEntry] = deque(maxlen=MAX_LOG_ENTRIES)
        self._lock = threading.RLock()

        if initialize:
            self.reset()

    @property
    def is_running(self) -> bool:
        return self.status == SimulationStatus.RUNNING

    @property
    def generation_limit_reached(self) -> bool:
        return (
            self.current_generation is not None and
            self.current_generation.generation_number >= self.config.generations
        )

    def add_log(self, message: str) -> LogEntry:
        """Append a timestamped message to the event log."""
        entry = LogEntry(timestamp=datetime.now().strftime('%H:%M:%S'), message=message)
        self.logs.append(entry)
        logger.info(message)
        return entry

    # -------------------------------------------------------------------------
    # Controls
    # -------------------------------------------------------------------------

    def reset(self) -> Generation:
        """Discard the current run and start again from Generation 1."""
        with self._lock:
            initial = create_initial_population(self.config, self.rng)

            self.add_log('Simulation reset.')
            self.status = SimulationStatus.IDLE
            self.current_generation = initial
            self.history = EvolutionHistory()
            self.history.record_generation(initial)
            self.leaderboard = Leaderboard()
            self.leaderboard.update(initial.population)

            self.add_log(
                f'Initialized Gen 1 on "{self.config.dataset}" with '
                f'{self.config.population_size} formulas.'
            )
            return initial

    def start(self) -> None:
        """Start, or resume, the run. A finished run starts over."""
        with self._lock:
            if self.is_running:
                return
            if self.current_generation is None or self.generation_limit_reached:
                self.add_log('Starting new simulation run...')
                self.reset()
            else:
                self.add_log('Simulation resumed.')
            self.status = SimulationStatus.RUNNING

    def pause(self) -> None:
        """Pause between transitions."""
        with self._lock:
            if not self.is_running:
                return
            self.status = SimulationStatus.IDLE
            self.add_log('Simulation paused.')

    def tick(self) -> Optional[Generation]:
        """
        Run one generation transition if the simulation is running.

        Returns:
            The new Generation, or None if nothing was advanced
        """
        with self._lock:
            if not self.is_running:
                return None
            if self.generation_limit_reached:
                self._finish()
                return None
            return self._advance()

    def step(self) -> Optional[Generation]:
        """
        Advance exactly one generation without changing the status.

        Works while idle or running; a finished run is left untouched.

        Returns:
            The new Generation, or None if the run is already finished
        """
        with self._lock:
            if self.status == SimulationStatus.FINISHED or self.generation_limit_reached:
                return None
            return self._advance()

    def _advance(self) -> Generation:
        with self._lock:
            next_gen = advance_generation(self.current_generation, self.config, self.rng)
            self.current_generation = next_gen
            self.history.record_generation(next_gen)
            self.leaderboard.update(next_gen.population)

            best = next_gen.best()
            self.add_log(f'Gen {next_gen.generation_number}: Best score {best.score:.3f}')

            if self.generation_limit_reached:
                self._finish()
            return next_gen

    def run_to_completion(self) -> Generation:
        """Start and tick synchronously until the generation limit."""
        with self._lock:
            self.start()
            while self.is_running:
                self.tick()
            return self.current_generation

    def _finish(self) -> None:
        self.status = SimulationStatus.FINISHED
        self.add_log('Maximum generations reached. Simulation finished.')

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def update_config(self, **changes) -> EvolutionConfig:
        """
        Replace configuration values.

        Changing population size, max complexity or dataset resets the run.

        Raises:
            ValueError: if a value is unknown or out of range
        """
        with self._lock:
            merged = self.config.to_dict()
            merged.update(changes)
            new_config = EvolutionConfig.from_dict(merged)
            new_config.validate()

            old_config = self.config
            self.config = new_config
            if any(getattr(old_config, f) != getattr(new_config, f) for f in RESET_FIELDS):
                try:
                    self.reset()
                except Exception:
                    self.config = old_config
                    raise
            return new_config

    def load_dataset(self, name: str) -> EvolutionConfig:
        """
        Switch to a dataset by file name.

        Only the name is used; it perturbs the mock fitness.
        """
        with self._lock:
            self.add_log(f'Loaded dataset: {name}')
            return self.update_config(dataset=name)

    # -------------------------------------------------------------------------
    # Snapshots and persistence
    # -------------------------------------------------------------------------

    def log_entries(self) -> List[Dict[str, str]]:
        return [entry.to_dict() for entry in self.logs]

    def snapshot(self) -> Dict[str, Any]:
        """JSON-serializable view of the current state."""
        with self._lock:
            generation = self.current_generation
            best = generation.best() if generation else None
            return {
                'run_id': self.run_id,
                'status': self.status.value,
                'config': self.config.to_dict(),
                'generation_number': generation.generation_number if generation else None,
                'population': [c.to_dict() for c in generation.population] if generation else [],
                'best': best.to_dict() if best else None,
                'leaderboard': self.leaderboard.to_list(),
            }

    def save_checkpoint(self, directory: Union[str, Path]) -> Path:
        """Save the run to <directory>/<run_id>_genNNN.json."""
        with self._lock:
            number = self.current_generation.generation_number if self.current_generation else 0
            checkpoint = EvolutionCheckpoint(
                run_id=self.run_id,
                generation=number,
                config=self.config.to_dict(),
                history=self.history.to_dict(),
                leaderboard=self.leaderboard.to_list(),
                timestamp=datetime.now().isoformat(),
            )
            return checkpoint.save(Path(directory) / f"{self.run_id}_gen{number:03d}.json")

    @classmethod
    def from_checkpoint(cls, path: Union[str, Path], rng=None, seed: Optional[int] = None) -> 'Simulation':
        """Resume a run from a checkpoint file."""
        checkpoint = EvolutionCheckpoint.load(path)

        simulation = cls(
            checkpoint.get_config(),
            rng=rng,
            seed=seed,
            run_id=checkpoint.run_id,
            initialize=False,
        )
        simulation.history = checkpoint.get_history()
        simulation.current_generation = simulation.history.latest
        simulation.leaderboard = checkpoint.get_leaderboard()
        if simulation.generation_limit_reached:
            simulation.status = SimulationStatus.FINISHED
        simulation.add_log(
            f'Restored run {checkpoint.run_id} at Gen {checkpoint.generation}.'
        )
        return simulation


class SimulationTimer:
    """
    Fires Simulation.tick() every `interval` seconds while it is running.

    Holds at most one pending threading.Timer. Re-arming always cancels the
    previous one, and cancel() invalidates a tick already in flight so it
    does not re-arm.
    """

    def __init__(self, simulation: Simulation, interval: float = SIMULATION_TICK_SECONDS):
        self.simulation = simulation
        self.interval = interval
        self._timer: Optional[threading.Timer] = None
        self._token = 0
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        """Arm the timer if the simulation is running."""
        with self._lock:
            self._arm()

    def cancel(self) -> None:
        with self._lock:
            self._cancel()

    def _cancel(self) -> None:
        self._token += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm(self) -> None:
        self._cancel()
        if not self.simulation.is_running:
            return
        token = self._token
        timer = threading.Timer(self.interval, self._fire, args=(token,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _fire(self, token: int) -> None:
        try:
            self.simulation.tick()
        except Exception as e:
            logger.exception("Tick failed; pausing simulation")
            self.simulation.add_log(f'Tick failed: {e}')
            self.simulation.pause()
            with self._lock:
                if token == self._token:
                    self._timer = None
            return
        with self._lock:
            if token != self._token:
                return
            self._timer = None
            self._arm()
