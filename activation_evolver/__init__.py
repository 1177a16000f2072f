"""Activation Evolver - genetic programming over activation function formulas."""

from .evolution import (
    Candidate,
    EvolutionConfig,
    Generation,
    Simulation,
    create_initial_population,
    advance_generation,
)

__version__ = '0.1.0'
