"""Core vocabulary shared by the evolution engine and its drivers."""

from .vocabulary import (
    FUNCTIONS,
    VARIABLES,
    PARAMS,
    OPERATORS,
    TERMINALS,
    INPUT_VARIABLE,
    DEFAULT_DATASET,
    SIMULATION_TICK_SECONDS,
)
