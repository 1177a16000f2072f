"""
Symbol vocabulary for candidate activation functions.

Expressions are built from a small closed set of symbols:
- Functions: unary functions applied as func(arg)
- Variables: the network input (exactly one)
- Params: named scalar placeholders
- Operators: binary operators (parsed and rendered, never generated)
"""

from typing import Dict, List


FUNCTIONS: List[str] = ['sin', 'cos', 'tanh', 'exp', 'log', 'abs']
VARIABLES: List[str] = ['x']
PARAMS: List[str] = ['a', 'b', 'c']
OPERATORS: List[str] = ['+', '-', '*', '/']

# Terminal choice is uniform over the combined set
TERMINALS: List[str] = VARIABLES + PARAMS

INPUT_VARIABLE = VARIABLES[0]

# The dataset shipped with the app; any other name is a custom upload
DEFAULT_DATASET = 'MNIST (Default)'

SIMULATION_TICK_SECONDS = 1.2

# Binding strength for rendering and parsing infix expressions
OPERATOR_PRECEDENCE: Dict[str, int] = {
    '+': 1,
    '-': 1,
    '*': 2,
    '/': 2,
}


def token_category(token: str) -> str:
    """
    Classify an alphabetic token.

    Returns:
        'function', 'terminal', or 'unknown'
    """
    if token in FUNCTIONS:
        return 'function'
    if token in TERMINALS:
        return 'terminal'
    return 'unknown'


def category_members(category: str) -> List[str]:
    """Return the vocabulary members for a token category."""
    if category == 'function':
        return FUNCTIONS
    if category == 'terminal':
        return TERMINALS
    return []
