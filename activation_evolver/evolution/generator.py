"""
Random expression generation.

Every generated expression is a function call at the top level. Its argument
is grown recursively: at each level the branch stops on a terminal once the
depth limit is reached, or with probability TERMINAL_PROBABILITY before that.
"""

import random

from ..core.vocabulary import FUNCTIONS, TERMINALS
from .expression import Call, Node, Terminal


TERMINAL_PROBABILITY = 0.4


def _generate_argument(depth: int, max_depth: int, rng) -> Node:
    """Grow the argument of a function call."""
    if depth >= max_depth or rng.random() < TERMINAL_PROBABILITY:
        return Terminal(rng.choice(TERMINALS))

    func = rng.choice(FUNCTIONS)
    return Call(func, _generate_argument(depth + 1, max_depth, rng))


def generate_expression(max_depth: int, rng=None) -> Call:
    """
    Generate a random expression tree.

    Args:
        max_depth: Depth limit for the argument of the outer call
        rng: Random source with random()/choice() (defaults to the random module)

    Returns:
        A Call node; render() gives the text form, e.g. 'tanh(sin(x))'
    """
    rng = rng or random
    func = rng.choice(FUNCTIONS)
    return Call(func, _generate_argument(1, max_depth, rng))
