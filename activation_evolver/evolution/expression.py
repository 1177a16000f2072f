"""
Expression representation for candidate activation functions.

A candidate formula is a tree of unary function calls (and, when parsed from
hand-written text, binary operators) over terminals. The tree renders to a
canonical text form, and the text form is what candidates store, compare and
deduplicate on.

Structural queries used by the genetic operators work on that stored text so
they also accept degenerate input (bare terminals, unbalanced strings):
- extract_subtrees: every balanced func(...) substring, for crossover
- extract_tokens: every alphabetic token, for mutation and complexity
"""

import itertools
import re
from dataclasses import dataclass
from typing import List, Optional, Union

from ..core.vocabulary import FUNCTIONS, TERMINALS, OPERATOR_PRECEDENCE


_TOKEN_PATTERN = re.compile(r'[A-Za-z]+')
_CALL_PATTERN = re.compile(r'[A-Za-z]+\(')
_LEXEME_PATTERN = re.compile(r'\s*(?:([A-Za-z]+)|(.))')


class ExpressionSyntaxError(ValueError):
    """Raised when text cannot be parsed into an expression tree."""


# =============================================================================
# Tree nodes
# =============================================================================

@dataclass(frozen=True)
class Terminal:
    """A variable or named parameter."""
    name: str

    def render(self) -> str:
        return self.name

    def tokens(self) -> List[str]:
        return [self.name]


@dataclass(frozen=True)
class Call:
    """A unary function applied to one argument, e.g. sin(x)."""
    func: str
    arg: 'Node'

    def render(self) -> str:
        return f"{self.func}({self.arg.render()})"

    def tokens(self) -> List[str]:
        return [self.func] + self.arg.tokens()


@dataclass(frozen=True)
class BinaryOp:
    """An infix operator between two sub-expressions."""
    op: str
    left: 'Node'
    right: 'Node'

    def render(self) -> str:
        precedence = OPERATOR_PRECEDENCE[self.op]
        left = self.left.render()
        right = self.right.render()
        if isinstance(self.left, BinaryOp) and OPERATOR_PRECEDENCE[self.left.op] < precedence:
            left = f"({left})"
        if isinstance(self.right, BinaryOp) and OPERATOR_PRECEDENCE[self.right.op] <= precedence:
            right = f"({right})"
        return f"{left} {self.op} {right}"

    def tokens(self) -> List[str]:
        return self.left.tokens() + self.right.tokens()


Node = Union[Terminal, Call, BinaryOp]


def expression_depth(node: Node) -> int:
    """Function nesting depth: 0 for a terminal, 1 for sin(x), 2 for sin(cos(x))."""
    if isinstance(node, Terminal):
        return 0
    if isinstance(node, Call):
        return 1 + expression_depth(node.arg)
    return max(expression_depth(node.left), expression_depth(node.right))


# =============================================================================
# Parsing
# =============================================================================

def _lex(text: str) -> List[str]:
    lexemes = []
    for match in _LEXEME_PATTERN.finditer(text):
        name, symbol = match.groups()
        if name:
            lexemes.append(name)
        elif symbol and not symbol.isspace():
            lexemes.append(symbol)
    return lexemes


class _Parser:
    """Recursive-descent parser over lexemes."""

    def __init__(self, text: str):
        self.text = text
        self.lexemes = _lex(text)
        self.pos = 0

    def peek(self) -> Optional[str]:
        if self.pos < len(self.lexemes):
            return self.lexemes[self.pos]
        return None

    def take(self, expected: Optional[str] = None) -> str:
        lexeme = self.peek()
        if lexeme is None:
            raise ExpressionSyntaxError(f"Unexpected end of expression: {self.text!r}")
        if expected is not None and lexeme != expected:
            raise ExpressionSyntaxError(
                f"Expected {expected!r} but found {lexeme!r} in {self.text!r}"
            )
        self.pos += 1
        return lexeme

    def parse(self) -> Node:
        node = self.parse_sum()
        if self.peek() is not None:
            raise ExpressionSyntaxError(
                f"Unexpected {self.peek()!r} in {self.text!r}"
            )
        return node

    def parse_sum(self) -> Node:
        node = self.parse_product()
        while self.peek() in ('+', '-'):
            op = self.take()
            node = BinaryOp(op, node, self.parse_product())
        return node

    def parse_product(self) -> Node:
        node = self.parse_atom()
        while self.peek() in ('*', '/'):
            op = self.take()
            node = BinaryOp(op, node, self.parse_atom())
        return node

    def parse_atom(self) -> Node:
        lexeme = self.take()
        if lexeme == '(':
            node = self.parse_sum()
            self.take(')')
            return node
        if lexeme in FUNCTIONS and self.peek() == '(':
            self.take('(')
            arg = self.parse_sum()
            self.take(')')
            return Call(lexeme, arg)
        if lexeme in TERMINALS:
            return Terminal(lexeme)
        raise ExpressionSyntaxError(f"Unknown symbol {lexeme!r} in {self.text!r}")


def parse_expression(text: str) -> Node:
    """
    Parse canonical expression text into a tree.

    Raises:
        ExpressionSyntaxError: if the text is malformed or uses symbols
            outside the vocabulary
    """
    return _Parser(text).parse()


def is_well_formed(text: str) -> bool:
    """Check whether text parses into a tree over the vocabulary."""
    try:
        parse_expression(text)
    except ExpressionSyntaxError:
        return False
    return True


# =============================================================================
# Text queries
# =============================================================================

def find_matching_paren(text: str, open_index: int) -> int:
    """
    Find the closing parenthesis matching the one at open_index.

    Returns:
        Index of the matching ')', or -1 if it is never closed
    """
    balance = 1
    for i in range(open_index + 1, len(text)):
        if text[i] == '(':
            balance += 1
        elif text[i] == ')':
            balance -= 1
        if balance == 0:
            return i
    return -1


def parens_balanced(text: str) -> bool:
    """True if every '(' is closed and no ')' appears unopened."""
    balance = 0
    for char in text:
        if char == '(':
            balance += 1
        elif char == ')':
            balance -= 1
            if balance < 0:
                return False
    return balance == 0


def extract_subtrees(text: str) -> List[str]:
    """
    Extract every function-call subtree, ordered by where it opens.

    Example:
        "sin(cos(x))" -> ["sin(cos(x))", "cos(x)"]

    Unbalanced text yields no subtrees.
    """
    if not parens_balanced(text):
        return []

    subtrees = []
    for match in _CALL_PATTERN.finditer(text):
        open_index = match.end() - 1
        close_index = find_matching_paren(text, open_index)
        if close_index != -1:
            subtrees.append(text[match.start():close_index + 1])
    return subtrees


def extract_tokens(text: str) -> List[str]:
    """All alphabetic tokens (functions, variable, params) in order of appearance."""
    return _TOKEN_PATTERN.findall(text)



def replace_token_at(text: str, index: int, new_token: str) -> str:
    """
    Replace only the index-th alphabetic token.

    Other occurrences of the same token text are left alone.
    """
    counter = itertools.count()

    def _swap(match):
        if next(counter) == index:
            return new_token
        return match.group(0)

    return _TOKEN_PATTERN.sub(_swap, text)


def count_complexity(text: str) -> int:
    """Complexity is the number of symbolic tokens."""
    return len(extract_tokens(text))