"""Evaluation of story predicates against the live game state."""
from __future__ import annotations

import operator
from typing import Callable, Dict

from intfic.domain.defs import And, CounterCompare, FlagTest, Not, Or, Predicate
from intfic.domain.state import GameState

_COMPARATORS: Dict[str, Callable[[int, int], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    ">=": operator.ge,
    ">": operator.gt,
}


def evaluate(predicate: Predicate, state: GameState) -> bool:
    """Return the truth of ``predicate`` for the current contents of ``state``.

    Nothing is cached: directives applied between two calls are always seen.
    """
    if isinstance(predicate, FlagTest):
        return state.get_flag(predicate.name) == predicate.expected
    if isinstance(predicate, CounterCompare):
        compare = _COMPARATORS[predicate.op]
        return compare(state.get_counter(predicate.name), predicate.value)
    if isinstance(predicate, Not):
        return not evaluate(predicate.operand, state)
    if isinstance(predicate, And):
        return evaluate(predicate.left, state) and evaluate(predicate.right, state)
    if isinstance(predicate, Or):
        return evaluate(predicate.left, state) or evaluate(predicate.right, state)
    raise TypeError(f"Unsupported predicate: {predicate!r}")


def describe(predicate: Predicate) -> str:
    """Render a predicate back into markup form."""
    if isinstance(predicate, FlagTest):
        return f"flag:{predicate.name}" if predicate.expected else f"flag:{predicate.name}==false"
    if isinstance(predicate, CounterCompare):
        return f"counter:{predicate.name} {predicate.op} {predicate.value}"
    if isinstance(predicate, Not):
        return f"not ({describe(predicate.operand)})"
    if isinstance(predicate, And):
        return f"({describe(predicate.left)} and {describe(predicate.right)})"
    if isinstance(predicate, Or):
        return f"({describe(predicate.left)} or {describe(predicate.right)})"
    raise TypeError(f"Unsupported predicate: {predicate!r}")
