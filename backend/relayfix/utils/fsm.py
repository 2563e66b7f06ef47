from __future__ import annotations
"""Finite state machine utility for enforcing allowed status transitions.

Usage:
    from relayfix.utils.fsm import TransitionValidator
    FSM = TransitionValidator({
        'SUBMITTED': {'RECEIVED', 'CANCELLED'},
        'RECEIVED': {'CANCELLED'},
        'CANCELLED': set(),
    })
    FSM.assert_can_transition(current_status, target_status)

Raises IllegalTransition if the edge is not in the graph.
"""
from typing import Dict, Iterable, Set
from relayfix.errors import IllegalTransition


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    @property
    def states(self) -> Set[str]:
        return set(self.graph)

    def targets(self, current: str) -> Set[str]:
        return set(self.graph.get(current, set()))

    def is_terminal(self, state: str) -> bool:
        return state in self.graph and not self.graph[state]

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            raise IllegalTransition(current, target)
        return True

    def with_cancel(self, cancel_state: str, exclude: Iterable[str] = ()) -> 'TransitionValidator':
        """Return a copy where every non-terminal state may also move to cancel_state."""
        skip = set(exclude) | {cancel_state}
        graph = {}
        for state, targets in self.graph.items():
            targets = set(targets)
            if targets and state not in skip:
                targets.add(cancel_state)
            graph[state] = targets
        graph.setdefault(cancel_state, set())
        return TransitionValidator(graph, self.field_name)

__all__ = ['TransitionValidator']
