# utils/stage_machine.py
"""
Lead pipeline state machine.

Open stages may move forward, sideways or close the deal; closed stages only
move along their follow-up path. Staying on the same stage is always allowed.
"""

from typing import Dict, FrozenSet, Union

from db.models import LeadStage

S = LeadStage

_OPEN = frozenset({S.new, S.contacted, S.proposal_sent, S.negotiation})
_CLOSING = frozenset({S.won, S.lost, S.no_vendor, S.future_reference})

TRANSITIONS: Dict[LeadStage, FrozenSet[LeadStage]] = {
    S.new:              (_OPEN | _CLOSING) - {S.new},
    S.contacted:        (_OPEN | _CLOSING) - {S.new, S.contacted},
    S.proposal_sent:    (_OPEN | _CLOSING) - {S.new, S.proposal_sent},
    S.negotiation:      (_OPEN | _CLOSING) - {S.new, S.negotiation},
    S.won:              frozenset({S.onboarded}),
    S.lost:             frozenset({S.contacted, S.future_reference}),
    S.no_vendor:        frozenset({S.contacted, S.future_reference}),
    S.future_reference: frozenset({S.contacted}),
    S.onboarded:        frozenset(),
}


class InvalidStageTransition(Exception):
    def __init__(self, current: LeadStage, target: LeadStage):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move lead from '{current.value}' to '{target.value}'")


def _stage(value: Union[str, LeadStage]) -> LeadStage:
    return value if isinstance(value, LeadStage) else LeadStage(value)


def can_transition(current: Union[str, LeadStage], target: Union[str, LeadStage]) -> bool:
    current, target = _stage(current), _stage(target)
    return current == target or target in TRANSITIONS[current]


def ensure_transition(current: Union[str, LeadStage], target: Union[str, LeadStage]) -> LeadStage:
    """Return the target stage or raise InvalidStageTransition."""
    current, target = _stage(current), _stage(target)
    if not can_transition(current, target):
        raise InvalidStageTransition(current, target)
    return target
