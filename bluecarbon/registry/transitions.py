# -*- coding: utf-8 -*-
"""
Status Transition Tables - Blue Carbon Registry

The single source of truth for how Projects, MRV data records and
Stakeholders change state. Every caller (registry service, REST API,
CLI) resolves transitions through these tables.

A table maps ``(current state, action)`` to ``(next state, required
role)``. Resolution checks the actor's role first, then whether the
action is allowed from the current state.

Project:
    approve   pending                              -> active     admin
    verify    pending, active                      -> verified   verifier
    suspend   pending, active, verified            -> suspended  admin
    activate  suspended                            -> active     admin
    reject    pending, active, verified, suspended -> rejected   admin

MRV data:
    review          submitted              -> underReview     verifier
    verify          submitted, underReview -> verified        verifier
    reject          submitted, underReview -> rejected        verifier
    request_update  submitted, underReview -> requiresUpdate  verifier

Stakeholder:
    approve  unapproved -> approved  admin

Example:
    >>> from bluecarbon.registry.transitions import PROJECT_TRANSITIONS
    >>> PROJECT_TRANSITIONS.resolve("pending", "approve", "admin")
    <ProjectStatus.ACTIVE: 'active'>
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple, Type

from bluecarbon.exceptions import ForbiddenError, InvalidTransitionError
from bluecarbon.registry.models import (
    ActorRole,
    MRVAction,
    MRVStatus,
    ProjectAction,
    ProjectStatus,
    StakeholderAction,
)

logger = logging.getLogger(__name__)


class StakeholderState(str, Enum):
    """Approval state of a stakeholder (stored as the ``approved`` flag)."""
    UNAPPROVED = "unapproved"
    APPROVED = "approved"

    @classmethod
    def of(cls, approved: bool) -> "StakeholderState":
        return cls.APPROVED if approved else cls.UNAPPROVED


@dataclass(frozen=True)
class TransitionRule:
    """One action: the states it applies from, where it leads, who may do it."""

    action: Enum
    sources: FrozenSet[Enum]
    target: Enum
    role: ActorRole


class TransitionTable:
    """Canonical (current state x action) -> (next state | error) mapping.

    Attributes:
        entity_type: Name used in error messages and metrics.
        state_type: Enum of states.
        action_type: Enum of actions.
    """

    def __init__(
        self,
        entity_type: str,
        state_type: Type[Enum],
        action_type: Type[Enum],
        rules: Iterable[TransitionRule],
    ) -> None:
        self.entity_type = entity_type
        self.state_type = state_type
        self.action_type = action_type
        self._rules: Dict[Enum, TransitionRule] = {}
        self._table: Dict[Tuple[Enum, Enum], TransitionRule] = {}
        for rule in rules:
            self._rules[rule.action] = rule
            for source in rule.sources:
                self._table[(source, rule.action)] = rule

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def rule_for(self, action: Any) -> TransitionRule:
        """Return the rule of an action.

        Raises:
            InvalidTransitionError: If the action is unknown.
        """
        try:
            act = self.action_type(action)
        except ValueError:
            raise InvalidTransitionError(
                f"Invalid {self.entity_type} action '{action}'",
                entity_type=self.entity_type,
                attempted=str(action),
            ) from None
        return self._rules[act]

    def allowed_actions(self, current: Any) -> List[Enum]:
        """Actions that may be applied from ``current``."""
        state = self.state_type(current)
        return [action for (src, action) in self._table if src == state]

    def is_terminal(self, state: Any) -> bool:
        """Whether no action leads out of ``state``."""
        return not self.allowed_actions(state)

    def action_for(self, current: Any, target: Any) -> Enum:
        """Find the action leading from ``current`` to ``target``.

        When ``current`` cannot reach ``target`` the action that leads to
        ``target`` from elsewhere is returned, so ``resolve`` still reports
        a role mismatch before the invalid state.

        Raises:
            InvalidTransitionError: If no action leads to ``target`` at all.
        """
        state = self.state_type(current)
        try:
            goal = self.state_type(target)
        except ValueError:
            raise InvalidTransitionError(
                f"Unknown {self.entity_type} state '{target}'",
                entity_type=self.entity_type,
                current_state=state.value,
                attempted=str(target),
            ) from None
        for (src, action), rule in self._table.items():
            if src == state and rule.target == goal:
                return action
        for rule in self._rules.values():
            if rule.target == goal:
                return rule.action
        raise InvalidTransitionError(
            f"Cannot move {self.entity_type} from '{state.value}' to '{goal.value}'",
            entity_type=self.entity_type,
            current_state=state.value,
            attempted=goal.value,
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, current: Any, action: Any, role: Any) -> Enum:
        """Return the next state for ``action`` applied by ``role``.

        Args:
            current: Current state (enum or value).
            action: Requested action (enum or value).
            role: ActorRole (enum or value) of the requester.

        Returns:
            The next state.

        Raises:
            ForbiddenError: If the role does not satisfy the rule's role.
            InvalidTransitionError: If the action is unknown or not allowed
                from ``current``.
        """
        rule = self.rule_for(action)
        actor_role = ActorRole(role)
        state = self.state_type(current)

        if not actor_role.satisfies(rule.role):
            raise ForbiddenError(
                f"Action '{rule.action.value}' on {self.entity_type} "
                f"requires role '{rule.role.value}'",
                required_role=rule.role.value,
                actor_role=actor_role.value,
            )

        if (state, rule.action) not in self._table:
            raise InvalidTransitionError(
                f"Cannot {rule.action.value} {self.entity_type} "
                f"in state '{state.value}'",
                entity_type=self.entity_type,
                current_state=state.value,
                attempted=rule.action.value,
            )

        logger.debug(
            "%s transition %s --%s--> %s",
            self.entity_type, state.value, rule.action.value, rule.target.value,
        )
        return rule.target

    def as_rows(self) -> List[Dict[str, Optional[str]]]:
        """Flatten the table for display (CLI, docs)."""
        rows = []
        for (src, action), rule in self._table.items():
            rows.append({
                "from": src.value,
                "action": action.value,
                "to": rule.target.value,
                "role": rule.role.value,
            })
        return rows


# =============================================================================
# Canonical tables
# =============================================================================

_P = ProjectStatus

PROJECT_TRANSITIONS = TransitionTable(
    entity_type="project",
    state_type=ProjectStatus,
    action_type=ProjectAction,
    rules=[
        TransitionRule(
            ProjectAction.APPROVE, frozenset({_P.PENDING}), _P.ACTIVE, ActorRole.ADMIN,
        ),
        TransitionRule(
            ProjectAction.VERIFY,
            frozenset({_P.PENDING, _P.ACTIVE}),
            _P.VERIFIED,
            ActorRole.VERIFIER,
        ),
        TransitionRule(
            ProjectAction.SUSPEND,
            frozenset({_P.PENDING, _P.ACTIVE, _P.VERIFIED}),
            _P.SUSPENDED,
            ActorRole.ADMIN,
        ),
        TransitionRule(
            ProjectAction.ACTIVATE, frozenset({_P.SUSPENDED}), _P.ACTIVE, ActorRole.ADMIN,
        ),
        TransitionRule(
            ProjectAction.REJECT,
            frozenset({_P.PENDING, _P.ACTIVE, _P.VERIFIED, _P.SUSPENDED}),
            _P.REJECTED,
            ActorRole.ADMIN,
        ),
    ],
)

_M = MRVStatus
_OPEN_MRV = frozenset({_M.SUBMITTED, _M.UNDER_REVIEW})

MRV_TRANSITIONS = TransitionTable(
    entity_type="mrv_data",
    state_type=MRVStatus,
    action_type=MRVAction,
    rules=[
        TransitionRule(
            MRVAction.REVIEW, frozenset({_M.SUBMITTED}), _M.UNDER_REVIEW, ActorRole.VERIFIER,
        ),
        TransitionRule(MRVAction.VERIFY, _OPEN_MRV, _M.VERIFIED, ActorRole.VERIFIER),
        TransitionRule(MRVAction.REJECT, _OPEN_MRV, _M.REJECTED, ActorRole.VERIFIER),
        TransitionRule(
            MRVAction.REQUEST_UPDATE, _OPEN_MRV, _M.REQUIRES_UPDATE, ActorRole.VERIFIER,
        ),
    ],
)

STAKEHOLDER_TRANSITIONS = TransitionTable(
    entity_type="stakeholder",
    state_type=StakeholderState,
    action_type=StakeholderAction,
    rules=[
        TransitionRule(
            StakeholderAction.APPROVE,
            frozenset({StakeholderState.UNAPPROVED}),
            StakeholderState.APPROVED,
            ActorRole.ADMIN,
        ),
    ],
)

# Projects that accept MRV submissions.
MRV_ACCEPTING_PROJECT_STATES = frozenset({ProjectStatus.ACTIVE, ProjectStatus.VERIFIED})


__all__ = [
    "StakeholderState",
    "TransitionRule",
    "TransitionTable",
    "PROJECT_TRANSITIONS",
    "MRV_TRANSITIONS",
    "STAKEHOLDER_TRANSITIONS",
    "MRV_ACCEPTING_PROJECT_STATES",
]
