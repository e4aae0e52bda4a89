"""
Role policy for every workflow action.

The table below is the single source of truth for who may attempt which
transition. Assigned-party checks (a judge acting on their own case, a lawyer
on the case they represent) live in the pipelines.
"""
from __future__ import annotations

import enum
from typing import FrozenSet, Mapping

from courtdesk.db.models import Role, User
from courtdesk.utils.exceptions import ForbiddenError


class Action(str, enum.Enum):
    create_case = "create_case"
    approve_case = "approve_case"
    assign_court = "assign_court"
    update_case = "update_case"
    delete_case = "delete_case"
    attach_document = "attach_document"
    request_assignment = "request_assignment"
    review_assignment = "review_assignment"
    assign_lawyer = "assign_lawyer"
    file_motion = "file_motion"
    review_motion = "review_motion"
    draft_order = "draft_order"
    sign_order = "sign_order"
    schedule_hearing = "schedule_hearing"
    view_audit = "view_audit"


_ALL_ROLES = frozenset(Role)
_BENCH = frozenset({Role.judge, Role.registrar, Role.admin})

POLICY: Mapping[Action, FrozenSet[Role]] = {
    Action.create_case: _BENCH | {Role.lawyer},
    Action.approve_case: _BENCH,
    Action.assign_court: _BENCH,
    Action.update_case: _BENCH | {Role.clerk},
    Action.delete_case: frozenset({Role.judge, Role.admin, Role.court_admin}),
    Action.attach_document: _ALL_ROLES,
    Action.request_assignment: frozenset({Role.lawyer}),
    Action.review_assignment: _BENCH,
    Action.assign_lawyer: _BENCH,
    Action.file_motion: frozenset({Role.lawyer, Role.admin, Role.judge}),
    Action.review_motion: frozenset({Role.judge, Role.admin}),
    Action.draft_order: frozenset({Role.clerk, Role.registrar, Role.judge, Role.admin}),
    Action.sign_order: frozenset({Role.judge, Role.admin}),
    Action.schedule_hearing: _BENCH | {Role.clerk},
    Action.view_audit: frozenset({Role.admin, Role.court_admin}),
}

_missing = set(Action) - set(POLICY)
if _missing:
    raise RuntimeError(f"Role policy has no entry for: {sorted(a.value for a in _missing)}")


def allowed_roles(action: Action) -> FrozenSet[Role]:
    return POLICY[action]


def is_allowed(actor: User, action: Action) -> bool:
    return Role(actor.role) in POLICY[action]


def require_role(actor: User, action: Action) -> None:
    """Raise FORBIDDEN unless the actor's role may attempt ``action``."""
    if is_allowed(actor, action):
        return
    required = ", ".join(sorted(r.value for r in POLICY[action]))
    raise ForbiddenError(
        f"Insufficient permissions. Required roles: {required}. Your role: {Role(actor.role).value}"
    )


def is_privileged(actor: User) -> bool:
    """Judge, registrar or admin: the bench-side roles."""
    return Role(actor.role) in _BENCH
