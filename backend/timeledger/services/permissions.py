"""
Role capabilities.

Every role check in the services goes through one of these predicates so
call sites cannot drift apart.
"""

from timeledger.models.user import Role

_APPROVER_ROLES = frozenset({Role.team_lead, Role.admin, Role.manager})
_ADMIN_TIER_ROLES = frozenset({Role.admin, Role.manager})


def _as_role(role) -> Role | None:
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def can_approve(role) -> bool:
    return _as_role(role) in _APPROVER_ROLES


def is_final_approver(role) -> bool:
    """Approval by these roles finishes a timesheet instead of approving it."""
    return _as_role(role) in _ADMIN_TIER_ROLES


def can_finish(role) -> bool:
    return _as_role(role) in _ADMIN_TIER_ROLES


def can_override_hours(role) -> bool:
    return _as_role(role) in _ADMIN_TIER_ROLES


def can_administer_batches(role) -> bool:
    return _as_role(role) in _ADMIN_TIER_ROLES


def can_coordinate_batches(role) -> bool:
    return _as_role(role) in _APPROVER_ROLES


def can_receive_escalation(role) -> bool:
    return _as_role(role) in _ADMIN_TIER_ROLES


def can_view_all_timesheets(role) -> bool:
    return _as_role(role) in _ADMIN_TIER_ROLES


def can_view_dashboard(role) -> bool:
    return _as_role(role) in _ADMIN_TIER_ROLES


def describe_roles(predicate) -> str:
    """Human readable list of the roles a predicate accepts, for error messages."""
    return "/".join(r.value for r in Role if predicate(r))
