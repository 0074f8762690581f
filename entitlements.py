# entitlements.py
"""
Per-module entitlement resolution for business accounts.
A verdict is derived from three inputs only:
1. The actor's role (SUPER_ADMIN bypasses everything)
2. The PlanModule row of the tenant's plan for the module (or None)
3. The live count of the tenant's resources in that module

Pure functions, no database or request access. Callers fetch the plan row and
a fresh count immediately before resolving; nothing here is cached.
"""

from dataclasses import dataclass, replace
from typing import Optional

from services.exceptions import (
    EntitlementError, ModuleNotAvailable, PlanLimitExceeded, InsufficientRole
)

# Fixed for every plan; not configurable.
NEAR_LIMIT_RATIO = 0.8


class Role:
    SUPER_ADMIN = 'SUPER_ADMIN'
    BUSINESS_ADMIN = 'BUSINESS_ADMIN'
    USER = 'USER'
    ALL = (SUPER_ADMIN, BUSINESS_ADMIN, USER)


class ModuleType:
    USERS = 'USERS'
    CONTACTS = 'CONTACTS'
    CRM = 'CRM'
    ALL = (USERS, CONTACTS, CRM)


class Action:
    VIEW = 'view'
    CREATE = 'create'
    EDIT = 'edit'
    DELETE = 'delete'
    ALL = (VIEW, CREATE, EDIT, DELETE)


@dataclass(frozen=True)
class PlanModuleConfig:
    """Plain copy of a PlanModule row."""
    module_type: str
    is_included: bool
    item_limit: Optional[int] = None
    can_create: bool = True
    can_edit: bool = True
    can_delete: bool = True


@dataclass(frozen=True)
class PermissionOverride:
    """Per-user restriction inside a module. Can only narrow a verdict."""
    can_view: bool = True
    can_create: bool = True
    can_edit: bool = True
    can_delete: bool = True


@dataclass(frozen=True)
class EntitlementVerdict:
    can_view: bool
    can_create: bool
    can_edit: bool
    can_delete: bool
    item_limit: Optional[int]
    current_count: int
    is_near_limit: bool
    is_at_limit: bool

    def allows(self, action: str) -> bool:
        return {
            Action.VIEW: self.can_view,
            Action.CREATE: self.can_create,
            Action.EDIT: self.can_edit,
            Action.DELETE: self.can_delete,
        }.get(action, False)

    def to_dict(self) -> dict:
        return {
            'canView': self.can_view,
            'canCreate': self.can_create,
            'canEdit': self.can_edit,
            'canDelete': self.can_delete,
            'itemLimit': self.item_limit,
            'currentCount': self.current_count,
            'isNearLimit': self.is_near_limit,
            'isAtLimit': self.is_at_limit,
        }


# =============================================================================
# RESOLVER
# =============================================================================

def _denied(current_count: int) -> EntitlementVerdict:
    return EntitlementVerdict(
        can_view=False,
        can_create=False,
        can_edit=False,
        can_delete=False,
        item_limit=None,
        current_count=current_count,
        is_near_limit=False,
        is_at_limit=False,
    )


def resolve_entitlement(role: Optional[str],
                        plan_module: Optional[PlanModuleConfig],
                        current_count: int) -> EntitlementVerdict:
    """
    Decide what the actor may do in a module.

    Args:
        role: Actor's role; None or unknown fails closed
        plan_module: Config of the tenant's plan for this module, None if the
            plan has no row for it
        current_count: Live, non-negative count of the tenant's resources

    Returns:
        EntitlementVerdict
    """
    if role == Role.SUPER_ADMIN:
        return EntitlementVerdict(
            can_view=True,
            can_create=True,
            can_edit=True,
            can_delete=True,
            item_limit=None,
            current_count=current_count,
            is_near_limit=False,
            is_at_limit=False,
        )

    if role not in Role.ALL:
        return _denied(current_count)

    # Inclusion is the master gate: stored flags are ignored when excluded
    if plan_module is None or not plan_module.is_included:
        return _denied(current_count)

    item_limit = plan_module.item_limit
    if item_limit is None:
        is_at_limit = False
        is_near_limit = False
    else:
        is_at_limit = current_count >= item_limit
        is_near_limit = current_count >= item_limit * NEAR_LIMIT_RATIO

    return EntitlementVerdict(
        can_view=True,
        # At the limit nothing more may be created, whatever the plan flag says.
        # Edits and deletes stay available so an over-limit tenant can free items.
        can_create=plan_module.can_create and not is_at_limit,
        can_edit=plan_module.can_edit,
        can_delete=plan_module.can_delete,
        item_limit=item_limit,
        current_count=current_count,
        is_near_limit=is_near_limit,
        is_at_limit=is_at_limit,
    )


def apply_permission_override(verdict: EntitlementVerdict,
                              override: Optional[PermissionOverride]) -> EntitlementVerdict:
    """Intersect a verdict with a per-user override. Losing view loses everything."""
    if override is None or not verdict.can_view:
        return verdict

    if not override.can_view:
        return replace(verdict, can_view=False, can_create=False, can_edit=False, can_delete=False)

    return replace(
        verdict,
        can_create=verdict.can_create and override.can_create,
        can_edit=verdict.can_edit and override.can_edit,
        can_delete=verdict.can_delete and override.can_delete,
    )


# =============================================================================
# DENIALS
# =============================================================================

def denial_for(verdict: EntitlementVerdict, action: str, module_type: str) -> Optional[EntitlementError]:
    """
    Map a negative verdict for an action to the error a route should raise.

    Returns:
        None when the action is allowed, otherwise a ModuleNotAvailable,
        PlanLimitExceeded or InsufficientRole instance
    """
    if verdict.allows(action):
        return None

    details = {
        'moduleType': module_type,
        'action': action,
        'currentCount': verdict.current_count,
        'limit': verdict.item_limit,
    }

    if not verdict.can_view:
        return ModuleNotAvailable(
            f'The {module_type} module is not available for your account.',
            details=details,
        )

    if action == Action.CREATE and verdict.is_at_limit:
        return PlanLimitExceeded(
            f'You have reached the limit of {verdict.item_limit} items in {module_type}. '
            f'Upgrade your plan or delete existing items to add more.',
            details=details,
        )

    return InsufficientRole(
        f'You are not allowed to {action} items in {module_type}.',
        details=details,
    )
