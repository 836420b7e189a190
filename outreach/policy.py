"""Which role may write which part of an entry."""
from enum import Enum
from typing import Dict, Optional, Union


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"
    DOCTOR = "doctor"
    NURSE = "nurse"


class FieldGroup(str, Enum):
    DEMOGRAPHIC = "demographic"
    HEALTH = "health"
    MEDICAL = "medical"


WRITERS: Dict[FieldGroup, frozenset] = {
    FieldGroup.DEMOGRAPHIC: frozenset({Role.USER, Role.ADMIN}),
    FieldGroup.HEALTH: frozenset({Role.NURSE, Role.ADMIN}),
    FieldGroup.MEDICAL: frozenset({Role.DOCTOR, Role.ADMIN}),
}


def to_role(role: Union[Role, str, None]) -> Optional[Role]:
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def can_write(role: Union[Role, str, None], group: FieldGroup) -> bool:
    r = to_role(role)
    return r is not None and r in WRITERS[FieldGroup(group)]


def capabilities(role: Union[Role, str, None]) -> Dict[str, bool]:
    """Per-group flags, keyed the way clients gate their forms."""
    return {
        "demographics": can_write(role, FieldGroup.DEMOGRAPHIC),
        "health": can_write(role, FieldGroup.HEALTH),
        "medical": can_write(role, FieldGroup.MEDICAL),
        "admin": to_role(role) is Role.ADMIN,
    }
