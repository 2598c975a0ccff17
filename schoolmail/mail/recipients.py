"""Recipient selectors for broadcasts.

A selector string from the caller is parsed once into one of four variants,
then resolved against the user table. Precedence:

1. ``all``                      -> every user
2. ``students`` / ``parents``   -> users with role ``student`` / ``parent``
3. a class context is supplied  -> users whose ``class_id`` matches
4. anything else                -> the selector is a comma-separated address list
"""

from dataclasses import dataclass
from typing import Union

from sqlalchemy.orm import Session

from schoolmail.models.user import User

ALL_GROUP = 'all'
ROLE_GROUPS = {
    'students': 'student',
    'parents': 'parent',
}
RECIPIENT_GROUPS = [ALL_GROUP, 'students', 'parents']
CLASS_GROUP = 'class'


class InvalidSelectorError(ValueError):
    pass


@dataclass(frozen=True)
class AllUsers:
    pass


@dataclass(frozen=True)
class RoleGroup:
    role: str


@dataclass(frozen=True)
class ClassGroup:
    class_id: int


@dataclass(frozen=True)
class ExplicitAddresses:
    addresses: tuple[str, ...]


RecipientSelector = Union[AllUsers, RoleGroup, ClassGroup, ExplicitAddresses]


def parse_class_id(value: str | int) -> int:
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise InvalidSelectorError('Invalid class identifier') from exc


def _parse_group(group: str | None) -> RecipientSelector | None:
    if group == ALL_GROUP:
        return AllUsers()
    if group in ROLE_GROUPS:
        return RoleGroup(role=ROLE_GROUPS[group])
    return None


def parse_selector(recipients: str, class_name: str | None = None) -> RecipientSelector:
    selector = _parse_group(recipients)
    if selector is not None:
        return selector
    if class_name:
        return ClassGroup(class_id=parse_class_id(class_name))
    addresses = tuple(address.strip() for address in recipients.split(',') if address.strip())
    return ExplicitAddresses(addresses=addresses)


def parse_preview_selector(group: str | None, class_id: str | None = None) -> RecipientSelector | None:
    """Like parse_selector, but without the explicit address fallback."""
    selector = _parse_group(group)
    if selector is not None:
        return selector
    if class_id:
        return ClassGroup(class_id=parse_class_id(class_id))
    return None


def resolve_recipients(db: Session, selector: RecipientSelector | None) -> list[str]:
    if selector is None:
        return []

    if isinstance(selector, ExplicitAddresses):
        return list(selector.addresses)

    query = db.query(User.email)
    if isinstance(selector, RoleGroup):
        query = query.filter(User.role == selector.role)
    elif isinstance(selector, ClassGroup):
        query = query.filter(User.class_id == selector.class_id)

    return [email for (email,) in query.order_by(User.id).all()]
