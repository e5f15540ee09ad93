"""Authorization predicates for article writes.

These are pure functions of their inputs. Callers turn a False result into
an AuthorizationError, after checking that the article exists.
"""

from collections.abc import Sequence
from typing import Protocol

from impact_blog.models.user import AdminStatus

CREATOR_ROLES = frozenset({AdminStatus.AUTHOR, AdminStatus.ADMIN})


class Actor(Protocol):
    """Anything that carries a user id and a role."""

    id: int
    admin_status: str


class Authored(Protocol):
    """Anything that carries an ordered author id list."""

    @property
    def author_ids(self) -> Sequence[int]: ...


def is_admin(user: Actor) -> bool:
    return user.admin_status == AdminStatus.ADMIN


def can_mutate(article: Authored, user: Actor) -> bool:
    """Whether the user may update or delete the article."""
    return user.id in article.author_ids or is_admin(user)


def can_pin(user: Actor) -> bool:
    """Whether the user may change pin state."""
    return is_admin(user)


def can_create(user: Actor) -> bool:
    """Whether the user may create articles."""
    return user.admin_status in CREATOR_ROLES
