"""Interface of the LDAP directory the workflows can keep in sync.

No backend ships with usermgmt; callers pass an object implementing
``DirectoryService`` to the workflows in ``usermgmt.services.operations``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from usermgmt.models.users import NewUser, UserChanges


@runtime_checkable
class DirectoryService(Protocol):
    """An authenticated directory session."""

    def add_user(self, user: NewUser) -> None: ...

    def delete_user(self, username: str) -> None: ...

    def modify_user(self, changes: UserChanges) -> None: ...

    def list_users(self) -> str:
        """Human readable listing of every user entry."""
        ...
