"""
authorization.py - Capability registry for privileged operations

A caller is capable when it is the administrator or a member of the approved
list. The administrator is never stored in the approved list; it is capable
implicitly.

Removal of an approved member is a silent no-op when the member is absent,
unlike AddressRegistry.unregister which fails loudly.
"""

from __future__ import annotations
from typing import List, Tuple

from .core import (
    Holder,
    AlreadyApproved, NotAuthorized,
    remove_unordered, require_holder,
)


class AuthorizationRegistry:
    """Administrator identity plus the set of approved callers."""

    def __init__(self, administrator: Holder):
        self._administrator: Holder = require_holder(administrator)
        self._approved: List[Holder] = []

    @property
    def administrator(self) -> Holder:
        return self._administrator

    def is_administrator(self, caller: Holder) -> bool:
        return caller == self._administrator

    def is_capable(self, caller: Holder) -> bool:
        """True iff caller is the administrator or an approved member."""
        return caller == self._administrator or caller in self._approved

    def require_capable(self, caller: Holder) -> None:
        """
        Raise NotAuthorized unless caller is capable.

        Every privileged operation calls this (or require_administrator) once,
        before doing anything else.
        """
        if not self.is_capable(caller):
            raise NotAuthorized(f"{caller} is not an approved caller")

    def require_administrator(self, caller: Holder) -> None:
        if caller != self._administrator:
            raise NotAuthorized(f"{caller} is not the administrator")

    def add_approved(self, caller: Holder, member: Holder) -> None:
        """
        Grant member the privileged-operation capability.

        Raises:
            NotAuthorized: If caller is not the administrator
            InvalidHolder: If member is the null identity
            AlreadyApproved: If member is already approved or is the administrator
        """
        self.require_administrator(caller)
        require_holder(member)
        if member == self._administrator:
            raise AlreadyApproved(f"{member} is the administrator and always capable")
        if member in self._approved:
            raise AlreadyApproved(f"{member} is already approved")
        self._approved.append(member)

    def remove_approved(self, caller: Holder, member: Holder) -> bool:
        """
        Revoke member's capability. Returns True if an entry was removed.

        Scans the approved list once; a missing member is not an error.
        """
        self.require_administrator(caller)
        for i, approved in enumerate(self._approved):
            if approved == member:
                remove_unordered(self._approved, i)
                return True
        return False

    def list_approved(self) -> Tuple[Holder, ...]:
        """Approved members, excluding the administrator."""
        return tuple(self._approved)

    def copy(self) -> AuthorizationRegistry:
        cloned = AuthorizationRegistry.__new__(AuthorizationRegistry)
        cloned._administrator = self._administrator
        cloned._approved = list(self._approved)
        return cloned

    def __repr__(self) -> str:
        return f"AuthorizationRegistry(admin={self._administrator}, approved={len(self._approved)})"
