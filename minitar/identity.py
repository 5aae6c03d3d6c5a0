from __future__ import annotations

import grp
import pwd

from .errors import IdentityLookupError


class SystemIdentityLookup:
    """Resolve numeric owner/group ids through the system user database."""

    def user_name(self, uid: int) -> str:
        try:
            return pwd.getpwuid(uid).pw_name
        except KeyError:
            raise IdentityLookupError(f"no user with id {uid}") from None

    def group_name(self, gid: int) -> str:
        try:
            return grp.getgrgid(gid).gr_name
        except KeyError:
            raise IdentityLookupError(f"no group with id {gid}") from None
