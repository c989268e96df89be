import enum
from typing import TYPE_CHECKING

import ldap
from case_insensitive_dict import CaseInsensitiveDict

if TYPE_CHECKING:
    import ldap.controls

# ====================================
# Types
# ====================================

# LDAP records as returned by python-ldap
LDAPData = dict[str, list[bytes]]
LDAPRecord = tuple[str, LDAPData]
LDAPSearchResult = list[LDAPRecord]

# Return values
# result: (result_type, result_data, msgid, decoded server controls)
Result3 = tuple[int | str, LDAPSearchResult, int, list["ldap.controls.LDAPControl"]]  # type: ignore[attr-defined]

# Options
LDAPOptionValue = int | str | float
LDAPOptionStore = dict[int, LDAPOptionValue]

# Normalized entries
AttributeValue = str | bytes | list[str] | list[bytes] | None
DirectoryEntry = CaseInsensitiveDict[str, AttributeValue]


class SearchScope(enum.IntEnum):
    """
    The scope of a search, relative to its base.  The values are the
    ``python-ldap`` scope constants, so members can be passed straight to
    :py:meth:`ldap.ldapobject.LDAPObject.search_ext`.
    """

    #: Only the base object itself
    BASE = ldap.SCOPE_BASE  # type: ignore[attr-defined]
    #: The immediate children of the base object
    ONELEVEL = ldap.SCOPE_ONELEVEL  # type: ignore[attr-defined]
    #: The base object and everything beneath it
    SUBTREE = ldap.SCOPE_SUBTREE  # type: ignore[attr-defined]
