from __future__ import annotations

from collections.abc import Collection, Iterable
from typing import TYPE_CHECKING

from case_insensitive_dict import CaseInsensitiveDict

from .types import AttributeValue, DirectoryEntry

if TYPE_CHECKING:
    from .types import LDAPData

#: Always requested, and always present on every entry we return
DN_ATTRIBUTE: str = "distinguishedName"


def attribute_list(attributes: Iterable[str]) -> list[str]:
    """
    Build the attribute list we send to the server: :py:data:`DN_ATTRIBUTE`
    first, then ``attributes`` in the order given.  Attribute names are case
    insensitive in LDAP, so later spellings of a name we already have are
    dropped.

    Args:
        attributes: the attributes the caller wants loaded

    Returns:
        The de-duplicated attribute list.

    """
    attrlist: CaseInsensitiveDict[str, str] = CaseInsensitiveDict()
    attrlist[DN_ATTRIBUTE] = DN_ATTRIBUTE
    for attr in attributes:
        if attr not in attrlist:
            attrlist[attr] = attr
    return list(attrlist.values())


def decode_values(values: list[bytes], binary: bool = False) -> list[str] | list[bytes]:
    """
    Decode the raw values ``python-ldap`` gave us for one attribute.

    Args:
        values: the raw values, in server order

    Keyword Args:
        binary: if ``True``, leave the values as ``bytes``

    Returns:
        ``values`` unchanged if ``binary``, otherwise each value decoded as
        UTF-8.  Undecodable sequences become U+FFFD rather than raising.

    """
    if binary:
        return [bytes(value) for value in values]
    return [value.decode("utf-8", errors="replace") for value in values]


def collapse(values: list[str] | list[bytes] | None) -> AttributeValue:
    """
    ``None`` for a missing attribute, the value itself for a single valued
    one, and the whole list otherwise.
    """
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    return list(values)


def normalize_entry(
    dn: str,
    attrs: LDAPData,
    attributes: Iterable[str],
    binary_attributes: Collection[str] = (),
) -> DirectoryEntry:
    """
    Turn one ``(dn, attrs)`` search result into a :py:data:`DirectoryEntry`.

    The entry has ``distinguishedName`` set to ``dn`` and one key for each
    name in ``attributes``, spelled as the caller spelled it:

    * ``None`` if the server did not return that attribute
    * a single ``str`` (or ``bytes``) if it returned exactly one value
    * a list of values, in server order, if it returned more than one

    Attributes named in ``binary_attributes`` keep their values as ``bytes``;
    all others are decoded to ``str``.

    Args:
        dn: the DN of the entry
        attrs: the attribute dict ``python-ldap`` returned for the entry
        attributes: the attributes the caller asked for

    Keyword Args:
        binary_attributes: the names from ``attributes`` whose values are binary

    Returns:
        The normalized entry.

    """
    returned: CaseInsensitiveDict[str, list[bytes]] = CaseInsensitiveDict()
    for attr, values in attrs.items():
        returned[attr] = values
    binary: CaseInsensitiveDict[str, bool] = CaseInsensitiveDict()
    for attr in binary_attributes:
        binary[attr] = True

    entry: DirectoryEntry = CaseInsensitiveDict()
    entry[DN_ATTRIBUTE] = dn
    for attr in attributes:
        if attr in entry:
            continue
        if attr in returned:
            entry[attr] = collapse(decode_values(returned[attr], binary=attr in binary))
        else:
            entry[attr] = None
    return entry
