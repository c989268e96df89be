from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import ldap
from case_insensitive_dict import CaseInsensitiveDict
from ldap.controls import SimplePagedResultsControl

from .connection import ConnectionParams, connection_scope
from .entries import attribute_list, normalize_entry
from .exceptions import ProtocolComplianceError, SearchTimeoutError
from .logging import logger
from .types import DirectoryEntry, SearchScope

if TYPE_CHECKING:
    import ldap.ldapobject

    from .types import LDAPSearchResult, Result3

#: Entries per page when the caller doesn't say
DEFAULT_PAGE_SIZE: int = 100
#: Seconds allowed per round trip when the caller doesn't say
DEFAULT_TIMEOUT: int = 120


@dataclass(frozen=True)
class SearchRequest:
    """
    A description of one logical search.  Instances are validated on
    construction and never change afterwards.

    Example:
        >>> request = SearchRequest(
            base='DC=example,DC=com',
            filterstr='(objectClass=user)',
            attributes=('mail', 'objectSid'),
            binary_attributes=frozenset({'objectSid'}),
            page_size=500,
        )

    Raises:
        ValueError: a required field is empty, a number is negative, or a
            binary attribute is not one of ``attributes``

    """

    #: The DN under which to search
    base: str
    #: The LDAP filter string
    filterstr: str
    #: How far below ``base`` to look
    scope: SearchScope = SearchScope.SUBTREE
    #: The attributes to load for each entry, in output order
    attributes: tuple[str, ...] = ()
    #: The subset of ``attributes`` whose values are kept as ``bytes``
    binary_attributes: frozenset[str] = field(default_factory=frozenset)
    #: Entries per page; 0 turns paging off
    page_size: int = DEFAULT_PAGE_SIZE
    #: Seconds, both the server time limit and our wait for each response; 0
    #: means no limit
    timeout: int = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        object.__setattr__(self, "scope", SearchScope(self.scope))
        object.__setattr__(self, "attributes", tuple(self.attributes))
        object.__setattr__(self, "binary_attributes", frozenset(self.binary_attributes))
        if not self.base:
            msg = "base must be a non-empty DN"
            raise ValueError(msg)
        if not self.filterstr:
            msg = "filterstr must be a non-empty LDAP filter"
            raise ValueError(msg)
        if self.page_size < 0:
            msg = f"page_size must be 0 or greater, not {self.page_size}"
            raise ValueError(msg)
        if self.timeout < 0:
            msg = f"timeout must be 0 or greater, not {self.timeout}"
            raise ValueError(msg)
        requested: CaseInsensitiveDict[str, str] = CaseInsensitiveDict()
        for attr in self.attributes:
            requested[attr] = attr
        unknown = sorted(attr for attr in self.binary_attributes if attr not in requested)
        if unknown:
            msg = f"binary_attributes not in attributes: {', '.join(unknown)}"
            raise ValueError(msg)

    @property
    def paged(self) -> bool:
        """
        ``True`` if we will ask the server for paged results.
        """
        return self.page_size > 0

    @property
    def attrlist(self) -> list[str]:
        """
        The attribute list we send to the server.
        """
        return attribute_list(self.attributes)


class PagedSearch:
    """
    Run one :py:class:`SearchRequest` on an already bound connection,
    following RFC 2696 paged results cookies until the server says there are
    no more pages, and yield each entry as a :py:data:`DirectoryEntry`.

    Iterating blocks on one network round trip per page.  Pages are requested
    strictly one after another: the cookie for page ``n + 1`` comes back with
    page ``n``.

    Note:
        When paging, we turn off referral chasing on ``connection`` with
        ``ldap.OPT_REFERRALS``; the two don't work together.  Don't share
        ``connection`` with another search while this one is running.

    Note:
        A :py:class:`PagedSearch` can be iterated only once.

    Args:
        connection: a bound connection
        request: what to search for

    """

    def __init__(
        self,
        connection: ldap.ldapobject.LDAPObject,  # type: ignore[name-defined]
        request: SearchRequest,
    ) -> None:
        self.connection = connection
        self.request = request
        self.attrlist: list[str] = request.attrlist
        #: python-ldap treats a negative timeout as "wait forever"
        self.timeout: int = request.timeout if request.timeout > 0 else -1
        #: The control that carries our cookie from page to page.  ``None`` if
        #: we aren't paging
        self.page_control: SimplePagedResultsControl | None = None
        if request.paged:
            self.page_control = SimplePagedResultsControl(
                True,  # noqa: FBT003
                size=request.page_size,
                cookie=b"",
            )
        #: The number of search requests we have sent so far
        self.requests_sent: int = 0
        self._started: bool = False

    def __iter__(self) -> Iterator[DirectoryEntry]:
        for page in self.pages():
            yield from page

    def prepare(self) -> None:
        """
        Get ``connection`` ready for our search: turn off referral chasing if
        we're paging.
        """
        if self.request.paged:
            self.connection.set_option(ldap.OPT_REFERRALS, 0)  # type: ignore[attr-defined]

    def pages(self) -> Iterator[list[DirectoryEntry]]:
        """
        Yield the search results one page at a time.  Without paging, there is
        exactly one page.

        Raises:
            RuntimeError: this search has already been run
            ProtocolComplianceError: we asked for paging but the server didn't
                send back a paged results control
            SearchTimeoutError: a round trip exceeded our timeout
            ldap.LDAPError: the server rejected the search

        """
        if self._started:
            msg = "A PagedSearch can only be iterated once"
            raise RuntimeError(msg)
        self._started = True
        self.prepare()
        while True:
            _, rdata, _, serverctrls = self._round_trip()
            cookie = b""
            if self.page_control is not None:
                cookie = self._response_cookie(serverctrls)
            page = self._normalize(rdata)
            logger.debug(
                "paged_search.page number=%d entries=%d more=%s",
                self.requests_sent,
                len(page),
                bool(cookie),
            )
            yield page
            if self.page_control is None or not cookie:
                break
            self.page_control.cookie = cookie

    # Internals

    def _round_trip(self) -> Result3:
        """
        Send our search request and wait for the whole response.

        Raises:
            SearchTimeoutError: the server didn't answer within our timeout

        Returns:
            A :py:meth:`ldap.ldapobject.LDAPObject.result3` 4-tuple.

        """
        request = self.request
        serverctrls = [self.page_control] if self.page_control is not None else None
        msgid: int | None = None
        try:
            msgid = self.connection.search_ext(
                request.base,
                int(request.scope),
                request.filterstr,
                self.attrlist,
                serverctrls=serverctrls,
                timeout=self.timeout,
            )
            self.requests_sent += 1
            return self.connection.result3(msgid, timeout=self.timeout)
        except ldap.TIMEOUT as exc:  # type: ignore[attr-defined]
            if msgid is not None:
                self._abandon(msgid)
            msg = (
                f"Search with filter {request.filterstr!r} under {request.base!r} "
                f"took longer than {request.timeout} seconds"
            )
            raise SearchTimeoutError(msg) from exc

    def _abandon(self, msgid: int) -> None:
        """
        Tell the server to stop working on ``msgid`` so that its results can't
        turn up in a later ``result3()`` on a borrowed connection.  Failures
        are logged, not raised.
        """
        try:
            self.connection.abandon(msgid)
        except ldap.LDAPError as exc:  # type: ignore[attr-defined]
            logger.warning("paged_search.abandon.failed msgid=%s error=%s", msgid, exc)
        else:
            logger.debug("paged_search.abandon msgid=%s", msgid)

    def _response_cookie(self, serverctrls: list | None) -> bytes:
        """
        Find the paged results control in the controls the server sent back
        and return its cookie.  An empty cookie means there are no more pages.

        Raises:
            ProtocolComplianceError: there is no paged results control

        """
        for ctrl in serverctrls or []:
            if ctrl.controlType == SimplePagedResultsControl.controlType:
                return ctrl.cookie or b""
        raise ProtocolComplianceError(self.request.filterstr)

    def _normalize(self, rdata: LDAPSearchResult) -> list[DirectoryEntry]:
        page: list[DirectoryEntry] = []
        for dn, attrs in rdata:
            # Search continuation references come back as (None, [urls])
            if dn is None or not isinstance(attrs, dict):
                logger.debug("paged_search.skipped_reference refs=%s", attrs)
                continue
            page.append(
                normalize_entry(
                    dn,
                    attrs,
                    self.request.attributes,
                    binary_attributes=self.request.binary_attributes,
                )
            )
        return page


def _run(
    request: SearchRequest,
    connection: ldap.ldapobject.LDAPObject | ConnectionParams,  # type: ignore[name-defined]
) -> Iterator[DirectoryEntry]:
    with connection_scope(connection) as ldap_object:
        yield from PagedSearch(ldap_object, request)


def search(  # noqa: PLR0913
    filterstr: str,
    base: str,
    connection: ldap.ldapobject.LDAPObject | ConnectionParams,  # type: ignore[name-defined]
    scope: SearchScope | int = SearchScope.SUBTREE,
    attributes: Iterable[str] = (),
    binary_attributes: Iterable[str] = (),
    page_size: int = DEFAULT_PAGE_SIZE,
    timeout: int = DEFAULT_TIMEOUT,
) -> Iterator[DirectoryEntry]:
    """
    Search the directory and lazily yield every matching entry, fetching
    further pages from the server as needed.

    Example:
        >>> params = ConnectionParams(host='dc1.example.com', use_encryption=True)
        >>> for entry in search(
                '(objectClass=user)',
                'DC=example,DC=com',
                params,
                attributes=['mail', 'memberOf'],
                page_size=500,
            ):
                print(entry['distinguishedName'], entry['mail'])

    The arguments are checked right away; nothing touches the network until
    the first entry is asked for.

    If ``connection`` is a :py:class:`ConnectionParams`, a new connection is
    opened when iteration starts and unbound when the returned iterator is
    exhausted, raises or is closed.  If it is an existing
    :py:class:`ldap.ldapobject.LDAPObject`, it is used as-is and left open.

    Args:
        filterstr: the LDAP filter
        base: the DN under which to search
        connection: a bound connection to borrow, or the parameters for a new one

    Keyword Args:
        scope: how far below ``base`` to look
        attributes: the attributes to load for each entry
        binary_attributes: the names from ``attributes`` to leave as ``bytes``
        page_size: entries per page; 0 disables paging
        timeout: seconds allowed per round trip, also sent to the server as
            the time limit; 0 means no limit

    Raises:
        ValueError: the arguments don't describe a valid search

    Returns:
        An iterator of :py:data:`DirectoryEntry` objects in server order.  It
        raises :py:class:`DirectoryConnectionError`,
        :py:class:`ProtocolComplianceError`, :py:class:`SearchTimeoutError`
        or the server's ``ldap.LDAPError`` as it is consumed.  Because
        ``timeout`` is also the server's time limit, a slow search may end in
        either :py:class:`SearchTimeoutError` or the server's
        ``ldap.TIMELIMIT_EXCEEDED``.

    """
    request = SearchRequest(
        base=base,
        filterstr=filterstr,
        scope=scope,  # type: ignore[arg-type]
        attributes=tuple(attributes),
        binary_attributes=frozenset(binary_attributes),
        page_size=page_size,
        timeout=timeout,
    )
    return _run(request, connection)
