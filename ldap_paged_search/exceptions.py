class PagedSearchError(Exception):
    """
    Base class for the errors raised by ``ldap_paged_search`` itself.

    Errors reported by the directory server (bad filter, insufficient access,
    no such object, ...) are not wrapped: they reach the caller as the
    ``ldap.LDAPError`` subclass ``python-ldap`` raised.
    """


class DirectoryConnectionError(PagedSearchError, ConnectionError):
    """
    We could not open, secure or bind a new connection to the directory
    server.  The ``python-ldap`` exception that caused it is available as
    ``__cause__``.
    """


class ProtocolComplianceError(PagedSearchError):
    """
    We asked for paged results but the server's response did not carry a
    paged results response control, so there is no way to know whether more
    pages exist.

    Args:
        filterstr: the filter of the search that failed

    """

    def __init__(self, filterstr: str) -> None:
        self.filterstr = filterstr
        super().__init__(
            f"Server did not return a paged results control for the search "
            f"with filter {filterstr!r}; it does not support paging."
        )


class SearchTimeoutError(PagedSearchError, TimeoutError):
    """
    A single search round trip took longer than the search's timeout on our
    side.  The server enforcing the same limit raises
    ``ldap.TIMELIMIT_EXCEEDED`` instead, which is not wrapped.
    """
