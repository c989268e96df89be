from __future__ import annotations

from typing import TYPE_CHECKING

import ldap
from ldap.controls import SimplePagedResultsControl
from ldap_faker import CallHistory, LDAPCallRecord
from ldap_faker.faker import record_call

if TYPE_CHECKING:
    from ldap_paged_search.types import LDAPOptionStore, LDAPOptionValue, LDAPSearchResult, Result3


class PagingLDAPObject:
    """
    Simulates the parts of ``ldap.ldapobject.LDAPObject`` that a paged search
    uses, serving a fixed list of results in pages the way an RFC 2696
    compliant server does.

    Each page after the first must be requested with the cookie returned with
    the page before it; cookies are ``b"page-<n>"``.  The last page comes back
    with an empty cookie.

    Args:
        results: the search results to serve, as ``python-ldap`` returns them

    Keyword Args:
        page_controls: if ``False``, never send back a paged results response
            control, like a server that ignores the request control
        fail_on_request: raise ``error`` when this (1-based) request is made
        error: the exception to raise on request ``fail_on_request``
        fail_in: ``"search_ext"`` to raise ``error`` when the request is sent,
            or ``"result3"`` to raise it while waiting for the response, which
            is where ``python-ldap`` raises ``ldap.TIMEOUT``

    Note:
        Each ``search_ext`` call record also gets ``cookie`` and ``page_size``
        arguments: the state of the paged results control at the time of the
        call, since the caller reuses and mutates that control.

    """

    def __init__(
        self,
        results: LDAPSearchResult,
        page_controls: bool = True,
        fail_on_request: int | None = None,
        error: Exception | None = None,
        fail_in: str = "search_ext",
    ) -> None:
        self.results: LDAPSearchResult = results
        self.page_controls = page_controls
        self.fail_on_request = fail_on_request
        self.error = error
        self.fail_in = fail_in
        self.options: LDAPOptionStore = {}
        self.calls: CallHistory = CallHistory()
        self.current_msgid: int = 1
        self._async_results: dict[int, Result3] = {}
        self.unbound: bool = False

    @property
    def requests(self) -> list[LDAPCallRecord]:
        """
        The ``search_ext`` calls made so far.
        """
        return self.calls.filter_calls("search_ext")

    @record_call
    def set_option(self, option: int, invalue: LDAPOptionValue) -> None:
        self.options[option] = invalue

    @record_call
    def get_option(self, option: int) -> LDAPOptionValue:
        return self.options[option]

    @record_call
    def search_ext(
        self,
        base: str,
        scope: int,
        filterstr: str = "(objectClass=*)",
        attrlist: list[str] | None = None,
        attrsonly: int = 0,  # noqa: ARG002
        serverctrls: list[ldap.controls.LDAPControl] | None = None,
        clientctrls: list[ldap.controls.LDAPControl] | None = None,  # noqa: ARG002
        timeout: int = -1,  # noqa: ARG002
        sizelimit: int = 0,  # noqa: ARG002
    ) -> int:
        msgid = self.current_msgid
        self.current_msgid += 1
        paging = None
        for ctrl in serverctrls or []:
            if ctrl.controlType == SimplePagedResultsControl.controlType:
                paging = ctrl
        if paging is not None:
            # @record_call has just registered this call
            self.requests[-1].args.update(cookie=paging.cookie, page_size=paging.size)
        if self._should_fail(msgid, "search_ext"):
            raise self.error  # type: ignore[misc]
        if paging is None:
            self._async_results[msgid] = (ldap.RES_SEARCH_RESULT, list(self.results), msgid, [])  # type: ignore[attr-defined]
            return msgid
        page = 0
        if paging.cookie:
            page = int(paging.cookie.decode().removeprefix("page-"))
        start = page * paging.size
        end = start + paging.size
        data = self.results[start:end]
        cookie = b"page-%d" % (page + 1) if end < len(self.results) else b""
        ctrls = []
        if self.page_controls:
            ctrls.append(SimplePagedResultsControl(False, size=len(self.results), cookie=cookie))  # noqa: FBT003
        self._async_results[msgid] = (ldap.RES_SEARCH_RESULT, data, msgid, ctrls)  # type: ignore[attr-defined]
        return msgid

    @record_call
    def result3(
        self,
        msgid: int = ldap.RES_ANY,  # type: ignore[attr-defined]
        all: int = 1,  # noqa: A002, ARG002
        timeout: int | None = None,  # noqa: ARG002
    ) -> Result3:
        if self._should_fail(msgid, "result3"):
            raise self.error  # type: ignore[misc]
        return self._async_results.pop(msgid)

    @record_call
    def abandon(self, msgid: int) -> None:
        self._async_results.pop(msgid, None)

    @record_call
    def unbind_s(self) -> None:
        self.unbound = True

    def _should_fail(self, msgid: int, api_name: str) -> bool:
        return (
            self.error is not None
            and self.fail_on_request == msgid
            and self.fail_in == api_name
        )


def make_users(count: int, with_mail: set[int] | None = None) -> LDAPSearchResult:
    """
    Build ``count`` user records as ``python-ldap`` would return them.  Users
    whose index is in ``with_mail`` get a ``mail`` attribute; by default, all
    of them do.
    """
    if with_mail is None:
        with_mail = set(range(count))
    results: LDAPSearchResult = []
    for i in range(count):
        data = {"cn": [b"user%d" % i], "objectClass": [b"top", b"person", b"user"]}
        if i in with_mail:
            data["mail"] = [b"user%d@example.com" % i]
        results.append((f"CN=user{i},OU=Staff,DC=example,DC=com", data))
    return results
