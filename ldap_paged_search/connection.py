from __future__ import annotations

import getpass
import socket
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

import ldap
import ldap.ldapobject

from .exceptions import DirectoryConnectionError
from .logging import logger
from .types import LDAPOptionStore

#: The port we connect to when none is given
DEFAULT_PORT: int = 389
#: Seconds we wait for the TCP connection to the server to be established
DEFAULT_NETWORK_TIMEOUT: float = 15.0


def local_hostname() -> str:
    """
    The fully qualified name of the machine we are running on.
    """
    return socket.getfqdn()


@dataclass(frozen=True)
class ConnectionParams:
    """
    Everything :py:func:`connect` needs to open a new connection to a directory
    server.  Use this when you don't already have a bound
    :py:class:`ldap.ldapobject.LDAPObject` to hand to
    :py:func:`ldap_paged_search.search`.

    Example:
        Bind as a specific user, prompting for the password on the terminal::

            >>> params = ConnectionParams(
                host='dc1.example.com',
                use_encryption=True,
                username='CN=svc-search,OU=Service Accounts,DC=example,DC=com',
            )

    Note:
        Authentication is always a simple bind.  If ``username`` is given but
        ``password`` is not, the password is asked for interactively, without
        echo, when the connection is opened.  It is never stored anywhere.

    """

    #: The hostname of the directory server
    host: str = field(default_factory=local_hostname)
    #: The port on ``host``
    port: int = DEFAULT_PORT
    #: If ``True``, upgrade the connection with StartTLS before binding
    use_encryption: bool = False
    #: The DN (or user principal name) to bind as.  ``None`` binds anonymously
    username: str | None = None
    #: The password for ``username``
    password: str | None = field(default=None, repr=False)
    #: Passed to ``ldap.OPT_NETWORK_TIMEOUT``
    network_timeout: float = DEFAULT_NETWORK_TIMEOUT
    #: Extra ``python-ldap`` options to set on the connection before binding
    options: LDAPOptionStore = field(default_factory=dict)

    @property
    def uri(self) -> str:
        """
        The LDAP URI for our server.
        """
        return f"ldap://{self.host}:{self.port}"


def prompt_password(username: str) -> str:
    """
    Ask the user for the password for ``username`` without echoing it.

    Args:
        username: the user whose password we want

    Returns:
        The password as typed.

    """
    return getpass.getpass(f"Password for {username}: ")


def connect(params: ConnectionParams) -> ldap.ldapobject.LDAPObject:  # type: ignore[name-defined]
    """
    Open, optionally secure, and bind a new connection described by ``params``.

    The caller owns the returned object and must ``unbind_s()`` it; use
    :py:func:`connection_scope` to have that done for you.

    Args:
        params: how to reach and authenticate to the server

    Raises:
        DirectoryConnectionError: we could not initialize, secure or bind the
            connection

    Returns:
        A bound :py:class:`ldap.ldapobject.LDAPObject`.

    """
    password = params.password
    if params.username and not password:
        password = prompt_password(params.username)
    ldap_object: ldap.ldapobject.LDAPObject | None = None  # type: ignore[name-defined]
    try:
        ldap_object = ldap.initialize(params.uri)
        ldap_object.set_option(ldap.OPT_NETWORK_TIMEOUT, float(params.network_timeout))  # type: ignore[attr-defined]
        for option, value in params.options.items():
            ldap_object.set_option(option, value)
        if params.use_encryption:
            ldap_object.set_option(ldap.OPT_PROTOCOL_VERSION, ldap.VERSION3)  # type: ignore[attr-defined]
            ldap_object.start_tls_s()
        if params.username:
            ldap_object.simple_bind_s(params.username, password)
        else:
            ldap_object.simple_bind_s()
    except ldap.LDAPError as exc:  # type: ignore[attr-defined]
        if ldap_object is not None:
            disconnect(ldap_object)
        msg = f"Could not connect to {params.uri}: {exc}"
        raise DirectoryConnectionError(msg) from exc
    logger.debug(
        "connection.connect uri=%s tls=%s who=%s",
        params.uri,
        params.use_encryption,
        params.username or "anonymous",
    )
    return ldap_object


def disconnect(ldap_object: ldap.ldapobject.LDAPObject) -> None:  # type: ignore[name-defined]
    """
    Unbind ``ldap_object``.  A failure to unbind is logged rather than raised
    so that it can't hide whatever error got us here.

    Args:
        ldap_object: the connection to close

    """
    try:
        ldap_object.unbind_s()
    except ldap.LDAPError as exc:  # type: ignore[attr-defined]
        logger.warning("connection.disconnect.failed error=%s", exc)
    else:
        logger.debug("connection.disconnect")


@contextmanager
def connection_scope(
    connection: ldap.ldapobject.LDAPObject | ConnectionParams,  # type: ignore[name-defined]
) -> Iterator[ldap.ldapobject.LDAPObject]:  # type: ignore[name-defined]
    """
    Yield a usable connection for the duration of a ``with`` block.

    If ``connection`` is already a connection object, it is borrowed: we yield
    it unchanged and never close it.  If it is a :py:class:`ConnectionParams`,
    we :py:func:`connect` a new connection, yield it, and unbind it exactly
    once when the block exits, however it exits.

    Args:
        connection: an existing connection, or the parameters for a new one

    Raises:
        DirectoryConnectionError: we could not open a new connection

    """
    if not isinstance(connection, ConnectionParams):
        yield connection
        return
    ldap_object = connect(connection)
    try:
        yield ldap_object
    finally:
        disconnect(ldap_object)
