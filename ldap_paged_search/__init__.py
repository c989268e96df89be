__version__ = "1.0.0"

from .connection import (
    ConnectionParams,
    connect,
    connection_scope,
)
from .entries import DN_ATTRIBUTE, normalize_entry
from .exceptions import (
    DirectoryConnectionError,
    PagedSearchError,
    ProtocolComplianceError,
    SearchTimeoutError,
)
from .search import PagedSearch, SearchRequest, search
from .types import AttributeValue, DirectoryEntry, LDAPData, LDAPRecord, SearchScope
