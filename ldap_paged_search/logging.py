import logging

logger = logging.getLogger("ldap_paged_search")
