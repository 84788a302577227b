"""Shared constants across the application."""

# Truth value strings
YES_VALUES = ('1', 'TRUE', 'YES', 'ON', 'true', 'yes', 'on')

# Pseudo attribute meaning "the entry DN" in filters and constraints
DN_ATTRIBUTE = 'dn'

# Transport modes
TLS_NONE = 'none'
TLS_IMPLICIT = 'tls'
TLS_STARTTLS = 'starttls'
TLS_MODES = (TLS_NONE, TLS_IMPLICIT, TLS_STARTTLS)

# Default configuration values
DEFAULT_SYNC_INTERVAL = 60
DEFAULT_MAX_FAILURES = 5
DEFAULT_LDAP_SERVER = 'localhost'
DEFAULT_LDAP_PORT = 389
DEFAULT_LDAP_TLS = TLS_NONE
DEFAULT_LDAP_PAGE_SIZE = 5
DEFAULT_LDAP_TIMEOUT = 5
DEFAULT_SEARCH_FILTER = '(objectClass=*)'

# Default rules, used when no rules file is configured
DEFAULT_RULES = {
    'userFilter': {
        'operator': 'or',
        'filters': [
            {'name': 'objectClass', 'value': '^(person|inetOrgPerson|user)$'},
        ],
    },
    'groupFilter': {
        'operator': 'or',
        'filters': [
            {'name': 'objectClass', 'value': '^(groupOfNames|groupOfUniqueNames|posixGroup|group)$'},
        ],
    },
    'groupMembership': {
        'operator': 'or',
        'constraints': [
            {'userAttribute': 'dn', 'groupAttribute': 'member'},
            {'userAttribute': 'memberOf', 'groupAttribute': 'dn'},
        ],
    },
}
