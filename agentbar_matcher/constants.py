"""Shared constants for the Agent Bar URL matcher."""

DEFAULT_MAX_CACHE_SIZE = 1000
"""Entry cap for the ``test_rules`` result cache before FIFO eviction starts."""

MATCH_ALL = "*"
"""Pattern that matches every URL, for rules and website patterns alike."""

GLOB_WILDCARD = "*"

SCHEME_SEPARATOR = "://"

FALLBACK_PROTOCOL = "https:"
"""Protocol assigned to URLs recovered by the permissive fallback parse."""

SPECIAL_SCHEME_PORTS = {
    "http": 80,
    "https": 443,
    "ws": 80,
    "wss": 443,
    "ftp": 21,
    "file": None,
}
"""Schemes with an authority component and their default ports."""

FORBIDDEN_HOST_CHARACTERS = frozenset(" \t\n\r#%/:<>?@[\\]^|")

CACHE_SIZE_ENV_VAR = "AGENTBAR_MATCHER_CACHE_SIZE"
