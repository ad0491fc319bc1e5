"""Pattern compilation and website-pattern classification."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

from .constants import GLOB_WILDCARD, MATCH_ALL, SCHEME_SEPARATOR
from .models import DecomposedUrl, WebsitePatternKind

_WILDCARD_RUN_RE = re.compile(r"\*+")


@dataclass(frozen=True, slots=True)
class GlobMatcher:
    """Anchored, case-sensitive matcher compiled from a ``*`` glob."""

    pattern: str
    regex: re.Pattern[str]

    def test(self, candidate: str) -> bool:
        return self.regex.fullmatch(candidate) is not None


def glob_to_regex(pattern: str) -> str:
    """Translate a glob into a regular expression body.

    Runs of ``*`` become ``.*``; every other character is matched literally.
    """

    return ".*".join(re.escape(segment) for segment in _WILDCARD_RUN_RE.split(pattern))


@lru_cache(maxsize=1024)
def compile_glob(pattern: str) -> GlobMatcher:
    return GlobMatcher(pattern=pattern, regex=re.compile(glob_to_regex(pattern)))


@lru_cache(maxsize=256)
def compile_regex(pattern: str) -> re.Pattern[str]:
    """Compile a ``regex`` rule pattern. Raises ``re.error`` when invalid."""

    return re.compile(pattern)


def is_glob(pattern: str) -> bool:
    return GLOB_WILDCARD in pattern


def matches_domain(hostname: str, domain: str) -> bool:
    """True when ``hostname`` is ``domain`` or one of its subdomains."""

    return hostname == domain or hostname.endswith(f".{domain}")


def classify_website_pattern(pattern: str) -> WebsitePatternKind:
    """Infer how an untyped website pattern is matched.

    The checks run in a fixed order and the first hit wins, so
    ``example.com/path`` lands on the hostname fallback.
    """

    if pattern == MATCH_ALL:
        return WebsitePatternKind.MATCH_ALL
    if is_glob(pattern):
        return WebsitePatternKind.HOST_GLOB
    if "." in pattern and "/" not in pattern:
        return WebsitePatternKind.DOMAIN
    if SCHEME_SEPARATOR in pattern:
        return WebsitePatternKind.FULL_URL
    return WebsitePatternKind.HOST_FALLBACK


def website_pattern_matches(url: str, parts: DecomposedUrl, pattern: str) -> bool:
    """Evaluate one website pattern against an already decomposed URL."""

    kind = classify_website_pattern(pattern)
    hostname = parts.hostname
    if kind is WebsitePatternKind.MATCH_ALL:
        return True
    if kind is WebsitePatternKind.HOST_GLOB:
        if compile_glob(pattern).test(hostname):
            return True
        # ``*.example.com`` also covers the apex ``example.com``
        return pattern.startswith("*.") and hostname == pattern[2:]
    if kind is WebsitePatternKind.FULL_URL:
        # wildcard patterns were already routed to HOST_GLOB
        return url == pattern
    return matches_domain(hostname, pattern)
