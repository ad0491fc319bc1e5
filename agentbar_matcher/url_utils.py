"""URL decomposition utilities for the Agent Bar URL matcher."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import SplitResult, urlsplit

from .constants import FALLBACK_PROTOCOL, FORBIDDEN_HOST_CHARACTERS, SPECIAL_SCHEME_PORTS
from .errors import InvalidUrlError
from .models import DecomposedUrl

_SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*")
_FALLBACK_RE = re.compile(r"https?://([^/]+)(.*)")


def decompose(url: str) -> DecomposedUrl:
    """Split ``url`` into protocol, hostname, path, query, fragment and origin.

    A strict parse is attempted first. When it fails, URLs shaped like
    ``http(s)://host/rest`` are still recovered with a permissive match.
    Raises ``InvalidUrlError`` when neither works.
    """

    try:
        return _strict_decompose(url)
    except ValueError:
        pass
    match = _FALLBACK_RE.fullmatch(url)
    if match is None:
        raise InvalidUrlError(url)
    hostname = _strip_authority_extras(match.group(1))
    return DecomposedUrl(
        protocol=FALLBACK_PROTOCOL,
        hostname=hostname,
        pathname=match.group(2) or "",
        search="",
        fragment="",
        origin=f"https://{hostname}",
    )


def try_decompose(url: str) -> Optional[DecomposedUrl]:
    """Return the decomposed URL, or ``None`` if it cannot be parsed."""

    try:
        return decompose(url)
    except InvalidUrlError:
        return None


def _strict_decompose(url: str) -> DecomposedUrl:
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if not scheme or not _SCHEME_RE.fullmatch(scheme):
        raise ValueError(f"missing or malformed scheme in {url!r}")

    hostname = parts.hostname or ""
    if ":" in hostname:
        # IPv6 literal; urlsplit drops the brackets
        hostname = f"[{hostname}]"
    elif any(ch in FORBIDDEN_HOST_CHARACTERS for ch in hostname):
        raise ValueError(f"forbidden character in host {hostname!r}")
    port = parts.port

    special = scheme in SPECIAL_SCHEME_PORTS
    if special and scheme != "file" and not hostname:
        raise ValueError(f"{scheme} URL requires a host: {url!r}")

    return DecomposedUrl(
        protocol=f"{scheme}:",
        hostname=hostname,
        pathname=_normalize_pathname(parts, special),
        search=f"?{parts.query}" if parts.query else "",
        fragment=f"#{parts.fragment}" if parts.fragment else "",
        origin=_origin(scheme, hostname, port),
    )


def _normalize_pathname(parts: SplitResult, special: bool) -> str:
    path = parts.path
    if not path:
        return "/" if special else ""
    if not path.startswith("/"):
        # opaque paths such as ``mailto:user@example.com``
        return ""
    return path


def _origin(scheme: str, hostname: str, port: Optional[int]) -> str:
    if scheme not in SPECIAL_SCHEME_PORTS or scheme == "file":
        return "null"
    origin = f"{scheme}://{hostname}"
    if port is not None and port != SPECIAL_SCHEME_PORTS[scheme]:
        origin = f"{origin}:{port}"
    return origin


def _strip_authority_extras(authority: str) -> str:
    host = authority.rsplit("@", 1)[-1]
    if host.startswith("["):
        return host.split("]", 1)[0] + "]" if "]" in host else host
    return host.rsplit(":", 1)[0]
