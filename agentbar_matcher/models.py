"""Core data models for the Agent Bar URL matcher."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class MatchType(str, Enum):
    """How a ``UrlRule`` pattern is compared against a URL."""

    HOST = "host"
    PATH = "path"
    FULL = "full"
    REGEX = "regex"

    @classmethod
    def has_value(cls, value: str) -> bool:
        try:
            cls(value)
        except ValueError:
            return False
        return True


class WebsitePatternKind(str, Enum):
    """Inferred shape of an untyped toolbar website pattern."""

    MATCH_ALL = "match_all"
    HOST_GLOB = "host_glob"
    DOMAIN = "domain"
    FULL_URL = "full_url"
    HOST_FALLBACK = "host_fallback"


@dataclass(frozen=True, slots=True)
class DecomposedUrl:
    """URL split into the components the matchers compare against.

    ``search`` and ``fragment`` keep their leading ``?`` and ``#`` when present.
    """

    protocol: str
    hostname: str
    pathname: str
    search: str
    fragment: str
    origin: str

    @property
    def host_and_path(self) -> str:
        return f"{self.hostname}{self.pathname}"


@dataclass(slots=True)
class UrlRule:
    """Typed, prioritized URL rule with whitelist/blacklist polarity."""

    id: str
    name: str
    match_type: MatchType
    pattern: str
    enabled: bool = True
    priority: int = 0
    is_whitelist: bool = True
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


@dataclass(slots=True)
class WebsitePattern:
    """Untyped pattern deciding where a toolbar is shown."""

    pattern: str
    enabled: bool = True


@dataclass(slots=True)
class ToolbarButton:
    """Button belonging to a toolbar definition."""

    id: str
    title: str
    prompt: str
    enabled: bool = True


@dataclass(slots=True)
class Toolbar:
    """Toolbar definition with website patterns.

    Only ``enabled`` and ``website_patterns`` take part in matching; the rest
    is carried through unchanged for the UI layer.
    """

    id: str
    name: str
    enabled: bool = True
    website_patterns: List[WebsitePattern] = field(default_factory=list)
    buttons: List[ToolbarButton] = field(default_factory=list)
    context: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class LegacyToolbarButton:
    """Button from the older configuration shape, bound to rules by id."""

    id: str
    name: str
    prompt_template: str
    llm_provider_id: str = ""
    enabled: bool = True
    url_rule_ids: List[str] = field(default_factory=list)
    order: int = 0
    icon: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


ToolbarEntry = Union[Toolbar, LegacyToolbarButton]
"""Either shape found in the persisted ``toolbarButtons`` list."""


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Outcome of priority resolution over a rule set."""

    matched: bool
    rule: Optional[UrlRule] = None
    priority: float = math.inf

    @classmethod
    def no_match(cls) -> "MatchResult":
        return cls(matched=False, rule=None, priority=math.inf)


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Snapshot of result cache counters."""

    size: int
    max_size: int
    hits: int = 0
    misses: int = 0
    evictions: int = 0


@dataclass(frozen=True, slots=True)
class RuleExample:
    """Example patterns shown to users editing a rule."""

    match_type: MatchType
    examples: Tuple[str, ...]
    description: str


@dataclass(frozen=True, slots=True)
class DisplayButton:
    """Enabled button of a matching toolbar, tagged with its toolbar."""

    button: ToolbarButton
    toolbar_id: str
    toolbar_name: str


@dataclass(slots=True)
class AgentBarConfig:
    """Deserialized extension configuration relevant to URL matching."""

    url_rules: List[UrlRule] = field(default_factory=list)
    toolbars: List[Toolbar] = field(default_factory=list)
    legacy_buttons: List[LegacyToolbarButton] = field(default_factory=list)
    settings: Dict[str, Any] = field(default_factory=dict)
    max_cache_size: Optional[int] = None
