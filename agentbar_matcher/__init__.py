"""URL rule and toolbar matching for the Agent Bar browser extension."""

from __future__ import annotations

__version__ = "0.3.0"

from .cache import ResultCache
from .errors import ContractViolationError, InvalidUrlError
from .models import (
    AgentBarConfig,
    DecomposedUrl,
    LegacyToolbarButton,
    MatchResult,
    MatchType,
    Toolbar,
    ToolbarButton,
    UrlRule,
    WebsitePattern,
)
from .rule_engine import URLMatcher
from .url_utils import decompose

__all__ = [
    "AgentBarConfig",
    "ContractViolationError",
    "DecomposedUrl",
    "InvalidUrlError",
    "LegacyToolbarButton",
    "MatchResult",
    "MatchType",
    "ResultCache",
    "Toolbar",
    "ToolbarButton",
    "URLMatcher",
    "UrlRule",
    "WebsitePattern",
    "__version__",
    "decompose",
]
