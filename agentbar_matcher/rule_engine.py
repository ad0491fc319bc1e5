"""Rule evaluation engine for the Agent Bar URL matcher."""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional, Sequence

from .cache import ResultCache, build_cache_key
from .constants import DEFAULT_MAX_CACHE_SIZE, MATCH_ALL
from .errors import ContractViolationError, InvalidUrlError
from .logging_config import TraceHook, get_logger
from .models import (
    CacheStats,
    DecomposedUrl,
    DisplayButton,
    LegacyToolbarButton,
    MatchResult,
    MatchType,
    RuleExample,
    Toolbar,
    UrlRule,
)
from .patterns import compile_glob, compile_regex, is_glob, matches_domain, website_pattern_matches
from .url_utils import decompose


logger = get_logger(__name__)


_RULE_EXAMPLES = (
    RuleExample(
        match_type=MatchType.HOST,
        examples=("github.com", "*.github.com", "stackoverflow.com"),
        description="Match specific domain names or subdomains",
    ),
    RuleExample(
        match_type=MatchType.PATH,
        examples=("github.com/user/repo", "stackoverflow.com/questions/*"),
        description="Match specific domain and path combinations",
    ),
    RuleExample(
        match_type=MatchType.FULL,
        examples=("https://github.com/user/repo", "*://*.github.com/*"),
        description="Match complete URLs with optional wildcards",
    ),
    RuleExample(
        match_type=MatchType.REGEX,
        examples=(r"https?://.*\.github\.com/.*", r"^https://(www\.)?google\.com/search"),
        description="Use regular expressions for advanced matching",
    ),
)


class URLMatcher:
    """Decide which rules and toolbars apply to a URL.

    Each matcher owns its result cache. Share one instance between callers
    that should see the same memoized results; call ``clear_cache`` after
    editing rules in place.
    """

    def __init__(
        self,
        max_cache_size: int = DEFAULT_MAX_CACHE_SIZE,
        *,
        cache: Optional[ResultCache] = None,
        trace: Optional[TraceHook] = None,
    ) -> None:
        self.cache = cache if cache is not None else ResultCache(max_cache_size)
        self._trace = trace

    def test_rule(self, url: str, rule: UrlRule) -> bool:
        """Return whether ``rule`` matches ``url``.

        Malformed URLs and invalid regular expressions count as no match.
        """

        _require_url(url)
        _require_rule(rule)
        self._emit("rule_evaluated", rule_id=rule.id, url=url)
        try:
            parts = decompose(url)
        except InvalidUrlError:
            logger.debug("URL could not be decomposed", extra={"url": url, "rule_id": rule.id})
            self._emit("invalid_url", url=url, rule_id=rule.id)
            return False
        try:
            return _evaluate(url, parts, rule)
        except (re.error, OverflowError, RecursionError) as exc:
            logger.warning(
                "Invalid regular expression in rule",
                extra={"rule_id": rule.id, "pattern": rule.pattern, "error": str(exc)},
            )
            self._emit("rule_error", rule_id=rule.id, pattern=rule.pattern, error=str(exc))
            return False

    def test_rules(self, url: str, rules: Sequence[UrlRule]) -> MatchResult:
        """Resolve the controlling rule: lowest priority wins, ties by input order."""

        _require_url(url)
        rules = _require_rules(rules)
        key = build_cache_key(url, rules)
        cached = self.cache.get(key)
        if cached is not None:
            self._emit("cache_hit", url=url, rule_count=len(rules))
            return cached
        self._emit("cache_miss", url=url, rule_count=len(rules))

        result = MatchResult.no_match()
        ordered = sorted((rule for rule in rules if rule.enabled), key=lambda rule: rule.priority)
        for rule in ordered:
            if self.test_rule(url, rule):
                result = MatchResult(matched=True, rule=rule, priority=rule.priority)
                break

        evicted = self.cache.put(key, result)
        if evicted is not None:
            self._emit("cache_evict", url=evicted[0])
        logger.debug(
            "Resolved rule priority",
            extra={
                "url": url,
                "matched": result.matched,
                "rule_id": result.rule.id if result.rule else None,
                "rule_count": len(rules),
            },
        )
        return result

    resolve_rule_priority = test_rules

    def should_enable(self, url: str, rules: Sequence[UrlRule]) -> bool:
        """Whitelist/blacklist composition; a blacklist match always wins."""

        rules = _require_rules(rules)
        whitelist = [rule for rule in rules if rule.enabled and rule.is_whitelist]
        blacklist = [rule for rule in rules if rule.enabled and not rule.is_whitelist]
        if whitelist and not self.test_rules(url, whitelist).matched:
            return False
        return not self.test_rules(url, blacklist).matched

    def get_matching_rules(self, url: str, rules: Sequence[UrlRule]) -> List[UrlRule]:
        """All enabled rules matching ``url``, in input order."""

        rules = _require_rules(rules)
        matching = [rule for rule in rules if rule.enabled and self.test_rule(url, rule)]
        logger.debug(
            "Collected matching rules",
            extra={"url": url, "rule_ids": [rule.id for rule in matching]},
        )
        return matching

    def get_toolbar_buttons_for_url(
        self,
        url: str,
        rules: Sequence[UrlRule],
        buttons: Iterable[LegacyToolbarButton],
    ) -> List[LegacyToolbarButton]:
        """Legacy buttons eligible for ``url``.

        A button without rule ids shows everywhere; otherwise at least one of
        its rules has to match.
        """

        matching_ids = {rule.id for rule in self.get_matching_rules(url, rules)}
        eligible: List[LegacyToolbarButton] = []
        for button in buttons:
            if not isinstance(button, LegacyToolbarButton):
                raise ContractViolationError(f"expected LegacyToolbarButton, got {type(button).__name__}")
            if not button.enabled:
                continue
            if not button.url_rule_ids or any(rule_id in matching_ids for rule_id in button.url_rule_ids):
                eligible.append(button)
        return eligible

    def get_toolbars_for_url(self, url: str, toolbars: Iterable[Toolbar]) -> List[Toolbar]:
        """Enabled toolbars whose website patterns cover ``url``."""

        _require_url(url)
        if toolbars is None:
            raise ContractViolationError("toolbars must be an iterable of Toolbar, got None")
        parts: Optional[DecomposedUrl] = None
        parsed = False
        selected: List[Toolbar] = []
        for toolbar in toolbars:
            if not isinstance(toolbar, Toolbar):
                raise ContractViolationError(f"expected Toolbar, got {type(toolbar).__name__}")
            if not toolbar.enabled:
                continue
            if not toolbar.website_patterns:
                selected.append(toolbar)
                continue
            if not parsed:
                parts = self._decompose_quietly(url)
                parsed = True
            if parts is None:
                continue
            if any(
                pattern.enabled and website_pattern_matches(url, parts, pattern.pattern)
                for pattern in toolbar.website_patterns
            ):
                selected.append(toolbar)
        logger.debug(
            "Matched toolbars for URL",
            extra={"url": url, "toolbar_ids": [toolbar.id for toolbar in selected]},
        )
        return selected

    match_toolbars = get_toolbars_for_url

    def get_display_buttons(self, url: str, toolbars: Iterable[Toolbar]) -> List[DisplayButton]:
        """Enabled buttons of every toolbar matching ``url``, in toolbar order."""

        return [
            DisplayButton(button=button, toolbar_id=toolbar.id, toolbar_name=toolbar.name)
            for toolbar in self.get_toolbars_for_url(url, toolbars)
            for button in toolbar.buttons
            if button.enabled
        ]

    def test_website_pattern(self, url: str, pattern: str) -> bool:
        _require_url(url)
        parts = self._decompose_quietly(url)
        if parts is None:
            return False
        return website_pattern_matches(url, parts, pattern)

    def validate_rule(self, pattern: str, match_type: MatchType, test_url: str) -> bool:
        """Try ``pattern`` against ``test_url`` without touching the cache."""

        try:
            probe = UrlRule(
                id="test",
                name="Test Rule",
                match_type=MatchType(match_type),
                pattern=pattern,
                enabled=True,
                priority=0,
                is_whitelist=True,
            )
            return self.test_rule(test_url, probe)
        except (ValueError, TypeError):
            return False

    @staticmethod
    def get_rule_examples() -> List[RuleExample]:
        return list(_RULE_EXAMPLES)

    def clear_cache(self) -> None:
        self.cache.clear()
        self._emit("cache_clear")

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def _decompose_quietly(self, url: str) -> Optional[DecomposedUrl]:
        try:
            return decompose(url)
        except InvalidUrlError:
            logger.debug("URL could not be decomposed", extra={"url": url})
            self._emit("invalid_url", url=url)
            return None

    def _emit(self, event: str, **fields: Any) -> None:
        if self._trace is not None:
            self._trace(event, fields)


def _evaluate(url: str, parts: DecomposedUrl, rule: UrlRule) -> bool:
    if not MatchType.has_value(rule.match_type):
        return False
    match_type = MatchType(rule.match_type)
    pattern = rule.pattern
    if match_type is MatchType.HOST:
        if pattern == MATCH_ALL:
            return True
        if is_glob(pattern):
            return compile_glob(pattern).test(parts.hostname)
        return matches_domain(parts.hostname, pattern)
    if match_type is MatchType.PATH:
        if is_glob(pattern):
            return compile_glob(pattern).test(parts.host_and_path)
        return parts.host_and_path == pattern
    if match_type is MatchType.FULL:
        if is_glob(pattern):
            return compile_glob(pattern).test(url)
        return url == pattern
    if match_type is MatchType.REGEX:
        return compile_regex(pattern).search(url) is not None
    return False


def _require_url(url: Any) -> None:
    if not isinstance(url, str):
        raise ContractViolationError(f"url must be a string, got {type(url).__name__}")


def _require_rules(rules: Any) -> List[UrlRule]:
    if rules is None:
        raise ContractViolationError("rules must be a sequence of UrlRule, got None")
    materialized = list(rules)
    for rule in materialized:
        _require_rule(rule)
    return materialized


def _require_rule(rule: Any) -> None:
    if not isinstance(rule, UrlRule):
        raise ContractViolationError(f"expected UrlRule, got {type(rule).__name__}")
    if not isinstance(rule.pattern, str):
        raise ContractViolationError(f"rule '{rule.id}' pattern must be a string, got {type(rule.pattern).__name__}")
    if isinstance(rule.priority, bool) or not isinstance(rule.priority, int):
        raise ContractViolationError(f"rule '{rule.id}' priority must be an integer, got {type(rule.priority).__name__}")
