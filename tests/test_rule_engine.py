import logging
import math

import pytest

from agentbar_matcher.errors import ContractViolationError
from agentbar_matcher.models import LegacyToolbarButton, MatchResult, MatchType, UrlRule
from agentbar_matcher.rule_engine import URLMatcher


def _rule(rule_id: str, pattern: str, match_type: MatchType = MatchType.HOST, **kwargs) -> UrlRule:
    return UrlRule(id=rule_id, name=rule_id.title(), match_type=match_type, pattern=pattern, **kwargs)


def _legacy_button(button_id: str, rule_ids, enabled: bool = True) -> LegacyToolbarButton:
    return LegacyToolbarButton(
        id=button_id,
        name=button_id.title(),
        prompt_template="Explain: {{selectedText}}",
        enabled=enabled,
        url_rule_ids=list(rule_ids),
    )


@pytest.mark.parametrize("match_type", list(MatchType))
@pytest.mark.parametrize(
    "url",
    ["https://github.com/x", "http://localhost:8080/", "https://a.b.c.example.org/p?q=1#f"],
)
def test_match_all_pattern_matches_any_valid_url(match_type, url):
    pattern = ".*" if match_type is MatchType.REGEX else "*"
    rule = _rule("all", pattern, match_type)

    assert URLMatcher().test_rule(url, rule)


def test_host_rule_matches_domain_and_subdomains():
    matcher = URLMatcher()
    rule = _rule("gh", "github.com")

    assert matcher.test_rule("https://github.com/x", rule)
    assert matcher.test_rule("https://api.github.com/x", rule)
    assert not matcher.test_rule("https://notgithub.com", rule)


def test_host_glob_is_tested_against_hostname_only():
    matcher = URLMatcher()
    rule = _rule("gh", "*.github.com")

    assert matcher.test_rule("https://gist.github.com/abc", rule)
    assert not matcher.test_rule("https://github.com/abc", rule)
    assert not matcher.test_rule("https://example.com/gist.github.com", rule)


def test_path_rule_requires_exact_host_and_path():
    matcher = URLMatcher()
    rule = _rule("repo", "github.com/user/repo", MatchType.PATH)

    assert matcher.test_rule("https://github.com/user/repo?tab=issues", rule)
    assert not matcher.test_rule("https://github.com/user/repo/issues", rule)
    assert not matcher.test_rule("https://api.github.com/user/repo", rule)


def test_path_glob_covers_host_and_path():
    rule = _rule("questions", "stackoverflow.com/questions/*", MatchType.PATH)

    assert URLMatcher().test_rule("https://stackoverflow.com/questions/123/title", rule)
    assert not URLMatcher().test_rule("https://stackoverflow.com/users/1", rule)


def test_full_rule_compares_original_url_string():
    matcher = URLMatcher()
    exact = _rule("exact", "https://github.com/user/repo", MatchType.FULL)
    glob = _rule("glob", "*://*.github.com/*", MatchType.FULL)

    assert matcher.test_rule("https://github.com/user/repo", exact)
    assert not matcher.test_rule("https://github.com/user/repo/", exact)
    assert matcher.test_rule("http://api.github.com/v3", glob)
    assert not matcher.test_rule("https://github.com/v3", glob)


def test_regex_rule_searches_unanchored():
    rule = _rule("search", r"google\.com/search", MatchType.REGEX)

    assert URLMatcher().test_rule("https://www.google.com/search?q=python", rule)
    assert not URLMatcher().test_rule("https://www.google.com/maps", rule)


def test_invalid_regex_is_a_non_match(caplog):
    rule = _rule("broken", "(unbalanced", MatchType.REGEX)

    with caplog.at_level(logging.WARNING):
        assert URLMatcher().test_rule("https://example.com", rule) is False

    assert any("Invalid regular expression" in record.message for record in caplog.records)


def test_oversized_regex_repetition_is_a_non_match_and_does_not_block_other_rules(caplog):
    events = []
    matcher = URLMatcher(trace=lambda event, fields: events.append(event))
    oversized = _rule("oversized", "a{99999999999}", MatchType.REGEX, priority=0)
    fallback = _rule("fallback", "example.com", priority=5)

    with caplog.at_level(logging.WARNING):
        assert matcher.test_rule("https://example.com", oversized) is False
        result = matcher.test_rules("https://example.com/page", [oversized, fallback])

    assert result.rule is fallback
    assert matcher.should_enable("https://example.com/page", [oversized, fallback])
    assert "rule_error" in events
    assert any("Invalid regular expression" in record.message for record in caplog.records)


def test_rule_without_string_pattern_is_rejected():
    rule = _rule("no-pattern", None)

    with pytest.raises(ContractViolationError, match="no-pattern"):
        URLMatcher().test_rule("https://example.com", rule)
    with pytest.raises(ContractViolationError, match="no-pattern"):
        URLMatcher().test_rules("https://example.com", [rule])


def test_rule_without_integer_priority_is_rejected():
    unset = _rule("unset-priority", "example.com", priority=None)
    ranked = _rule("ranked", "*", priority=1)

    with pytest.raises(ContractViolationError, match="unset-priority"):
        URLMatcher().test_rules("https://example.com", [unset, ranked])
    with pytest.raises(ContractViolationError, match="unset-priority"):
        URLMatcher().test_rules("https://example.com", [unset])
    with pytest.raises(ContractViolationError, match="unset-priority"):
        URLMatcher().should_enable("https://example.com", [unset])


def test_undecomposable_url_is_a_non_match():
    assert URLMatcher().test_rule("not a url", _rule("all", "*")) is False


def test_test_rule_rejects_non_string_url():
    with pytest.raises(ContractViolationError):
        URLMatcher().test_rule(None, _rule("all", "*"))


def test_test_rules_picks_lowest_priority_match():
    broad = _rule("broad", "*.com", priority=5)
    specific = _rule("specific", "x.com", priority=1)

    result = URLMatcher().test_rules("https://x.com/page", [broad, specific])

    assert result.matched
    assert result.rule is specific
    assert result.priority == 1


def test_test_rules_non_matching_high_precedence_rule_does_not_mask_later_match():
    miss = _rule("miss", "example.org", priority=1)
    tie_miss = _rule("tie-miss", "example.net", priority=1)
    hit = _rule("hit", "example.com", priority=7)

    result = URLMatcher().test_rules("https://example.com/", [miss, hit, tie_miss])

    assert result.rule is hit
    assert result.priority == 7


def test_test_rules_breaks_ties_by_input_order():
    first = _rule("first", "*", priority=3)
    second = _rule("second", "example.com", priority=3)

    assert URLMatcher().test_rules("https://example.com", [first, second]).rule is first
    assert URLMatcher().test_rules("https://example.com", [second, first]).rule is second


def test_test_rules_ignores_disabled_rules():
    disabled = _rule("disabled", "*", priority=0, enabled=False)
    enabled = _rule("enabled", "example.com", priority=10)

    result = URLMatcher().test_rules("https://example.com", [disabled, enabled])

    assert result.rule is enabled


def test_test_rules_without_match_reports_infinite_priority():
    result = URLMatcher().test_rules("https://example.com", [_rule("other", "other.com")])

    assert result == MatchResult(matched=False, rule=None, priority=math.inf)


def test_resolve_rule_priority_is_test_rules():
    matcher = URLMatcher()
    rules = [_rule("all", "*", priority=2)]

    assert matcher.resolve_rule_priority("https://a.com", rules) == matcher.test_rules("https://a.com", rules)


def test_test_rules_rejects_missing_rule_list():
    with pytest.raises(ContractViolationError):
        URLMatcher().test_rules("https://example.com", None)
    with pytest.raises(ContractViolationError):
        URLMatcher().test_rules("https://example.com", [{"id": "raw"}])


def test_should_enable_without_rules_allows_everything():
    assert URLMatcher().should_enable("https://example.com", [])


def test_should_enable_blacklist_only_blocks_matching_urls():
    matcher = URLMatcher()
    rules = [_rule("block", "ads.example.com", is_whitelist=False)]

    assert matcher.should_enable("https://ads.example.com/banner", rules) is False
    assert matcher.should_enable("https://example.com/", rules) is True


def test_should_enable_requires_a_whitelist_match():
    matcher = URLMatcher()
    rules = [
        _rule("allow", "github.com"),
        _rule("block", "gitlab.com", is_whitelist=False),
    ]

    assert matcher.should_enable("https://example.com", rules) is False
    assert matcher.should_enable("https://github.com", rules) is True


def test_should_enable_blacklist_overrides_whitelist():
    rules = [
        _rule("allow", "github.com", priority=1),
        _rule("block", "gist.github.com", priority=100, is_whitelist=False),
    ]

    assert URLMatcher().should_enable("https://gist.github.com/abc", rules) is False


def test_should_enable_ignores_disabled_whitelist():
    rules = [_rule("allow", "github.com", enabled=False)]

    assert URLMatcher().should_enable("https://example.com", rules) is True


def test_get_matching_rules_returns_enabled_matches_in_input_order():
    rules = [
        _rule("c", "*", priority=9),
        _rule("a", "example.com", priority=1),
        _rule("off", "*", enabled=False),
        _rule("miss", "other.com"),
    ]

    matching = URLMatcher().get_matching_rules("https://example.com", rules)

    assert [rule.id for rule in matching] == ["c", "a"]


def test_legacy_buttons_follow_their_rule_associations():
    rules = [_rule("gh", "github.com"), _rule("so", "stackoverflow.com")]
    buttons = [
        _legacy_button("everywhere", []),
        _legacy_button("github-only", ["gh"]),
        _legacy_button("so-only", ["so"]),
        _legacy_button("disabled", [], enabled=False),
    ]

    eligible = URLMatcher().get_toolbar_buttons_for_url("https://github.com/x", rules, buttons)

    assert [button.id for button in eligible] == ["everywhere", "github-only"]


def test_validate_rule_reports_match_without_raising():
    matcher = URLMatcher()

    assert matcher.validate_rule("*.github.com", MatchType.HOST, "https://api.github.com")
    assert matcher.validate_rule("github.com/*", "path", "https://github.com/user")
    assert not matcher.validate_rule("(", MatchType.REGEX, "https://github.com")
    assert not matcher.validate_rule("*", "bogus", "https://github.com")
    assert matcher.cache_stats().size == 0


def test_rule_examples_cover_every_match_type():
    examples = URLMatcher.get_rule_examples()

    assert {example.match_type for example in examples} == set(MatchType)
    assert all(example.examples for example in examples)
