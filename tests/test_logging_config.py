import io
import json
import logging

from agentbar_matcher.logging_config import (
    LogContext,
    configure_logging,
    get_correlation_id,
    get_logger,
    logging_trace_hook,
)
from agentbar_matcher.models import MatchType, UrlRule
from agentbar_matcher.rule_engine import URLMatcher


def test_json_format_includes_extra_fields_and_correlation_id():
    stream = io.StringIO()
    configure_logging(level="DEBUG", log_format="json", stream=stream)

    with LogContext("corr-123"):
        get_logger("agentbar_matcher.test").info("hello", extra={"rule_id": "gh"})

    payload = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert payload["message"] == "hello"
    assert payload["rule_id"] == "gh"
    assert payload["correlation_id"] == "corr-123"
    assert get_correlation_id() is None


def test_invalid_settings_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("AGENTBAR_MATCHER_LOG_LEVEL", "chatty")
    stream = io.StringIO()
    configure_logging(log_format="xml", stream=stream)

    get_logger("agentbar_matcher.test").debug("hidden")
    get_logger("agentbar_matcher.test").info("shown")

    output = stream.getvalue()
    assert "hidden" not in output
    assert "| INFO | agentbar_matcher.test | - | shown" in output


def test_logging_trace_hook_forwards_matcher_events(caplog):
    logger = logging.getLogger("agentbar_matcher.trace_test")
    matcher = URLMatcher(trace=logging_trace_hook(logger))
    rule = UrlRule(id="all", name="All", match_type=MatchType.HOST, pattern="*")

    with caplog.at_level(logging.DEBUG, logger="agentbar_matcher.trace_test"):
        matcher.test_rules("https://example.com", [rule])

    events = [getattr(record, "trace_event", None) for record in caplog.records if record.name == logger.name]
    assert events == ["cache_miss", "rule_evaluated"]
