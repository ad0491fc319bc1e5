"""Command-line interface for the Agent Bar URL matcher."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, List, Optional

from . import __version__
from .config_loader import load_config_from_file, load_default_config, resolve_max_cache_size
from .errors import InvalidUrlError
from .logging_config import LogContext, configure_logging, get_logger, logging_trace_hook
from .models import AgentBarConfig, MatchResult
from .rule_engine import URLMatcher
from .url_utils import decompose

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Agent Bar URL matcher CLI")
    parser.add_argument("url", type=str, help="URL to evaluate against the configured rules and toolbars")
    parser.add_argument("--config", type=Path, help="Optional YAML or JSON configuration file")
    parser.add_argument(
        "--format",
        choices=("table", "json"),
        default="table",
        help="Output format",
    )
    parser.add_argument(
        "--max-cache-size",
        type=int,
        help="Result cache capacity (defaults to the configuration, then AGENTBAR_MATCHER_CACHE_SIZE)",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Log every matcher trace event at DEBUG level",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    parser.add_argument(
        "--log-format",
        choices=("json", "console"),
        help="Log output format",
    )
    parser.add_argument(
        "--correlation-id",
        type=str,
        help="Correlation identifier to include with log records",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, log_format=args.log_format)

    with LogContext(args.correlation_id) as correlation_id:
        context_extra = {"correlation_id": correlation_id}
        logger.info("Agent Bar matcher CLI starting", extra={"target_url": args.url, **context_extra})

        try:
            config = _load_config(args.config)
            max_cache_size = resolve_max_cache_size(
                args.max_cache_size if args.max_cache_size is not None else config.max_cache_size
            )
        except (OSError, ValueError) as exc:
            logger.exception("Configuration failure", extra={"config_path": str(args.config), **context_extra})
            print(f"ERROR: failed to load configuration: {exc}", file=sys.stderr)
            return 1

        try:
            decompose(args.url)
        except InvalidUrlError as exc:
            logger.warning("URL cannot be decomposed", extra={"target_url": args.url, **context_extra})
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

        trace = logging_trace_hook(logger) if args.trace else None
        matcher = URLMatcher(max_cache_size, trace=trace)

        started = perf_counter()
        payload = _evaluate(matcher, config, args.url)
        elapsed = perf_counter() - started

        if args.format == "json":
            print(json.dumps(payload, indent=2))
        else:
            _render_table(payload)

        logger.info(
            "Agent Bar matcher CLI completed",
            extra={
                "target_url": args.url,
                "toolbar_count": len(payload["toolbars"]),
                "enabled": payload["should_enable"],
                "match_seconds": elapsed,
                **context_extra,
            },
        )
    return 0


def _load_config(path: Optional[Path]) -> AgentBarConfig:
    if path is None:
        logger.debug("Loading default configuration")
        return load_default_config()
    logger.debug("Loading configuration file", extra={"config_path": str(path)})
    return load_config_from_file(path)


def _evaluate(matcher: URLMatcher, config: AgentBarConfig, url: str) -> Dict[str, Any]:
    toolbars = matcher.match_toolbars(url, config.toolbars)
    resolution = matcher.resolve_rule_priority(url, config.url_rules)
    enabled = matcher.should_enable(url, config.url_rules)
    legacy = matcher.get_toolbar_buttons_for_url(url, config.url_rules, config.legacy_buttons)
    stats = matcher.cache_stats()
    return {
        "url": url,
        "toolbars": [{"id": toolbar.id, "name": toolbar.name} for toolbar in toolbars],
        "display_buttons": [
            {"toolbar_id": item.toolbar_id, "button_id": item.button.id, "title": item.button.title}
            for item in matcher.get_display_buttons(url, config.toolbars)
        ],
        "rule": _match_result_to_dict(resolution),
        "should_enable": enabled,
        "legacy_buttons": [button.id for button in legacy],
        "cache": {"size": stats.size, "max_size": stats.max_size, "hits": stats.hits},
    }


def _match_result_to_dict(result: MatchResult) -> Dict[str, Any]:
    return {
        "matched": result.matched,
        "rule_id": result.rule.id if result.rule else None,
        "rule_name": result.rule.name if result.rule else None,
        "priority": result.priority if result.matched else None,
    }


def _render_table(payload: Dict[str, Any]) -> None:
    rule = payload["rule"]
    fields = [
        ("URL", payload["url"]),
        ("Toolbars", ", ".join(f"{item['name']} ({item['id']})" for item in payload["toolbars"]) or "-"),
        ("Buttons", ", ".join(item["title"] for item in payload["display_buttons"]) or "-"),
        ("Controlling rule", f"{rule['rule_name']} ({rule['rule_id']}, priority {rule['priority']})" if rule["matched"] else "-"),
        ("Enabled", "yes" if payload["should_enable"] else "no"),
        ("Legacy buttons", ", ".join(payload["legacy_buttons"]) or "-"),
    ]
    width = max(len(label) for label, _ in fields)
    print("\nAgent Bar Match Summary")
    print("=" * (width + 25))
    for label, value in fields:
        print(f"{label:<{width}} : {value}")
    print()


if __name__ == "__main__":
    raise SystemExit(main())
