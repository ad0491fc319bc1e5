"""Configuration ingestion for the Agent Bar URL matcher.

Turns deserialized extension settings into typed models. Toolbar entries come
in two persisted shapes; each entry is classified here once so matching code
never has to inspect keys again.
"""

from __future__ import annotations

import importlib.resources as resources
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

try:
    import yaml
except ImportError as exc:  # pragma: no cover
    raise RuntimeError("PyYAML is required for configuration parsing. Install the agentbar-matcher dependencies.") from exc

from .constants import CACHE_SIZE_ENV_VAR, DEFAULT_MAX_CACHE_SIZE, MATCH_ALL
from .logging_config import get_logger
from .models import (
    AgentBarConfig,
    LegacyToolbarButton,
    MatchType,
    Toolbar,
    ToolbarButton,
    ToolbarEntry,
    UrlRule,
    WebsitePattern,
)


logger = get_logger(__name__)

_TOOLBAR_KEYS = frozenset({"buttons", "websitePatterns", "urlRule"})
_LEGACY_BUTTON_KEYS = frozenset({"urlRuleIds", "promptTemplate"})
_TOOLBAR_FIELDS = frozenset({"id", "name", "enabled", "websitePatterns", "urlRule", "buttons", "context"})


def load_config_from_file(path: Path) -> AgentBarConfig:
    """Read a YAML (or JSON) configuration file."""

    data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return parse_config(data)


def load_default_config() -> AgentBarConfig:
    with resources.files("agentbar_matcher.defaults").joinpath("default_config.yaml").open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if not isinstance(data, dict):
        raise ValueError("Default configuration file is malformed")
    return parse_config(data)


def parse_config(data: Mapping[str, Any]) -> AgentBarConfig:
    """Build an ``AgentBarConfig`` from the extension's storage layout.

    Toolbars may live under ``toolbars`` or, mixed with legacy buttons, under
    ``toolbarButtons``.
    """

    if not isinstance(data, Mapping):
        raise ValueError("Configuration must be a mapping")
    rules = [parse_url_rule(entry) for entry in _as_list(data.get("urlRules"), "urlRules")]
    _check_unique_ids([rule.id for rule in rules], "urlRules")

    toolbars: List[Toolbar] = []
    legacy_buttons: List[LegacyToolbarButton] = []
    entries = _as_list(data.get("toolbarButtons"), "toolbarButtons") + _as_list(data.get("toolbars"), "toolbars")
    for entry in entries:
        parsed = parse_toolbar_entry(entry)
        if isinstance(parsed, Toolbar):
            toolbars.append(parsed)
        else:
            legacy_buttons.append(parsed)

    known_rule_ids = {rule.id for rule in rules}
    for button in legacy_buttons:
        missing = [rule_id for rule_id in button.url_rule_ids if rule_id not in known_rule_ids]
        if missing:
            logger.warning(
                "Legacy button references unknown URL rules",
                extra={"button_id": button.id, "rule_ids": missing},
            )

    matcher_section = data.get("matcher") or {}
    if not isinstance(matcher_section, Mapping):
        raise ValueError("matcher section must be a mapping")
    max_cache_size = matcher_section.get("maxCacheSize")

    config = AgentBarConfig(
        url_rules=rules,
        toolbars=toolbars,
        legacy_buttons=legacy_buttons,
        settings=dict(data.get("settings") or {}),
        max_cache_size=_positive_int(max_cache_size, "matcher.maxCacheSize") if max_cache_size is not None else None,
    )
    logger.debug(
        "Parsed configuration",
        extra={
            "rule_count": len(rules),
            "toolbar_count": len(toolbars),
            "legacy_button_count": len(legacy_buttons),
        },
    )
    return config


def parse_toolbar_export(data: Mapping[str, Any]) -> List[Toolbar]:
    """Parse a toolbar export file (``{version, exportDate, toolbars}``)."""

    if not isinstance(data, Mapping) or not isinstance(data.get("toolbars"), list):
        raise ValueError("Invalid export format: expected a mapping with a toolbars array")
    toolbars: List[Toolbar] = []
    for entry in data["toolbars"]:
        parsed = parse_toolbar_entry(entry)
        if not isinstance(parsed, Toolbar):
            raise ValueError(f"Export entry '{parsed.id}' is a legacy button, not a toolbar")
        toolbars.append(parsed)
    return toolbars


def parse_url_rule(entry: Mapping[str, Any]) -> UrlRule:
    if not isinstance(entry, Mapping):
        raise ValueError("URL rule entries must be mappings")
    rule_id = _required_str(entry, "id", "URL rule")
    type_raw = str(entry.get("type", entry.get("matchType", "")))
    if not MatchType.has_value(type_raw):
        logger.error(
            "Rule references unknown match type",
            extra={"rule_id": rule_id, "match_type": type_raw},
        )
        raise ValueError(
            f"URL rule '{rule_id}' has unknown type '{type_raw}'. "
            f"Expected one of: {', '.join(member.value for member in MatchType)}."
        )
    pattern = entry.get("pattern")
    if not isinstance(pattern, str):
        raise ValueError(f"URL rule '{rule_id}' is missing a string 'pattern'")
    return UrlRule(
        id=rule_id,
        name=str(entry.get("name", rule_id)),
        match_type=MatchType(type_raw),
        pattern=pattern,
        enabled=bool(entry.get("enabled", True)),
        priority=_int(entry.get("priority", 0), f"URL rule '{rule_id}' priority"),
        is_whitelist=bool(entry.get("isWhitelist", True)),
        created_at=entry.get("createdAt"),
        updated_at=entry.get("updatedAt"),
    )


def parse_toolbar_entry(entry: Mapping[str, Any]) -> ToolbarEntry:
    """Classify a ``toolbarButtons`` entry as a ``Toolbar`` or a legacy button."""

    if not isinstance(entry, Mapping):
        raise ValueError("Toolbar entries must be mappings")
    keys = set(entry)
    if keys & _TOOLBAR_KEYS:
        return _parse_toolbar(entry)
    if keys & _LEGACY_BUTTON_KEYS:
        return _parse_legacy_button(entry)
    raise ValueError(
        f"Toolbar entry '{entry.get('id')}' has an unrecognized shape; expected "
        "buttons/websitePatterns or urlRuleIds/promptTemplate"
    )


def parse_website_patterns(entry: Mapping[str, Any]) -> List[WebsitePattern]:
    """Website patterns of a toolbar, migrating the older encodings.

    A lone ``urlRule`` string becomes one enabled pattern, a list of strings
    becomes enabled patterns, and anything else means "everywhere".
    """

    raw = entry.get("websitePatterns")
    if raw is None and entry.get("urlRule"):
        return [WebsitePattern(pattern=str(entry["urlRule"]), enabled=True)]
    if not isinstance(raw, list):
        return [WebsitePattern(pattern=MATCH_ALL, enabled=True)]
    patterns: List[WebsitePattern] = []
    for item in raw:
        if isinstance(item, str):
            patterns.append(WebsitePattern(pattern=item, enabled=True))
        elif isinstance(item, Mapping) and isinstance(item.get("pattern"), str):
            patterns.append(WebsitePattern(pattern=item["pattern"], enabled=bool(item.get("enabled", True))))
        else:
            raise ValueError(f"Toolbar '{entry.get('id')}' has a malformed website pattern: {item!r}")
    return patterns


def resolve_max_cache_size(value: Optional[int] = None) -> int:
    """Explicit value, else ``AGENTBAR_MATCHER_CACHE_SIZE``, else the default."""

    if value is not None:
        return _positive_int(value, "max cache size")
    env_value = os.getenv(CACHE_SIZE_ENV_VAR)
    if env_value:
        return _positive_int(env_value, CACHE_SIZE_ENV_VAR)
    return DEFAULT_MAX_CACHE_SIZE


def _parse_toolbar(entry: Mapping[str, Any]) -> Toolbar:
    toolbar_id = _required_str(entry, "id", "Toolbar")
    buttons = [_parse_toolbar_button(item, toolbar_id) for item in _as_list(entry.get("buttons"), "buttons")]
    return Toolbar(
        id=toolbar_id,
        name=str(entry.get("name", toolbar_id)),
        enabled=bool(entry.get("enabled", True)),
        website_patterns=parse_website_patterns(entry),
        buttons=buttons,
        context=str(entry.get("context") or ""),
        extra={key: value for key, value in entry.items() if key not in _TOOLBAR_FIELDS},
    )


def _parse_toolbar_button(entry: Mapping[str, Any], toolbar_id: str) -> ToolbarButton:
    if not isinstance(entry, Mapping):
        raise ValueError(f"Buttons of toolbar '{toolbar_id}' must be mappings")
    button_id = _required_str(entry, "id", f"Button of toolbar '{toolbar_id}'")
    return ToolbarButton(
        id=button_id,
        title=str(entry.get("title", entry.get("name", button_id))),
        prompt=str(entry.get("prompt", entry.get("promptTemplate", ""))),
        enabled=bool(entry.get("enabled", True)),
    )


def _parse_legacy_button(entry: Mapping[str, Any]) -> LegacyToolbarButton:
    button_id = _required_str(entry, "id", "Toolbar button")
    return LegacyToolbarButton(
        id=button_id,
        name=str(entry.get("name", button_id)),
        prompt_template=str(entry.get("promptTemplate", "")),
        llm_provider_id=str(entry.get("llmProviderId") or ""),
        enabled=bool(entry.get("enabled", True)),
        url_rule_ids=[str(rule_id) for rule_id in _as_list(entry.get("urlRuleIds"), "urlRuleIds")],
        order=_int(entry.get("order", 0), f"Toolbar button '{button_id}' order"),
        icon=entry.get("icon"),
        created_at=entry.get("createdAt"),
        updated_at=entry.get("updatedAt"),
    )


def _as_list(value: Any, label: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{label} must be a list")
    return list(value)


def _required_str(entry: Mapping[str, Any], key: str, label: str) -> str:
    value = entry.get(key)
    if value is None or value == "":
        raise ValueError(f"{label} is missing required '{key}'")
    return str(value)


def _int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{label} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{label} must be an integer, got {value!r}") from exc


def _positive_int(value: Any, label: str) -> int:
    number = _int(value, label)
    if number < 1:
        raise ValueError(f"{label} must be positive, got {number}")
    return number


def _check_unique_ids(ids: List[str], label: str) -> None:
    seen: Dict[str, int] = {}
    for item in ids:
        seen[item] = seen.get(item, 0) + 1
    duplicates = sorted(item for item, count in seen.items() if count > 1)
    if duplicates:
        raise ValueError(f"{label} contains duplicate ids: {', '.join(duplicates)}")
