"""
EventRouter - classifies inbound Telegram events into routing results.

Rules are an ordered table of (matcher, builder) pairs evaluated per event
kind; the first matching rule wins. Routing is pure and never raises.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping

from loguru import logger

from platebot.identifier import is_valid_identifier, looks_like_identifier, normalize_identifier


class EventKind(str, Enum):
    TEXT = "text"
    CALLBACK = "callback"
    OTHER = "other"


@dataclass(frozen=True)
class InboundEvent:
    """The fields of a Telegram update the router consumes."""

    kind: EventKind
    sender_id: int | str | None
    chat_id: int | str | None
    message_id: int | None = None
    text: str | None = None
    data: str | None = None
    callback_id: str | None = None
    content_type: str | None = None


class RouteCategory(str, Enum):
    COMMAND = "COMMAND"
    IDENTIFIER_SEARCH = "IDENTIFIER_SEARCH"
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    CALLBACK = "CALLBACK"
    SETTINGS = "SETTINGS"
    FIELD_TOGGLE = "FIELD_TOGGLE"
    FIELD_SAVE = "FIELD_SAVE"
    LANGUAGE_SET = "LANGUAGE_SET"
    UNRECOGNIZED_TEXT = "UNRECOGNIZED_TEXT"
    UNRECOGNIZED_CALLBACK = "UNRECOGNIZED_CALLBACK"
    UNSUPPORTED = "UNSUPPORTED"
    ERROR = "ERROR"


class RouteAction(str, Enum):
    """Closed set of handler entry points; the value is the handler method name."""

    START_COMMAND = "handle_start_command"
    HELP_COMMAND = "handle_help_command"
    SETTINGS_COMMAND = "handle_settings_command"
    IDENTIFIER_SEARCH = "handle_identifier_search"
    INVALID_IDENTIFIER = "handle_invalid_identifier"
    HELP_CALLBACK = "handle_help_callback"
    SETTINGS_CALLBACK = "handle_settings_callback"
    NEW_SEARCH = "handle_new_search_callback"
    MAIN_MENU = "handle_main_menu_callback"
    CANCEL_SEARCH = "handle_cancel_search_callback"
    RETRY_SEARCH = "handle_retry_search_callback"
    FIELDS_SETTINGS = "handle_fields_settings_callback"
    LANGUAGE_SETTINGS = "handle_language_settings_callback"
    COMPACT_SETTINGS = "handle_compact_settings_callback"
    NOTIFICATIONS_SETTINGS = "handle_notifications_settings_callback"
    RESET_SETTINGS = "handle_reset_settings_callback"
    TOGGLE_FIELD = "handle_toggle_field_callback"
    SAVE_FIELDS = "handle_save_fields_callback"
    SET_LANGUAGE = "handle_set_language_callback"
    UNRECOGNIZED_TEXT = "handle_unrecognized_text"
    UNRECOGNIZED_CALLBACK = "handle_unrecognized_callback"
    UNSUPPORTED = "handle_unsupported_message"
    ROUTING_ERROR = "handle_routing_error"


@dataclass(frozen=True)
class RoutingResult:
    category: RouteCategory
    action: RouteAction
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))


Matcher = Callable[[str], Any]
Builder = Callable[[InboundEvent, Any], RoutingResult]


@dataclass(frozen=True)
class RouteRule:
    """One routing rule. `matcher` returns None when the input does not match."""

    name: str
    matcher: Matcher
    builder: Builder
    literal: str | None = None
    prefix: str | None = None


def _text_context(event: InboundEvent) -> dict[str, Any]:
    return {"sender_id": event.sender_id, "chat_id": event.chat_id}


def _callback_context(event: InboundEvent) -> dict[str, Any]:
    return {
        "sender_id": event.sender_id,
        "chat_id": event.chat_id,
        "message_id": event.message_id,
        "callback_id": event.callback_id,
    }


def exact_text(literal: str, category: RouteCategory, action: RouteAction) -> RouteRule:
    return RouteRule(
        name=literal,
        matcher=lambda s: s if s == literal else None,
        builder=lambda event, _: RoutingResult(category, action, _text_context(event)),
        literal=literal,
    )


def exact_callback(literal: str, category: RouteCategory, action: RouteAction) -> RouteRule:
    return RouteRule(
        name=literal,
        matcher=lambda s: s if s == literal else None,
        builder=lambda event, _: RoutingResult(category, action, _callback_context(event)),
        literal=literal,
    )


def prefixed_callback(
    prefix: str, category: RouteCategory, action: RouteAction, capture: str
) -> RouteRule:
    """Match `<prefix><suffix>` with a non-empty suffix captured verbatim."""

    def matcher(s: str) -> str | None:
        if s.startswith(prefix) and len(s) > len(prefix):
            return s[len(prefix) :]
        return None

    return RouteRule(
        name=f"{prefix}*",
        matcher=matcher,
        builder=lambda event, suffix: RoutingResult(
            category, action, {capture: suffix, **_callback_context(event)}
        ),
        prefix=prefix,
    )


def _identifier_rule() -> RouteRule:
    def build(event: InboundEvent, text: str) -> RoutingResult:
        digits = normalize_identifier(text)
        if is_valid_identifier(digits):
            return RoutingResult(
                RouteCategory.IDENTIFIER_SEARCH,
                RouteAction.IDENTIFIER_SEARCH,
                {
                    "identifier": digits,
                    "message_id": event.message_id,
                    **_text_context(event),
                },
            )
        return RoutingResult(
            RouteCategory.INVALID_IDENTIFIER,
            RouteAction.INVALID_IDENTIFIER,
            {"invalid_input": text, **_text_context(event)},
        )

    return RouteRule(
        name="identifier",
        matcher=lambda s: s if looks_like_identifier(s) else None,
        builder=build,
    )


TEXT_RULES: tuple[RouteRule, ...] = (
    exact_text("/start", RouteCategory.COMMAND, RouteAction.START_COMMAND),
    exact_text("/help", RouteCategory.COMMAND, RouteAction.HELP_COMMAND),
    exact_text("/settings", RouteCategory.COMMAND, RouteAction.SETTINGS_COMMAND),
    _identifier_rule(),
)

CALLBACK_RULES: tuple[RouteRule, ...] = (
    exact_callback("help", RouteCategory.CALLBACK, RouteAction.HELP_CALLBACK),
    exact_callback("settings", RouteCategory.CALLBACK, RouteAction.SETTINGS_CALLBACK),
    exact_callback("new_search", RouteCategory.CALLBACK, RouteAction.NEW_SEARCH),
    exact_callback("main_menu", RouteCategory.CALLBACK, RouteAction.MAIN_MENU),
    exact_callback("cancel_search", RouteCategory.CALLBACK, RouteAction.CANCEL_SEARCH),
    exact_callback("retry_search", RouteCategory.CALLBACK, RouteAction.RETRY_SEARCH),
    exact_callback("settings_fields", RouteCategory.SETTINGS, RouteAction.FIELDS_SETTINGS),
    exact_callback("settings_language", RouteCategory.SETTINGS, RouteAction.LANGUAGE_SETTINGS),
    exact_callback("settings_compact", RouteCategory.SETTINGS, RouteAction.COMPACT_SETTINGS),
    exact_callback(
        "settings_notifications", RouteCategory.SETTINGS, RouteAction.NOTIFICATIONS_SETTINGS
    ),
    exact_callback("settings_reset", RouteCategory.SETTINGS, RouteAction.RESET_SETTINGS),
    exact_callback("save_fields", RouteCategory.FIELD_SAVE, RouteAction.SAVE_FIELDS),
    prefixed_callback(
        "toggle_field_", RouteCategory.FIELD_TOGGLE, RouteAction.TOGGLE_FIELD, "field_name"
    ),
    prefixed_callback(
        "set_language_", RouteCategory.LANGUAGE_SET, RouteAction.SET_LANGUAGE, "language"
    ),
)


def check_rules(rules: tuple[RouteRule, ...]) -> None:
    """Reject tables where one input could match two rules."""
    literals = [r.literal for r in rules if r.literal is not None]
    if len(literals) != len(set(literals)):
        raise ValueError(f"Duplicate literal routes: {literals}")

    prefixes = [r.prefix for r in rules if r.prefix is not None]
    for prefix in prefixes:
        shadowed = [lit for lit in literals if lit.startswith(prefix) and lit != prefix]
        if shadowed:
            raise ValueError(f"Prefix '{prefix}' shadows literal routes {shadowed}")
        overlapping = [p for p in prefixes if p != prefix and p.startswith(prefix)]
        if overlapping:
            raise ValueError(f"Prefix '{prefix}' overlaps {overlapping}")


SUPPORTED_COMMANDS = (
    {"command": "/start", "description": "Start using the bot"},
    {"command": "/help", "description": "Show usage help"},
    {"command": "/settings", "description": "Display and language settings"},
)


class EventRouter:
    """
    Maps one InboundEvent to exactly one RoutingResult.

    Usage:
        router = EventRouter()
        result = router.route(event)
        handler = getattr(handlers, result.action.value)
        await handler(**result.payload)
    """

    def __init__(
        self,
        text_rules: tuple[RouteRule, ...] = TEXT_RULES,
        callback_rules: tuple[RouteRule, ...] = CALLBACK_RULES,
    ):
        check_rules(text_rules)
        check_rules(callback_rules)
        self._text_rules = text_rules
        self._callback_rules = callback_rules
        self._counts: Counter[RouteCategory] = Counter()

    def route(self, event: InboundEvent) -> RoutingResult:
        try:
            if event.kind is EventKind.TEXT and event.text is not None:
                result = self._route_text(event)
            elif event.kind is EventKind.CALLBACK and event.data is not None:
                result = self._route_callback(event)
            else:
                result = RoutingResult(
                    RouteCategory.UNSUPPORTED,
                    RouteAction.UNSUPPORTED,
                    {
                        "message_type": event.content_type or event.kind.value,
                        **_text_context(event),
                    },
                )
        except Exception as e:
            logger.error(f"Error routing event: {e}")
            result = RoutingResult(
                RouteCategory.ERROR,
                RouteAction.ROUTING_ERROR,
                {"error": e, **self.error_context(event)},
            )

        self._counts[result.category] += 1
        return result

    def _route_text(self, event: InboundEvent) -> RoutingResult:
        text = event.text.strip()
        for rule in self._text_rules:
            matched = rule.matcher(text)
            if matched is not None:
                return rule.builder(event, matched)

        return RoutingResult(
            RouteCategory.UNRECOGNIZED_TEXT,
            RouteAction.UNRECOGNIZED_TEXT,
            {"text": text, **_text_context(event)},
        )

    def _route_callback(self, event: InboundEvent) -> RoutingResult:
        data = event.data
        for rule in self._callback_rules:
            matched = rule.matcher(data)
            if matched is not None:
                return rule.builder(event, matched)

        return RoutingResult(
            RouteCategory.UNRECOGNIZED_CALLBACK,
            RouteAction.UNRECOGNIZED_CALLBACK,
            {"callback_data": data, **_callback_context(event)},
        )

    @staticmethod
    def is_command(text: str | None) -> bool:
        return bool(text) and text.startswith("/")

    @staticmethod
    def is_potential_identifier(text: str | None) -> bool:
        return bool(text) and looks_like_identifier(text)

    @staticmethod
    def supported_commands() -> list[dict[str, str]]:
        return [dict(c) for c in SUPPORTED_COMMANDS]

    @staticmethod
    def error_context(event: Any) -> dict[str, Any]:
        """Context for logging a routing failure; tolerates malformed events."""
        kind = getattr(event, "kind", None)
        return {
            "event_kind": kind.value if isinstance(kind, EventKind) else "unknown",
            "sender_id": getattr(event, "sender_id", None),
            "chat_id": getattr(event, "chat_id", None),
        }

    def get_stats(self) -> dict[str, Any]:
        return {
            "routed": {category.value: count for category, count in self._counts.items()},
            "total": sum(self._counts.values()),
            "supported_commands": len(SUPPORTED_COMMANDS),
            "text_rules": [r.name for r in self._text_rules],
            "callback_rules": [r.name for r in self._callback_rules],
        }
