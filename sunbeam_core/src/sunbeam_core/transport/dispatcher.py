"""Inbound message dispatcher and dispatch hooks.

Inbound messages come in two shapes:
- informational pushes: arrays tagged ``[channel_id, category, data, ...]``
- application events: objects carrying an ``event`` key

The dispatcher first offers each message to the client's custom handler
(request/reply routing). Anything left over is fanned out to the hooks
registered for its category.

Hooks are declared up front in a HookRegistry (hook name -> category).
Well-formed ``on<Category>`` names that were not declared are minted on
first lookup and memoized.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any, Final

import structlog

log = structlog.get_logger()

HOOK_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"^on[A-Z]\w*$")

CustomHandler = Callable[[Any], bool]
HookCallback = Callable[..., Any]


def is_info_msg(message: Any) -> bool:
    """Return True for ``[channel_id, category, data]`` pushes."""
    return (
        isinstance(message, (list, tuple))
        and len(message) >= 3
        and isinstance(message[1], str)
    )


def is_event_msg(message: Any) -> bool:
    return isinstance(message, Mapping) and "event" in message


def hook_category(name: str) -> str:
    """Derive the category a hook listens to from its name.

    ``onWalletUpdate`` listens to ``walletUpdate``.
    """
    rest = name[2:]
    return rest[:1].lower() + rest[1:]


# ==============================================================================
# Hook
# ==============================================================================
class Hook:
    """Callback list bound to one server-pushed category.

    Calling the hook with a function registers it; returns the function so
    the hook works as a decorator.
    """

    def __init__(self, name: str, category: str) -> None:
        self.name = name
        self.category = category
        self._callbacks: list[HookCallback] = []

    def __call__(self, callback: HookCallback) -> HookCallback:
        self._callbacks.append(callback)
        return callback

    def __repr__(self) -> str:
        return f"Hook(name={self.name!r}, category={self.category!r})"

    def remove(self, callback: HookCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def fire(self, *args: Any) -> int:
        """Invoke every callback; return how many were called."""
        callbacks = list(self._callbacks)
        for cb in callbacks:
            cb(*args)
        return len(callbacks)


# ==============================================================================
# Dispatcher
# ==============================================================================
class MessageDispatcher:
    """Routes inbound messages to the custom handler, then to hooks."""

    def __init__(self, custom_handler: CustomHandler | None = None) -> None:
        self.custom_handler = custom_handler
        self._hooks: dict[str, Hook] = {}
        self._by_category: dict[str, list[Hook]] = {}

    is_info_msg = staticmethod(is_info_msg)
    is_event_msg = staticmethod(is_event_msg)

    def add_callback(self, name: str, category: str | None = None) -> Hook:
        """Mint (or return) the hook called ``name``."""
        hook = self._hooks.get(name)
        if hook is not None:
            return hook

        hook = Hook(name, category or hook_category(name))
        self._hooks[name] = hook
        self._by_category.setdefault(hook.category, []).append(hook)
        log.debug("Hook registered", hook=name, category=hook.category)
        return hook

    def handle(self, message: Any, role: str | None = None) -> bool:
        """Dispatch one inbound message; return True if anything consumed it."""
        if self.custom_handler is not None and self.custom_handler(message):
            return True

        category, data = self._classify(message)
        if category is None:
            return False

        hooks = self._by_category.get(category)
        if not hooks:
            log.debug("Unhandled inbound message", category=category, role=role)
            return False

        for hook in hooks:
            hook.fire(data, role)
        return True

    @staticmethod
    def _classify(message: Any) -> tuple[str | None, Any]:
        if is_info_msg(message):
            return message[1], message[2]
        if is_event_msg(message):
            return str(message["event"]), message
        return None, None


# ==============================================================================
# Hook Registry
# ==============================================================================
class HookRegistry:
    """Explicit table of dispatch hooks.

    Attributes:
        dispatcher: Dispatcher that owns and fires the hooks.
    """

    def __init__(
        self,
        dispatcher: MessageDispatcher,
        declared: Mapping[str, str] | None = None,
    ) -> None:
        """Create hooks for every declared name.

        Args:
            dispatcher: Dispatcher used to mint hooks.
            declared: Hook name to category, resolved immediately.
        """
        self.dispatcher = dispatcher
        self._hooks: dict[str, Hook] = {}
        for name, category in (declared or {}).items():
            self._validate(name)
            self._hooks[name] = dispatcher.add_callback(name, category)

    def __contains__(self, name: object) -> bool:
        return name in self._hooks

    def names(self) -> list[str]:
        return list(self._hooks)

    def resolve(self, name: str) -> Hook:
        """Return the hook for ``name``, minting it on first use.

        Raises:
            AttributeError: If ``name`` is not a hook name.
        """
        hook = self._hooks.get(name)
        if hook is None:
            self._validate(name)
            hook = self.dispatcher.add_callback(name)
            self._hooks[name] = hook
        return hook

    @staticmethod
    def _validate(name: str) -> None:
        if not HOOK_NAME_PATTERN.match(name):
            msg = f"{name!r} is not a hook name (expected on<Category>)"
            raise AttributeError(msg)
