"""
Dispatch table for Discord component interactions (buttons, selects, modals).

Component custom ids have the form ``<namespace>:<action>[:<arg>...]``, for
example ``event:lock:42``. Handlers are registered once at startup together
with the capability they require; malformed or duplicate registrations fail
immediately rather than when a user clicks.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

from services import error_codes
from services.permissions import Capability, has_capability
from services.result import Result
from utils.command_helpers import run_operation

logger = logging.getLogger("stakes_bot.utils.action_router")

SEPARATOR = ":"
MAX_CUSTOM_ID_LENGTH = 100  # Discord limit
_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")

Handler = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class Route:
    namespace: str
    action: str
    handler: Handler
    capability: Capability | None

    @property
    def key(self) -> str:
        return f"{self.namespace}{SEPARATOR}{self.action}"


@dataclass(frozen=True)
class ParsedAction:
    namespace: str
    action: str
    args: tuple[str, ...]

    @property
    def key(self) -> str:
        return f"{self.namespace}{SEPARATOR}{self.action}"


def build_custom_id(namespace: str, action: str, *args: Any) -> str:
    """Compose a custom id; raises ValueError if it would not parse back."""
    for name in (namespace, action):
        if not _NAME_PATTERN.match(name):
            raise ValueError(f"Invalid action name: {name!r}")
    parts = [namespace, action]
    for arg in args:
        text = str(arg)
        if not text or SEPARATOR in text:
            raise ValueError(f"Invalid custom id argument: {text!r}")
        parts.append(text)
    custom_id = SEPARATOR.join(parts)
    if len(custom_id) > MAX_CUSTOM_ID_LENGTH:
        raise ValueError(f"Custom id too long ({len(custom_id)} > {MAX_CUSTOM_ID_LENGTH})")
    return custom_id


def parse_custom_id(custom_id: str | None) -> ParsedAction | None:
    """Split a custom id into namespace, action and args; None if malformed."""
    if not custom_id:
        return None
    parts = custom_id.split(SEPARATOR)
    if len(parts) < 2 or not _NAME_PATTERN.match(parts[0]) or not _NAME_PATTERN.match(parts[1]):
        return None
    if any(not arg for arg in parts[2:]):
        return None
    return ParsedAction(parts[0], parts[1], tuple(parts[2:]))


class ActionRouter:
    """
    Maps ``namespace:action`` to an async handler.

    Handlers are called as ``await handler(interaction, *args)``. dispatch()
    always returns a Result: named wagering errors become failed results with
    their code, anything else is logged and reported as an internal error.
    """

    def __init__(self, permission_check: Callable[[Any, Capability], bool] = has_capability):
        self._routes: dict[str, Route] = {}
        self._permission_check = permission_check

    def __contains__(self, key: str) -> bool:
        return key in self._routes

    @property
    def routes(self) -> list[str]:
        return sorted(self._routes)

    def register(
        self,
        namespace: str,
        action: str,
        handler: Handler,
        capability: Capability | None = None,
    ) -> None:
        for name in (namespace, action):
            if not _NAME_PATTERN.match(name):
                raise ValueError(f"Invalid action name: {name!r}")
        if not callable(handler):
            raise TypeError(f"Handler for {namespace}:{action} is not callable")
        route = Route(namespace, action, handler, capability)
        if route.key in self._routes:
            raise ValueError(f"Duplicate action registration: {route.key}")
        self._routes[route.key] = route

    def route(self, namespace: str, action: str, capability: Capability | None = None):
        """Decorator form of register()."""

        def decorator(handler: Handler) -> Handler:
            self.register(namespace, action, handler, capability)
            return handler

        return decorator

    def validate(self, required: Iterable[str]) -> None:
        """Fail fast at startup if any component the UI emits has no handler."""
        missing = sorted(key for key in required if key not in self._routes)
        if missing:
            raise ValueError(f"No handler registered for: {', '.join(missing)}")

    async def dispatch(self, interaction: Any, custom_id: str | None) -> Result:
        parsed = parse_custom_id(custom_id)
        if parsed is None:
            logger.warning(f"Malformed component id: {custom_id!r}")
            return Result.fail("That control is no longer valid.", code=error_codes.UNKNOWN_ACTION)

        route = self._routes.get(parsed.key)
        if route is None:
            logger.warning(f"No handler for component id: {custom_id!r}")
            return Result.fail("That control is no longer valid.", code=error_codes.UNKNOWN_ACTION)

        if route.capability is not None and not self._permission_check(interaction, route.capability):
            return Result.fail("You don't have permission to do that.", code=error_codes.PERMISSION_DENIED)

        return await run_operation(lambda: route.handler(interaction, *parsed.args), f"component {custom_id!r}")
