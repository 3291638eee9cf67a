"""Registry of externally provided actions.

Steps, jobs and copilots reference extra actions by module URL. Only two
namespaces exist:

- ``native:<name>`` for handlers shipped with the application
- ``http://`` / ``https://`` URLs for handlers registered under a remote identifier

Handlers are registered explicitly; the namespace is validated when a handler is
registered, and an unregistered reference fails when a binding is resolved.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from task_orchestrator.orchestrator.errors import ConfigurationError
from task_orchestrator.orchestrator.models import ActionBinding
from task_orchestrator.orchestrator.workflow.actions import ActionModule, TaskContext

logger = logging.getLogger(__name__)

NATIVE_PREFIX = "native:"
REMOTE_PREFIXES = ("http://", "https://")

ActionHandler = Callable[[dict[str, Any], TaskContext], Any]


def validate_module_url(module_url: str) -> str:
    url = (module_url or "").strip()
    if url.startswith(NATIVE_PREFIX) and len(url) > len(NATIVE_PREFIX):
        return url
    if url.startswith(REMOTE_PREFIXES):
        return url
    raise ConfigurationError(
        f"Invalid module URL: namespace for {module_url!r} not found. "
        "Should either start with 'http:', 'https:', or 'native:'."
    )


@dataclass(frozen=True, slots=True)
class RegisteredAction:
    module_url: str
    handler: ActionHandler
    spec: str


class ActionRegistry:
    def __init__(self) -> None:
        self._actions: dict[str, RegisteredAction] = {}

    def __contains__(self, module_url: object) -> bool:
        return module_url in self._actions

    def register(self, module_url: str, handler: ActionHandler, *, spec: str = "") -> None:
        url = validate_module_url(module_url)
        if url in self._actions:
            logger.warning("Replacing registered action", extra={"module_url": url})
        self._actions[url] = RegisteredAction(module_url=url, handler=handler, spec=spec)

    def native(self, name: str, *, spec: str = "") -> Callable[[ActionHandler], ActionHandler]:
        """Decorator registering ``handler`` as ``native:<name>``."""

        def decorator(handler: ActionHandler) -> ActionHandler:
            self.register(f"{NATIVE_PREFIX}{name}", handler, spec=spec)
            return handler

        return decorator

    def resolve(self, bindings: Iterable[ActionBinding], ctx: TaskContext) -> list[ActionModule]:
        """Turn bindings into action modules bound to ``ctx``.

        Later bindings with the same name replace earlier ones, so step actions
        win over job actions, which win over copilot actions.
        """

        resolved: dict[str, ActionModule] = {}
        for binding in bindings:
            url = validate_module_url(binding.module_url)
            registered = self._actions.get(url)
            if registered is None:
                raise ConfigurationError(f"No action registered for {url!r} ({binding.name})")
            resolved[binding.name] = ActionModule(
                name=binding.name,
                spec=binding.spec or registered.spec,
                fn=_bind(registered.handler, ctx),
            )
        return list(resolved.values())


def _bind(handler: ActionHandler, ctx: TaskContext) -> Callable[[dict[str, Any]], Any]:
    def call(args: dict[str, Any]) -> Any:
        return handler(args, ctx)

    return call
