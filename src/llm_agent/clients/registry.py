"""Name lookup for completion client classes.

Built-in clients register themselves when ``llm_agent.clients`` is imported.
Other packages contribute clients through the ``llm_agent.clients``
entry-point group; those are loaded on the first lookup, so a plugin with a
missing SDK costs nothing until a client is actually requested.
"""

from __future__ import annotations

import inspect
import logging
import threading
from importlib import metadata
from typing import Any

from .base import CompletionClient

ENTRY_POINT_GROUP = "llm_agent.clients"

logger = logging.getLogger(__name__)


class ClientRegistry:
    """Maps lower-cased client names to CompletionClient subclasses.

    Args:
        entry_point_group: Entry-point group scanned for plugin clients, or
            None to use only explicitly registered classes.
    """

    def __init__(self, entry_point_group: str | None = ENTRY_POINT_GROUP) -> None:
        self._classes: dict[str, type[CompletionClient]] = {}
        self._lock = threading.Lock()
        self._group = entry_point_group
        self._plugins_loaded = entry_point_group is None

    def register_client(self, name: str, client_class: type[CompletionClient]) -> None:
        """Bind a name to a client class.

        Re-registering the same class is a no-op.

        Raises:
            ValueError: If the name is blank or already bound to another class.
            TypeError: If ``client_class`` is not a CompletionClient subclass.
        """
        key = _normalize(name)
        if not (isinstance(client_class, type) and issubclass(client_class, CompletionClient)):
            raise TypeError(f"{client_class!r} is not a CompletionClient subclass")
        with self._lock:
            bound = self._classes.setdefault(key, client_class)
        if bound is not client_class:
            raise ValueError(f"Client '{key}' is already registered to {bound.__name__}")

    def get_client_class(self, name: str) -> type[CompletionClient]:
        """Return the class registered under ``name``.

        Raises:
            KeyError: If no client has that name.
        """
        key = _normalize(name)
        self._load_plugins()
        with self._lock:
            client_class = self._classes.get(key)
        if client_class is None:
            raise KeyError(
                f"Client '{key}' is not registered. Available: [{', '.join(self.list_clients())}]"
            )
        return client_class

    def get_client(self, name: str, **options: Any) -> CompletionClient:
        """Build the client registered under ``name``.

        ``options`` are checked against the client's constructor first, so a
        misspelled setting fails with the list of accepted options instead
        of a bare TypeError from deep inside the client.
        """
        client_class = self.get_client_class(name)
        _check_options(name, client_class, options)
        return client_class(**options)

    def list_clients(self) -> list[str]:
        self._load_plugins()
        with self._lock:
            return sorted(self._classes)

    def _load_plugins(self) -> None:
        with self._lock:
            if self._plugins_loaded:
                return
            self._plugins_loaded = True

        for entry_point in metadata.entry_points(group=self._group):
            try:
                client_class = entry_point.load()
            except Exception:
                logger.warning("Skipping client plugin '%s': failed to load", entry_point.name, exc_info=True)
                continue
            try:
                self.register_client(entry_point.name, client_class)
            except (TypeError, ValueError) as e:
                logger.warning("Skipping client plugin '%s': %s", entry_point.name, e)


def _normalize(name: str) -> str:
    key = name.strip().lower()
    if not key:
        raise ValueError("Client name must be a non-empty string")
    return key


def _check_options(name: str, client_class: type[CompletionClient], options: dict[str, Any]) -> None:
    params = inspect.signature(client_class).parameters
    if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values()):
        return
    unknown = sorted(set(options) - set(params))
    if unknown:
        raise TypeError(
            f"Client '{name}' does not accept {', '.join(unknown)}; "
            f"accepted options: {', '.join(params) or 'none'}"
        )


_registry: ClientRegistry | None = None
_registry_lock = threading.Lock()


def get_registry() -> ClientRegistry:
    """Return the process-wide client registry, creating it on first use."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = ClientRegistry()
        return _registry


def get_client(name: str, **options: Any) -> CompletionClient:
    """Build a registered completion client by name."""
    # Importing the package registers the built-in clients.
    import llm_agent.clients  # noqa: F401

    return get_registry().get_client(name, **options)
