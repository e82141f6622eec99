"""
Background service lifecycle.

`ServiceWatcher` owns the device-manager handle and follows the service's
bus name. The UI registers two callbacks: `on_appeared(manager)` once the
service is up and the handle is ready to populate pages, and
`on_vanished(manager)` right before a handle it was given is destroyed.

The bus-name watch itself is injected so the policy can be driven without
a session bus; `PrefsWidget` passes wrappers around `Gio.bus_watch_name`.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

log = logging.getLogger(__name__)


class ManagerHandle(Protocol):
    def destroy(self) -> None: ...


WatchFunc = Callable[[Callable[..., None], Callable[..., None]], int]
UnwatchFunc = Callable[[int], None]


class ServiceWatcher:
    """Create, hand out and destroy device-manager handles.

    A handle is created immediately. When the service vanishes the handle is
    destroyed and, unless `is_debug()` is true, a fresh one is created right
    away; otherwise the next appearance creates it.
    """

    __slots__ = (
        "manager",
        "_factory",
        "_is_debug",
        "_on_appeared",
        "_on_vanished",
        "_watch",
        "_unwatch",
        "_watch_id",
        "_attached",
    )

    def __init__(
        self,
        factory: Callable[[], Any],
        on_appeared: Callable[[Any], None],
        on_vanished: Callable[[Any], None],
        watch: WatchFunc,
        unwatch: UnwatchFunc,
        is_debug: Callable[[], bool] = lambda: False,
    ) -> None:
        self._factory = factory
        self._on_appeared = on_appeared
        self._on_vanished = on_vanished
        self._watch = watch
        self._unwatch = unwatch
        self._is_debug = is_debug
        self._watch_id = 0
        self._attached = False
        self.manager: Any = factory()

    @property
    def watching(self) -> bool:
        return self._watch_id > 0

    def start(self) -> None:
        if self._watch_id:
            return
        self._watch_id = self._watch(self._service_appeared, self._service_vanished)

    def stop(self) -> None:
        """Stop watching and release the current handle."""
        if self._watch_id:
            self._unwatch(self._watch_id)
            self._watch_id = 0
        self._release_manager()

    # The service has claimed its bus name
    def _service_appeared(self, *_args: object) -> None:
        log.debug("ServiceWatcher._service_appeared()")

        if self.manager is None:
            self.manager = self._factory()

        if self._attached:
            return

        self._attached = True
        self._on_appeared(self.manager)

    # The service has released its bus name
    def _service_vanished(self, *_args: object) -> None:
        log.debug("ServiceWatcher._service_vanished()")

        self._release_manager()

        if not self._is_debug():
            self.manager = self._factory()

    def _release_manager(self) -> None:
        if self.manager is None:
            return

        if self._attached:
            self._attached = False
            self._on_vanished(self.manager)

        self.manager.destroy()
        self.manager = None
