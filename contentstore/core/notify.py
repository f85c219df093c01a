"""
Change notification.

NotificationGate decides whether a mutation is announced; the injected
NotificationSink delivers it. ObserverBus is the in-process sink.
"""

import threading
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Union

from .address import ResourceAddress
from .contract import has_caller_is_syncadapter_parameter
from ..util.logging import logger


@dataclass(frozen=True)
class ChangeNotification:
    address: ResourceAddress
    suppressed: bool


class NotificationSink(ABC):
    """Where change notifications go and where readers register interest."""

    @abstractmethod
    def notify_change(self, address: ResourceAddress) -> Optional[int]:
        """Fire-and-forget publish for ``address``.

        Returns how many observers were reached, or None when the sink cannot tell.
        """

    @abstractmethod
    def register_interest(self, address: ResourceAddress, observer: Any,
                          notify_for_descendants: bool = True) -> None:
        """Ask for ``observer`` to hear about future changes to ``address``."""

    @abstractmethod
    def unregister(self, observer: Any) -> None:
        """Drop every registration held by ``observer``."""


@dataclass(frozen=True)
class _Registration:
    address: ResourceAddress
    observer_ref: Callable[[], Any]
    notify_for_descendants: bool

    @property
    def observer(self) -> Any:
        return self.observer_ref()

    def matches(self, changed: ResourceAddress) -> bool:
        if self.address.same_target(changed):
            return True
        if self.notify_for_descendants and self.address.is_ancestor_of(changed):
            return True
        # a change to a parent invalidates everything below it
        return changed.is_ancestor_of(self.address)


class ObserverBus(NotificationSink):
    """Thread-safe in-process observer registry.

    Observers are either objects with ``on_change(address)`` or plain callables
    taking the changed address. Objects are held weakly, so a cursor that is
    dropped without ``close()`` stops being notified once it is collected.
    Plain callables are held until unregistered.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._registrations: List[_Registration] = []

    @staticmethod
    def _reference(observer) -> Callable[[], Any]:
        if hasattr(observer, "on_change"):
            return weakref.ref(observer)
        return lambda: observer

    def _live_registrations(self) -> List[_Registration]:
        """Drop registrations whose observer was collected. Caller holds the lock."""
        self._registrations = [r for r in self._registrations if r.observer is not None]
        return self._registrations

    def register_interest(self, address, observer, notify_for_descendants=True):
        registration = _Registration(ResourceAddress.parse(address).without_query(),
                                     self._reference(observer), notify_for_descendants)
        with self._lock:
            self._live_registrations().append(registration)

    def unregister(self, observer):
        with self._lock:
            self._registrations = [r for r in self._live_registrations() if r.observer is not observer]

    def observer_count(self) -> int:
        with self._lock:
            return len(self._live_registrations())

    def notify_change(self, address) -> int:
        """Deliver to every matching observer; returns how many were called."""
        changed = ResourceAddress.parse(address)
        with self._lock:
            targets = []
            for registration in self._live_registrations():
                observer = registration.observer
                if observer is None:
                    continue
                if registration.matches(changed) and not any(t is observer for t in targets):
                    targets.append(observer)

        for observer in targets:
            try:
                if hasattr(observer, "on_change"):
                    observer.on_change(changed)
                else:
                    observer(changed)
            except Exception:
                # one broken observer must not stop delivery to the rest
                logger.exception(f"Observer {observer!r} failed handling change to {changed}")
        return len(targets)


class NotificationGate:
    """Suppresses notifications for sync-adapter callers, publishes otherwise.

    A sync adapter batches its own notifications (once at the end of a sync
    rather than once per record), so its writes are not announced here.
    """

    def __init__(self, sink: NotificationSink):
        self.sink = sink

    @staticmethod
    def should_notify(address: Union[str, ResourceAddress]) -> bool:
        return not has_caller_is_syncadapter_parameter(address)

    def publish(self, address: Union[str, ResourceAddress],
                target: Optional[Union[str, ResourceAddress]] = None) -> ChangeNotification:
        """Announce a change to ``target`` (default: ``address``).

        The caller's ``address`` decides suppression; inserts publish the new
        item's address but are gated on the collection address they were made on.
        """
        address = ResourceAddress.parse(address)
        target = address if target is None else ResourceAddress.parse(target)
        suppressed = not self.should_notify(address)
        if not suppressed:
            self.sink.notify_change(target)
        logger.log_notification(str(target), suppressed)
        return ChangeNotification(target, suppressed)

    def register(self, address: Union[str, ResourceAddress], observer: Any) -> None:
        """Register a reader for future changes. Reads never publish."""
        self.sink.register_interest(ResourceAddress.parse(address), observer)
