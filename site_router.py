"""Site registry and dispatch of navigation events to site adapters."""
import logging
from typing import Any, Awaitable, Callable, List, Optional

from adapters import ADAPTER_CLASSES
from adapters.base_adapter import Page, SiteRegistration
from normalizer import normalize_host

logger = logging.getLogger(__name__)

LocationListener = Callable[[], Awaitable[Any]]


class SiteRegistry:
    """Ordered list of site registrations; the first host match wins."""

    def __init__(self, registrations: Optional[List[SiteRegistration]] = None):
        self.registrations: List[SiteRegistration] = list(registrations or [])

    def register(self, registration: SiteRegistration) -> None:
        self.registrations.append(registration)

    def find_for_host(self, host: str) -> Optional[SiteRegistration]:
        """
        Find the registration handling a hostname.

        Args:
            host: Raw hostname, ``www.`` and case are ignored

        Returns:
            First matching registration or None
        """
        normalized = normalize_host(host)
        if not normalized:
            return None
        for registration in self.registrations:
            if registration.matches_host(normalized):
                return registration
        return None

    def ids(self) -> List[str]:
        return [registration.id for registration in self.registrations]

    @classmethod
    def default_registry(cls, library, fetcher) -> "SiteRegistry":
        """Registry with every built-in adapter, in dispatch order."""
        return cls([adapter_class(library, fetcher).registration() for adapter_class in ADAPTER_CLASSES])


class NavigationNotifier:
    """Holds the page being read and signals subscribers when it changes."""

    def __init__(self):
        self.current_page: Optional[Page] = None
        self._listeners: List[LocationListener] = []

    def subscribe(self, listener: LocationListener) -> None:
        self._listeners.append(listener)

    async def navigate(self, page: Page) -> List[Any]:
        """Set the current page and await every subscriber; returns their results in order."""
        self.current_page = page
        results = []
        for listener in self._listeners:
            results.append(await listener())
        return results


class SiteRouter:
    """
    Dispatch the current page to the adapter registered for its host.

    A repeated signal for the URL that was dispatched last is not
    dispatched again. Handler failures are logged and never reach the
    notifier.
    """

    def __init__(self, registry: SiteRegistry, notifier: NavigationNotifier):
        self.registry = registry
        self.notifier = notifier
        self.last_url: Optional[str] = None
        notifier.subscribe(self.on_location_changed)

    async def on_location_changed(self) -> Optional[str]:
        """
        Handle a location-changed signal.

        Returns:
            Id of the adapter registered for the page's host, or None
        """
        page = self.notifier.current_page
        if page is None or not page.url:
            return None

        registration = self.registry.find_for_host(page.hostname)

        if page.url == self.last_url:
            logger.debug(f"Ignoring repeated location: {page.url}")
            return registration.id if registration else None
        self.last_url = page.url

        if registration is None:
            logger.debug(f"No adapter for host: {page.hostname}")
            return None

        try:
            await registration.handler(page)
        except Exception as e:
            logger.error(f"[{registration.id}] dispatch failed for {page.url}: {e}", exc_info=True)

        return registration.id
