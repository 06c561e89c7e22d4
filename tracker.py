"""Wiring of store, library, fetcher and router into one tracker."""
import logging
from dataclasses import dataclass
from typing import List, Optional

from adapters.base_adapter import Page
from config import Settings, settings as default_settings
from fetcher import PageFetcher
from library import LibraryService
from site_router import NavigationNotifier, SiteRegistry, SiteRouter
from storage import KeyValueStore, LibraryStore, create_store

logger = logging.getLogger(__name__)


@dataclass
class Tracker:
    """Everything a front end needs to track visits and manage the library."""
    settings: Settings
    store: KeyValueStore
    library: LibraryService
    fetcher: PageFetcher
    registry: SiteRegistry
    notifier: NavigationNotifier
    router: SiteRouter

    async def visit(self, page: Page) -> Optional[str]:
        """Signal a navigation; returns the id of the adapter for the page, if any."""
        results = await self.notifier.navigate(page)
        return next((result for result in results if result), None)

    async def close(self) -> None:
        await self.fetcher.close()
        await self.store.close()


def build_tracker(
        settings: Optional[Settings] = None,
        store: Optional[KeyValueStore] = None,
        fetcher: Optional[PageFetcher] = None,
) -> Tracker:
    """
    Build a tracker from settings.

    Args:
        settings: Settings, defaults to the module-level instance
        store: Store to use instead of the configured backend
        fetcher: Fetcher to use instead of a new PageFetcher

    Returns:
        Tracker
    """
    settings = settings or default_settings
    store = store or create_store(settings)
    fetcher = fetcher or PageFetcher(
        timeout_seconds=settings.fetch_timeout_seconds,
        user_agent=settings.user_agent,
    )

    library = LibraryService(LibraryStore(store, key=settings.library_key))

    def log_change(changed_keys: List[str], area: str) -> None:
        if settings.library_key in changed_keys:
            logger.debug(f"Library changed in {area} store")

    store.subscribe(log_change)

    registry = SiteRegistry.default_registry(library, fetcher)
    notifier = NavigationNotifier()
    router = SiteRouter(registry, notifier)

    logger.info(f"Tracker ready: store={type(store).__name__} sites={', '.join(registry.ids())}")

    return Tracker(
        settings=settings,
        store=store,
        library=library,
        fetcher=fetcher,
        registry=registry,
        notifier=notifier,
        router=router,
    )
