from adapters.base_adapter import BaseAdapter, Page, SiteRegistration
from adapters.novelbin import NovelBinAdapter
from adapters.novelfull import NovelFullAdapter
from adapters.ranobes import RanobesAdapter
from adapters.wuxiaworld import WuxiaWorldAdapter

# Dispatch order of the default registry
ADAPTER_CLASSES = [
    NovelBinAdapter,
    NovelFullAdapter,
    RanobesAdapter,
    WuxiaWorldAdapter,
]

__all__ = [
    "ADAPTER_CLASSES",
    "BaseAdapter",
    "Page",
    "SiteRegistration",
    "NovelBinAdapter",
    "NovelFullAdapter",
    "RanobesAdapter",
    "WuxiaWorldAdapter",
]
