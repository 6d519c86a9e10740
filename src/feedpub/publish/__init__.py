"""Push engines, throttle and dispatcher."""

from .dispatcher import AliasUpdater, DispatchResult, FeedJob, PublishDispatcher
from .outcomes import RECORDED_OUTCOMES, PushOutcome, PushResult
from .registry_push import RegistryFeed, RegistryFeedClient, RegistryPushEngine, RegistryPushRequest
from .storage_push import (
    ObjectStorage,
    ObjectStorageClient,
    ObjectStoragePushEngine,
    StorageItem,
    StoragePushOptions,
)
from .throttle import Throttle, run_bounded

__all__ = [
    "AliasUpdater",
    "DispatchResult",
    "FeedJob",
    "ObjectStorage",
    "ObjectStorageClient",
    "ObjectStoragePushEngine",
    "PublishDispatcher",
    "PushOutcome",
    "PushResult",
    "RECORDED_OUTCOMES",
    "RegistryFeed",
    "RegistryFeedClient",
    "RegistryPushEngine",
    "RegistryPushRequest",
    "StorageItem",
    "StoragePushOptions",
    "Throttle",
    "run_bounded",
]
