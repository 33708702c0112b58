"""featureflow client library."""

from ._version import __version__
from .batcher import EventBatcher
from .cache import CacheEntry, FreshnessCache
from .client import ClientState, FeatureflowClient, create_client, init
from .conditions import Operator, matches_condition
from .config import ClientConfig, load_config
from .events import ClientEvent, EventBus, Subscription
from .exceptions import (
    ConfigError,
    FeatureflowError,
    FeatureflowErrorCodes,
    MalformedCacheError,
    NetworkError,
    NetworkTimeoutError,
    StorageError,
)
from .identity import AnonymousIdStore
from .models import (
    Audience,
    AttributeKind,
    AttributeValue,
    Condition,
    EvaluateEvent,
    Evaluation,
    Feature,
    GoalEvent,
    QueuedEvent,
    Rule,
    RuleFeature,
    User,
)
from .rest import RestClient
from .rules import EvaluationContext, resolve_variant
from .storage import FeatureflowStorage, InMemoryStorage, JsonFileStorage, create_storage

__all__ = [
    "AnonymousIdStore",
    "AttributeKind",
    "AttributeValue",
    "Audience",
    "CacheEntry",
    "ClientConfig",
    "ClientEvent",
    "ClientState",
    "Condition",
    "ConfigError",
    "EvaluateEvent",
    "Evaluation",
    "EvaluationContext",
    "EventBatcher",
    "EventBus",
    "Feature",
    "FeatureflowClient",
    "FeatureflowError",
    "FeatureflowErrorCodes",
    "FeatureflowStorage",
    "FreshnessCache",
    "GoalEvent",
    "InMemoryStorage",
    "JsonFileStorage",
    "MalformedCacheError",
    "NetworkError",
    "NetworkTimeoutError",
    "Operator",
    "QueuedEvent",
    "RestClient",
    "Rule",
    "RuleFeature",
    "StorageError",
    "Subscription",
    "User",
    "__version__",
    "create_client",
    "create_storage",
    "init",
    "load_config",
    "matches_condition",
    "resolve_variant",
]
