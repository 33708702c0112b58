"""FeatureflowClient — フィーチャー評価クライアント"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from datetime import datetime
from enum import StrEnum
from typing import Any

from .batcher import EventBatcher
from .cache import FreshnessCache
from .config import ClientConfig
from .events import ClientEvent, EventBus, EventCallback, Subscription
from .exceptions import ConfigError, FeatureflowErrorCodes, NetworkError
from .identity import AnonymousIdStore
from .models import OFF, EvaluateEvent, Evaluation, Feature, GoalEvent, User
from .rest import RestClient
from .rules import EvaluationContext, resolve_variant
from .storage import FeatureflowStorage, InMemoryStorage

logger = logging.getLogger(__name__)


class ClientState(StrEnum):
    """初期化状態。"""

    UNINITIALIZED = "UNINITIALIZED"
    INITIALIZING = "INITIALIZING"
    READY = "READY"


class FeatureflowClient:
    """フィーチャーを取得・キャッシュし、ユーザーコンテキストで評価するクライアント。

    initialize / update_user 呼び出しは直列化されない。重なった呼び出しでは
    最後に完了したフェッチの結果が残る。
    """

    def __init__(
        self,
        api_key: str,
        config: ClientConfig | Mapping[str, Any] | None = None,
        storage: FeatureflowStorage | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not api_key:
            raise ConfigError(
                code=FeatureflowErrorCodes.MISSING_API_KEY,
                message="Featureflow: API key is required",
            )
        if config is None:
            config = ClientConfig()
        elif not isinstance(config, ClientConfig):
            config = ClientConfig.from_mapping(config)

        self._api_key = api_key
        self._config = config
        self._clock = clock
        self._storage = storage if storage is not None else InMemoryStorage()
        self._rest = RestClient(api_key, config.base_url, config.events_url, config.timeout)
        self._batcher = EventBatcher(self._rest)
        self._cache = FreshnessCache(self._storage, api_key, config.cache_ttl, clock)
        self._identity = AnonymousIdStore(self._storage)
        self._bus = EventBus()

        self._features: dict[str, Feature] = {}
        self._evaluated_features: dict[str, str] = {}
        self._user = User()
        self._context = EvaluationContext()
        self._state = ClientState.UNINITIALIZED
        self._received_initial_response = False

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def batcher(self) -> EventBatcher:
        return self._batcher

    def is_initialized(self) -> bool:
        return self._state is ClientState.READY

    def has_received_initial_response(self) -> bool:
        return self._received_initial_response

    def get_user(self) -> User:
        return self._user

    async def initialize(self, user: User | None = None) -> dict[str, Feature]:
        """ユーザーで初期化する。ユーザー省略時は匿名 ID を使う。"""
        if user is None:
            user = User(id=await self.get_anonymous_id())
        return await self._load_features(user, updated=False)

    async def update_user(self, user: User) -> dict[str, Feature]:
        """ユーザーコンテキストを置き換えてフィーチャーを再取得する。"""
        return await self._load_features(user, updated=True)

    async def _load_features(self, user: User, updated: bool) -> dict[str, Feature]:
        # 不正な属性は状態を変える前に TypeError で弾く
        now = datetime.fromtimestamp(self._clock()).astimezone()
        context = EvaluationContext.build(user.attributes, now)

        if self._state is ClientState.UNINITIALIZED:
            self._state = ClientState.INITIALIZING

        user_id = user.id or await self.get_anonymous_id()
        self._user = User(id=user_id, attributes=dict(user.attributes))
        self._context = context

        if self._config.offline:
            self._features = dict(self._config.default_features)
            await self._mark_ready()
            return self._features

        cached = await self._cache.load(user_id)
        if cached is not None:
            self._features = cached.features
            await self._bus.emit(ClientEvent.LOADED_FROM_CACHE, self.get_features())
            if cached.is_fresh:
                await self._mark_ready()
                return self._features
            if self._config.init_on_cache:
                self._state = ClientState.READY
                await self._bus.emit(ClientEvent.INIT, self.get_features())

        try:
            features = await self._rest.get_features(self._user)
        except NetworkError as e:
            self._received_initial_response = True
            self._state = ClientState.READY
            if not self._features:
                self._features = dict(self._config.default_features)
            logger.warning(
                "Failed to fetch features",
                extra={"user_id": user_id, "error": str(e)},
            )
            await self._bus.emit(ClientEvent.ERROR, e)
            raise

        self._features = features
        await self._cache.save(user_id, features)
        await self._mark_ready()
        if updated:
            await self._bus.emit(ClientEvent.UPDATED, self.get_features())
        return self._features

    async def _mark_ready(self) -> None:
        self._received_initial_response = True
        self._state = ClientState.READY
        await self._bus.emit(ClientEvent.INIT, self.get_features())
        await self._bus.emit(ClientEvent.LOADED, self.get_features())

    def _resolve(self, feature: Feature) -> str:
        return resolve_variant(feature, self._context) or OFF

    def _track(self, key: str, variant: str) -> None:
        if self._config.unique_evals and key in self._evaluated_features:
            return
        self._evaluated_features[key] = variant
        self._batcher.enqueue(EvaluateEvent(user=self._user, feature_key=key, variant=variant))

    def evaluate(self, key: str) -> Evaluation:
        """フィーチャーを評価する。未知のキーは off。"""
        if self._config.offline:
            return Evaluation(self._config.default_features.get(key, OFF))

        feature = self._features.get(key)
        if feature is None:
            return Evaluation(OFF)
        evaluation = Evaluation(self._resolve(feature))
        self._track(key, evaluation.value)
        return evaluation

    def get_features(self) -> dict[str, str]:
        """全フィーチャーを評価した結果を返す。

        評価イベントは unique_evals が有効なときに未評価のキーについてのみ積む。
        """
        if self._config.offline:
            return {
                key: Evaluation(self._resolve(feature)).value
                for key, feature in self._config.default_features.items()
            }
        evaluated: dict[str, str] = {}
        for key, feature in self._features.items():
            variant = Evaluation(self._resolve(feature)).value
            evaluated[key] = variant
            if self._config.unique_evals and key not in self._evaluated_features:
                self._track(key, variant)
        return evaluated

    def goal(self, goal_key: str) -> None:
        """ゴールイベントを送信キューに積む。"""
        if self._config.offline:
            return
        self._batcher.enqueue(
            GoalEvent(user=self._user, goal_key=goal_key, evaluated_features=self.get_features())
        )

    def on(self, event: str, callback: EventCallback) -> Subscription:
        return self._bus.on(event, callback)

    def off(self, event: str, subscription: Subscription | None = None) -> None:
        self._bus.off(event, subscription)

    async def get_anonymous_id(self) -> str:
        return await self._identity.get_anonymous_id()

    async def reset_anonymous_id(self) -> str:
        return await self._identity.reset_anonymous_id()

    async def close(self) -> None:
        """送信待ちイベントを送り、購読をすべて解除する。"""
        await self._batcher.close(flush=not self._config.offline)
        self._bus.clear()


def create_client(
    api_key: str,
    config: ClientConfig | Mapping[str, Any] | None = None,
    storage: FeatureflowStorage | None = None,
) -> FeatureflowClient:
    """クライアントを生成する。"""
    return FeatureflowClient(api_key, config, storage)


async def init(
    api_key: str,
    user: User | None = None,
    config: ClientConfig | Mapping[str, Any] | None = None,
    storage: FeatureflowStorage | None = None,
) -> FeatureflowClient:
    """クライアントを生成して初期化する。"""
    client = FeatureflowClient(api_key, config, storage)
    await client.initialize(user)
    return client
