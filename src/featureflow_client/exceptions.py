"""featureflow クライアントの例外型定義"""

from __future__ import annotations


class FeatureflowError(Exception):
    """featureflow クライアントのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class FeatureflowErrorCodes:
    """エラーコード定数。"""

    MISSING_API_KEY: str = "MISSING_API_KEY"
    VALIDATION: str = "VALIDATION"
    READ_FILE: str = "READ_FILE"
    PARSE_YAML: str = "PARSE_YAML"
    HTTP_STATUS: str = "HTTP_STATUS"
    CONTENT_TYPE: str = "CONTENT_TYPE"
    TRANSPORT: str = "TRANSPORT"
    TIMEOUT: str = "TIMEOUT"
    STORAGE_READ: str = "STORAGE_READ"
    STORAGE_WRITE: str = "STORAGE_WRITE"
    MALFORMED_CACHE: str = "MALFORMED_CACHE"


class ConfigError(FeatureflowError):
    """設定不備。クライアント生成時に送出される。"""


class NetworkError(FeatureflowError):
    """フィーチャー取得の失敗（ステータス、Content-Type、通信エラー）。"""


class NetworkTimeoutError(NetworkError):
    """リクエストがタイムアウトした。"""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(FeatureflowErrorCodes.TIMEOUT, message, cause)


class StorageError(FeatureflowError):
    """永続ストレージの読み書き失敗。呼び出し元には伝播しない。"""


class MalformedCacheError(FeatureflowError):
    """破損したキャッシュペイロード。キャッシュミスとして扱う。"""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(FeatureflowErrorCodes.MALFORMED_CACHE, message, cause)
