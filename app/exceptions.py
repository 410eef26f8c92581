"""
GameCompare - Custom Exceptions
"""
import structlog

logger = structlog.get_logger('exceptions')


class GameCompareException(Exception):
    """Base exception for GameCompare"""
    def __init__(self, message: str, code: str = "GAMECOMPARE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self):
        return {
            'error': True,
            'code': self.code,
            'message': self.message
        }


class ConfigurationException(GameCompareException):
    """Missing credentials or invalid settings"""
    def __init__(self, message: str):
        super().__init__(message, code="CONFIG_ERROR")
        logger.error("configuration_error", message=message)


class ProviderException(GameCompareException):
    """A provider call could not produce usable data"""
    def __init__(self, message: str, provider: str = None, code: str = "PROVIDER_ERROR"):
        super().__init__(message, code=code)
        self.provider = provider

    def to_dict(self):
        payload = super().to_dict()
        payload['provider'] = self.provider
        return payload


class SourceUnavailable(ProviderException):
    """Soft failure: the caller logs it and carries on with zero entries"""
    def __init__(self, message: str, provider: str = None):
        super().__init__(message, provider=provider, code="SOURCE_UNAVAILABLE")
        logger.warning("source_unavailable", provider=provider, message=message)


class SyncFailed(ProviderException):
    """Hard failure: propagates so the job backoff/retry engages"""
    def __init__(self, message: str, provider: str = None):
        super().__init__(message, provider=provider, code="SYNC_FAILED")
        logger.error("sync_failed", provider=provider, message=message)


class TheGamesDbApiException(SyncFailed):
    """TheGamesDB request or payload failure"""
    def __init__(self, message: str):
        super().__init__(message, provider='thegamesdb')


class RateLimited(GameCompareException):
    """
    Not an error: the provider bucket is empty.
    Jobs turn this into a delayed re-queue after ``retry_after`` seconds.
    """
    def __init__(self, provider: str, retry_after: float):
        self.provider = provider
        self.retry_after = max(1, int(retry_after or 1))
        super().__init__(
            f"Rate limit for {provider} exhausted, retry in {self.retry_after}s",
            code="RATE_LIMITED",
        )

    def to_dict(self):
        payload = super().to_dict()
        payload.update({'provider': self.provider, 'retry_after': self.retry_after})
        return payload
