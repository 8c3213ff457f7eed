class ScraperError(Exception):
    """Base class for every error raised by atscrape."""


class NetworkError(ScraperError):
    """Transient transport failure; the only class the retry policy retries."""


class StoreError(ScraperError):
    pass


class StoreCorruptError(StoreError):
    pass


class StoreIOError(StoreError):
    pass


class AuthError(ScraperError):
    pass


class InvalidCredentialsError(AuthError):
    pass


class AuthNetworkError(AuthError, NetworkError):
    pass


class AuthUnexpectedResponseError(AuthError):
    pass


class FetchError(ScraperError):
    def __init__(self, message: str, url: str = "", status: int | None = None):
        super().__init__(message)
        self.url = url
        self.status = status


class NotFoundError(FetchError):
    pass


class ForbiddenError(FetchError):
    pass


class FetchNetworkError(FetchError, NetworkError):
    pass


class FetchUnexpectedResponseError(FetchError):
    pass


class ScrapeError(ScraperError):
    def __init__(self, message: str, cause: ScraperError | None = None):
        super().__init__(message)
        self.cause = cause


class FatalAuthError(ScrapeError):
    pass


class FatalFetchError(ScrapeError):
    pass


class SessionUnavailableError(ScrapeError):
    pass
