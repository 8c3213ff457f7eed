import logging
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from requests.cookies import RequestsCookieJar
from urllib3.util.retry import Retry

from .errors import (
    FetchNetworkError,
    FetchUnexpectedResponseError,
    ForbiddenError,
    NotFoundError,
)
from .models import Cookie, ScraperConfig, Session

HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
}
RETRY_STATUS = {429, 500, 502, 503, 504}
NOT_FOUND_STATUS = {404, 410}
FORBIDDEN_STATUS = {401, 403}

logger = logging.getLogger(__name__)


def cookie_jar(session: Session | None) -> RequestsCookieJar:
    jar = RequestsCookieJar()
    if session is None:
        return jar
    for c in session.cookies:
        jar.set(
            c.name,
            c.value,
            domain=c.domain,
            path=c.path or "/",
            expires=c.expires,
            secure=c.secure,
        )
    return jar


def cookies_from_jar(jar) -> list[Cookie]:
    return [
        Cookie(
            name=c.name,
            value=c.value or "",
            domain=c.domain,
            path=c.path or "/",
            expires=c.expires,
            secure=bool(c.secure),
        )
        for c in jar
    ]


def landed_on_login(response: requests.Response) -> bool:
    return urlparse(response.url or "").path.rstrip("/") == "/login"


def check_response(response: requests.Response, url: str) -> None:
    status = response.status_code
    if status in NOT_FOUND_STATUS:
        raise NotFoundError(f"Not found: {url}", url=url, status=status)
    if status in FORBIDDEN_STATUS or landed_on_login(response):
        raise ForbiddenError(f"Access denied: {url}", url=url, status=status)
    if status in RETRY_STATUS:
        raise FetchNetworkError(f"HTTP {status} from {url}", url=url, status=status)
    if not 200 <= status < 300:
        raise FetchUnexpectedResponseError(
            f"Unexpected HTTP {status} from {url}", url=url, status=status
        )


def fetch(url: str, session: Session | None, config: ScraperConfig) -> str:
    """GET ``url`` with the Session's cookies attached and return the body."""
    try:
        r = requests.get(
            url,
            headers=HEADERS,
            cookies=cookie_jar(session),
            timeout=config.timeout,
        )
    except (
        requests.ConnectionError,
        requests.Timeout,
        requests.exceptions.ChunkedEncodingError,
    ) as e:
        raise FetchNetworkError(f"Network error fetching {url}: {e}", url=url) from e
    except requests.RequestException as e:
        raise FetchUnexpectedResponseError(
            f"Request to {url} failed: {e}", url=url
        ) from e
    check_response(r, url)
    logger.debug("GET %s -> %d (%d bytes)", url, r.status_code, len(r.text))
    return r.text


def new_http_session() -> requests.Session:
    s = requests.Session()
    adapter = HTTPAdapter(max_retries=Retry(total=0))
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    s.headers.update(HEADERS)
    return s
