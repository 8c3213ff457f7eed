import logging
import re
from urllib.parse import urlencode, urlparse

import requests
from bs4 import BeautifulSoup

from .base import BaseScraper
from .clients import RETRY_STATUS, cookies_from_jar, fetch, new_http_session
from .errors import (
    AuthNetworkError,
    AuthUnexpectedResponseError,
    FetchUnexpectedResponseError,
    InvalidCredentialsError,
)
from .models import Credentials, Session, TaskRef

BASE_URL = "https://atcoder.jp"
LOGIN_URL = f"{BASE_URL}/login"
REDIRECT_STATUS = {301, 302, 303, 307, 308}

logger = logging.getLogger(__name__)


def _parse_csrf_token(html: str) -> str | None:
    soup = BeautifulSoup(html, "html.parser")
    inp = soup.select_one("form input[name='csrf_token']")
    if inp is None:
        return None
    val = inp.get("value")
    return val if isinstance(val, str) and val else None


def _parse_login_alert(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    alert = soup.select_one("div.alert-danger, div.alert-warning")
    return alert.get_text(" ", strip=True) if alert else ""


def _parse_tasks_list(html: str) -> list[dict[str, str]] | None:
    soup = BeautifulSoup(html, "html.parser")
    tbody = soup.select_one("#main-container table tbody") or soup.select_one(
        "table tbody"
    )
    if not tbody:
        return None
    rows: list[dict[str, str]] = []
    for tr in tbody.select("tr"):
        tds = tr.select("td")
        if len(tds) < 2:
            continue
        letter = tds[0].get_text(strip=True)
        a = tds[1].select_one("a[href*='/tasks/']")
        if not a:
            continue
        href_attr = a.get("href")
        if not isinstance(href_attr, str):
            continue
        m = re.search(r"/contests/[^/]+/tasks/([^/?#]+)", href_attr)
        if not m:
            continue
        rows.append(
            {
                "letter": letter,
                "title": a.get_text(strip=True),
                "path": m.group(0),
            }
        )
    return rows


def _to_task_refs(contest_id: str, rows: list[dict[str, str]]) -> list[TaskRef]:
    out: list[TaskRef] = []
    seen: set[str] = set()
    for r in rows:
        letter = (r.get("letter") or "").strip().upper()
        if not letter:
            continue
        if letter in seen:
            logger.warning("%s: duplicate task label %s ignored", contest_id, letter)
            continue
        seen.add(letter)
        out.append(TaskRef(label=letter, url=BASE_URL + r["path"], name=r["title"]))
    return out


def _with_lang(url: str, language: str) -> str:
    sep = "&" if urlparse(url).query else "?"
    return f"{url}{sep}{urlencode({'lang': language})}"


def _is_login_path(location: str) -> bool:
    return urlparse(location).path.rstrip("/") == "/login"


class AtcoderScraper(BaseScraper):
    @property
    def platform_name(self) -> str:
        return "atcoder"

    def _auth_request(self, http: requests.Session, method: str, **kwargs):
        try:
            r = http.request(method, LOGIN_URL, timeout=self.config.timeout, **kwargs)
        except (
            requests.ConnectionError,
            requests.Timeout,
            requests.exceptions.ChunkedEncodingError,
        ) as e:
            raise AuthNetworkError(f"Network error during login: {e}") from e
        except requests.RequestException as e:
            raise AuthUnexpectedResponseError(f"Login request failed: {e}") from e
        if r.status_code in RETRY_STATUS:
            raise AuthNetworkError(f"HTTP {r.status_code} from login endpoint")
        return r

    def login(self, credentials: Credentials) -> Session:
        with new_http_session() as http:
            page = self._auth_request(http, "GET")
            if page.status_code != 200:
                raise AuthUnexpectedResponseError(
                    f"Login page returned HTTP {page.status_code}"
                )
            token = _parse_csrf_token(page.text)
            if not token:
                raise AuthUnexpectedResponseError(
                    "Login form has no csrf_token field; the site layout may have changed"
                )

            r = self._auth_request(
                http,
                "POST",
                data={
                    "username": credentials.username,
                    "password": credentials.password.get_secret_value(),
                    "csrf_token": token,
                },
                allow_redirects=False,
            )

            if r.status_code in REDIRECT_STATUS:
                if _is_login_path(r.headers.get("Location", "")):
                    raise InvalidCredentialsError(
                        f"Credentials rejected for user {credentials.username}"
                    )
            elif r.status_code == 200 and _parse_csrf_token(r.text):
                alert = _parse_login_alert(r.text)
                raise InvalidCredentialsError(
                    alert or f"Credentials rejected for user {credentials.username}"
                )
            else:
                raise AuthUnexpectedResponseError(
                    f"Unexpected HTTP {r.status_code} from login endpoint"
                )

            session = Session(cookies=cookies_from_jar(http.cookies))

        if not session.is_complete():
            raise AuthUnexpectedResponseError(
                "Login redirected but no session cookie was issued"
            )
        logger.info("Logged in as %s", credentials.username)
        return session

    def list_tasks(self, contest_id: str, session: Session | None) -> list[TaskRef]:
        url = _with_lang(f"{BASE_URL}/contests/{contest_id}/tasks", self.config.language)
        html = fetch(url, session, self.config)
        rows = _parse_tasks_list(html)
        if rows is None:
            raise FetchUnexpectedResponseError(
                f"No task table on {url}; the site layout may have changed", url=url
            )
        return _to_task_refs(contest_id, rows)

    def fetch_task_page(self, task: TaskRef, session: Session | None) -> str:
        return fetch(_with_lang(task.url, self.config.language), session, self.config)
