import threading
import time
from unittest.mock import Mock

import pytest

from atscrape.base import BaseScraper
from atscrape.errors import FetchNetworkError
from atscrape.models import Cookie, Credentials, ScraperConfig, Session, TaskRef


def _sample_sections(samples: list[tuple[str, str]], lang: str) -> str:
    inp, out = ("Sample Input", "Sample Output") if lang == "en" else ("入力例", "出力例")
    parts = []
    for i, (a, b) in enumerate(samples, start=1):
        parts.append(
            f"""
            <div class="part"><section>
                <h3>{inp} {i}<span class="btn btn-default btn-sm btn-copy">Copy</span></h3>
                <pre id="pre-sample{2 * i - 2}">{a}</pre>
            </section></div>
            <div class="part"><section>
                <h3>{out} {i}<span class="btn btn-default btn-sm btn-copy">Copy</span></h3>
                <pre id="pre-sample{2 * i - 1}">{b}</pre>
            </section></div>
            """
        )
    return "".join(parts)


def make_task_html(samples: list[tuple[str, str]]) -> str:
    """Bilingual task page in the layout AtCoder has used since ABC042."""
    return f"""
    <html><body><div id="main-container">
    <span class="h2">A - Task</span>
    <div id="task-statement">
      <span class="lang">
        <span class="lang-ja">
          <div class="part"><section><h3>入力</h3><pre>N</pre></section></div>
          {_sample_sections(samples, "ja")}
        </span>
        <span class="lang-en">
          <div class="part"><section><h3>Input</h3><pre>N</pre></section></div>
          {_sample_sections(samples, "en")}
        </span>
      </span>
    </div>
    </div></body></html>
    """


def make_tasks_html(contest_id: str, labels: list[str]) -> str:
    rows = "".join(
        f"""
        <tr>
          <td class="text-center no-break"><a href="/contests/{contest_id}/tasks/{contest_id}_{i + 1}">{label}</a></td>
          <td><a href="/contests/{contest_id}/tasks/{contest_id}_{i + 1}">Task {label}</a></td>
          <td class="text-right">2 sec</td>
          <td class="text-right">256 MB</td>
        </tr>
        """
        for i, label in enumerate(labels)
    )
    return f"""
    <html><body><div id="main-container">
    <table class="table table-bordered table-striped">
      <thead><tr><th></th><th>Task Name</th><th>Time Limit</th><th>Memory Limit</th></tr></thead>
      <tbody>{rows}</tbody>
    </table>
    </div></body></html>
    """


LOGIN_HTML = """
<html><body>
<form action="" method="POST">
  <input type="text" name="username">
  <input type="password" name="password">
  <input type="hidden" name="csrf_token" value="tok+en=="/>
  <button type="submit">Sign In</button>
</form>
</body></html>
"""


def make_response(
    status: int = 200,
    text: str = "",
    url: str = "https://atcoder.jp/",
    headers: dict[str, str] | None = None,
) -> Mock:
    r = Mock()
    r.status_code = status
    r.text = text
    r.url = url
    r.headers = headers or {}
    return r


def make_session(expires: int | None = None) -> Session:
    return Session(
        cookies=[
            Cookie(
                name="REVEL_SESSION",
                value="abc123",
                domain="atcoder.jp",
                path="/",
                expires=expires,
            ),
            Cookie(name="REVEL_FLASH", value="", domain="atcoder.jp", path="/"),
        ]
    )


class FakeScraper(BaseScraper):
    """In-memory site: pages keyed by task label, errors injected per label."""

    def __init__(
        self,
        contest_id: str = "abc001",
        pages: dict[str, str] | None = None,
        errors: dict[str, Exception] | None = None,
        config: ScraperConfig | None = None,
    ):
        super().__init__(config)
        self.contest_id = contest_id
        self.pages = pages or {}
        self.errors = errors or {}
        self.login_calls: list[Credentials] = []
        self.list_calls = 0
        self.fetch_calls: list[str] = []
        self.sessions_seen: list[Session | None] = []

    @property
    def platform_name(self) -> str:
        return "fake"

    def login(self, credentials: Credentials) -> Session:
        self.login_calls.append(credentials)
        if "login" in self.errors:
            raise self.errors["login"]
        return make_session()

    def list_tasks(self, contest_id: str, session: Session | None) -> list[TaskRef]:
        self.list_calls += 1
        self.sessions_seen.append(session)
        if "list" in self.errors:
            raise self.errors["list"]
        return [
            TaskRef(
                label=label,
                url=f"https://atcoder.jp/contests/{contest_id}/tasks/{contest_id}_{label.lower()}",
                name=f"Task {label}",
            )
            for label in self.pages
        ]

    def fetch_task_page(self, task: TaskRef, session: Session | None) -> str:
        self.fetch_calls.append(task.label)
        self.sessions_seen.append(session)
        if task.label in self.errors:
            raise self.errors[task.label]
        return self.pages[task.label]


class AlwaysDownScraper(FakeScraper):
    def fetch_task_page(self, task: TaskRef, session: Session | None) -> str:
        self.fetch_calls.append(task.label)
        raise FetchNetworkError("connection reset", url=task.url)


@pytest.fixture
def fast_config():
    return ScraperConfig(backoff_factor=0.0, jitter=False, max_tries=3)


@pytest.fixture
def credentials():
    return Credentials(username="tourist", password="hunter2")


@pytest.fixture
def single_sample_pages():
    return {
        label: make_task_html([(f"{i}\n", f"{i * 2}\n")])
        for i, label in enumerate("ABCD", start=1)
    }


@pytest.fixture
def mock_atcoder_html():
    return make_task_html([("3\n1 2 3\n", "6\n"), ("1\n5", "5")])


@pytest.fixture
def mock_legacy_atcoder_html():
    return """
    <div id="task-statement">
    <h3>入力例1</h3>
    <pre>
3
1 2 3
</pre>
    <h3>出力例1</h3>
    <p>説明</p>
    <pre>6</pre>
    <h3>入力例2</h3>
    <pre>1
5   </pre>
    <h3>出力例2</h3>
    <pre>5</pre>
    </div>
    """


class SlowScraper(FakeScraper):
    """Fetches block for a per-label delay; records how many overlap."""

    def __init__(self, delays: dict[str, float], **kwargs):
        super().__init__(**kwargs)
        self.delays = delays
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def fetch_task_page(self, task: TaskRef, session: Session | None) -> str:
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self.delays.get(task.label, 0.0))
            return super().fetch_task_page(task, session)
        finally:
            with self._lock:
                self.active -= 1
