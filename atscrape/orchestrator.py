#!/usr/bin/env python3

import asyncio
import getpass
import logging
import os
import sys
from typing import Callable

from .atcoder import AtcoderScraper
from .base import BaseScraper
from .errors import (
    AuthError,
    FatalAuthError,
    FatalFetchError,
    FetchError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    ScrapeError,
    SessionUnavailableError,
    StoreError,
)
from .models import (
    ContestBundle,
    Credentials,
    LoginMode,
    ScrapeResult,
    Session,
    TaskBundle,
    TaskRef,
    parse_contest_id,
)
from .retry import RetryPolicy
from .samples import extract_samples
from .session_store import SessionStore

logger = logging.getLogger(__name__)

CredentialsProvider = Callable[[], Credentials | None]


def _fetch_failure_message(
    e: FetchError, contest_id: str, used_cached_session: bool
) -> str:
    if isinstance(e, NotFoundError):
        return f"Contest {contest_id} not found"
    if isinstance(e, ForbiddenError):
        if used_cached_session:
            return (
                f"Access to contest {contest_id} denied; the saved session may "
                "have expired, log in again"
            )
        return (
            f"Access to contest {contest_id} denied; it may not have started "
            "yet or may require login"
        )
    return f"Could not list tasks for {contest_id}: {e}"


class Orchestrator:
    def __init__(
        self,
        scraper: BaseScraper,
        store: SessionStore | None,
        retry: RetryPolicy | None = None,
        credentials_provider: CredentialsProvider | None = None,
    ):
        self.scraper = scraper
        self.config = scraper.config
        self.store = store
        self.retry = retry or RetryPolicy.from_config(self.config)
        self.credentials_provider = credentials_provider

    def _load_cached(self, warnings: list[str]) -> Session | None:
        if self.store is None:
            return None
        try:
            return self.store.load()
        except StoreError as e:
            warnings.append(f"ignoring saved session: {e}")
            logger.warning("Ignoring saved session: %s", e)
            return None

    async def _acquire_session(
        self,
        mode: LoginMode,
        credentials: Credentials | None,
        warnings: list[str],
    ) -> tuple[Session | None, bool]:
        if mode is LoginMode.NO_LOGIN:
            return None, False

        if mode is LoginMode.LOGGED_IN_CACHED:
            cached = self._load_cached(warnings)
            if cached is not None:
                logger.info("Using saved session issued at %s", cached.issued_at)
                return cached, False

        if credentials is None and self.credentials_provider is not None:
            credentials = await asyncio.to_thread(self.credentials_provider)
        if credentials is None:
            raise SessionUnavailableError(
                "No saved session and no credentials available; log in first"
            )

        try:
            session = await asyncio.to_thread(
                self.retry.call, self.scraper.login, credentials
            )
        except InvalidCredentialsError as e:
            raise FatalAuthError(f"Credentials rejected: {e}", cause=e) from e
        except AuthError as e:
            raise FatalAuthError(f"Login failed: {e}", cause=e) from e
        return session, True

    async def _scrape_task(
        self,
        task: TaskRef,
        session: Session | None,
        sem: asyncio.Semaphore,
        cancel: asyncio.Event | None,
    ) -> tuple[TaskBundle, bool]:
        async with sem:
            if cancel is not None and cancel.is_set():
                return TaskBundle(task=task, warnings=["cancelled before fetch"]), True

            try:
                html = await asyncio.to_thread(
                    self.retry.call, self.scraper.fetch_task_page, task, session
                )
            except FetchError as e:
                logger.warning("Task %s: fetch failed: %s", task.label, e)
                return TaskBundle(task=task, warnings=[f"fetch failed: {e}"]), False

            try:
                extraction = await asyncio.to_thread(
                    extract_samples, html, self.config.language
                )
            except Exception as e:
                logger.exception("Task %s: sample extraction failed", task.label)
                return (
                    TaskBundle(task=task, warnings=[f"extraction failed: {e}"]),
                    False,
                )

        warnings = list(extraction.warnings)
        if not extraction.samples:
            warnings.append("no samples found")
        return (
            TaskBundle(task=task, samples=extraction.samples, warnings=warnings),
            False,
        )

    async def scrape(
        self,
        contest_id: str,
        mode: LoginMode,
        credentials: Credentials | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ScrapeResult:
        cid = parse_contest_id(contest_id)
        warnings: list[str] = []

        session, fresh = await self._acquire_session(mode, credentials, warnings)

        try:
            tasks = await asyncio.to_thread(
                self.retry.call, self.scraper.list_tasks, cid, session
            )
        except FetchError as e:
            used_cached = session is not None and not fresh
            raise FatalFetchError(
                _fetch_failure_message(e, cid, used_cached), cause=e
            ) from e
        if not tasks:
            raise FatalFetchError(f"No tasks found for contest {cid}")

        sem = asyncio.Semaphore(self.config.max_concurrency)
        results = await asyncio.gather(
            *(self._scrape_task(t, session, sem, cancel) for t in tasks)
        )
        bundles = [b for b, _ in results]
        cancelled = any(c for _, c in results)

        for b in bundles:
            warnings.extend(f"{b.task.label}: {w}" for w in b.warnings)

        if fresh and session is not None and self.store is not None:
            try:
                self.store.save(session)
            except StoreError as e:
                warnings.append(f"could not save session: {e}")
                logger.warning("Could not save session: %s", e)

        return ScrapeResult(
            success=True,
            error="",
            bundle=ContestBundle(contest_id=cid, tasks=bundles),
            warnings=warnings,
            cancelled=cancelled,
        )

    def _create_scrape_error(self, error_msg: str) -> ScrapeResult:
        return ScrapeResult(
            success=False,
            error=f"{self.scraper.platform_name}: {error_msg}",
        )

    async def run(
        self,
        contest_id: str,
        mode: LoginMode,
        credentials: Credentials | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ScrapeResult:
        try:
            return await self.scrape(contest_id, mode, credentials, cancel)
        except ScrapeError as e:
            return self._create_scrape_error(str(e))
        except ValueError as e:
            return self._create_scrape_error(str(e))


MODES = {
    "tests": LoginMode.NO_LOGIN,
    "login": LoginMode.LOGGED_IN,
    "cached": LoginMode.LOGGED_IN_CACHED,
}
USAGE = (
    "Usage: orchestrator.py tests <contest_id> OR orchestrator.py login <contest_id> "
    "OR orchestrator.py cached <contest_id> OR orchestrator.py logout"
)


def env_credentials() -> Credentials | None:
    username = os.environ.get("ATCODER_USERNAME")
    password = os.environ.get("ATCODER_PASSWORD")
    if username and password:
        return Credentials(username=username, password=password)
    return None


def prompt_credentials() -> Credentials | None:
    creds = env_credentials()
    if creds is not None:
        return creds
    if not sys.stdin.isatty():
        return None
    sys.stderr.write("AtCoder username: ")
    sys.stderr.flush()
    username = sys.stdin.readline().strip()
    if not username:
        return None
    password = getpass.getpass("AtCoder password: ", stream=sys.stderr)
    return Credentials(username=username, password=password)


def _usage_error(error: str) -> int:
    print(ScrapeResult(success=False, error=error).model_dump_json())
    return 1


async def main_async() -> int:
    if len(sys.argv) < 2:
        return _usage_error(USAGE)

    mode: str = sys.argv[1]
    store = SessionStore()

    if mode == "logout":
        if len(sys.argv) != 2:
            return _usage_error("Usage: orchestrator.py logout")
        try:
            removed = store.clear()
        except StoreError as e:
            return _usage_error(f"atcoder: {e}")
        logger.info("Session %s", "removed" if removed else "was not saved")
        print(ScrapeResult(success=True, error="").model_dump_json())
        return 0

    if mode not in MODES:
        return _usage_error(f"Unknown mode: {mode}. {USAGE}")
    if len(sys.argv) != 3:
        return _usage_error(f"Usage: orchestrator.py {mode} <contest_id>")

    orchestrator = Orchestrator(
        AtcoderScraper(),
        store,
        credentials_provider=prompt_credentials,
    )
    result = await orchestrator.run(sys.argv[2], MODES[mode])
    print(result.model_dump_json())
    return 0 if result.success else 1


def main() -> None:
    logging.basicConfig(
        level=os.environ.get("ATSCRAPE_LOG_LEVEL", "WARNING").upper(),
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
