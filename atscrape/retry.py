import logging
from typing import Callable, ParamSpec, TypeVar

import backoff

from .errors import NetworkError
from .models import ScraperConfig

P = ParamSpec("P")
T = TypeVar("T")

logger = logging.getLogger(__name__)


def _target_name(details) -> str:
    target = details["target"]
    return getattr(target, "__name__", repr(target))


def _log_backoff(details) -> None:
    logger.warning(
        "%s failed (attempt %d), retrying in %.1fs: %s",
        _target_name(details),
        details["tries"],
        details["wait"],
        details.get("exception"),
    )


def _log_giveup(details) -> None:
    logger.error(
        "%s gave up after %d attempts: %s",
        _target_name(details),
        details["tries"],
        details.get("exception"),
    )


class RetryPolicy:
    """Bounded exponential backoff over network-class errors only."""

    def __init__(
        self,
        max_tries: int = 3,
        base: float = 2.0,
        factor: float = 1.0,
        max_value: float | None = 30.0,
        jitter: bool = True,
    ):
        if max_tries < 1:
            raise ValueError("max_tries must be >= 1")
        self.max_tries = max_tries
        self.base = base
        self.factor = factor
        self.max_value = max_value
        self.jitter = jitter

    @classmethod
    def from_config(cls, config: ScraperConfig) -> "RetryPolicy":
        return cls(
            max_tries=config.max_tries,
            base=config.backoff_base,
            factor=config.backoff_factor,
            max_value=config.backoff_max_seconds,
            jitter=config.jitter,
        )

    def wrap(self, func: Callable[P, T]) -> Callable[P, T]:
        return backoff.on_exception(
            backoff.expo,
            NetworkError,
            max_tries=self.max_tries,
            base=self.base,
            factor=self.factor,
            max_value=self.max_value,
            jitter=backoff.full_jitter if self.jitter else None,
            on_backoff=_log_backoff,
            on_giveup=_log_giveup,
            logger=None,
            raise_on_giveup=True,
        )(func)

    def call(self, func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
        return self.wrap(func)(*args, **kwargs)
