import functools
import logging
from unittest.mock import Mock

import pytest

from atscrape.errors import (
    AuthNetworkError,
    FetchNetworkError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
)
from atscrape.models import ScraperConfig
from atscrape.retry import RetryPolicy


@pytest.fixture
def policy():
    return RetryPolicy(max_tries=3, factor=0.0, jitter=False)


@pytest.mark.parametrize("max_tries", [1, 3, 5])
def test_always_failing_network_stops_at_bound(max_tries):
    func = Mock(side_effect=FetchNetworkError("down"))
    policy = RetryPolicy(max_tries=max_tries, factor=0.0, jitter=False)

    with pytest.raises(FetchNetworkError):
        policy.call(func, "x")

    assert func.call_count == max_tries


def test_recovers_after_transient_failure(policy):
    func = Mock(side_effect=[AuthNetworkError("reset"), "ok"])

    assert policy.call(func) == "ok"
    assert func.call_count == 2


@pytest.mark.parametrize(
    "error",
    [NotFoundError("gone"), ForbiddenError("no"), InvalidCredentialsError("bad")],
)
def test_non_network_errors_are_not_retried(policy, error):
    func = Mock(side_effect=error)

    with pytest.raises(type(error)):
        policy.call(func)

    assert func.call_count == 1


def test_backoff_schedule_is_exponential(mocker):
    sleep = mocker.patch("time.sleep")
    func = Mock(side_effect=FetchNetworkError("down"))
    policy = RetryPolicy(max_tries=4, base=2.0, factor=1.0, max_value=None, jitter=False)

    with pytest.raises(FetchNetworkError):
        policy.call(func)

    assert [c.args[0] for c in sleep.call_args_list] == [1, 2, 4]


def test_from_config():
    policy = RetryPolicy.from_config(ScraperConfig(max_tries=5, backoff_base=3.0))

    assert policy.max_tries == 5
    assert policy.base == 3.0


def test_rejects_zero_tries():
    with pytest.raises(ValueError):
        RetryPolicy(max_tries=0)


def test_retries_callables_without_name(policy):
    target = Mock(side_effect=[FetchNetworkError("reset"), FetchNetworkError("reset"), "ok"])
    wrapped = functools.partial(target, "abc001")

    assert policy.call(wrapped) == "ok"
    assert target.call_count == 3


def test_each_retry_logged_once(policy, caplog):
    func = Mock(side_effect=[FetchNetworkError("reset"), "ok"])

    with caplog.at_level(logging.DEBUG):
        policy.call(func)

    retry_records = [r for r in caplog.records if "retrying" in r.getMessage()]
    assert len(retry_records) == 1
    assert retry_records[0].name == "atscrape.retry"
    assert not [r for r in caplog.records if r.name == "backoff"]
