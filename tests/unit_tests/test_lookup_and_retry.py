import pytest
from botocore.exceptions import EndpointConnectionError

from alb_deploy.aws.lookup import (
    Absent, Ambiguous, ExactlyOne, Found, NotFound, TransportFailure,
    match_unique, require_one, try_find, unwrap,
)
from alb_deploy.errors import AmbiguousMatchError, NotFoundError, RemoteLookupError
from alb_deploy.utils.decorators import RetryPolicy, retry_call
from tests.fixtures.fake_aws import client_error


def raise_(error):
    raise error


def test_try_find_found():
    assert try_find(lambda: {"a": 1}, {"ResourceNotFoundException"}) == Found({"a": 1})


def test_try_find_absent():
    error = client_error("ResourceNotFoundException", "gone", "GetPolicy")
    assert isinstance(try_find(lambda: raise_(error), {"ResourceNotFoundException"}), Absent)


def test_try_find_other_client_error_is_transport_failure():
    error = client_error("AccessDeniedException", "denied", "GetPolicy")
    lookup = try_find(lambda: raise_(error), {"ResourceNotFoundException"})
    assert isinstance(lookup, TransportFailure)
    assert lookup.error is error


def test_try_find_connection_error_is_transport_failure():
    error = EndpointConnectionError(endpoint_url="https://lambda.us-east-1.amazonaws.com")
    assert isinstance(try_find(lambda: raise_(error), {"ResourceNotFoundException"}), TransportFailure)


def test_unwrap():
    assert unwrap(Found(3), "thing") == 3
    assert unwrap(Absent(), "thing") is None
    with pytest.raises(RemoteLookupError):
        unwrap(TransportFailure(RuntimeError("boom")), "thing")


def test_match_unique_variants():
    assert isinstance(match_unique([], "rule"), NotFound)
    assert match_unique(["a"], "rule") == ExactlyOne("a")
    match = match_unique(["a", "b"], "rule")
    assert isinstance(match, Ambiguous)
    assert match.values == ["a", "b"]


def test_require_one():
    assert require_one(ExactlyOne("a")) == "a"
    with pytest.raises(NotFoundError):
        require_one(NotFound("rule"))
    with pytest.raises(AmbiguousMatchError):
        require_one(Ambiguous("rule", ["a", "b"]))


def test_retry_policy_delays_are_capped():
    policy = RetryPolicy(max_attempts=5, delay=1.0, backoff=3.0, max_delay=4.0)
    assert list(policy.delays()) == [1.0, 3.0, 4.0, 4.0]


def test_retry_call_succeeds_after_failures():
    attempts = []
    sleeps = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ValueError("not yet")
        return "ok"

    result = retry_call(flaky, RetryPolicy(max_attempts=5, delay=0.5, backoff=2.0, max_delay=10.0),
                        exceptions=(ValueError,), sleep=sleeps.append)
    assert result == "ok"
    assert sleeps == [0.5, 1.0]


def test_retry_call_gives_up_after_budget():
    sleeps = []

    def always_fails():
        raise ValueError("never")

    with pytest.raises(ValueError):
        retry_call(always_fails, RetryPolicy(max_attempts=3, delay=1.0, backoff=1.0, max_delay=1.0),
                   exceptions=(ValueError,), sleep=sleeps.append)
    assert sleeps == [1.0, 1.0]


def test_retry_call_does_not_retry_other_errors():
    sleeps = []
    with pytest.raises(KeyError):
        retry_call(lambda: raise_(KeyError("x")), RetryPolicy(), exceptions=(ValueError,), sleep=sleeps.append)
    assert sleeps == []
