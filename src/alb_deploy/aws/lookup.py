"""Typed lookup results for remote resource reads.

``try_find`` separates "absent" from "the lookup itself failed", and
``match_unique`` makes callers handle zero, one and many matches.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, List, TypeVar, Union

from botocore.exceptions import BotoCoreError, ClientError

from alb_deploy.errors import AmbiguousMatchError, NotFoundError, RemoteLookupError

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True)
class Absent:
    pass


@dataclass(frozen=True)
class TransportFailure:
    error: Exception


LookupResult = Union[Found, Absent, TransportFailure]


@dataclass(frozen=True)
class NotFound:
    description: str


@dataclass(frozen=True)
class ExactlyOne(Generic[T]):
    value: T


@dataclass(frozen=True)
class Ambiguous(Generic[T]):
    description: str
    values: List[T] = field(default_factory=list)


Match = Union[NotFound, ExactlyOne, Ambiguous]


def error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


def try_find(call: Callable[[], T], not_found_codes: Iterable[str]) -> LookupResult:
    """Run a read call and classify the outcome.

    Args:
        call: Zero-argument read call
        not_found_codes: Error codes meaning the resource does not exist

    Returns:
        Found with the call result, Absent, or TransportFailure with the error
    """
    try:
        return Found(call())
    except ClientError as e:
        if error_code(e) in set(not_found_codes):
            return Absent()
        logger.warning(f"Lookup failed with {error_code(e)}: {e}")
        return TransportFailure(e)
    except BotoCoreError as e:
        logger.warning(f"Lookup failed: {e}")
        return TransportFailure(e)


def unwrap(lookup: LookupResult, description: str):
    """Return the found value, None when absent; raise on transport failure."""
    if isinstance(lookup, Found):
        return lookup.value
    if isinstance(lookup, Absent):
        return None
    raise RemoteLookupError(description, lookup.error)


def match_unique(items: Iterable[T], description: str) -> Match:
    values = list(items)
    if not values:
        return NotFound(description)
    if len(values) == 1:
        return ExactlyOne(values[0])
    return Ambiguous(description, values)


def require_one(match: Match):
    """Return the single matched value or raise for zero/many matches."""
    if isinstance(match, ExactlyOne):
        return match.value
    if isinstance(match, Ambiguous):
        raise AmbiguousMatchError(match.description, len(match.values))
    raise NotFoundError(f"No {match.description} found")
