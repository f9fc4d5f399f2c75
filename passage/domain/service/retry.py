"""Bounded retry policies.

Conflict resolution in this package (bridge secret fallbacks, handle
suffixing) is expressed as a policy with a fixed number of attempts and a
deterministic function producing the candidate for each attempt. Iterating a
policy can never run longer than `max_attempts`.
"""

from dataclasses import dataclass
from typing import Callable, Generic, Iterator, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy(Generic[T]):
    """Bounded sequence of candidates.

    Attributes:
        max_attempts: Upper bound on candidates produced
        next_candidate: Maps the zero-based attempt number to a candidate
    """

    max_attempts: int
    next_candidate: Callable[[int], T]

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")

    def __iter__(self) -> Iterator[T]:
        for attempt in range(self.max_attempts):
            yield self.next_candidate(attempt)

    @classmethod
    def over(cls, candidates: Sequence[T]) -> "RetryPolicy[T]":
        """Policy that walks a fixed sequence in order."""
        items = tuple(candidates)
        return cls(max_attempts=len(items), next_candidate=items.__getitem__)
