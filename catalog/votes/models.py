from __future__ import annotations
import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class VoteRecord:
    movie_id: str
    voter_id: str
    value: int
    updated_at: dt.datetime = field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))


def vote_delta(previous: Optional[int], value: int) -> Tuple[int, int]:
    """
    (count delta, sum delta) for moving a voter from `previous` to `value`.
    A new voter adds one to the count; a revision only shifts the sum.
    """
    if previous is None:
        return 1, value
    return 0, value - previous


@dataclass(frozen=True)
class VoteAggregate:
    """
    Running tally for one movie. `distribution` maps vote value -> voters
    currently holding it, so it always sums to `count`.
    """
    count: int = 0
    sum: int = 0
    distribution: Dict[int, int] = field(default_factory=dict)

    @property
    def average(self) -> Optional[float]:
        if self.count == 0:
            return None
        return self.sum / self.count

    def apply(self, previous: Optional[int], value: int) -> "VoteAggregate":
        if previous == value:
            return self
        d_count, d_sum = vote_delta(previous, value)
        dist = dict(self.distribution)
        if previous is not None:
            dist[previous] -= 1
            if not dist[previous]:
                del dist[previous]
        dist[value] = dist.get(value, 0) + 1
        return VoteAggregate(count=self.count + d_count, sum=self.sum + d_sum, distribution=dist)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "sum": self.sum,
            "average": self.average,
            "distribution": {str(k): v for k, v in sorted(self.distribution.items())},
        }
