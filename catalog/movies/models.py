from __future__ import annotations
import datetime as dt
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..votes.models import VoteAggregate


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class Movie:
    id: str
    name: str
    director: str
    gender: str
    actors: List[str] = field(default_factory=list)
    created_at: dt.datetime = field(default_factory=_now)
    votes: Optional[VoteAggregate] = None

    @classmethod
    def new(cls, name: str, director: str, gender: str, actors: List[str]) -> "Movie":
        return cls(id=str(uuid.uuid4()), name=name, director=director, gender=gender, actors=list(actors))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "director": self.director,
            "gender": self.gender,
            "actors": list(self.actors),
            "createdAt": self.created_at.isoformat(),
            "votes": (self.votes or VoteAggregate()).to_dict(),
        }
