from typing import List

from pydantic import BaseModel, Field, StrictInt


class MovieToSave(BaseModel):
    """Request model for creating a movie."""

    name: str = Field(..., min_length=1, max_length=255)
    director: str = Field(..., min_length=1, max_length=255)
    gender: str = Field(..., min_length=1, max_length=64)
    actors: List[str] = Field(default_factory=list)


class VoteToSave(BaseModel):
    """Request model for voting on a movie; range is checked by the aggregator."""

    value: StrictInt
