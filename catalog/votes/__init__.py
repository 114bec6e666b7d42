"""
Vote aggregation for the movie catalog service.

This module provides the vote record/aggregate models; the concurrent write
path lives in ``catalog.votes.aggregator``.
"""

from .models import VoteRecord, VoteAggregate, vote_delta

__all__ = [
    "VoteRecord",
    "VoteAggregate",
    "vote_delta",
]
