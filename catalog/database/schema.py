"""
Table layout shared by every SQL backend.

Types are kept to the portable subset both sqlite3 and Snowflake accept.
Snowflake records but does not enforce PRIMARY KEY / UNIQUE, so one-vote-per-
voter there rests on the transactional upsert in ``catalog.repository.sql``.
"""

from typing import Any, List

DDL: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS movies (
        id         VARCHAR(36)  NOT NULL PRIMARY KEY,
        name       VARCHAR(255) NOT NULL UNIQUE,
        director   VARCHAR(255) NOT NULL,
        gender     VARCHAR(64)  NOT NULL,
        created_at TIMESTAMP    NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movie_actors (
        movie_id VARCHAR(36)  NOT NULL,
        position INTEGER      NOT NULL,
        actor    VARCHAR(255) NOT NULL,
        PRIMARY KEY (movie_id, position)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movie_votes (
        movie_id   VARCHAR(36)  NOT NULL,
        voter_id   VARCHAR(255) NOT NULL,
        value      INTEGER      NOT NULL,
        updated_at TIMESTAMP    NOT NULL,
        PRIMARY KEY (movie_id, voter_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movie_vote_aggregates (
        movie_id   VARCHAR(36) NOT NULL PRIMARY KEY,
        vote_count INTEGER     NOT NULL,
        vote_sum   INTEGER     NOT NULL
    )
    """,
]


def create_schema(conn: Any) -> None:
    """Run every DDL statement on a DB-API connection and commit."""
    cur = conn.cursor()
    try:
        for stmt in DDL:
            cur.execute(stmt)
        conn.commit()
    finally:
        cur.close()
