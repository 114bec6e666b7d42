from __future__ import annotations
import datetime as dt
import logging
from contextlib import closing, contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from fastapi.concurrency import run_in_threadpool

from ..errors import ConflictError, NotFoundError
from ..filters.models import FilterExpression, Pagination
from ..movies.models import Movie
from ..query.builder import _ParamSink, _quote_identifier, build_select
from ..registry import EntityConfig
from ..votes.models import VoteAggregate, vote_delta

log = logging.getLogger("catalog.sql")

MOVIE_COLUMNS = ("id", "name", "director", "gender", "created_at")
TIEBREAK = ("created_at", "id")


def _parse_ts(value: Any) -> dt.datetime:
    if isinstance(value, str):
        value = dt.datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value


class SqlMovieRepository:
    """
    DB-API backed repository. Blocking driver calls run in the threadpool;
    every write is one explicit transaction on a fresh connection.
    """

    def __init__(
        self,
        entity: EntityConfig,
        connect: Callable[[], Any],
        *,
        paramstyle: str = "qmark",
        use_ilike: bool = False,
        integrity_errors: Tuple[type, ...] = (),
    ):
        self.entity = entity
        self.connect = connect
        self.paramstyle = paramstyle
        self.use_ilike = use_ilike
        self.integrity_errors = integrity_errors

    # ---- connection helpers -------------------------------------------------

    def _sink(self) -> _ParamSink:
        return _ParamSink(self.paramstyle)

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        conn = self.connect()
        try:
            with closing(conn.cursor()) as cur:
                yield cur
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[Any]:
        conn = self.connect()
        try:
            with closing(conn.cursor()) as cur:
                cur.execute("BEGIN")
                try:
                    yield cur
                except BaseException:
                    conn.rollback()
                    raise
                conn.commit()
        finally:
            conn.close()

    def _movie_exists(self, cur: Any, movie_id: str) -> bool:
        s = self._sink()
        cur.execute(f"SELECT 1 FROM {self._table} WHERE id = {s.add(movie_id)}", s.bundle())
        return cur.fetchone() is not None

    @property
    def _table(self) -> str:
        return _quote_identifier(self.entity.table, quote_identifiers=False)

    # ---- hydration ----------------------------------------------------------

    def _in_list(self, s: _ParamSink, ids: Sequence[str]) -> str:
        return ", ".join(s.add(i) for i in ids)

    def _hydrate(self, cur: Any, rows: Sequence[Sequence[Any]]) -> List[Movie]:
        movies = [
            Movie(id=r[0], name=r[1], director=r[2], gender=r[3], created_at=_parse_ts(r[4]))
            for r in rows
        ]
        if not movies:
            return movies
        by_id = {m.id: m for m in movies}
        ids = list(by_id)

        s = self._sink()
        cur.execute(
            f"SELECT movie_id, actor FROM movie_actors WHERE movie_id IN ({self._in_list(s, ids)}) "
            "ORDER BY movie_id, position",
            s.bundle(),
        )
        for movie_id, actor in cur.fetchall():
            by_id[movie_id].actors.append(actor)

        for movie_id, aggregate in self._read_aggregates(cur, ids).items():
            by_id[movie_id].votes = aggregate
        return movies

    def _read_aggregates(self, cur: Any, ids: Sequence[str]) -> Dict[str, VoteAggregate]:
        s = self._sink()
        cur.execute(
            "SELECT movie_id, vote_count, vote_sum FROM movie_vote_aggregates "
            f"WHERE movie_id IN ({self._in_list(s, ids)})",
            s.bundle(),
        )
        totals = {row[0]: (int(row[1]), int(row[2])) for row in cur.fetchall()}
        if not totals:
            return {}

        s = self._sink()
        cur.execute(
            "SELECT movie_id, value, COUNT(*) FROM movie_votes "
            f"WHERE movie_id IN ({self._in_list(s, list(totals))}) GROUP BY movie_id, value",
            s.bundle(),
        )
        dists: Dict[str, Dict[int, int]] = {}
        for movie_id, value, n in cur.fetchall():
            dists.setdefault(movie_id, {})[int(value)] = int(n)

        return {
            movie_id: VoteAggregate(count=count, sum=total, distribution=dists.get(movie_id, {}))
            for movie_id, (count, total) in totals.items()
        }

    # ---- reads --------------------------------------------------------------

    def _query(self, predicates: Sequence[FilterExpression], pagination: Pagination) -> List[Movie]:
        res = build_select(
            self.entity,
            predicates,
            pagination,
            columns=MOVIE_COLUMNS,
            paramstyle=self.paramstyle,
            use_ilike=self.use_ilike,
            tiebreak=TIEBREAK,
        )
        log.debug("query: %s %s", res.sql, res.params)
        with self._cursor() as cur:
            cur.execute(res.sql, res.params)
            return self._hydrate(cur, cur.fetchall())

    def _count(self, predicates: Sequence[FilterExpression]) -> int:
        res = build_select(
            self.entity,
            predicates,
            paramstyle=self.paramstyle,
            use_ilike=self.use_ilike,
            include_count=True,
        )
        with self._cursor() as cur:
            cur.execute(res.count_sql, res.count_params)
            return int(cur.fetchone()[0])

    def _get(self, movie_id: str) -> Optional[Movie]:
        s = self._sink()
        cols = ", ".join(MOVIE_COLUMNS)
        with self._cursor() as cur:
            cur.execute(f"SELECT {cols} FROM {self._table} WHERE id = {s.add(movie_id)}", s.bundle())
            movies = self._hydrate(cur, cur.fetchall())
        return movies[0] if movies else None

    def _exists(self, criteria: Mapping[str, str]) -> bool:
        s = self._sink()
        clauses = []
        for name, value in criteria.items():
            if name not in MOVIE_COLUMNS:
                raise ValueError(f"Unknown movie column: {name}")
            clauses.append(f"{name} = {s.add(value)}")
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._cursor() as cur:
            cur.execute(f"SELECT 1 FROM {self._table}{where} LIMIT 1", s.bundle())
            return cur.fetchone() is not None

    def _get_vote_aggregate(self, movie_id: str) -> Optional[VoteAggregate]:
        with self._cursor() as cur:
            if not self._movie_exists(cur, movie_id):
                raise NotFoundError(f"Movie not found with uuid: {movie_id}")
            return self._read_aggregates(cur, [movie_id]).get(movie_id)

    # ---- writes -------------------------------------------------------------

    def _save(self, movie: Movie) -> Movie:
        try:
            with self._transaction() as cur:
                s = self._sink()
                values = ", ".join(
                    s.add(v) for v in (movie.id, movie.name, movie.director, movie.gender, movie.created_at.isoformat())
                )
                cur.execute(
                    f"INSERT INTO {self._table} ({', '.join(MOVIE_COLUMNS)}) VALUES ({values})",
                    s.bundle(),
                )
                for position, actor in enumerate(movie.actors):
                    s = self._sink()
                    cur.execute(
                        "INSERT INTO movie_actors (movie_id, position, actor) "
                        f"VALUES ({s.add(movie.id)}, {s.add(position)}, {s.add(actor)})",
                        s.bundle(),
                    )
        except self.integrity_errors as e:
            log.warning("insert rejected for %s: %s", movie.name, e)
            raise ConflictError(f"Movie already exists with name: {movie.name}") from e
        return movie

    def _upsert_vote(self, movie_id: str, voter_id: str, value: int) -> VoteAggregate:
        now = dt.datetime.now(dt.timezone.utc).isoformat()
        try:
            with self._transaction() as cur:
                if not self._movie_exists(cur, movie_id):
                    raise NotFoundError(f"Movie not found with uuid: {movie_id}")

                s = self._sink()
                cur.execute(
                    "SELECT value FROM movie_votes "
                    f"WHERE movie_id = {s.add(movie_id)} AND voter_id = {s.add(voter_id)}",
                    s.bundle(),
                )
                row = cur.fetchone()
                previous = int(row[0]) if row else None

                if previous != value:
                    d_count, d_sum = vote_delta(previous, value)
                    s = self._sink()
                    if previous is None:
                        cur.execute(
                            "INSERT INTO movie_votes (movie_id, voter_id, value, updated_at) "
                            f"VALUES ({s.add(movie_id)}, {s.add(voter_id)}, {s.add(value)}, {s.add(now)})",
                            s.bundle(),
                        )
                        s = self._sink()
                        cur.execute(
                            "INSERT INTO movie_vote_aggregates (movie_id, vote_count, vote_sum) "
                            f"SELECT {s.add(movie_id)}, 0, 0 WHERE NOT EXISTS "
                            f"(SELECT 1 FROM movie_vote_aggregates WHERE movie_id = {s.add(movie_id)})",
                            s.bundle(),
                        )
                    else:
                        cur.execute(
                            f"UPDATE movie_votes SET value = {s.add(value)}, updated_at = {s.add(now)} "
                            f"WHERE movie_id = {s.add(movie_id)} AND voter_id = {s.add(voter_id)} "
                            f"AND value = {s.add(previous)}",
                            s.bundle(),
                        )
                        if cur.rowcount != 1:
                            raise ConflictError(f"Vote for {movie_id} changed concurrently")

                    s = self._sink()
                    cur.execute(
                        "UPDATE movie_vote_aggregates "
                        f"SET vote_count = vote_count + {s.add(d_count)}, vote_sum = vote_sum + {s.add(d_sum)} "
                        f"WHERE movie_id = {s.add(movie_id)}",
                        s.bundle(),
                    )

                return self._read_aggregates(cur, [movie_id])[movie_id]
        except self.integrity_errors as e:
            log.warning("vote rejected for %s/%s: %s", movie_id, voter_id, e)
            raise ConflictError(f"Vote for {movie_id} changed concurrently") from e

    # ---- Repository protocol ------------------------------------------------

    async def query(self, predicates: Sequence[FilterExpression], pagination: Pagination) -> List[Movie]:
        return await run_in_threadpool(self._query, predicates, pagination)

    async def count(self, predicates: Sequence[FilterExpression]) -> int:
        return await run_in_threadpool(self._count, predicates)

    async def get(self, movie_id: str) -> Optional[Movie]:
        return await run_in_threadpool(self._get, movie_id)

    async def exists(self, criteria: Mapping[str, str]) -> bool:
        return await run_in_threadpool(self._exists, criteria)

    async def save(self, movie: Movie) -> Movie:
        return await run_in_threadpool(self._save, movie)

    async def get_vote_aggregate(self, movie_id: str) -> Optional[VoteAggregate]:
        return await run_in_threadpool(self._get_vote_aggregate, movie_id)

    async def upsert_vote_atomic(self, movie_id: str, voter_id: str, value: int) -> VoteAggregate:
        return await run_in_threadpool(self._upsert_vote, movie_id, voter_id, value)
