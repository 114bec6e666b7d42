from __future__ import annotations
from dotenv import load_dotenv

load_dotenv()

import logging
import sqlite3
from typing import Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import require_auth, require_roles_access
from .database import snowflake_connect_for, snowflake_integrity_errors, sqlite_connect_for
from .errors import CatalogError
from .movies.schemas import MovieToSave, VoteToSave
from .movies.service import MovieService
from .registry import EntityConfig, Registry
from .repository import InMemoryMovieRepository, Repository, SqlMovieRepository
from .settings import Settings, get_settings

log = logging.getLogger("catalog")


def _build_repository(settings: Settings, entity: EntityConfig) -> Repository:
    if settings.backend == "memory":
        return InMemoryMovieRepository(entity)
    if settings.backend == "sqlite":
        return SqlMovieRepository(
            entity,
            sqlite_connect_for(settings.sqlite_path),
            paramstyle="qmark",
            integrity_errors=(sqlite3.IntegrityError,),
        )
    if settings.backend == "snowflake":
        return SqlMovieRepository(
            entity,
            snowflake_connect_for(),
            paramstyle="pyformat",
            use_ilike=True,
            integrity_errors=snowflake_integrity_errors(),
        )
    raise RuntimeError(f"Unknown CATALOG_BACKEND: {settings.backend}")


def _raw_query(request: Request) -> dict[str, list[str]]:
    qp = request.query_params
    return {k: qp.getlist(k) for k in qp.keys()}


def get_service(request: Request) -> MovieService:
    return request.app.state.service


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[Repository] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    registry = Registry(
        settings.fields_file,
        global_max_page_size=settings.global_max_page_size,
        default_page_size=settings.default_page_size,
    )
    registry.load()
    entity = registry.ensure_entity(settings.entity)
    repository = repository or _build_repository(settings, entity)

    app = FastAPI(title="Movie Catalog Service", version="1.0.0")
    app.state.settings = settings
    app.state.registry = registry
    app.state.service = MovieService(repository, entity)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    @app.exception_handler(CatalogError)
    async def _catalog_error(request: Request, exc: CatalogError):
        if exc.status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            log.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.get("/healthz")
    def health():
        return {"ok": True, "backend": settings.backend, "entity": entity.name}

    @app.get("/me")
    def me(claims=Depends(require_auth)):
        return {
            "sub": claims["sub"],
            "email": claims.get("email"),
            "roles": claims.get("roles", []),
        }

    @app.get("/movies")
    async def list_movies(request: Request, service: MovieService = Depends(get_service)):
        """
        List movies.
        Filter with `field__operator=value`, e.g.
        GET /movies?name__contains=avenger&actors__in=robert,chris&gender=action&page=3&limit=10
        Reserved keys: page, limit, order (`-field` for descending).
        """
        result = await service.list(_raw_query(request))
        return result.to_dict()

    @app.get("/movies/{uuid}")
    async def get_movie(uuid: str, service: MovieService = Depends(get_service)):
        movie = await service.get(uuid)
        return movie.to_dict()

    @app.post("/movies", dependencies=[Depends(require_roles_access(["admin"]))])
    async def create_movie(
        movie: MovieToSave = Body(..., description="Movie payload"),
        service: MovieService = Depends(get_service),
    ):
        created = await service.create(movie)
        return created.to_dict()

    @app.put("/movies/{uuid}/votes")
    async def vote(
        uuid: str,
        vote: VoteToSave = Body(..., description="Vote payload"),
        claims: dict = Depends(require_roles_access(["user"])),
        service: MovieService = Depends(get_service),
    ):
        aggregate = await service.vote(uuid, claims["sub"], vote.value)
        return aggregate.to_dict()

    @app.get("/movies/{uuid}/votes")
    async def get_votes(uuid: str, service: MovieService = Depends(get_service)):
        aggregate = await service.votes_for(uuid)
        return aggregate.to_dict()

    log.info("catalog ready backend=%s entity=%s", settings.backend, entity.name)
    return app


app = create_app()
