"""HTTP API for creating, finding, searching and counting people."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Union

import anyio
from fastapi import FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse

from .cache import LocalCache
from .config import Settings, load_settings
from .database import Database
from .errors import InvalidPerson, NicknameConflict, PersonNotFound, StoreError
from .notifier import ChangeSubscriber
from .registry import PeopleRegistry
from .schemas import dump_person, parse_new_person

logger = logging.getLogger("people.service")

# Validation failures and nickname conflicts share this status.
_UNPROCESSABLE = 422


def _store_unavailable(exc: StoreError) -> HTTPException:
    logger.error("Record store request failed: %s", exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Record store unavailable",
    )


def register_routes(app: FastAPI, registry: PeopleRegistry, subscriber: ChangeSubscriber) -> None:
    """Expose the people endpoints on the provided FastAPI application."""

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, Union[str, int]]:
        return {
            "status": "ok",
            "subscription": "running" if subscriber.running else "stopped",
            "cached_people": len(registry.cache),
        }

    @app.post("/pessoas", status_code=status.HTTP_201_CREATED)
    async def create_person(request: Request) -> Response:
        try:
            payload = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed JSON body") from exc

        try:
            new_person = parse_new_person(payload)
        except InvalidPerson as exc:
            raise HTTPException(status_code=_UNPROCESSABLE, detail=str(exc)) from exc

        try:
            person_id = await anyio.to_thread.run_sync(registry.create, new_person)
        except NicknameConflict as exc:
            raise HTTPException(status_code=_UNPROCESSABLE, detail=str(exc)) from exc
        except StoreError as exc:
            raise _store_unavailable(exc) from exc

        return Response(
            status_code=status.HTTP_201_CREATED,
            headers={"Location": f"/pessoas/{person_id}"},
        )

    @app.get("/pessoas/{person_id}")
    async def find_person(person_id: str) -> JSONResponse:
        try:
            parsed_id = uuid.UUID(person_id)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Person not found")

        try:
            person = await anyio.to_thread.run_sync(registry.find, parsed_id)
        except PersonNotFound:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Person not found")
        except StoreError as exc:
            raise _store_unavailable(exc) from exc
        return JSONResponse(dump_person(person))

    @app.get("/pessoas")
    async def search_people(t: Optional[str] = Query(default=None)) -> List[dict]:
        if t is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The 't' query parameter is required",
            )
        try:
            people = await anyio.to_thread.run_sync(registry.search, t)
        except StoreError as exc:
            raise _store_unavailable(exc) from exc
        return [dump_person(person) for person in people]

    @app.get("/contagem-pessoas")
    async def count_people() -> int:
        try:
            return await anyio.to_thread.run_sync(registry.count)
        except StoreError as exc:
            raise _store_unavailable(exc) from exc


def create_app(
    *,
    settings: Settings | None = None,
    database: Database | None = None,
    cache: LocalCache | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for one service instance.

    The change subscription is started when the application starts up and
    stopped on shutdown.
    """

    config = settings or load_settings()
    db = database if database is not None else Database(
        config.database_path,
        pool_size=config.pool_size,
        channel=config.channel,
        timeout=config.query_timeout,
    )
    db.initialize()

    local_cache = cache if cache is not None else LocalCache()
    registry = PeopleRegistry(db, local_cache)
    subscriber = ChangeSubscriber(
        db,
        local_cache,
        channel=config.channel,
        poll_interval=config.poll_interval,
        backfill=config.backfill,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await anyio.to_thread.run_sync(subscriber.start)
        logger.info("People registry ready (store=%s, channel=%s)", db.path, config.channel)
        try:
            yield
        finally:
            await anyio.to_thread.run_sync(subscriber.stop)

    app = FastAPI(
        title="People Registry",
        version="0.1.0",
        description="Person records with a change-driven local read cache.",
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.database = db
    app.state.registry = registry
    app.state.subscriber = subscriber

    register_routes(app, registry, subscriber)
    return app


__all__ = ["create_app", "register_routes"]
