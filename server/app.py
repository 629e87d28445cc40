"""FastAPI web server for the Loop Habits backend."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, BinaryIO, Iterator, Optional

from fastapi import Body, Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from habits.config import settings
from habits.db.database import Database
from habits.db.dump import build_database_from_dump
from habits.db.transfer import (
    DatabaseImporter,
    EmptyUploadError,
    SnapshotExporter,
    SnapshotFile,
    SnapshotUnsupportedError,
)
from habits.models.habit import Habit
from habits.services.habit_service import HabitNotFoundError, HabitService
from habits.services.repetition_service import RepetitionService

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "Loop_Export.db"
STREAM_CHUNK_SIZE = 64 * 1024


# Request/Response Models
class HabitPayload(BaseModel):
    """Habit JSON as sent by the web client (camelCase keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[int] = None
    archived: Optional[bool] = None
    color: Optional[int] = None
    description: Optional[str] = None
    freq_den: Optional[int] = None
    freq_num: Optional[int] = None
    highlight: Optional[bool] = None
    name: Optional[str] = None
    position: Optional[int] = None
    reminder_hour: Optional[int] = None
    reminder_min: Optional[int] = None
    reminder_days: int = 127
    type: int = 0
    target_type: int = 0
    target_value: float = 0.0
    unit: str = ""
    question: Optional[str] = None
    uuid: Optional[str] = None

    def to_habit(self, habit_id: Optional[int] = None) -> Habit:
        return Habit(id=habit_id, **self.model_dump(exclude={"id"}))


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=503, detail="Database not initialized")
    return db


def iter_file(fh: BinaryIO, chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
    """Stream ``fh`` in chunks and close it however the stream ends."""
    try:
        while True:
            chunk = fh.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        fh.close()


def _attachment(fh: BinaryIO) -> StreamingResponse:
    return StreamingResponse(
        iter_file(fh),
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_long(value: Any) -> int:
    """Lenient conversion for present values: anything unparseable counts as 0."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _parse_order(body: Any) -> Optional[list[int]]:
    """Accept ``[ids...]`` or ``{"order": [ids...]}``; non-numbers are dropped."""
    if isinstance(body, list):
        items = body
    elif isinstance(body, dict) and isinstance(body.get("order"), list):
        items = body["order"]
    else:
        return None
    return [
        int(n) for n in items
        if isinstance(n, (int, float)) and not isinstance(n, bool)
    ]


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the API.  ``database`` is used as-is when given (tests); otherwise
    the lifespan opens and initializes ``settings.DATABASE_PATH``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if database is not None:
            db = database
        else:
            db = Database(path=settings.DATABASE_PATH)
            db.init()
        app.state.db = db
        logger.info(f"Server started - DB: {db.path} (SQLite {sqlite3.sqlite_version})")
        yield

        logger.info("Server shutting down")
        if database is None:
            db.close()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Habit and repetition CRUD with live SQLite export/import",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOWED_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
        max_age=3600,
    )

    # -- error mapping ---------------------------------------------------------

    @app.exception_handler(EmptyUploadError)
    async def empty_upload_handler(request: Request, exc: EmptyUploadError):
        return PlainTextResponse(str(exc), status_code=400)

    @app.exception_handler(SnapshotUnsupportedError)
    async def snapshot_unsupported_handler(request: Request, exc: SnapshotUnsupportedError):
        logger.error(f"Export failed: {exc}")
        return PlainTextResponse(str(exc), status_code=500)

    @app.exception_handler(HabitNotFoundError)
    async def habit_not_found_handler(request: Request, exc: HabitNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unexpected error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # -- status ----------------------------------------------------------------

    @app.get("/api/status")
    async def get_status(request: Request):
        """Get system status."""
        return {
            "status": "ok",
            "timestamp": datetime.now().isoformat(),
            "sqlite_version": sqlite3.sqlite_version,
            "services": {
                "database": getattr(request.app.state, "db", None) is not None,
            },
        }

    # -- habits ----------------------------------------------------------------

    @app.get("/api/habits")
    def list_habits(db: Database = Depends(get_db)):
        return [h.to_dict() for h in HabitService(db).get_all()]

    @app.post("/api/habits")
    def create_habit(payload: HabitPayload, db: Database = Depends(get_db)):
        return HabitService(db).create(payload.to_habit()).to_dict()

    # Registered before /api/habits/{habit_id} so "reorder" is never parsed as an id
    @app.put("/api/habits/reorder")
    def reorder_habits(body: Any = Body(...), db: Database = Depends(get_db)):
        ids = _parse_order(body)
        if ids is None:
            return PlainTextResponse('Expected JSON array or {"order":[...]}', status_code=400)
        try:
            HabitService(db).reorder(ids)
        except ValueError as e:
            return PlainTextResponse(str(e), status_code=400)
        return PlainTextResponse("Reordered.")

    @app.get("/api/habits/{habit_id}")
    def get_habit(habit_id: int, db: Database = Depends(get_db)):
        habit = HabitService(db).get(habit_id)
        if habit is None:
            raise HTTPException(status_code=404, detail=f"Habit not found with id {habit_id}")
        return habit.to_dict()

    @app.put("/api/habits/{habit_id}")
    def update_habit(habit_id: int, payload: HabitPayload, db: Database = Depends(get_db)):
        return HabitService(db).update(habit_id, payload.to_habit(habit_id)).to_dict()

    @app.patch("/api/habits/{habit_id}")
    def patch_habit(
        habit_id: int,
        body: dict[str, Any] = Body(...),
        db: Database = Depends(get_db),
    ):
        raw = body.get("description")
        description = None if raw is None else str(raw)
        HabitService(db).patch_description(habit_id, description)
        return {"id": habit_id, "description": description}

    # -- repetitions -----------------------------------------------------------

    @app.get("/api/repetitions")
    def list_repetitions(
        from_inclusive: int = Query(..., alias="from"),
        to_exclusive: int = Query(..., alias="to"),
        db: Database = Depends(get_db),
    ):
        reps = RepetitionService(db).list_between(from_inclusive, to_exclusive)
        return [r.to_dict() for r in reps]

    @app.post("/api/repetitions")
    def upsert_repetition(body: dict[str, Any] = Body(...), db: Database = Depends(get_db)):
        habit_id = _as_int(body.get("habitId"))
        timestamp = _as_int(body.get("timestamp"))
        if habit_id is None or timestamp is None:
            return PlainTextResponse("Missing habitId or timestamp.", status_code=400)
        raw_value = body.get("value")
        raw_notes = body.get("notes")
        RepetitionService(db).save(
            habit_id,
            timestamp,
            None if raw_value is None else _as_long(raw_value),
            None if raw_notes is None else str(raw_notes),
        )
        return PlainTextResponse("Saved")

    @app.delete("/api/repetitions")
    def delete_repetition(
        habit_id: int = Query(..., alias="habitId"),
        timestamp: int = Query(...),
        db: Database = Depends(get_db),
    ):
        RepetitionService(db).delete(habit_id, timestamp)
        return PlainTextResponse("Deleted")

    # -- export / import -------------------------------------------------------

    @app.get("/api/export-db")
    def export_live_db(db: Database = Depends(get_db)):
        """Snapshot the live database (VACUUM INTO) and stream it."""
        snapshot = SnapshotExporter(db, temp_dir=settings.TEMP_DIR).export_snapshot()
        return _attachment(snapshot)

    @app.post("/api/export-db")
    def export_from_dump(dump: dict[str, Any] = Body(...)):
        """Build a database file from a JSON dump of schema objects and rows."""
        try:
            path = build_database_from_dump(dump, temp_dir=settings.TEMP_DIR)
        except ValueError as e:
            return PlainTextResponse(str(e), status_code=400)
        return _attachment(SnapshotFile(path))

    @app.post("/api/import-db")
    def import_db(file: Optional[UploadFile] = File(None), db: Database = Depends(get_db)):
        """Replace the live database with the uploaded .db file."""
        if file is None:
            return PlainTextResponse("No file uploaded.", status_code=400)
        logger.info(f"Importing uploaded database {file.filename!r}")
        DatabaseImporter(db, temp_dir=settings.TEMP_DIR).import_upload(file.file)
        return PlainTextResponse("Import completed successfully.")

    return app


app = create_app()
