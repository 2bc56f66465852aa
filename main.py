from typing import List, Literal, Optional

import structlog
from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

import schemas
from auth import get_current_user
from csv_export import CSV_FILENAME, CSV_MEDIA_TYPE, export_sessions_csv
from errors import ConflictError, NotFoundError, StorageUnavailable, ValidationError
from observability import init_observability
from request_id_middleware import RequestIdMiddleware
from settings import Settings, get_settings
from storage import Storage, get_storage


# Initialise observability before creating app
init_observability()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Job Session Tracker",
    description="Log timed job sessions and rank jobs by profitability",
    version="0.1.0",
)

# --- CORS Middleware ---
origins = [
    "http://localhost",
    "http://localhost:5173",
    "http://127.0.0.1",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestIdMiddleware)


# --- Error mapping --- #
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": exc.message, "errors": exc.errors},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return await validation_error_handler(request, ValidationError.from_request(exc))


@app.exception_handler(ConflictError)
async def conflict_error_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"message": exc.message})


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"message": exc.message})


@app.exception_handler(StorageUnavailable)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
    logger.error("Storage unavailable", detail=exc.message)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"message": "Storage backend unavailable"},
    )


# --- Auth --- #
@app.get("/api/auth/user", response_model=schemas.User, tags=["Auth"])
def get_me(current_user: schemas.User = Depends(get_current_user)):
    """Returns the caller's user record."""
    return current_user


# --- Job types --- #
@app.get("/api/job-types", response_model=List[schemas.JobType], tags=["Job Types"])
def list_job_types_endpoint(
    current_user: schemas.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return storage.list_job_types()


@app.post("/api/job-types", response_model=schemas.JobType, tags=["Job Types"])
def create_job_type_endpoint(
    job_type: schemas.JobTypeCreate,
    current_user: schemas.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    logger.info("Creating job type", name=job_type.name, user_id=current_user.id)
    return storage.create_job_type(job_type.name)


# --- Job sessions --- #
@app.post("/api/job-sessions", response_model=schemas.JobSession, tags=["Job Sessions"])
def create_job_session_endpoint(
    session: schemas.JobSessionCreate,
    current_user: schemas.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return storage.create_job_session(session, user_id=current_user.id)


@app.get("/api/job-sessions", response_model=schemas.JobSessionPage, tags=["Job Sessions"])
def list_job_sessions_endpoint(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: schemas.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    page_size = min(limit or settings.default_page_size, settings.max_page_size)
    return storage.get_job_session_page(current_user.id, page=page, limit=page_size)


# --- Analytics --- #
@app.get(
    "/api/analytics/profitability",
    response_model=List[schemas.JobProfitability],
    tags=["Analytics"],
)
def profitability_endpoint(
    current_user: schemas.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return storage.get_job_profitability()


@app.get("/api/analytics/user-stats", response_model=schemas.UserStats, tags=["Analytics"])
def user_stats_endpoint(
    current_user: schemas.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return storage.get_user_stats(current_user.id)


# --- Export --- #
@app.get("/api/export/csv", tags=["Export"])
def export_csv_endpoint(
    scope: Literal["all", "mine"] = "all",
    current_user: schemas.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    if scope == "mine":
        sessions = storage.list_job_sessions(current_user.id, limit=None)
        content = export_sessions_csv(sessions)
    else:
        sessions = storage.list_all_job_sessions_for_export()
        content = export_sessions_csv(sessions, include_user=True)
    logger.info("Exported sessions", scope=scope, rows=len(sessions), user_id=current_user.id)
    return Response(
        content=content,
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{CSV_FILENAME}"'},
    )


# --- Main execution --- (for running with uvicorn)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
