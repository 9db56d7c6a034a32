from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from revision.config import settings
from revision.db.database import close_db, init_db
from revision.errors import ContentUnavailable, ValidationError
from revision.middleware.auth import AuthMiddleware

# CORS: CORS_ORIGINS (comma-separated); local dev origins only outside prod.
_allowed_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if not _allowed_origins and settings.env != "prod":
    _allowed_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await close_db()


app = FastAPI(title="GCSE Revision", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
app.add_middleware(AuthMiddleware)


@app.exception_handler(ContentUnavailable)
async def content_unavailable_handler(request: Request, exc: ContentUnavailable):
    return JSONResponse(
        status_code=503,
        content={"detail": "Content is temporarily unavailable, please try again", "resource": exc.resource},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# Import and register routes
from revision.routes.enrollments import router as enrollments_router
from revision.routes.lessons import router as lessons_router
from revision.routes.practice import router as practice_router
from revision.routes.dashboard import router as dashboard_router

app.include_router(enrollments_router)
app.include_router(lessons_router)
app.include_router(practice_router)
app.include_router(dashboard_router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}


# Static lesson/question content, fetched back through ContentLoader
content_path = Path(settings.content_dir)
if content_path.is_dir():
    app.mount("/data", StaticFiles(directory=content_path), name="content")
