"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import SQLModel

from taskminder.api.admin import router as admin_router
from taskminder.api.auth import router as auth_router
from taskminder.api.tasks import router as tasks_router
from taskminder.config import get_settings
from taskminder.db.session import engine
from taskminder.errors import TaskminderError

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate settings and create database tables on startup."""
    get_settings().validate()

    # Import models to register them with SQLModel
    from taskminder.models import (  # noqa: F401
        OneTimePassword,
        ReminderHistory,
        ScheduledReminder,
        Task,
        User,
    )
    SQLModel.metadata.create_all(engine)
    yield

app = FastAPI(
    title="Taskminder API",
    description="Task reminders with scheduled email delivery and an admin panel",
    version="1.0.0",
    lifespan=lifespan,
)

cors_origins = [origin for origin in {settings.FRONTEND_URL, "http://localhost:3000"} if origin]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TaskminderError)
async def taskminder_error_handler(request: Request, exc: TaskminderError) -> JSONResponse:
    """Map domain errors to JSON responses."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Register routers
app.include_router(auth_router)
app.include_router(tasks_router)
app.include_router(admin_router)


@app.get("/health")
def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
