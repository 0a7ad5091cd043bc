import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import models  # noqa: F401  registers every table on Base.metadata
from app.api import (
    activities,
    articles,
    auth,
    comments,
    demo,
    issues,
    notifications,
    realtime,
    users,
    workspaces,
)
from app.api.errors import register_exception_handlers
from app.core.config import get_settings, lifespan
from app.core.database import Base, engine, ping_database

root = logging.getLogger()
if not root.handlers:  # don't double-add in reloads
    h = logging.StreamHandler(sys.stdout)
    h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(h)

root.setLevel(logging.INFO)

settings = get_settings()

Base.metadata.create_all(bind=engine)

app = FastAPI(title="SprintDesk API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(workspaces.router)
app.include_router(issues.router)
app.include_router(articles.router)
app.include_router(comments.router)
app.include_router(notifications.router)
app.include_router(activities.router)
app.include_router(demo.router)
app.include_router(realtime.router)


@app.get("/health", tags=["health"])
def health_check():
    """Report service status and confirm database connectivity."""
    database_status = "ok" if ping_database() else "error"
    return {
        "status": "ok",
        "database": database_status,
    }
