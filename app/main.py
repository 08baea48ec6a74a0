# app/main.py

from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.common.errors import RelationshipError
from app.core.config import settings
from app.core.logging import configure_logging

# models must be imported before create_all so their tables are registered
from app.db.base_class import Base
from app.db.session import engine
from app.models.user import User  # noqa: F401

from app.routers import friends, users

logger = configure_logging()

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Friend Graph API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RelationshipError)
async def relationship_error_handler(request: Request, exc: RelationshipError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.kind)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind},
    )


app.include_router(users.router, prefix="/api/v1/users", tags=["users"])
app.include_router(friends.router, prefix="/api/v1/friends", tags=["friends"])


@app.get("/")
def read_root():
    return {"message": "Friend Graph API is running!"}


@app.get("/api/health")
def health_check():
    return {"status": "OK", "timestamp": datetime.utcnow().isoformat()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000)
