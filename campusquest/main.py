# campusquest/main.py
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from campusquest.core.config import settings
from campusquest.core.errors import CampusQuestError, StoreUnavailable
from campusquest.database import engine, Base
from campusquest import models  # noqa: F401  registers tables on Base
from campusquest.routers import hunt_routes, quest_routes, quiz_routes, user_routes

load_dotenv()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOW_ORIGINS,
    allow_credentials=settings.ALLOW_CREDENTIALS,
    allow_methods=settings.ALLOW_METHODS,
    allow_headers=settings.ALLOW_HEADERS,
)


@app.exception_handler(CampusQuestError)
async def campus_quest_error_handler(request: Request, exc: CampusQuestError):
    headers = {"Retry-After": "1"} if isinstance(exc, StoreUnavailable) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "reason": exc.reason, "category": exc.category},
        headers=headers,
    )


@app.get("/")
def read_root():
    return {"message": "Campus Quest backend running"}

# Routers
app.include_router(user_routes.router)
app.include_router(quest_routes.router)
app.include_router(hunt_routes.router)
app.include_router(quiz_routes.router)

# Create DB tables
Base.metadata.create_all(bind=engine)

# OpenAPI: advertise the bearer scheme on every route
from fastapi.openapi.utils import get_openapi

def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=settings.APP_NAME,
        version="1.0.0",
        description="Paste the identity provider's access token into the Authorize button to test secured routes.",
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
    }
    for path in openapi_schema["paths"].values():
        for method in path.values():
            method["security"] = [{"BearerAuth": []}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi
