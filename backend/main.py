import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.alerts import router as alerts_router
from api.checkins import router as checkins_router
from api.routes import router as routes_router
from config import config
from db import database
from models.results import OperationResult
from services.locks import LockTimeoutError

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.init_engine() is not None:
        database.create_tables()
    logger.info(f"Fleetline API started with config: {config.get_config_dict()}")
    yield


app = FastAPI(title="Fleetline API", lifespan=lifespan)

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(routes_router)
app.include_router(checkins_router)
app.include_router(alerts_router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content=OperationResult.invalid(exc.errors()).to_dict())


@app.exception_handler(LockTimeoutError)
async def lock_timeout_handler(request: Request, exc: LockTimeoutError):
    logger.error(f"[API] {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"success": False, "message": "Service busy, retry later"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"[API] Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


@app.get("/")
def read_root():
    return {"message": "Welcome to Fleetline API"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "database": database.is_database_available(),
    }
