from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .db import init_db
from .errors import AppError, AuthError
from .settings import settings
from .store import select_store
from .routers import auth
from .routers import assessment
from .routers import user

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="Reading Speed Assessment API")
app.include_router(auth.router)
app.include_router(assessment.router)
app.include_router(user.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
	headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
	return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
	# Malformed bodies are client errors like any other bad input
	errors = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
	return JSONResponse(status_code=400, content={"detail": "; ".join(errors)})


@app.get("/")
async def root():
	return {
		"message": "Reading speed assessment API is running",
		"store": (await select_store()).name,
		"timestamp": datetime.now(timezone.utc).isoformat(),
	}


@app.on_event("startup")
async def startup_event():
	if settings.store_mode == "memory":
		return
	# Missing tables are created; an unreachable database leaves the memory fallback in charge
	try:
		init_db()
	except Exception as exc:
		logger.warning("Database initialisation failed, continuing with fallback storage: %s", exc)
