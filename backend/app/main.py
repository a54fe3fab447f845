"""
backend/app/main.py

FastAPI Entrypoint.
Serves the AR scene sharing API.

Responsibilities:
- Initialize FastAPI app
- Register routers (share)
- Setup middleware (CORS, logging)
- Map every error to a structured {success: false, message} response
- Health check endpoints
"""

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.errors import ARShareError, InvalidSceneError
from app.core.logger import logger
from app.routes import share

TRANSFORM_FIELDS = {"position", "rotation", "scale"}

app = FastAPI(
    title=f"{settings.PROJECT_NAME} Backend",
    description="API for creating and viewing shared AR image scenes",
    version="0.1.0"
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(share.router, prefix=settings.API_PREFIX)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok", "message": "API server is running"}


@app.exception_handler(ARShareError)
async def arshare_error_handler(request: Request, exc: ARShareError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = {str(part) for error in exc.errors() for part in error.get("loc", ())}
    if fields & TRANSFORM_FIELDS:
        return JSONResponse(status_code=400, content=InvalidSceneError().to_response())
    return JSONResponse(status_code=400, content={"success": False, "message": "Invalid request"})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = "API endpoint not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error", "error": str(exc)},
    )


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT)
