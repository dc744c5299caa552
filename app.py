#!/usr/bin/env python3
"""
FastAPI application for Deep Content
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Import routers
from generation import router as generation_router
from research import router as research_router
from transcripts import router as transcripts_router
from chat import router as chat_router
from content_sessions import router as sessions_router
from conversations import router as conversations_router
from workflow import router as workflow_router
from auth import AuthMiddleware
from content_generation import database
from content_generation.errors import StaleRequest, WorkflowStateMissing


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        database.ensure_indexes()
    except Exception as e:
        logger.error("[startup] Could not create indexes: %s", e)
    yield


# Initialize FastAPI app
app = FastAPI(title="Deep Content API", lifespan=lifespan)

# Middleware order matters - they execute in REVERSE order of addition
# Add AuthMiddleware first, then CORS, so CORS wraps around auth responses

# Authentication middleware (runs second - after CORS)
app.add_middleware(AuthMiddleware)

# CORS configuration (runs first - wraps all responses including auth errors)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Errors are always {"error": message}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content=jsonable_encoder({"error": "Invalid request body", "details": exc.errors()}))


@app.exception_handler(WorkflowStateMissing)
async def workflow_state_missing_handler(request: Request, exc: WorkflowStateMissing):
    return JSONResponse(status_code=409, content={"error": str(exc), "redirect": exc.redirect})


@app.exception_handler(StaleRequest)
async def stale_request_handler(request: Request, exc: StaleRequest):
    return JSONResponse(status_code=409, content={"error": str(exc)})


# Include routers
app.include_router(generation_router)
app.include_router(research_router)
app.include_router(transcripts_router)
app.include_router(chat_router)
app.include_router(sessions_router)
app.include_router(conversations_router)
app.include_router(workflow_router)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": "Deep Content API", "version": "1.0.0"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
