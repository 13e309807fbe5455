"""
SpendSavvy Backend API

A FastAPI backend for shared expenses, balances and spending analytics.
This module sets up the app and mounts routers - all endpoint logic is in routers/.
"""

import logging
import os
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import models
from database import engine
from utils.errors import LedgerError

# Import routers
from routers import analytics, balances, dashboard, expenses, friends, groups, notifications, users


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Create database tables
models.Base.metadata.create_all(bind=engine)

# Initialize FastAPI app
app = FastAPI(
    title="SpendSavvy API",
    description="API for splitting expenses, tracking balances and spending analytics",
    version="1.0.0"
)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    logger.warning(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    logger.warning(f"{request.method} {request.url.path} rejected (400): {location}: {message}")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": f"{location}: {message}" if location else message,
            "details": jsonable_encoder(errors),
        }
    )


@app.get("/")
def read_root():
    return {"success": True, "message": "SpendSavvy API"}


# Include routers
app.include_router(users.router)
app.include_router(friends.router)
app.include_router(groups.router)
app.include_router(expenses.router)
app.include_router(balances.router)
app.include_router(analytics.router)
app.include_router(notifications.router)
app.include_router(dashboard.router)
