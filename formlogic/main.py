"""
formlogic FastAPI application entrypoint.

Run with: uvicorn formlogic.main:app --reload
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from formlogic import __version__
from formlogic.dependencies import load_code_sets_file
from formlogic.routes import api_router
from formlogic.utils.logging import configure_logging

# Comma-separated; defaults cover the local Vite editor
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("FORMLOGIC_CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if o.strip()
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and load code sets on startup."""
    configure_logging()
    load_code_sets_file()
    yield


app = FastAPI(
    title="formlogic API",
    description="""Conditional-rule evaluation and field-hierarchy engine for dynamic forms.

## What it does
- Evaluate conditions and rule sets against multi-module form data
- Build, validate and repair field hierarchies from flat field lists
- Navigate workflows with skipStep / goToStep / completeWorkflow rules
- Resolve effective field states (visible, enabled, required)

The engine is stateless: every request carries the schema, rules and data it needs.
""",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/")
def root():
    return {"service": "formlogic", "docs": "/docs", "api": "/api"}
