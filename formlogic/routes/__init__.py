"""API routes for the formlogic engine."""

from fastapi import APIRouter

from formlogic.routes import code_sets, conditions, fields, hierarchy, monitoring, rules, workflow

api_router = APIRouter(prefix="/api", tags=["api"])

api_router.include_router(monitoring.router)
api_router.include_router(conditions.router, prefix="/conditions", tags=["conditions"])
api_router.include_router(rules.router, prefix="/rules", tags=["rules"])
api_router.include_router(hierarchy.router, prefix="/hierarchy", tags=["hierarchy"])
api_router.include_router(workflow.router, prefix="/workflow", tags=["workflow"])
api_router.include_router(fields.router, prefix="/fields", tags=["fields"])
api_router.include_router(code_sets.router, prefix="/code-sets", tags=["code-sets"])
