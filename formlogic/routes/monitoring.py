"""Health endpoint."""

from fastapi import APIRouter, Depends

from formlogic import __version__
from formlogic.dependencies import get_code_set_provider
from formlogic.services.code_sets import InMemoryCodeSetProvider

router = APIRouter(tags=["monitoring"])


@router.get("/health", summary="Health check")
def health(provider: InMemoryCodeSetProvider = Depends(get_code_set_provider)):
    """
    Health check for load balancers and orchestration.
    The engine is stateless; the only check is the code-set registry.
    """
    stats = provider.get_stats()
    return {
        "status": "healthy",
        "version": __version__,
        "checks": {
            "code_sets": {"status": "up", "message": f"{stats.total_code_sets} registered"},
        },
    }
