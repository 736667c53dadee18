from fastapi import APIRouter

from clearpath.api.v1.endpoints import documents, eligibility, health, jurisdictions, packages, templates

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(jurisdictions.router, tags=["jurisdictions"])
api_router.include_router(eligibility.router, tags=["eligibility"])
api_router.include_router(templates.router, tags=["templates"])
api_router.include_router(documents.router, tags=["documents"])
api_router.include_router(packages.router, tags=["packages"])
