from fastapi import APIRouter, Depends

from clearpath.api.deps import get_jurisdictions, get_template_registry
from clearpath.catalog.jurisdictions import JurisdictionRegistry
from clearpath.templating.registry import TemplateRegistry

router = APIRouter()


@router.get("/health")
def health(
    jurisdictions: JurisdictionRegistry = Depends(get_jurisdictions),
    templates: TemplateRegistry = Depends(get_template_registry),
):
    return {"status": "ok", "jurisdictions": jurisdictions.ids(), "templates": len(templates)}
