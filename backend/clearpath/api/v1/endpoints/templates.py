from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from clearpath.api.deps import get_template_processor, get_template_registry
from clearpath.schemas.documents import DocumentField, TemplateSummary
from clearpath.templating.processor import SecureTemplateProcessor
from clearpath.templating.registry import TemplateNotFoundError, TemplateRegistry

router = APIRouter()


@router.get("/templates", response_model=List[TemplateSummary])
def list_templates(
    jurisdiction: Optional[str] = Query(None),
    registry: TemplateRegistry = Depends(get_template_registry),
) -> List[TemplateSummary]:
    return [
        TemplateSummary(
            id=template.id,
            name=template.name,
            document_type=template.document_type,
            jurisdiction=template.jurisdiction,
            version=template.version,
        )
        for template in registry.list(jurisdiction)
    ]


@router.get("/templates/{template_id}/fields", response_model=List[DocumentField])
def get_template_fields(
    template_id: str,
    processor: SecureTemplateProcessor = Depends(get_template_processor),
) -> List[DocumentField]:
    try:
        return processor.required_fields(template_id)
    except TemplateNotFoundError as exc:
        raise HTTPException(status_code=404, detail="template_id not found") from exc
