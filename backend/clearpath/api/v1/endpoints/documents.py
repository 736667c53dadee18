from fastapi import APIRouter, Depends, HTTPException

from clearpath.api.deps import get_template_processor
from clearpath.schemas.documents import GenerationRequest, GenerationResult, PreviewResponse
from clearpath.templating.processor import SecureTemplateProcessor
from clearpath.templating.registry import TemplateNotFoundError

router = APIRouter()


def _status_for(result: GenerationResult) -> int:
    codes = {issue.code for issue in result.errors}
    if "TEMPLATE_NOT_FOUND" in codes:
        return 404
    if "DOCUMENT_GENERATION_ERROR" in codes:
        return 500
    return 422


@router.post("/documents", response_model=GenerationResult)
def generate_document(
    payload: GenerationRequest,
    processor: SecureTemplateProcessor = Depends(get_template_processor),
) -> GenerationResult:
    result = processor.generate_document(payload)
    if not result.success:
        raise HTTPException(
            status_code=_status_for(result),
            detail=[issue.model_dump(by_alias=True) for issue in result.errors],
        )
    return result


@router.post("/documents/preview", response_model=PreviewResponse)
def preview_document(
    payload: GenerationRequest,
    processor: SecureTemplateProcessor = Depends(get_template_processor),
) -> PreviewResponse:
    try:
        preview = processor.preview(payload)
    except TemplateNotFoundError as exc:
        raise HTTPException(status_code=404, detail="template_id not found") from exc
    return PreviewResponse(template_id=payload.template_id, preview=preview)
