from fastapi import APIRouter, Depends

from clearpath.api.deps import get_eligibility_engine
from clearpath.schemas.eligibility import EligibilityRequest, EligibilityResult
from clearpath.services.eligibility import EligibilityEngine

router = APIRouter()


@router.post("/eligibility", response_model=EligibilityResult)
def assess_eligibility(
    payload: EligibilityRequest,
    engine: EligibilityEngine = Depends(get_eligibility_engine),
) -> EligibilityResult:
    return engine.assess(payload.user_case, payload.additional_factors)
