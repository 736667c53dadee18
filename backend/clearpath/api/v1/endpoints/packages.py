from fastapi import APIRouter, Depends, HTTPException

from clearpath.api.deps import get_eligibility_engine, get_package_assembler
from clearpath.schemas.documents import PackageRequest, PackageResult
from clearpath.services.eligibility import EligibilityEngine
from clearpath.services.packages import DocumentPackageAssembler

router = APIRouter()


@router.post("/packages", response_model=PackageResult)
def generate_package(
    payload: PackageRequest,
    engine: EligibilityEngine = Depends(get_eligibility_engine),
    assembler: DocumentPackageAssembler = Depends(get_package_assembler),
) -> PackageResult:
    eligibility = None
    if payload.run_eligibility:
        eligibility = engine.assess(payload.user_case, payload.additional_factors)

    result = assembler.generate_package(
        payload.user_case,
        payload.additional_factors,
        payload.personal_info,
        eligibility=eligibility,
    )
    if not result.success:
        raise HTTPException(
            status_code=422,
            detail=[issue.model_dump(by_alias=True) for issue in result.errors],
        )
    return result
