from typing import List

from fastapi import APIRouter, Depends

from clearpath.api.deps import get_jurisdictions
from clearpath.catalog.jurisdictions import JurisdictionRegistry
from clearpath.schemas.jurisdiction import JurisdictionSummary

router = APIRouter()


@router.get("/jurisdictions", response_model=List[JurisdictionSummary])
def list_jurisdictions(jurisdictions: JurisdictionRegistry = Depends(get_jurisdictions)) -> List[JurisdictionSummary]:
    summaries = []
    for jurisdiction_id in jurisdictions.ids():
        rules = jurisdictions.get(jurisdiction_id)
        summaries.append(
            JurisdictionSummary(
                id=rules.id,
                name=rules.name,
                court_name=rules.court_name,
                offense_count=len(rules.offenses),
            )
        )
    return summaries
