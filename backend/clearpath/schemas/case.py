from datetime import date
from typing import Literal, Optional

from pydantic import Field

from clearpath.schemas.base import CamelModel

Outcome = Literal["convicted", "dismissed", "acquitted", "no_papered", "nolle_prosequi"]


class Sentence(CamelModel):
    jail_time: Optional[float] = Field(default=None, ge=0, description="Months")
    probation: Optional[float] = Field(default=None, ge=0, description="Months")
    fines: Optional[float] = Field(default=None, ge=0)
    community_service: Optional[float] = Field(default=None, ge=0, description="Hours")
    all_completed: bool = False
    completion_date: Optional[date] = None


class UserCase(CamelModel):
    """A single case as entered by the user.

    Fields are deliberately optional so that partial input can still be
    assessed; strict checks live in LegalDataValidator.
    """

    id: str = ""
    offense: str = ""
    offense_date: Optional[date] = None
    outcome: Optional[Outcome] = None
    age_at_offense: Optional[int] = None
    is_trafficking_related: bool = False
    jurisdiction: str = "dc"
    sentence: Optional[Sentence] = None
    completion_date: Optional[date] = None
    statute_number: Optional[str] = None
    court: Optional[str] = None

    @property
    def is_conviction(self) -> bool:
        return self.outcome == "convicted"

    def effective_completion_date(self) -> Optional[date]:
        """Completion date used for waiting periods."""
        if self.completion_date is not None:
            return self.completion_date
        if self.sentence is not None:
            return self.sentence.completion_date
        return None


class AdditionalFactors(CamelModel):
    has_open_cases: bool = False
    is_trafficking_victim: bool = False
    seeking_actual_innocence: bool = False
    additional_info: Optional[str] = Field(default=None, max_length=2000)


class Address(CamelModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""

    def one_line(self) -> str:
        locality = " ".join(part for part in (self.state, self.zip_code) if part)
        return ", ".join(part for part in (self.street, self.city, locality) if part)


class PersonalInfo(CamelModel):
    """Petitioner details supplied by the surrounding application."""

    first_name: str = ""
    last_name: str = ""
    middle_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    ssn: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[Address] = None
    attorney_name: Optional[str] = None
    attorney_bar_number: Optional[str] = None
