"""
Log-visit form schema.

Validation of the visit form before it is submitted to the record store.
The contact sub-section is a display rule only: its fields stay optional and
keep their values whatever result is selected.
"""

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..utils.exceptions import ValidationError
from .models import HomeSource, VisitResult

CONTACT_RESULTS = frozenset({VisitResult.SCHEDULED_DEMO, VisitResult.INTERESTED_CALL_BACK})
CONTACT_FIELDS = ("contact_name", "phone_number", "follow_up_date")


def contact_section_visible(result: VisitResult | str | None) -> bool:
    """Whether the contact name / phone / follow-up inputs are shown."""
    if not result:
        return False
    try:
        return VisitResult(result) in CONTACT_RESULTS
    except ValueError:
        return False


class VisitForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    city_id: str = Field(min_length=1)
    subdivision_id: str | None = None
    street_name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    result: VisitResult
    contact_name: str | None = None
    phone_number: str | None = None
    follow_up_date: date | None = None
    notes: str | None = None
    date_visited: date = Field(default_factory=date.today)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @field_validator(
        "subdivision_id",
        "contact_name",
        "phone_number",
        "follow_up_date",
        "notes",
        "latitude",
        "longitude",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def contact_section_visible(self) -> bool:
        return contact_section_visible(self.result)

    def to_insert_payload(self, canvasser_id: str | None = None) -> dict[str, Any]:
        """Row for the homes collection."""
        return {
            "city_id": self.city_id,
            "subdivision_id": self.subdivision_id,
            "street_name": self.street_name,
            "address": self.address,
            "result": self.result.value,
            "contact_name": self.contact_name,
            "phone_number": self.phone_number,
            "follow_up_date": self.follow_up_date.isoformat() if self.follow_up_date else None,
            "notes": self.notes,
            "canvasser_id": canvasser_id,
            "date_visited": self.date_visited.isoformat(),
            "source": HomeSource.MANUAL.value,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


def validate_visit_form(data: dict[str, Any]) -> VisitForm:
    """Validate raw form input, collecting one message per invalid field."""
    try:
        return VisitForm.model_validate(data)
    except PydanticValidationError as e:
        field_errors: dict[str, str] = {}
        for error in e.errors():
            name = ".".join(str(part) for part in error["loc"]) or "form"
            field_errors.setdefault(name, error["msg"])
        raise ValidationError(
            "Please fill in all required fields",
            field_errors=field_errors,
        ) from e
