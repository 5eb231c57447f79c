"""
Database Schemas

Pydantic models for the MongoDB collections. Field names are snake_case in
Python and camelCase on the wire and in stored documents (``mobile_number``
is stored as ``mobileNumber``), which keeps existing documents readable.

Collections:
- Person records -> "user" (Customer and Lead variants, discriminated by ``type``)
- Exhibition     -> "exhibitions"
"""

import re
from datetime import datetime, timezone
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from config import config

Priority = Literal["Normal", "Imp", "Most Imp", "Urgent"]
Requirement = Literal["EMS", "BMS", "Other"]
RecordType = Literal["Customer", "Lead"]

PRIORITIES = ("Normal", "Imp", "Most Imp", "Urgent")
RECORD_TYPES = ("Customer", "Lead")

RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
EmailText = Annotated[str, StringConstraints(strip_whitespace=True, to_lower=True, min_length=1)]
Text = Annotated[str, StringConstraints(strip_whitespace=True)]

_DMY = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{4})\s*$")


def today_dmy() -> str:
    return datetime.now(timezone.utc).strftime("%d/%m/%Y")


def _default_exhibition() -> str:
    return config.DEFAULT_EXHIBITION


def _default_city() -> str:
    return config.DEFAULT_CITY


class _Document(BaseModel):
    """Common config: camelCase aliases, blank form values treated as absent."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def drop_blank_values(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items()
                    if v is not None and not (isinstance(v, str) and not v.strip())}
        return data


class _PersonFields(_Document):

    @field_validator("requirement", mode="before", check_fields=False)
    @classmethod
    def split_requirement(cls, value: Any) -> Any:
        # Forms send "EMS,BMS"; older documents hold a single string.
        if isinstance(value, str):
            value = [value]
        if isinstance(value, (list, tuple)):
            items = []
            for item in value:
                if isinstance(item, str):
                    items.extend(part.strip() for part in item.split(",") if part.strip())
                else:
                    items.append(item)
            return list(dict.fromkeys(items))
        return value

    @field_validator("visit_date", mode="before", check_fields=False)
    @classmethod
    def parse_visit_date(cls, value: Any) -> Any:
        if isinstance(value, str):
            m = _DMY.match(value)
            if m:
                day, month, year = (int(g) for g in m.groups())
                return datetime(year, month, day, tzinfo=timezone.utc)
        return value


class PersonBase(_PersonFields):
    """Fields shared by both person record variants."""

    name: RequiredText
    email: EmailText
    mobile_number: RequiredText
    company_name: Optional[Text] = None
    whatsapp_number: Optional[Text] = None
    card_front: Optional[str] = None
    card_back: Optional[str] = None
    photo_url: Optional[str] = None
    requirement: List[Requirement] = Field(default_factory=list)
    requirement_description: Optional[Text] = None
    other_requirement: Optional[Text] = None
    priority: Priority = "Normal"
    visit_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    exhibition_name: Text = Field(default_factory=_default_exhibition)
    city: Optional[Text] = None

    @model_validator(mode="after")
    def default_whatsapp_to_mobile(self):
        if not self.whatsapp_number:
            self.whatsapp_number = self.mobile_number
        return self


class LeadRecord(PersonBase):
    type: Literal["Lead"] = "Lead"


class CustomerRecord(PersonBase):
    type: Literal["Customer"] = "Customer"
    company_name: RequiredText


PersonRecord = Annotated[Union[CustomerRecord, LeadRecord], Field(discriminator="type")]

person_record = TypeAdapter(PersonRecord)


class PersonUpdate(_PersonFields):
    """Partial update: only the fields that are present get written."""

    name: Optional[RequiredText] = None
    email: Optional[EmailText] = None
    mobile_number: Optional[RequiredText] = None
    company_name: Optional[Text] = None
    whatsapp_number: Optional[Text] = None
    requirement: Optional[List[Requirement]] = None
    requirement_description: Optional[Text] = None
    other_requirement: Optional[Text] = None
    priority: Optional[Priority] = None
    visit_date: Optional[datetime] = None
    exhibition_name: Optional[Text] = None
    city: Optional[Text] = None


class Exhibition(_Document):
    """
    Exhibitions collection schema
    Collection name: "exhibitions"
    """
    name: RequiredText = Field(..., description="Unique exhibition name, referenced by person records")
    location: Optional[Text] = Field(None, description="Venue")
    city: Text = Field(default_factory=_default_city, description="City the exhibition runs in")
    date: Text = Field(default_factory=today_dmy, description="Free-text date, DD/MM/YYYY by default")
    description: Optional[Text] = None
