from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, EmailStr, field_validator


class LinkPrecedence(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class Contact(BaseModel):
    id: int
    email: Optional[str] = None
    phoneNumber: Optional[str] = None
    linkedId: Optional[int] = None
    linkPrecedence: LinkPrecedence
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    deletedAt: Optional[datetime] = None
    # Joined row for secondaries, filled only by the email/phone lookup.
    linkedContact: Optional["Contact"] = None

    @field_validator("createdAt", "updatedAt", "deletedAt")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]):
        # CURRENT_TIMESTAMP defaults and older rows are stored without an offset
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class IdentifyRequest(BaseModel):
    email: Optional[EmailStr] = None
    phoneNumber: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_absent(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("phoneNumber", mode="before")
    @classmethod
    def phone_as_text(cls, value: Union[int, str, None]):
        """Phone numbers arrive as numbers but are stored and matched as text."""
        if value is None:
            return None
        if isinstance(value, bool):
            raise ValueError("phoneNumber must be numeric")
        if isinstance(value, int):
            if value < 0:
                raise ValueError("phoneNumber must be numeric")
            return str(value)
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
            if not value.isdigit():
                raise ValueError("phoneNumber must be numeric")
            return value
        raise ValueError("phoneNumber must be numeric")


class ContactResponse(BaseModel):
    primaryContactId: int
    emails: List[str]
    phoneNumbers: List[str]
    secondaryContactIds: List[int]


class FinalResponse(BaseModel):
    contact: ContactResponse
