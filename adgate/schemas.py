from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .ad.models import ProvisionRequest


class MemberCreate(BaseModel):
    """POST /v1/member body. Unknown keys are ignored, null counts as absent."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    username: Optional[str] = None
    password: Optional[str] = None
    given_name: Optional[str] = Field(default=None, alias="givenName")
    surname: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    mail: Optional[str] = None
    phone: Optional[str] = None
    description: Optional[str] = None
    organizational_unit: Optional[str] = Field(default=None, alias="ou")

    def to_request(self) -> ProvisionRequest:
        return ProvisionRequest(
            username=self.username or "",
            password=self.password or "",
            given_name=self.given_name or "",
            surname=self.surname or "",
            display_name=self.display_name or "",
            mail=self.mail or "",
            phone=self.phone or "",
            description=self.description or "",
            organizational_unit=self.organizational_unit or "",
        )
