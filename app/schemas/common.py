import uuid
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WorkspaceRole(StrEnum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class IssueStatus(StrEnum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class IssuePriority(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python, readable from ORM rows."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PatchModel(ApiModel):
    """Partial update body.

    Only fields present in the request body are applied. ``provided`` tells an
    explicit ``null`` apart from a field that was never sent.
    """

    def provided(self, field: str) -> bool:
        return field in self.model_fields_set


class UserSummary(ApiModel):
    id: uuid.UUID = Field(alias="_id")
    name: str
    email: str
    avatar_url: str | None = None


class ErrorOut(BaseModel):
    message: str
    code: str
    details: Any = None


class OkOut(BaseModel):
    ok: bool = True
