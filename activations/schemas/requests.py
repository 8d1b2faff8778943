from pydantic import BaseModel, Field


class IssueIn(BaseModel):
    owner: str = Field(
        ..., description="Opaque id of the token owner", min_length=1, max_length=255
    )


class CheckIn(IssueIn):
    code: str | None = Field(
        None, description="Only match this code", min_length=1, max_length=255
    )


class CompleteIn(IssueIn):
    code: str = Field(
        ..., description="The code delivered to the owner", min_length=1, max_length=255
    )
