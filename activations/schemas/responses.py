from typing import Literal

from pydantic import BaseModel, Field

from activations.domain.entities import RemovalResult


class IssuedOut(BaseModel):
    owner: str = Field(..., description="Opaque id of the token owner")
    code: str = Field(..., description="Code to deliver out-of-band")


class ValidOut(BaseModel):
    valid: bool


class CompletedOut(BaseModel):
    completed: bool


class RemovedOut(BaseModel):
    result: RemovalResult


class SweptOut(BaseModel):
    removed: bool


class OkOut(BaseModel):
    status: Literal["ok"] = "ok"
