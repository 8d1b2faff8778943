from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from activations.application.activation_service import ActivationService
from activations.presentation.dependencies import get_activation_service
from activations.schemas.requests import CheckIn, CompleteIn, IssueIn
from activations.schemas.responses import (
    CompletedOut,
    IssuedOut,
    OkOut,
    RemovedOut,
    SweptOut,
    ValidOut,
)

router = APIRouter(prefix="/activations/{kind}", tags=["Activations"])

Service = Annotated[ActivationService, Depends(get_activation_service)]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=IssuedOut)
async def post_issue(body: IssueIn, service: Service):
    # the caller delivers the code out-of-band
    code = await service.issue(body.owner)
    return IssuedOut(owner=body.owner, code=code)


@router.post("/check", response_model=ValidOut)
async def post_check(body: CheckIn, service: Service):
    return ValidOut(valid=await service.exists(body.owner, body.code))


@router.post("/complete", response_model=OkOut)
async def post_complete(body: CompleteIn, service: Service):
    if not await service.complete(body.owner, body.code):
        # one message for wrong, expired and already used codes
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="invalid or expired code",
        )
    return OkOut()


@router.get("/{owner}/completed", response_model=CompletedOut)
async def get_completed(owner: str, service: Service):
    return CompletedOut(completed=await service.completed(owner))


@router.delete("/{owner}", response_model=RemovedOut)
async def delete_completed(owner: str, service: Service):
    return RemovedOut(result=await service.remove(owner))


@router.post("/sweep", response_model=SweptOut)
async def post_sweep(service: Service):
    return SweptOut(removed=await service.remove_expired())
