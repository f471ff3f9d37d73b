"""Exam access endpoints: access check, instructions, invitations."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from exam_engine.core.dependencies import (
    AuthContext,
    DbSession,
    get_auth_context,
    require_exam_api_key,
)
from exam_engine.schemas.exam import (
    AccessCheckOut,
    AccessCheckRequest,
    ExamInstructionsOut,
    InvitationCreate,
    InvitationOut,
)
from exam_engine.services import time_authority
from exam_engine.services.access_gate import (
    check_access,
    create_invitation,
    get_exam_instructions,
)

router = APIRouter(dependencies=[Depends(require_exam_api_key)])


@router.post("/{exam_id}/access", response_model=AccessCheckOut)
async def check_exam_access(
    exam_id: UUID,
    body: AccessCheckRequest,
    db: DbSession,
    auth: AuthContext,
):
    """
    Check whether the caller may start this exam.

    Denials are reported in the body (allowed=false, reason) rather than as
    errors. The invitation token is not consumed here.
    """
    return await check_access(
        db, auth, exam_id, body.invitation_token, time_authority.server_now()
    )


@router.get(
    "/{exam_id}/instructions",
    response_model=ExamInstructionsOut,
    dependencies=[Depends(get_auth_context)],
)
async def exam_instructions(
    exam_id: UUID,
    db: DbSession,
):
    return await get_exam_instructions(db, exam_id, time_authority.server_now())


@router.post(
    "/{exam_id}/invitations",
    response_model=InvitationOut,
    status_code=status.HTTP_201_CREATED,
)
async def invite_candidate(
    exam_id: UUID,
    body: InvitationCreate,
    db: DbSession,
    auth: AuthContext,
):
    """Mint an invitation token (exam creator or invitation managers)."""
    invitation = await create_invitation(
        db,
        auth,
        exam_id,
        user_id=body.user_id,
        email=body.email,
        expires_at=body.expires_at,
    )
    return InvitationOut.model_validate(invitation)
