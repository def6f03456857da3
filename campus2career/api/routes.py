"""
API routes.

Thin adapters over the reconciler and dispatcher: parse the request, call
one service method, shape the response. Reconciler exceptions are mapped
to status codes by the handlers registered in ``app.py``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from campus2career.api.dependencies import (
    get_current_user_id,
    get_dispatcher,
    get_reconciler,
)
from campus2career.api.schemas import (
    AcceptedResponse,
    ApplicationListResponse,
    ApplicationOut,
    ApplicationResponse,
    CreateInviteRequest,
    ErrorResponse,
    InviteListResponse,
    InviteOut,
    InviteResponse,
    MarkAllReadResponse,
    MarkReadResponse,
    NdaSignatureOut,
    NotificationListResponse,
    NotificationOut,
    ReviewRequest,
    SubmitApplicationRequest,
    TransitionRequest,
    UnreadCountResponse,
)
from campus2career.domain.models import Application, ApplicationStatus, Invite, InviteStatus
from campus2career.notifications import NotificationDispatcher
from campus2career.reconciler import ApplicationReconciler

router = APIRouter(prefix="/api", tags=["api"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation error"},
    401: {"model": ErrorResponse, "description": "Missing caller identity"},
    403: {"model": ErrorResponse, "description": "Caller may not act on this record"},
    404: {"model": ErrorResponse, "description": "Record not found"},
    409: {"model": ErrorResponse, "description": "Record is not in the required state"},
}


def _application_out(application: Application) -> ApplicationOut:
    return ApplicationOut(**application.model_dump())


def _invite_out(invite: Invite) -> InviteOut:
    return InviteOut(**invite.model_dump())


# Applications

@router.post(
    "/applications",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Submit an application to a project listing",
)
def submit_application(
    body: SubmitApplicationRequest,
    user_id: str = Depends(get_current_user_id),
    reconciler: ApplicationReconciler = Depends(get_reconciler),
) -> ApplicationResponse:
    application = reconciler.submit(user_id, body.listing_id, body.form_fields(), invite_id=body.invite_id)
    return ApplicationResponse(
        application=_application_out(application),
        message="Application submitted successfully.",
    )


@router.get("/applications", response_model=ApplicationListResponse, responses=ERROR_RESPONSES)
def list_my_applications(
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    reconciler: ApplicationReconciler = Depends(get_reconciler),
) -> ApplicationListResponse:
    applications = reconciler.list_for_student(user_id, status=status_filter)
    return ApplicationListResponse(applications=[_application_out(a) for a in applications])


@router.get(
    "/listings/{listing_id}/applications",
    response_model=ApplicationListResponse,
    responses=ERROR_RESPONSES,
    summary="Applications to a listing the caller owns",
)
def list_listing_applications(
    listing_id: str,
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    reconciler: ApplicationReconciler = Depends(get_reconciler),
) -> ApplicationListResponse:
    applications = reconciler.list_for_listing(listing_id, user_id, status=status_filter)
    return ApplicationListResponse(applications=[_application_out(a) for a in applications])


@router.get("/applications/{application_id}", response_model=ApplicationResponse, responses=ERROR_RESPONSES)
def get_application(
    application_id: str,
    user_id: str = Depends(get_current_user_id),
    reconciler: ApplicationReconciler = Depends(get_reconciler),
) -> ApplicationResponse:
    return ApplicationResponse(application=_application_out(reconciler.get_application(application_id, user_id)))


@router.post("/applications/{application_id}/accept", response_model=ApplicationResponse, responses=ERROR_RESPONSES)
def accept_application(
    application_id: str,
    body: Optional[ReviewRequest] = None,
    user_id: str = Depends(get_current_user_id),
    reconciler: ApplicationReconciler = Depends(get_reconciler),
) -> ApplicationResponse:
    notes = body.reviewer_notes if body else None
    application = reconciler.accept(application_id, user_id, reviewer_notes=notes)
    return ApplicationResponse(application=_application_out(application), message="Application accepted.")


@router.post("/applications/{application_id}/decline", response_model=ApplicationResponse, responses=ERROR_RESPONSES)
def decline_application(
    application_id: str,
    body: Optional[ReviewRequest] = None,
    user_id: str = Depends(get_current_user_id),
    reconciler: ApplicationReconciler = Depends(get_reconciler),
) -> ApplicationResponse:
    notes = body.reviewer_notes if body else None
    application = reconciler.decline(application_id, user_id, reviewer_notes=notes)
    return ApplicationResponse(application=_application_out(application), message="Application declined.")


# Invites

@router.post(
    "/invites",
    response_model=InviteResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Invite a student to apply to one of the caller's listings",
)
def create_invite(
    body: CreateInviteRequest,
    user_id: str = Depends(get_current_user_id),
    reconciler: ApplicationReconciler = Depends(get_reconciler),
) -> InviteResponse:
    invite = reconciler.create_invite(
        corporate_partner_id=user_id,
        student_id=body.student_id,
        listing_id=body.listing_id,
        message=body.message,
        student_name=body.student_name,
        student_email=body.student_email,
    )
    return InviteResponse(invite=_invite_out(invite))


@router.get("/invites", response_model=InviteListResponse, responses=ERROR_RESPONSES)
def list_invites(
    role: str = Query("student", pattern="^(student|partner)$"),
    status_filter: Optional[InviteStatus] = Query(None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    reconciler: ApplicationReconciler = Depends(get_reconciler),
) -> InviteListResponse:
    """Invites received (``role=student``) or sent (``role=partner``) by the caller."""
    if role == "partner":
        invites = reconciler.list_invites_for_partner(user_id, status=status_filter)
    else:
        invites = reconciler.list_invites_for_student(user_id, status=status_filter)
    return InviteListResponse(invites=[_invite_out(i) for i in invites])


@router.post("/invites/{invite_id}/accept", response_model=InviteResponse, responses=ERROR_RESPONSES)
def accept_invite(
    invite_id: str,
    user_id: str = Depends(get_current_user_id),
    reconciler: ApplicationReconciler = Depends(get_reconciler),
) -> InviteResponse:
    return InviteResponse(invite=_invite_out(reconciler.accept_invite(invite_id, user_id)))


@router.post("/invites/{invite_id}/decline", response_model=InviteResponse, responses=ERROR_RESPONSES)
def decline_invite(
    invite_id: str,
    user_id: str = Depends(get_current_user_id),
    reconciler: ApplicationReconciler = Depends(get_reconciler),
) -> InviteResponse:
    return InviteResponse(invite=_invite_out(reconciler.decline_invite(invite_id, user_id)))


# Notifications

@router.get("/notifications", response_model=NotificationListResponse, responses=ERROR_RESPONSES)
def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False, alias="unreadOnly"),
    user_id: str = Depends(get_current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> NotificationListResponse:
    notifications = dispatcher.get_by_user(user_id, limit=limit, unread_only=unread_only)
    return NotificationListResponse(
        notifications=[NotificationOut(**n.model_dump()) for n in notifications],
        unread_count=dispatcher.unread_count(user_id),
    )


@router.get("/notifications/unread-count", response_model=UnreadCountResponse, responses=ERROR_RESPONSES)
def unread_count(
    user_id: str = Depends(get_current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=dispatcher.unread_count(user_id))


@router.post("/notifications/read-all", response_model=MarkAllReadResponse, responses=ERROR_RESPONSES)
def mark_all_read(
    user_id: str = Depends(get_current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> MarkAllReadResponse:
    return MarkAllReadResponse(updated=dispatcher.mark_all_read(user_id))


@router.post("/notifications/{notification_id}/read", response_model=MarkReadResponse, responses=ERROR_RESPONSES)
def mark_read(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> MarkReadResponse:
    """``updated`` is False when the notification was already read or is not the caller's."""
    return MarkReadResponse(updated=dispatcher.mark_read(user_id, notification_id))


@router.delete(
    "/notifications/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=ERROR_RESPONSES,
)
def delete_notification(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Response:
    if not dispatcher.delete(user_id, notification_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Transactions

@router.post(
    "/transactions/{transaction_id}/transitions",
    response_model=AcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses=ERROR_RESPONSES,
    summary="Report a transition made directly on the marketplace",
)
def observe_transition(
    transaction_id: str,
    body: TransitionRequest,
    user_id: str = Depends(get_current_user_id),
    reconciler: ApplicationReconciler = Depends(get_reconciler),
) -> AcceptedResponse:
    reconciler.observe_transition(transaction_id, body.transition)
    return AcceptedResponse()


@router.post(
    "/transactions/{transaction_id}/assessment",
    response_model=AcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses=ERROR_RESPONSES,
)
def notify_assessment(
    transaction_id: str,
    user_id: str = Depends(get_current_user_id),
    reconciler: ApplicationReconciler = Depends(get_reconciler),
) -> AcceptedResponse:
    reconciler.notify_assessment(transaction_id, user_id)
    return AcceptedResponse()


@router.post("/transactions/{transaction_id}/nda/sign", response_model=NdaSignatureOut, responses=ERROR_RESPONSES)
def sign_nda(
    transaction_id: str,
    user_id: str = Depends(get_current_user_id),
    reconciler: ApplicationReconciler = Depends(get_reconciler),
) -> NdaSignatureOut:
    return NdaSignatureOut(**reconciler.sign_nda(transaction_id, user_id).model_dump())

