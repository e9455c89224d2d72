"""Admin routes: merchant provisioning, bulk verification, document review."""

import logging

import pydantic
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.app.routes.auth import AdminPrincipal, get_current_admin, http_error
from merchant_onboarding.domain.enums import DocumentStatus, DocumentType
from merchant_onboarding.domain.errors import MerchantNotFound, OnboardingError
from merchant_onboarding.domain.schemas import (
    BulkActionRequest,
    BulkActionResult,
    BulkCreateRequest,
    BulkCreateResult,
    DocumentBulkReview,
    DocumentBulkReviewResult,
    DocumentResponse,
    DocumentReview,
    DocumentStats,
    MerchantCreate,
    MerchantCreateResponse,
    MerchantDetail,
)
from merchant_onboarding.infra.database import get_db
from merchant_onboarding.services.account_provisioner import AccountProvisioner
from merchant_onboarding.services.bulk_action_processor import BulkActionProcessor
from merchant_onboarding.services.document_service import DocumentService
from merchant_onboarding.services.merchant_store import load_merchant
from merchant_onboarding.services.notification_service import NotificationDispatcher, get_notifier
from merchant_onboarding.services.verification_state_machine import VerificationStateMachine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _parse_batch(model: type[pydantic.BaseModel], data: dict):
    """Validate a batch body; a malformed batch is a 400, not a 422."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        messages = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise HTTPException(
            status_code=400,
            detail={"code": "validation_error", "message": "; ".join(messages)},
        )


# ---------------------------------------------------------------------------
# Merchants
# ---------------------------------------------------------------------------


@router.post("/merchants", response_model=MerchantCreateResponse, status_code=201)
async def create_merchant(
    data: MerchantCreate,
    admin: AdminPrincipal = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    """Provision a merchant. The temporary password appears in this response only."""
    try:
        account = await AccountProvisioner(db, notifier).create_merchant_account(data, actor=admin.id)
    except OnboardingError as e:
        raise http_error(e)
    return account.to_response()


@router.get("/merchants/{merchant_id}", response_model=MerchantDetail)
async def get_merchant(
    merchant_id: str,
    admin: AdminPrincipal = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Merchant record plus the verification statuses it may move to next."""
    merchant = await load_merchant(db, merchant_id)
    if merchant is None:
        raise http_error(MerchantNotFound(merchant_id))

    detail = MerchantDetail.model_validate(merchant)
    detail.allowed_transitions = VerificationStateMachine().get_allowed_transitions(
        merchant.verification_status
    )
    return detail


@router.post("/merchants/bulk-create", response_model=BulkCreateResult)
async def bulk_create_merchants(
    body: BulkCreateRequest,
    admin: AdminPrincipal = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    return await AccountProvisioner(db, notifier).bulk_create_merchants(body.merchants, actor=admin.id)


@router.post("/merchants/bulk-action", response_model=BulkActionResult)
async def bulk_action(
    body: dict = Body(...),
    admin: AdminPrincipal = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Verify or reject a batch; per-merchant failures are reported in outcomes."""
    request = _parse_batch(BulkActionRequest, {**body, "actor": admin.id})
    try:
        return await BulkActionProcessor(db).apply_bulk_action(request)
    except OnboardingError as e:
        raise HTTPException(status_code=400, detail=e.to_detail())


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.get("/documents", response_model=list[DocumentResponse])
async def list_all_documents(
    status: DocumentStatus | None = Query(None),
    document_type: DocumentType | None = Query(None),
    admin: AdminPrincipal = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await DocumentService(db).list_all_documents(status=status, document_type=document_type)


@router.get("/documents/stats", response_model=DocumentStats)
async def document_stats(
    admin: AdminPrincipal = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await DocumentService(db).document_stats()


@router.post("/documents/bulk-review", response_model=DocumentBulkReviewResult)
async def bulk_review_documents(
    body: dict = Body(...),
    admin: AdminPrincipal = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Apply one review decision to many documents; failures are listed per id."""
    request = _parse_batch(DocumentBulkReview, body)
    try:
        return await DocumentService(db).bulk_review_documents(
            request.document_ids, request.status, reviewer=admin.id, admin_notes=request.admin_notes
        )
    except OnboardingError as e:
        raise HTTPException(status_code=400, detail=e.to_detail())


@router.put("/documents/{document_id}/review", response_model=DocumentResponse)
async def review_document(
    document_id: str,
    body: DocumentReview,
    admin: AdminPrincipal = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await DocumentService(db).review_document(
            document_id, body.status, reviewer=admin.id, admin_notes=body.admin_notes
        )
    except OnboardingError as e:
        raise http_error(e)
