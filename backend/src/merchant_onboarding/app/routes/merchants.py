"""Merchant-facing routes: one-time account setup and document submission."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.app.routes.auth import http_error
from merchant_onboarding.domain.enums import VerificationStatus
from merchant_onboarding.domain.errors import OnboardingError
from merchant_onboarding.domain.schemas import (
    CompleteSetupRequest,
    CompleteSetupResponse,
    DocumentCreate,
    DocumentResponse,
    SetupInfo,
)
from merchant_onboarding.infra.database import get_db
from merchant_onboarding.services.document_service import DocumentService
from merchant_onboarding.services.notification_service import NotificationDispatcher, get_notifier
from merchant_onboarding.services.setup_token_service import SetupTokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/merchants", tags=["merchants"])
documents_router = APIRouter(prefix="/api/documents", tags=["documents"])


# ---------------------------------------------------------------------------
# Account setup
# ---------------------------------------------------------------------------


@router.get("/setup/{token}", response_model=SetupInfo)
async def get_setup_info(token: str, db: AsyncSession = Depends(get_db)):
    try:
        return await SetupTokenService(db).validate_token(token)
    except OnboardingError as e:
        raise http_error(e)


@router.post("/setup/{token}", response_model=CompleteSetupResponse)
async def complete_setup(
    token: str,
    body: CompleteSetupRequest,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    try:
        merchant = await SetupTokenService(db, notifier).complete_setup(token, body)
    except OnboardingError as e:
        raise http_error(e)

    return CompleteSetupResponse(
        merchant_id=merchant.id,
        business_name=merchant.business_name,
        email=merchant.email,
        verification_status=VerificationStatus(merchant.verification_status),
        setup_completed=merchant.setup_completed,
    )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.get("/{merchant_id}/documents", response_model=list[DocumentResponse])
async def list_merchant_documents(merchant_id: str, db: AsyncSession = Depends(get_db)):
    try:
        return await DocumentService(db).list_documents(merchant_id)
    except OnboardingError as e:
        raise http_error(e)


@router.post("/{merchant_id}/documents", response_model=DocumentResponse, status_code=201)
async def submit_document(
    merchant_id: str,
    body: DocumentCreate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await DocumentService(db).submit_document(
            merchant_id, body.document_type, body.document_name
        )
    except OnboardingError as e:
        raise http_error(e)


@documents_router.delete("/{document_id}", status_code=204)
async def delete_document(document_id: str, db: AsyncSession = Depends(get_db)):
    try:
        await DocumentService(db).delete_document(document_id)
    except OnboardingError as e:
        raise http_error(e)


@documents_router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(document_id: str, db: AsyncSession = Depends(get_db)):
    try:
        return await DocumentService(db).get_document(document_id)
    except OnboardingError as e:
        raise http_error(e)
