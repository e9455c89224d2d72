"""HTTP tests for the admin, merchant, and document routers."""

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.domain.models import utcnow
from merchant_onboarding.services.merchant_store import load_merchant
from merchant_onboarding.services.setup_token_service import SetupTokenService


def _build_app_client(db_session: AsyncSession, notifier):
    """Build an HTTPX AsyncClient wired to a test FastAPI app.

    Uses a fresh FastAPI app with the onboarding routers only, so the
    lifespan (table creation on the configured database) never runs.
    """
    from fastapi import FastAPI
    from merchant_onboarding.app.routes.admin import router as admin_router
    from merchant_onboarding.app.routes.merchants import documents_router, router as merchants_router
    from merchant_onboarding.infra.database import get_db
    from merchant_onboarding.services.notification_service import get_notifier

    test_app = FastAPI()
    test_app.include_router(admin_router)
    test_app.include_router(merchants_router)
    test_app.include_router(documents_router)

    async def _override_get_db():
        yield db_session

    test_app.dependency_overrides[get_db] = _override_get_db
    test_app.dependency_overrides[get_notifier] = lambda: notifier

    return AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://testserver",
    )


@pytest.fixture
async def client(db_session, notifier):
    async with _build_app_client(db_session, notifier) as ac:
        yield ac
    await notifier.drain()


MERCHANT = {
    "business_name": "Green Grocer",
    "email": "Grocer@Test.com",
    "phone": "+15557654321",
    "business_type": "food_beverage",
    "address": "5 Orchard Way",
}


# ---------------------------------------------------------------------------
# Admin auth
# ---------------------------------------------------------------------------


class TestAdminAuth:
    async def test_missing_token(self, client):
        resp = await client.post("/api/admin/merchants", json=MERCHANT)
        assert resp.status_code == 401

    async def test_invalid_token(self, client):
        resp = await client.post(
            "/api/admin/merchants", json=MERCHANT, headers={"Authorization": "Bearer junk"}
        )
        assert resp.status_code == 401

    async def test_non_admin_role(self, client, merchant_headers):
        resp = await client.get("/api/admin/documents", headers=merchant_headers)
        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Provisioning and setup
# ---------------------------------------------------------------------------


class TestProvisionAndSetup:
    async def test_full_onboarding_flow(self, client, admin_headers, db_session, notifier, email_sender):
        resp = await client.post("/api/admin/merchants", json=MERCHANT, headers=admin_headers)
        assert resp.status_code == 201
        body = resp.json()
        assert body["merchant"]["email"] == "grocer@test.com"
        assert body["merchant"]["verification_status"] == "pending"
        assert body["temporary_password"]
        assert body["login_url"].endswith("/merchant/login")
        token = body["setup_url"].rsplit("/", 1)[-1]

        merchant = await load_merchant(db_session, body["merchant"]["id"])
        assert merchant.created_by == "admin-1"

        info = await client.get(f"/api/merchants/setup/{token}")
        assert info.status_code == 200
        assert info.json() == {
            "business_name": "Green Grocer",
            "email": "grocer@test.com",
            "phone": "+15557654321",
            "business_type": "food_beverage",
        }

        weak = await client.post(f"/api/merchants/setup/{token}", json={"new_password": "abc12345"})
        assert weak.status_code == 422
        assert weak.json()["detail"]["unmet_rules"] == ["uppercase", "special"]

        done = await client.post(f"/api/merchants/setup/{token}", json={"new_password": "Abc12345!"})
        assert done.status_code == 200
        assert done.json()["setup_completed"] is True

        again = await client.post(f"/api/merchants/setup/{token}", json={"new_password": "Abc12345!"})
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "token_already_consumed"

        await notifier.drain()
        assert [c.args[0].kind for c in email_sender.await_args_list] == ["welcome", "setup_complete"]

    async def test_duplicate_email(self, client, admin_headers):
        first = await client.post("/api/admin/merchants", json=MERCHANT, headers=admin_headers)
        assert first.status_code == 201
        dup = await client.post(
            "/api/admin/merchants",
            json={**MERCHANT, "email": "GROCER@test.com"},
            headers=admin_headers,
        )
        assert dup.status_code == 409
        assert dup.json()["detail"]["code"] == "duplicate_email"

    async def test_missing_field_is_422(self, client, admin_headers):
        payload = {k: v for k, v in MERCHANT.items() if k != "address"}
        resp = await client.post("/api/admin/merchants", json=payload, headers=admin_headers)
        assert resp.status_code == 422

    async def test_unknown_token(self, client):
        resp = await client.get("/api/merchants/setup/does-not-exist")
        assert resp.status_code == 404

    async def test_expired_token(self, client, db_session, make_merchant):
        merchant = await make_merchant()
        raw, _ = await SetupTokenService(db_session).issue_token(
            merchant.id, now=utcnow() - timedelta(days=5)
        )
        await db_session.commit()

        resp = await client.get(f"/api/merchants/setup/{raw}")
        assert resp.status_code == 410

    async def test_bulk_create(self, client, admin_headers):
        resp = await client.post(
            "/api/admin/merchants/bulk-create",
            json={"merchants": [MERCHANT, {**MERCHANT, "email": "bad"}]},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 2
        assert len(body["successful"]) == 1
        assert body["failed"][0]["code"] == "validation_error"


# ---------------------------------------------------------------------------
# Bulk actions
# ---------------------------------------------------------------------------


class TestBulkAction:
    async def test_bulk_verify(self, client, admin_headers, make_merchant):
        a = await make_merchant(verification_status="pending")
        b = await make_merchant(verification_status="verified")

        resp = await client.post(
            "/api/admin/merchants/bulk-action",
            json={"merchant_ids": [a.id, b.id, "ghost"], "action": "verify"},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        assert resp.json() == {
            "modified_count": 1,
            "outcomes": {
                a.id: "applied",
                b.id: "skipped-already-in-state",
                "ghost": "skipped-not-found",
            },
        }

    @pytest.mark.parametrize(
        "payload",
        [
            {"merchant_ids": [], "action": "verify"},
            {"merchant_ids": ["x"], "action": "suspend"},
        ],
    )
    async def test_bad_request(self, client, admin_headers, payload):
        resp = await client.post("/api/admin/merchants/bulk-action", json=payload, headers=admin_headers)
        assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocuments:
    async def test_submit_review_delete(self, client, admin_headers, db_session, make_merchant):
        merchant = await make_merchant(verification_status="pending")

        submitted = await client.post(
            f"/api/merchants/{merchant.id}/documents",
            json={"document_type": "business_registration"},
        )
        assert submitted.status_code == 201
        doc_id = submitted.json()["id"]
        assert submitted.json()["status"] == "pending_review"

        listed = await client.get(f"/api/merchants/{merchant.id}/documents")
        assert [d["id"] for d in listed.json()] == [doc_id]

        pending_only = await client.get(
            "/api/admin/documents", params={"status": "pending_review"}, headers=admin_headers
        )
        assert [d["id"] for d in pending_only.json()] == [doc_id]

        reviewed = await client.put(
            f"/api/admin/documents/{doc_id}/review",
            json={"status": "complete", "admin_notes": "ok"},
            headers=admin_headers,
        )
        assert reviewed.status_code == 200
        assert reviewed.json()["reviewed_by"] == "admin-1"
        assert (await load_merchant(db_session, merchant.id)).verification_status == "verified"

        stats = await client.get("/api/admin/documents/stats", headers=admin_headers)
        assert stats.json() == {"total": 1, "pending_review": 0, "complete": 1, "rejected": 0}

        deleted = await client.delete(f"/api/documents/{doc_id}")
        assert deleted.status_code == 204
        missing = await client.delete(f"/api/documents/{doc_id}")
        assert missing.status_code == 404

    async def test_review_cannot_reset_to_pending(self, client, admin_headers, make_merchant, make_document):
        merchant = await make_merchant()
        document = await make_document(merchant.id)

        resp = await client.put(
            f"/api/admin/documents/{document.id}/review",
            json={"status": "pending_review"},
            headers=admin_headers,
        )
        assert resp.status_code == 422

    async def test_documents_for_unknown_merchant(self, client):
        resp = await client.get("/api/merchants/ghost/documents")
        assert resp.status_code == 404

    async def test_document_detail(self, client, make_merchant, make_document):
        merchant = await make_merchant()
        document_id = (await make_document(merchant.id, document_type="utility_bill")).id

        resp = await client.get(f"/api/documents/{document_id}")
        assert resp.status_code == 200
        assert resp.json()["document_type"] == "utility_bill"
        assert resp.json()["merchant_id"] == merchant.id

        await client.delete(f"/api/documents/{document_id}")
        gone = await client.get(f"/api/documents/{document_id}")
        assert gone.status_code == 404
        assert gone.json()["detail"]["code"] == "document_not_found"

    async def test_bulk_review(self, client, admin_headers, db_session, make_merchant, make_document):
        merchant = await make_merchant(verification_status="pending")
        merchant_id = merchant.id
        a = (await make_document(merchant_id)).id
        b = (await make_document(merchant_id, document_type="id_document")).id

        resp = await client.post(
            "/api/admin/documents/bulk-review",
            json={"document_ids": [a, b, "ghost"], "status": "complete", "admin_notes": "ok"},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["modified_count"] == 2
        assert body["reviewed"] == [a, b]
        assert body["failed"][0]["document_id"] == "ghost"
        assert body["failed"][0]["code"] == "document_not_found"
        assert (await load_merchant(db_session, merchant_id)).verification_status == "verified"

    @pytest.mark.parametrize(
        "payload",
        [
            {"document_ids": [], "status": "complete"},
            {"document_ids": ["x"], "status": "pending_review"},
            {"document_ids": ["x"], "status": "approved"},
        ],
    )
    async def test_bulk_review_bad_request(self, client, admin_headers, payload):
        resp = await client.post("/api/admin/documents/bulk-review", json=payload, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "validation_error"

    async def test_bulk_review_requires_admin(self, client, merchant_headers):
        resp = await client.post(
            "/api/admin/documents/bulk-review",
            json={"document_ids": ["x"], "status": "complete"},
            headers=merchant_headers,
        )
        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Merchant detail
# ---------------------------------------------------------------------------


class TestMerchantDetail:
    @pytest.mark.parametrize(
        "status, allowed",
        [
            ("pending", ["verified", "rejected"]),
            ("unverified", ["pending"]),
            ("verified", ["pending"]),
            ("rejected", ["pending"]),
        ],
    )
    async def test_allowed_transitions(self, client, admin_headers, make_merchant, status, allowed):
        merchant = await make_merchant(verification_status=status)

        resp = await client.get(f"/api/admin/merchants/{merchant.id}", headers=admin_headers)

        assert resp.status_code == 200
        body = resp.json()
        assert body["verification_status"] == status
        assert body["allowed_transitions"] == allowed
        assert body["version"] == 1
        assert "password_hash" not in body

    async def test_unknown_merchant(self, client, admin_headers):
        resp = await client.get("/api/admin/merchants/ghost", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "merchant_not_found"


# ---------------------------------------------------------------------------
# Application wiring
# ---------------------------------------------------------------------------


async def test_health_endpoint():
    from merchant_onboarding.app.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        resp = await ac.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": "merchant-onboarding"}
