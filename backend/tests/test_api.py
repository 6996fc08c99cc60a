import os

import pytest

from conftest import BLURRY_TEXT, make_png
from upi_verify.config import get_settings
from upi_verify.models.notification import Notification
from upi_verify.services.notification_service import NotificationService

USER = {"user-id": "user-1"}
ADMIN = {"admin-id": "admin-1"}


def _upload(client, order_id, content=None, content_type="image/png", path="/api/upi-payments/upload"):
    return client.post(
        path,
        data={"order_id": order_id},
        files={"screenshot": ("receipt.png", content if content is not None else make_png(), content_type)},
        headers=USER,
    )


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["version"] == get_settings().APP_VERSION


def test_config_returns_destination(client, upi_config):
    response = client.get("/api/upi-payments/config")

    assert response.status_code == 200
    assert response.json()["data"]["upi_id"] == "merchant@okaxis"


def test_config_unavailable_until_configured(client):
    response = client.get("/api/upi-payments/config")

    assert response.status_code == 503
    assert response.json() == {
        "detail": "UPI payment system is not configured",
        "error_code": "UPI_NOT_CONFIGURED",
        "stage": "configuration",
    }


def test_receipt_reference(client):
    response = client.get("/api/upi-payments/receipt-reference")

    assert response.status_code == 200
    assert response.json()["data"]["example"]["utr"] == "320524N00124567"


def test_upload_detects_reference(client, upi_config, make_order):
    order = make_order()

    response = _upload(client, order.id)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "pending_verification"
    assert data["utr_detected"] is True
    assert data["utr"] == "320524N00124567"
    assert data["reference_confidence"] == 98
    assert data["attempts"] == 1
    assert data["attempts_remaining"] == 2
    assert data["ocr_data"]["line_count"] == 3
    assert data["payment_instructions"]["upi_id"] == "merchant@okaxis"


def test_upload_notifies_admin_and_customer(client, upi_config, make_order, db):
    order = make_order()
    _upload(client, order.id)

    recipients = {n.recipient for n in db.query(Notification).all()}
    assert recipients == {"admin", order.user_id}


def test_upload_for_someone_elses_order(client, upi_config, make_order):
    order = make_order(user_id="user-2")

    response = _upload(client, order.id)

    assert response.status_code == 404
    assert response.json()["error_code"] == "ORDER_NOT_FOUND"


def test_upload_requires_configured_destination(client, make_order):
    response = _upload(client, make_order().id)

    assert response.status_code == 503


def test_upload_rejects_non_image_types(client, upi_config, make_order):
    response = _upload(client, make_order().id, content=b"%PDF-1.7", content_type="application/pdf")

    assert response.status_code == 400
    assert response.json()["error_code"] == "UPLOAD_REJECTED"
    assert response.json()["stage"] == "validation"


def test_upload_rejects_multiple_files(client, upi_config, make_order):
    response = client.post(
        "/api/upi-payments/upload",
        data={"order_id": make_order().id},
        files=[
            ("screenshot", ("a.png", make_png(), "image/png")),
            ("screenshot", ("b.png", make_png(), "image/png")),
        ],
        headers=USER,
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "UPLOAD_REJECTED"


def test_upload_rejects_oversized_file(client, upi_config, make_order, monkeypatch):
    monkeypatch.setattr(get_settings(), "MAX_UPLOAD_BYTES", 64)

    response = _upload(client, make_order().id, content=b"0" * 65)

    assert response.status_code == 413


def test_upload_rejects_corrupt_image(client, upi_config, make_order):
    response = _upload(client, make_order().id, content=b"not an image at all")

    assert response.status_code == 422
    assert response.json()["stage"] == "preprocessing"


def test_stored_screenshot_extension_ignores_client_filename(client, upi_config, make_order, manager):
    response = client.post(
        "/api/upi-payments/upload",
        data={"order_id": make_order().id},
        files={"screenshot": ("evil.html", make_png(), "image/png")},
        headers=USER,
    )

    assert response.status_code == 201
    stored = os.listdir(manager.storage.upload_dir)
    assert len(stored) == 1
    assert stored[0].endswith(".png")


def test_second_upload_must_use_resubmit(client, upi_config, make_order):
    order = make_order()
    _upload(client, order.id)

    response = _upload(client, order.id)

    assert response.status_code == 409
    assert response.json()["error_code"] == "PAYMENT_ALREADY_EXISTS"


def test_duplicate_reference_across_orders(client, upi_config, make_order):
    _upload(client, make_order().id)

    response = _upload(client, make_order().id)

    assert response.status_code == 409
    assert response.json()["error_code"] == "DUPLICATE_REFERENCE"


def test_status_tracks_payment(client, upi_config, make_order):
    order = make_order()
    _upload(client, order.id)

    response = client.get(f"/api/upi-payments/status/{order.id}", headers=USER)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["has_payment"] is True
    assert data["status"] == "pending_verification"
    assert data["reference"] == "320524N00124567"
    assert data["max_attempts"] == 3


def test_status_before_upload(client, make_order):
    order = make_order()

    response = client.get(f"/api/upi-payments/status/{order.id}", headers=USER)

    assert response.status_code == 200
    assert response.json()["data"]["has_payment"] is False


def test_status_requires_user_header(client, make_order):
    response = client.get(f"/api/upi-payments/status/{make_order().id}")

    assert response.status_code == 422


def test_resubmit_then_manual_reference(client, upi_config, make_order, manager):
    order = make_order()
    manager.pipeline.engine.text = BLURRY_TEXT
    first = _upload(client, order.id).json()["data"]
    assert first["status"] == "utr_detection_failed"

    response = _upload(client, order.id, path="/api/upi-payments/resubmit")
    assert response.status_code == 200
    assert response.json()["data"]["attempts"] == 2

    response = client.post(
        "/api/upi-payments/manual-reference",
        json={"order_id": order.id, "reference": "412345678901"},
        headers=USER,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "pending_verification"
    assert data["utr"] == "412345678901"
    assert data["utr_detected"] is False


def test_retry_limit_over_http(client, upi_config, make_order, manager):
    order = make_order()
    manager.pipeline.engine.text = BLURRY_TEXT
    _upload(client, order.id)
    _upload(client, order.id, path="/api/upi-payments/resubmit")
    _upload(client, order.id, path="/api/upi-payments/resubmit")

    response = _upload(client, order.id, path="/api/upi-payments/resubmit")

    assert response.status_code == 403
    assert response.json()["error_code"] == "RETRY_LIMIT_EXCEEDED"


def test_admin_approves_payment(client, upi_config, make_order):
    order = make_order()
    payment_id = _upload(client, order.id).json()["data"]["payment_id"]

    response = client.post(
        "/api/upi-payments/verify",
        json={"payment_id": payment_id, "action": "approve", "notes": "Matched bank statement"},
        headers=ADMIN,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "verified"
    assert data["action"] == "approved"
    assert data["verified_by"] == "admin-1"
    assert data["order_status"] == "CONFIRMED"
    assert data["payment_status"] == "VERIFIED"

    again = client.post(
        "/api/upi-payments/verify", json={"payment_id": payment_id, "action": "reject"}, headers=ADMIN
    )
    assert again.status_code == 409
    assert again.json()["error_code"] == "INVALID_STATE_TRANSITION"


def test_verify_rejects_unknown_action(client):
    response = client.post("/api/upi-payments/verify", json={"payment_id": 1, "action": "hold"}, headers=ADMIN)

    assert response.status_code == 422


def test_verify_requires_admin_header(client):
    response = client.post("/api/upi-payments/verify", json={"payment_id": 1, "action": "approve"})

    assert response.status_code == 422


def test_failed_notification_does_not_undo_verification(client, upi_config, make_order, monkeypatch, db):
    order = make_order()
    payment_id = _upload(client, order.id).json()["data"]["payment_id"]

    def broken(*args, **kwargs):
        raise RuntimeError("mail relay down")

    monkeypatch.setattr(NotificationService, "_record", staticmethod(broken))

    response = client.post(
        "/api/upi-payments/verify", json={"payment_id": payment_id, "action": "approve"}, headers=ADMIN
    )

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "verified"
    status = client.get(f"/api/upi-payments/status/{order.id}", headers=USER).json()["data"]
    assert status["status"] == "verified"


def test_admin_pending_queue_and_statistics(client, upi_config, make_order):
    order = make_order()
    _upload(client, order.id)

    pending = client.get("/api/upi-payments/admin/pending", headers=ADMIN)
    assert pending.status_code == 200
    assert pending.json()["pagination"]["total"] == 1
    assert pending.json()["payments"][0]["order_id"] == order.id

    stats = client.get("/api/upi-payments/admin/statistics", headers=ADMIN)
    assert stats.status_code == 200
    assert stats.json()["pending_payments"] == 1


@pytest.mark.parametrize("query", ["status=paid", "limit=0", "offset=-1"])
def test_admin_pending_validates_query(client, query):
    response = client.get(f"/api/upi-payments/admin/pending?{query}", headers=ADMIN)

    assert response.status_code == 400


# ─── /api/admin ──────────────────────────────────────────────────────

def test_update_upi_config(client):
    response = client.put(
        "/api/admin/upi-config",
        json={"upi_id": "store@ybl", "merchant_name": "Demo Store"},
        headers=ADMIN,
    )

    assert response.status_code == 200
    assert response.json()["data"]["upi_id"] == "store@ybl"
    assert client.get("/api/upi-payments/config").json()["data"]["merchant_name"] == "Demo Store"


def test_update_upi_config_rejects_bad_vpa(client):
    response = client.put("/api/admin/upi-config", json={"upi_id": "not-a-vpa"}, headers=ADMIN)

    assert response.status_code == 400


def test_audit_trail_endpoints(client, upi_config, make_order):
    order = make_order()
    _upload(client, order.id)

    trail = client.get(f"/api/admin/audit/{order.id}", headers=ADMIN)
    assert trail.status_code == 200
    assert [entry["action"] for entry in trail.json()] == ["PAYMENT_SUBMITTED"]

    chain = client.get(f"/api/admin/audit/{order.id}/verify", headers=ADMIN)
    assert chain.json()["valid"] is True

    assert client.get("/api/admin/audit/order-unknown", headers=ADMIN).status_code == 404


@pytest.mark.parametrize("path", ["/api/admin/audit/order-1", "/api/admin/audit/order-1/verify"])
def test_audit_endpoints_require_admin_header(client, path):
    response = client.get(path)

    assert response.status_code == 422
