"""
Admin dashboard endpoints (orders, users, SEO, analytics) and tracking beacons.
"""
from unittest.mock import AsyncMock, patch

from services.analytics_service import analytics_service
from services.seo_service import seo_service
from services.user_service import SelfModificationError
from job_runner import JOB_RUNNERS


def test_orders_invalid_status_is_400(client, admin_headers):
    response = client.get("/api/admin/orders?status=refunded", headers=admin_headers)
    assert response.status_code == 400


def test_orders_list_passes_filters(client, admin_headers):
    page = {"orders": [], "total": 0, "stats": {"total": 0, "completed": 0, "pending": 0, "canceled": 0, "revenue": 0}}
    with patch("services.order_service.list_orders", new_callable=AsyncMock, return_value=page) as list_orders:
        response = client.get("/api/admin/orders?status=completed&date_filter=30d&search=cs_", headers=admin_headers)

    assert response.status_code == 200
    assert list_orders.await_args.args == ("cs_", "completed", "30d", 100, 0)


def test_order_not_found(client, admin_headers):
    with patch("services.order_service.get_order", new_callable=AsyncMock, return_value=None):
        response = client.get("/api/admin/orders/o-1", headers=admin_headers)
    assert response.status_code == 404


def test_self_demotion_is_400(client, admin_headers):
    with patch("services.user_service.get_user", new_callable=AsyncMock,
               return_value={"user_id": "admin-1", "role": "ROLE_ADMIN"}), \
         patch("services.user_service.update_user_role", new_callable=AsyncMock,
               side_effect=SelfModificationError("You cannot remove your own admin role")):
        response = client.patch("/api/admin/users/admin-1", json={"role": "ROLE_USER"}, headers=admin_headers)
    assert response.status_code == 400


def test_users_forbidden_for_regular_user(client, user_headers):
    assert client.get("/api/admin/users", headers=user_headers).status_code == 403


def test_seo_validate(client, admin_headers):
    response = client.post("/api/admin/seo/validate", json={"page_path": "nope"}, headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is False
    assert "page_path must start with /" in body["errors"]


def test_seo_upsert_invalid_is_400(client, admin_headers):
    response = client.put("/api/admin/seo", json={"page_path": "/x"}, headers=admin_headers)
    assert response.status_code == 400


def test_seo_upsert_unknown_change_frequency_is_400(client, admin_headers):
    response = client.put(
        "/api/admin/seo",
        json={"page_path": "/x", "title": "T", "change_frequency": "sometimes"},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert any(e.startswith("change_frequency") for e in response.json()["detail"])


def test_seo_delete_missing_is_404(client, admin_headers):
    with patch.object(seo_service, "delete_seo_settings", new_callable=AsyncMock, return_value=False):
        response = client.delete("/api/admin/seo/seo-1", headers=admin_headers)
    assert response.status_code == 404


def test_analytics_rejects_unknown_range(client, admin_headers):
    response = client.get("/api/admin/analytics/funnel?time_range=1y", headers=admin_headers)
    assert response.status_code == 422


def test_analytics_funnel(client, admin_headers):
    steps = [{"step": "Visitors", "event_type": "page_view", "count": 3, "conversion_rate": 100.0}]
    with patch.object(analytics_service, "get_conversion_funnel", new_callable=AsyncMock, return_value=steps):
        response = client.get("/api/admin/analytics/funnel?time_range=30d", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"time_range": "30d", "steps": steps}


def test_analytics_requires_admin(client):
    assert client.get("/api/admin/analytics/traffic").status_code == 401


def test_page_view_beacon(client):
    with patch.object(analytics_service, "track_page_view", new_callable=AsyncMock, return_value="sess-1") as track:
        response = client.post(
            "/api/analytics/page-view",
            json={"page_path": "/generator", "utm_source": "newsletter"},
            headers={"X-Session-Id": "sess-1", "X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
        )

    assert response.status_code == 200
    assert response.json() == {"success": True, "tracked": True, "session_id": "sess-1"}
    kwargs = track.await_args.kwargs
    assert kwargs["session_id"] == "sess-1"
    assert kwargs["client_ip"] == "203.0.113.9"
    assert kwargs["utm"] == {"utm_source": "newsletter"}


def test_negative_time_spent_is_400(client):
    response = client.post(
        "/api/analytics/time-spent",
        json={"session_id": "sess-1", "page_path": "/", "time_spent_seconds": -5},
    )
    assert response.status_code in (400, 422)


def test_run_cleanup_job(client, admin_headers):
    with patch("services.pending_result_service.delete_expired", new_callable=AsyncMock,
               return_value={"pending_results": 2, "payment_tokens": 1}):
        response = client.post("/api/admin/jobs/expired_results_cleanup/run", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["count"] == 3


def test_job_registry():
    assert set(JOB_RUNNERS) == {"expired_results_cleanup", "abandoned_checkout_cleanup"}
