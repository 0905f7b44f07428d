"""HTTP tests for the notification inbox endpoints."""

from uuid import uuid4

from chirp.services.notifications import NotificationService

BASE = "/api/v1/notifications"


def test_requires_authentication(client):
    response = client.get(f"{BASE}/")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_rejects_invalid_token(client):
    response = client.get(f"{BASE}/", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401


def test_list_returns_page_with_unread_count(client, db_session, auth_headers):
    service = NotificationService(db_session)
    for i in range(3):
        service.persist("u1", "like", f"like {i}", {"postId": f"p{i}"})
    service.persist("u2", "like", "not yours")

    response = client.get(f"{BASE}/", params={"limit": 2}, headers=auth_headers("u1"))

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    assert body["unreadCount"] == 3
    assert len(body["data"]) == 2
    item = body["data"][0]
    assert item["userId"] == "u1"
    assert item["isRead"] is False
    assert {"id", "type", "message", "meta", "createdAt", "updatedAt"} <= item.keys()


def test_list_validates_limit(client, auth_headers):
    response = client.get(f"{BASE}/", params={"limit": 500}, headers=auth_headers("u1"))

    assert response.status_code == 422


def test_unread_count_and_read_all(client, db_session, auth_headers):
    service = NotificationService(db_session)
    for i in range(2):
        service.persist("u1", "like", f"like {i}")
    service.persist("u2", "like", "theirs")

    assert client.get(f"{BASE}/unread-count", headers=auth_headers("u1")).json() == {"count": 2}
    assert client.patch(f"{BASE}/read-all", headers=auth_headers("u1")).json() == {"marked": 2}
    assert client.get(f"{BASE}/unread-count", headers=auth_headers("u1")).json() == {"count": 0}
    assert client.get(f"{BASE}/unread-count", headers=auth_headers("u2")).json() == {"count": 1}


def test_mark_single_notification_read(client, db_session, auth_headers):
    notification = NotificationService(db_session).persist("u1", "like", "liked")

    response = client.patch(f"{BASE}/{notification.id}/read", headers=auth_headers("u1"))

    assert response.status_code == 200
    assert response.json()["isRead"] is True


def test_cannot_mark_someone_elses_notification(client, db_session, auth_headers):
    notification = NotificationService(db_session).persist("u1", "like", "liked")

    response = client.patch(f"{BASE}/{notification.id}/read", headers=auth_headers("intruder"))

    assert response.status_code == 403


def test_mark_unknown_notification_is_404(client, auth_headers):
    response = client.patch(f"{BASE}/{uuid4()}/read", headers=auth_headers("u1"))

    assert response.status_code == 404


def test_create_test_notification(client, auth_headers):
    response = client.post(f"{BASE}/test", json={"message": "hello"}, headers=auth_headers("u1"))

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "hello"
    assert body["type"] == "test"
    assert body["meta"] == {"source": "test-endpoint"}

    listing = client.get(f"{BASE}/", headers=auth_headers("u1")).json()
    assert [item["id"] for item in listing["data"]] == [body["id"]]


def test_create_test_notification_without_body(client, auth_headers):
    response = client.post(f"{BASE}/test", headers=auth_headers("u1"))

    assert response.status_code == 201
    assert response.json()["message"].startswith("Test notification created at")


def test_health(client):
    assert client.get("/api/v1/health/").json() == {"status": "ok"}

    ready = client.get("/api/v1/health/ready").json()
    assert ready["status"] == "ready"
    assert ready["active_users"] == 0
