"""Tests for the durable push subscription store."""

from unittest.mock import patch

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from chirp.schemas.push_subscription import PushSubscriptionCreate
from chirp.services.subscription_store import PushSubscriptionStore


def _subscription(endpoint="https://push.example.com/abc", p256dh="key-1", auth="auth-1"):
    return PushSubscriptionCreate.model_validate(
        {"endpoint": endpoint, "keys": {"p256dh": p256dh, "auth": auth}, "expirationTime": None}
    )


@pytest.fixture()
def store(db_session):
    return PushSubscriptionStore(db_session)


def test_save_is_idempotent_per_user_and_endpoint(store):
    first = store.save("u1", _subscription())
    second = store.save("u1", _subscription())

    assert first.id == second.id
    assert len(store.list_for_user("u1")) == 1


def test_save_refreshes_rotated_keys(store):
    store.save("u1", _subscription(), user_agent="Firefox")
    updated = store.save("u1", _subscription(p256dh="key-2", auth="auth-2"))

    assert updated.p256dh == "key-2"
    assert updated.auth == "auth-2"
    assert updated.user_agent == "Firefox"
    assert len(store.list_for_user("u1")) == 1


def test_same_endpoint_for_two_users_is_two_rows(store):
    store.save("u1", _subscription())
    store.save("u2", _subscription())

    assert len(store.list_for_user("u1")) == 1
    assert len(store.list_for_user("u2")) == 1


def test_remove_only_touches_the_owner(store):
    store.save("u1", _subscription())
    store.save("u2", _subscription())

    assert store.remove("u1", "https://push.example.com/abc") == 1
    assert store.remove("u1", "https://push.example.com/abc") == 0

    assert store.list_for_user("u1") == []
    assert len(store.list_for_user("u2")) == 1


def test_list_for_unknown_user_is_empty(store):
    assert store.list_for_user("ghost") == []


def test_touch_records_last_use(store):
    record = store.save("u1", _subscription())
    assert record.last_used_at is None

    assert store.touch("u1", record.endpoint) == 1

    assert store.get("u1", "https://push.example.com/abc").last_used_at is not None


def test_touch_after_removal_matches_nothing(store):
    store.save("u1", _subscription())
    store.remove("u1", "https://push.example.com/abc")

    assert store.touch("u1", "https://push.example.com/abc") == 0


def test_failed_remove_rolls_back_and_leaves_session_usable(store, db_session):
    store.save("u1", _subscription())

    with patch.object(db_session, "commit", side_effect=SQLAlchemyError("disk I/O error")):
        with pytest.raises(SQLAlchemyError):
            store.remove("u1", "https://push.example.com/abc")

    assert len(store.list_for_user("u1")) == 1
    assert store.remove("u1", "https://push.example.com/abc") == 1


def test_concurrent_save_keeps_a_single_row(db_engine):
    with Session(db_engine) as first, Session(db_engine) as second:
        winner_id = PushSubscriptionStore(first).save("u1", _subscription()).id

        late = PushSubscriptionStore(second)
        lookups = []
        real_get = late.get

        def get_before_insert_lands(user_id, endpoint):
            # The first lookup runs before the other request committed.
            lookups.append(endpoint)
            if len(lookups) == 1:
                return None
            return real_get(user_id, endpoint)

        late.get = get_before_insert_lands
        stored = late.save("u1", _subscription())

        assert stored.id == winner_id
        assert len(lookups) == 2
        assert len(late.list_for_user("u1")) == 1


def test_subscription_info_matches_webpush_shape(store):
    record = store.save("u1", _subscription())

    assert record.to_subscription_info() == {
        "endpoint": "https://push.example.com/abc",
        "keys": {"p256dh": "key-1", "auth": "auth-1"},
    }


def test_incomplete_subscription_is_rejected():
    with pytest.raises(ValidationError):
        PushSubscriptionCreate.model_validate({"endpoint": "https://push.example.com/abc", "keys": {"p256dh": "k"}})
