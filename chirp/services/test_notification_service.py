# chirp/services/test_notification_service.py
import pytest

from chirp.models.notification import NotificationType
from chirp.services.notification_service import NotificationService

@pytest.fixture
def notification_service(db):
    return NotificationService(db=db)

@pytest.fixture
def users(make_user):
    return make_user("alice"), make_user("bob")

def _notify(service, recipient="alice", sender="bob", n_type=NotificationType.FOLLOW):
    return service.create_notification(recipient_id=recipient, sender_id=sender, n_type=n_type, target_id=sender)

def test_create_notification_copies_sender_summary(notification_service, users):
    notification = _notify(notification_service)

    assert notification['type'] == "FOLLOW"
    assert notification['is_read'] is False
    assert notification['sender'] == {"user_id": "bob", "username": "bob", "name": "Bob", "image": None}

def test_no_notification_to_self_or_unknown_sender(db, notification_service, users):
    assert _notify(notification_service, recipient="bob", sender="bob") is None
    assert _notify(notification_service, sender="ghost") is None
    assert list(db.collection('notifications').stream()) == []

def test_unread_count_and_mark_all(notification_service, users):
    _notify(notification_service)
    _notify(notification_service, n_type=NotificationType.MENTION)
    _notify(notification_service, recipient="bob", sender="alice")

    assert notification_service.count_unread("alice") == 2
    assert notification_service.mark_all_as_read("alice") == 2
    assert notification_service.count_unread("alice") == 0
    assert notification_service.count_unread("bob") == 1

def test_mark_as_read_checks_recipient(notification_service, users):
    notification = _notify(notification_service)

    with pytest.raises(PermissionError):
        notification_service.mark_as_read(notification['notification_id'], "bob")
    with pytest.raises(ValueError):
        notification_service.mark_as_read("missing", "alice")

    updated = notification_service.mark_as_read(notification['notification_id'], "alice")
    assert updated['is_read'] is True

def test_list_unread_only(notification_service, users):
    first = _notify(notification_service)
    _notify(notification_service, n_type=NotificationType.CHIRP_LIKE)
    notification_service.mark_as_read(first['notification_id'], "alice")

    assert len(notification_service.list_notifications("alice")) == 2
    unread = notification_service.list_notifications("alice", unread_only=True)
    assert [n['type'] for n in unread] == ["CHIRP_LIKE"]

def test_notification_routes(client, app, users, auth_headers):
    notification = _notify(app.services['notifications'])

    assert client.get('/api/notifications/').status_code == 401

    listed = client.get('/api/notifications/', headers=auth_headers("alice")).get_json()
    assert [n['notification_id'] for n in listed['notifications']] == [notification['notification_id']]
    assert client.get('/api/notifications/unread-count', headers=auth_headers("alice")).get_json() == {"unread_count": 1}

    forbidden = client.post(f"/api/notifications/{notification['notification_id']}/read", headers=auth_headers("bob"))
    assert forbidden.status_code == 403
    assert client.post('/api/notifications/missing/read', headers=auth_headers("alice")).status_code == 404

    read = client.post(f"/api/notifications/{notification['notification_id']}/read", headers=auth_headers("alice"))
    assert read.get_json()['is_read'] is True

    read_all = client.post('/api/notifications/read-all', headers=auth_headers("alice")).get_json()
    assert read_all['updated_count'] == 0
