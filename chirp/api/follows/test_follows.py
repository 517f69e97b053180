# chirp/api/follows/test_follows.py
import pytest

from chirp.api.follows.services import FollowService, SelfFollowError
from chirp.services.notification_service import NotificationService

@pytest.fixture
def follow_service(db):
    return FollowService(db=db, notification_service=NotificationService(db=db))

@pytest.fixture
def users(make_user):
    return make_user("alice"), make_user("bob"), make_user("carol")

def _edges(db):
    return [doc.to_dict() for doc in db.collection('follows').stream()]

def test_follow_twice_creates_single_edge(db, follow_service, users):
    assert follow_service.follow("alice", "bob") == "following"
    assert follow_service.follow("alice", "bob") == "already_following"

    edges = _edges(db)
    assert len(edges) == 1
    assert edges[0]['follower_id'] == "alice"
    assert edges[0]['followee_id'] == "bob"

def test_self_follow_is_rejected(db, follow_service, users):
    with pytest.raises(SelfFollowError):
        follow_service.follow("alice", "alice")
    assert _edges(db) == []

def test_follow_unknown_user_raises_value_error(follow_service, users):
    with pytest.raises(ValueError):
        follow_service.follow("alice", "nobody")

def test_unfollow_is_idempotent(db, follow_service, users):
    assert follow_service.unfollow("alice", "bob") is False

    follow_service.follow("alice", "bob")
    assert follow_service.unfollow("alice", "bob") is True
    assert follow_service.unfollow("alice", "bob") is False
    assert _edges(db) == []

def test_follow_sends_notification(db, follow_service, users):
    follow_service.follow("alice", "bob")

    notifications = [doc.to_dict() for doc in db.collection('notifications').stream()]
    assert len(notifications) == 1
    assert notifications[0]['recipient_id'] == "bob"
    assert notifications[0]['type'] == "FOLLOW"
    assert notifications[0]['sender']['username'] == "alice"

def test_list_followers_and_following(follow_service, users):
    follow_service.follow("alice", "bob")
    follow_service.follow("carol", "bob")
    follow_service.follow("bob", "alice")

    followers = {u['user_id'] for u in follow_service.list_followers("bob")}
    following = [u['username'] for u in follow_service.list_following("bob")]

    assert followers == {"alice", "carol"}
    assert following == ["alice"]

def test_relationship_reports_both_directions(follow_service, users):
    follow_service.follow("alice", "bob")

    relationship = follow_service.relationship("bob", "alice")
    assert relationship['is_following'] is False
    assert relationship['is_followed_by'] is True
    assert relationship['is_blocked'] is False
    assert relationship['follower_count'] == 0
    assert relationship['following_count'] == 1
    assert follow_service.relationship("alice", "bob")['follower_count'] == 1

def test_block_removes_edges_and_prevents_follow(db, follow_service, users):
    follow_service.follow("alice", "bob")
    follow_service.follow("bob", "alice")

    assert follow_service.toggle_block("alice", "bob") is True
    assert _edges(db) == []

    with pytest.raises(PermissionError):
        follow_service.follow("bob", "alice")
    with pytest.raises(PermissionError):
        follow_service.follow("alice", "bob")

    assert follow_service.toggle_block("alice", "bob") is False
    assert follow_service.follow("bob", "alice") == "following"

def test_follow_routes(client, users, auth_headers):
    headers = auth_headers("alice")

    first = client.post('/api/users/bob/follow', headers=headers)
    second = client.post('/api/users/bob/follow', headers=headers)
    assert first.status_code == 201
    assert second.status_code == 200
    assert first.get_json()['status'] == "following"
    assert second.get_json()['changed'] is False

    assert client.post('/api/users/alice/follow', headers=headers).status_code == 400
    assert client.post('/api/users/nobody/follow', headers=headers).status_code == 404

    followers = client.get('/api/users/bob/followers').get_json()['users']
    assert [u['user_id'] for u in followers] == ["alice"]

    relationship = client.get('/api/users/bob/relationship', headers=headers).get_json()
    assert relationship['is_following'] is True
    assert relationship['follower_count'] == 1

    response = client.delete('/api/users/bob/follow', headers=headers)
    assert response.status_code == 200
    assert response.get_json()['is_following'] is False

def test_block_route(client, users, auth_headers):
    response = client.post('/api/users/bob/block', headers=auth_headers("alice"))
    assert response.status_code == 200
    assert response.get_json()['is_blocked'] is True

    blocked_follow = client.post('/api/users/alice/follow', headers=auth_headers("bob"))
    assert blocked_follow.status_code == 403

# --- 비공개 계정 / 팔로우 요청 ---
def _requests(db):
    return [doc.to_dict() for doc in db.collection('follow_requests').stream()]

def test_private_account_receives_follow_request(db, follow_service, make_user, users):
    make_user("dave", is_private=True)

    assert follow_service.follow("alice", "dave") == "request_sent"
    assert follow_service.follow("alice", "dave") == "request_pending"
    assert _edges(db) == []
    assert [(r['requester_id'], r['target_id']) for r in _requests(db)] == [("alice", "dave")]

    notifications = [doc.to_dict() for doc in db.collection('notifications').stream()]
    assert [(n['recipient_id'], n['type']) for n in notifications] == [("dave", "FOLLOW_REQUEST")]

    relationship = follow_service.relationship("alice", "dave")
    assert relationship['is_private'] is True
    assert relationship['has_pending_request'] is True
    assert relationship['is_following'] is False
    assert follow_service.relationship("dave", "alice")['has_incoming_request'] is True

def test_accept_follow_request_creates_edge(db, follow_service, make_user, users):
    make_user("dave", is_private=True)
    follow_service.follow("alice", "dave")
    follow_service.follow("bob", "dave")

    requests = follow_service.list_follow_requests("dave")
    assert {r['user']['user_id'] for r in requests} == {"alice", "bob"}

    follow_service.accept_follow_request("dave", "alice")
    assert [u['user_id'] for u in follow_service.list_followers("dave")] == ["alice"]
    assert [r['user']['user_id'] for r in follow_service.list_follow_requests("dave")] == ["bob"]
    assert follow_service.follow("alice", "dave") == "already_following"

    with pytest.raises(ValueError):
        follow_service.accept_follow_request("dave", "alice")

def test_reject_and_cancel_follow_request(db, follow_service, make_user, users):
    make_user("dave", is_private=True)
    follow_service.follow("alice", "dave")
    follow_service.follow("bob", "dave")

    follow_service.reject_follow_request("dave", "alice")
    assert follow_service.unfollow("bob", "dave") is True
    assert _requests(db) == []
    assert _edges(db) == []

    with pytest.raises(ValueError):
        follow_service.reject_follow_request("dave", "alice")

def test_block_clears_pending_requests(db, follow_service, make_user, users):
    make_user("dave", is_private=True)
    follow_service.follow("alice", "dave")

    follow_service.toggle_block("dave", "alice")
    assert _requests(db) == []

def test_report_user(db, follow_service, users):
    report = follow_service.report_user("alice", "bob", "spam")
    assert report['reason'] == "spam"
    assert follow_service.relationship("alice", "bob")['is_reported'] is True
    assert follow_service.relationship("bob", "alice")['is_reported'] is False

    follow_service.report_user("alice", "bob", "still spam")
    reports = [doc.to_dict() for doc in db.collection('user_reports').stream()]
    assert [r['reason'] for r in reports] == ["still spam"]

    with pytest.raises(SelfFollowError):
        follow_service.report_user("alice", "alice", "me")
    with pytest.raises(ValueError):
        follow_service.report_user("alice", "nobody", "ghost")

def test_follow_request_routes(client, make_user, users, auth_headers):
    make_user("dave", is_private=True)

    sent = client.post('/api/users/dave/follow', headers=auth_headers("alice"))
    assert sent.status_code == 201
    assert sent.get_json()['status'] == "request_sent"
    assert sent.get_json()['is_following'] is False
    assert sent.get_json()['has_pending_request'] is True

    requests = client.get('/api/users/me/follow-requests', headers=auth_headers("dave")).get_json()['requests']
    assert [r['user']['username'] for r in requests] == ["alice"]
    assert requests[0]['requested_at']

    accepted = client.post('/api/users/me/follow-requests/alice/accept', headers=auth_headers("dave"))
    assert accepted.status_code == 200
    assert client.post('/api/users/me/follow-requests/alice/reject', headers=auth_headers("dave")).status_code == 404

    followers = client.get('/api/users/dave/followers').get_json()['users']
    assert [u['user_id'] for u in followers] == ["alice"]

def test_report_route(client, users, auth_headers):
    response = client.post('/api/users/bob/report', json={"reason": "spam"}, headers=auth_headers("alice"))
    assert response.status_code == 201
    assert response.get_json()['reason'] == "spam"

    assert client.post('/api/users/bob/report', json={}, headers=auth_headers("alice")).status_code == 400
    assert client.post('/api/users/alice/report', json={"reason": "me"}, headers=auth_headers("alice")).status_code == 400
    assert client.post('/api/users/nobody/report', json={"reason": "x"}, headers=auth_headers("alice")).status_code == 404
