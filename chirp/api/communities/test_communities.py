# chirp/api/communities/test_communities.py
import pytest
from marshmallow import ValidationError

from chirp.api.chirps.services import ChirpService
from chirp.api.communities.schemas import CommunityCreateSchema
from chirp.api.communities.services import CommunityService, CommunityUsernameTakenError, membership_id
from chirp.services.notification_service import NotificationService

@pytest.fixture
def chirp_service(db):
    return ChirpService(db=db)

@pytest.fixture
def community_service(db, chirp_service):
    return CommunityService(db=db, chirp_service=chirp_service, notification_service=NotificationService(db=db))

@pytest.fixture
def users(make_user):
    return make_user("alice"), make_user("bob"), make_user("carol")

def _create(service, creator, username="flaskfans", **data):
    return service.create_community(creator, {"name": "Flask Fans", "username": username, **data})

def _chirp(text="Hello community", community_id=None):
    return {"text": text, "account_id": "", "community_id": community_id,
            "hashtags": [], "mentions": [], "attachments": [], "community_tags": []}

# --- 스키마 ---
def test_create_schema_normalizes_username_and_tags():
    data = CommunityCreateSchema().load({"name": "Flask Fans", "username": "FlaskFans", "tags": ["Python", "python ", "Web"]})
    assert data['username'] == "flaskfans"
    assert data['tags'] == ["python", "web"]
    assert data['settings'] == {}

def test_create_schema_rejects_bad_username():
    with pytest.raises(ValidationError) as exc_info:
        CommunityCreateSchema().load({"name": "Flask Fans", "username": "no spaces!"})
    assert "username" in exc_info.value.messages

# --- 생성 / 조회 ---
def test_creator_becomes_admin_member(db, community_service, users):
    alice, _, _ = users
    community = _create(community_service, alice)

    assert community['viewer_role'] == "creator"
    assert community['member_count'] == 1
    assert community['admin_ids'] == ["alice"]
    member = db.collection('community_members').document(membership_id(community['community_id'], "alice")).get()
    assert member.to_dict()['role'] == "admin"

def test_duplicate_username_is_rejected(community_service, users):
    alice, bob, _ = users
    _create(community_service, alice)
    with pytest.raises(CommunityUsernameTakenError):
        _create(community_service, bob)

def test_get_community_by_id_or_username(community_service, users):
    alice, _, _ = users
    community = _create(community_service, alice)

    assert community_service.get_community(community['community_id'])['username'] == "flaskfans"
    assert community_service.get_community("FlaskFans", "bob")['viewer_role'] is None
    assert community_service.get_community("missing") is None

def test_private_communities_hidden_from_anonymous(community_service, users):
    alice, _, _ = users
    _create(community_service, alice, username="public_one")
    _create(community_service, alice, username="secret_one", is_private=True)

    assert [c['username'] for c in community_service.list_communities()] == ["public_one"]
    assert len(community_service.list_communities("bob")) == 2
    assert [c['username'] for c in community_service.list_communities("bob", search="sec")] == ["secret_one"]
    assert len(community_service.list_communities("bob", search="Flask")) == 2
    assert [c['username'] for c in community_service.list_communities(search="Flask")] == ["public_one"]

def test_update_merges_settings(community_service, users):
    alice, bob, _ = users
    community = _create(community_service, alice)

    updated = community_service.update_community(community['community_id'], "alice", {
        "description": "All about Flask",
        "settings": {"allow_member_posts": False}
    })
    assert updated['description'] == "All about Flask"
    assert updated['settings']['allow_member_posts'] is False
    assert updated['settings']['show_member_list'] is True

    with pytest.raises(PermissionError):
        community_service.update_community(community['community_id'], "bob", {"name": "Hijacked"})

# --- 멤버십 ---
def test_join_public_community(community_service, users):
    alice, bob, _ = users
    community = _create(community_service, alice)

    assert community_service.join_community(community['community_id'], bob) == "joined"
    assert community_service.join_community(community['community_id'], bob) == "already_member"
    assert community_service.get_community(community['community_id'], "bob")['viewer_role'] == "member"
    assert [c['community_id'] for c in community_service.list_user_communities("bob")] == [community['community_id']]

def test_private_community_join_request_flow(db, community_service, users):
    alice, bob, carol = users
    community = _create(community_service, alice, is_private=True)
    cid = community['community_id']

    assert community_service.join_community(cid, bob, "let me in") == "request_sent"
    assert community_service.join_community(cid, bob) == "request_pending"
    assert community_service.get_community(cid, "bob")['has_pending_request'] is True

    notifications = [doc.to_dict() for doc in db.collection('notifications').stream()]
    assert [(n['recipient_id'], n['type']) for n in notifications] == [("alice", "COMMUNITY_JOIN_REQUEST")]

    requests = community_service.list_join_requests(cid, "alice")
    assert [(r['user_id'], r['message']) for r in requests] == [("bob", "let me in")]
    with pytest.raises(PermissionError):
        community_service.list_join_requests(cid, "bob")

    community_service.approve_join_request(cid, "alice", "bob")
    assert community_service.get_community(cid, "bob")['viewer_role'] == "member"
    assert not db.collection('community_join_requests').document(membership_id(cid, "bob")).get().exists

    community_service.join_community(cid, carol)
    community_service.reject_join_request(cid, "alice", "carol")
    assert community_service.get_community(cid, "carol")['viewer_role'] is None
    with pytest.raises(ValueError):
        community_service.approve_join_request(cid, "alice", "carol")

def test_leave_and_remove_member(community_service, users):
    alice, bob, carol = users
    community = _create(community_service, alice)
    cid = community['community_id']
    community_service.join_community(cid, bob)
    community_service.join_community(cid, carol)

    with pytest.raises(PermissionError):
        community_service.leave_community(cid, "alice")
    assert community_service.leave_community(cid, "bob") is True
    assert community_service.leave_community(cid, "bob") is False

    with pytest.raises(PermissionError):
        community_service.remove_member(cid, "carol", "alice")
    community_service.remove_member(cid, "alice", "carol")
    assert community_service.get_community(cid)['member_count'] == 1

def test_promote_to_admin_is_creator_only(community_service, users):
    alice, bob, carol = users
    community = _create(community_service, alice)
    cid = community['community_id']
    community_service.join_community(cid, bob)
    community_service.join_community(cid, carol)

    with pytest.raises(PermissionError):
        community_service.promote_to_admin(cid, "bob", "carol")
    community_service.promote_to_admin(cid, "alice", "bob")

    members = {m['user_id']: m['role'] for m in community_service.list_members(cid, "carol")}
    assert members == {"alice": "creator", "bob": "admin", "carol": "member"}

def test_member_list_visibility(community_service, users):
    alice, bob, _ = users
    community = _create(community_service, alice, is_private=True)
    with pytest.raises(PermissionError):
        community_service.list_members(community['community_id'], "bob")
    assert len(community_service.list_members(community['community_id'], "alice")) == 1

# --- 커뮤니티 글 ---
def test_only_members_can_post(community_service, chirp_service, users):
    alice, bob, _ = users
    community = _create(community_service, alice)

    with pytest.raises(PermissionError):
        chirp_service.create_chirp(bob, _chirp(community_id=community['community_id']))

    community_service.join_community(community['community_id'], bob)
    chirp = chirp_service.create_chirp(bob, _chirp(community_id=community['community_id']))
    assert chirp['community']['username'] == "flaskfans"

    chirps, _ = community_service.get_community_chirps("flaskfans", None)
    assert [c['chirp_id'] for c in chirps] == [chirp['chirp_id']]

def test_admin_only_posting(community_service, chirp_service, users):
    alice, bob, _ = users
    community = _create(community_service, alice, settings={"allow_member_posts": False})
    community_service.join_community(community['community_id'], bob)

    with pytest.raises(PermissionError):
        chirp_service.create_chirp(bob, _chirp(community_id=community['community_id']))
    chirp_service.create_chirp(alice, _chirp(community_id=community['community_id']))

def test_admin_can_delete_member_chirp(community_service, chirp_service, users):
    alice, bob, _ = users
    community = _create(community_service, alice)
    community_service.join_community(community['community_id'], bob)
    chirp = chirp_service.create_chirp(bob, _chirp(community_id=community['community_id']))

    assert chirp_service.delete_chirp(chirp['chirp_id'], "alice") == 1

def test_private_community_chirps_need_membership(community_service, users):
    alice, _, _ = users
    community = _create(community_service, alice, is_private=True)
    with pytest.raises(PermissionError):
        community_service.get_community_chirps(community['community_id'], "bob")

def test_delete_community_cascades(db, community_service, chirp_service, users):
    alice, bob, _ = users
    community = _create(community_service, alice)
    cid = community['community_id']
    community_service.join_community(cid, bob)
    post = chirp_service.create_chirp(bob, _chirp(community_id=cid))
    chirp_service.add_reply(post['chirp_id'], alice, _chirp(text="welcome aboard"))

    with pytest.raises(PermissionError):
        community_service.delete_community(cid, "bob")

    assert community_service.delete_community(cid, "alice") == 2
    assert not db.collection('communities').document(cid).get().exists
    assert list(db.collection('community_members').stream()) == []
    assert list(db.collection('chirps').stream()) == []

# --- 라우트 ---
def test_community_routes(client, users, auth_headers):
    response = client.post('/api/communities/', json={"name": "Flask Fans", "username": "FlaskFans"}, headers=auth_headers("alice"))
    assert response.status_code == 201
    community = response.get_json()
    assert community['username'] == "flaskfans"

    duplicate = client.post('/api/communities/', json={"name": "Again", "username": "flaskfans"}, headers=auth_headers("bob"))
    assert duplicate.status_code == 409
    assert duplicate.get_json()['error_code'] == "COMMUNITY_USERNAME_TAKEN"

    joined = client.post(f"/api/communities/{community['community_id']}/join", headers=auth_headers("bob"))
    assert joined.get_json()['status'] == "joined"

    members = client.get('/api/communities/flaskfans/members').get_json()['members']
    assert {m['user_id'] for m in members} == {"alice", "bob"}

    assert client.delete('/api/communities/flaskfans', headers=auth_headers("bob")).status_code == 403
    assert client.get('/api/communities/missing').status_code == 404
    assert client.post('/api/communities/missing/join', headers=auth_headers("bob")).status_code == 404

def test_create_route_validates_input(client, users, auth_headers):
    response = client.post('/api/communities/', json={"username": "x"}, headers=auth_headers("alice"))
    assert response.status_code == 400
    assert set(response.get_json()['details']) == {"name", "username"}
