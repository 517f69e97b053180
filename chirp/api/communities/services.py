# chirp/api/communities/services.py
import uuid
import logging
from dataclasses import asdict
from typing import Optional, Dict, Any, List, Tuple
from firebase_admin import firestore

from chirp.models.community import (
    Community, CommunityMember, CommunitySettings, JoinRequest, MemberRole,
    DEFAULT_COMMUNITY_IMAGE, role_of, is_admin
)
from chirp.models.notification import NotificationType
from chirp.models.user import User
from chirp.services.firestore_service import fetch_documents_by_ids, user_summary
from chirp.utils.datetime_utils import DateTimeUtils

class CommunityUsernameTakenError(ValueError):
    """이미 사용 중인 커뮤니티 username(slug)일 때 발생합니다."""

def membership_id(community_id: str, user_id: str) -> str:
    """community_members / community_join_requests 문서 ID"""
    return f"{community_id}_{user_id}"

class CommunityService:
    """
    커뮤니티 생성/조회/수정/삭제와 멤버십(가입, 탈퇴, 가입 요청 승인, 권한 변경)을 담당하는 서비스 클래스.
    멤버 목록은 community_members 문서와 커뮤니티 문서의 member_ids 배열에 함께 기록됩니다.
    """
    def __init__(self, db=None, chirp_service=None, notification_service=None, storage_service=None):
        self.db = db if db is not None else firestore.client()
        self.communities_ref = self.db.collection('communities')
        self.members_ref = self.db.collection('community_members')
        self.join_requests_ref = self.db.collection('community_join_requests')
        self.users_ref = self.db.collection('users')
        self.chirp_service = chirp_service
        self.notification_service = notification_service
        self.storage_service = storage_service

    # --- 내부 헬퍼 ---
    def _find(self, id_or_username: str) -> Optional[Dict[str, Any]]:
        """커뮤니티 ID 또는 username(slug)으로 커뮤니티 문서를 찾습니다."""
        doc = self.communities_ref.document(id_or_username).get()
        if doc.exists:
            return doc.to_dict()
        query = self.communities_ref.where('username', '==', id_or_username.lower()).limit(1).stream()
        found = next(query, None)
        return found.to_dict() if found else None

    def _get_or_raise(self, id_or_username: str) -> Dict[str, Any]:
        community = self._find(id_or_username)
        if not community:
            raise ValueError("커뮤니티를 찾을 수 없습니다.")
        return community

    def _require_admin(self, community: Dict[str, Any], user_id: str):
        if not is_admin(community, user_id):
            raise PermissionError("커뮤니티 관리자만 할 수 있는 작업입니다.")

    def _add_member(self, community_id: str, user_id: str, role: MemberRole = MemberRole.MEMBER):
        member = CommunityMember(community_id=community_id, user_id=user_id, role=role)
        member_dict = asdict(member)
        member_dict['role'] = member.role.value
        self.members_ref.document(membership_id(community_id, user_id)).set(member_dict)

        update = {'member_ids': firestore.ArrayUnion([user_id]), 'updated_at': DateTimeUtils.now()}
        if role == MemberRole.ADMIN:
            update['admin_ids'] = firestore.ArrayUnion([user_id])
        self.communities_ref.document(community_id).update(update)

    def _remove_member(self, community_id: str, user_id: str):
        self.members_ref.document(membership_id(community_id, user_id)).delete()
        self.communities_ref.document(community_id).update({
            'member_ids': firestore.ArrayRemove([user_id]),
            'admin_ids': firestore.ArrayRemove([user_id]),
            'moderator_ids': firestore.ArrayRemove([user_id]),
            'updated_at': DateTimeUtils.now()
        })

    def _present(self, community: Dict[str, Any], viewer_id: Optional[str]) -> Dict[str, Any]:
        data = {**community, 'member_count': len(community.get('member_ids', [])), 'viewer_role': role_of(community, viewer_id)}
        if viewer_id and community.get('is_private') and data['viewer_role'] is None:
            request_id = membership_id(community['community_id'], viewer_id)
            data['has_pending_request'] = self.join_requests_ref.document(request_id).get().exists
        return data

    # --- 생성 / 조회 / 수정 / 삭제 ---
    def create_community(self, creator: User, data: Dict[str, Any]) -> Dict[str, Any]:
        """커뮤니티를 만들고 생성자를 관리자 멤버로 등록합니다."""
        if not creator.onboarded:
            raise PermissionError("프로필 설정(온보딩)을 먼저 완료해주세요.")
        if self._find(data['username']):
            raise CommunityUsernameTakenError(f"'{data['username']}'은(는) 이미 사용 중인 커뮤니티 username입니다.")

        community_id = str(uuid.uuid4())
        community = Community(
            community_id=community_id,
            name=data['name'],
            username=data['username'],
            creator_id=creator.user_id,
            description=data.get('description'),
            image=data.get('image') or DEFAULT_COMMUNITY_IMAGE,
            cover_image=data.get('cover_image'),
            is_private=data.get('is_private', False),
            settings=CommunitySettings(**data.get('settings', {})),
            tags=data.get('tags', []),
            rules=data.get('rules', []),
        )
        self.communities_ref.document(community_id).set(asdict(community))
        self._add_member(community_id, creator.user_id, MemberRole.ADMIN)
        logging.info(f"커뮤니티 생성 완료 (community_id: {community_id}, username: {community.username})")
        return self._present(self.communities_ref.document(community_id).get().to_dict(), creator.user_id)

    def get_community(self, id_or_username: str, viewer_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        community = self._find(id_or_username)
        return self._present(community, viewer_id) if community else None

    def list_communities(self, viewer_id: Optional[str] = None, search: Optional[str] = None, limit: int = 20) -> List[Dict[str, Any]]:
        """
        커뮤니티 목록을 조회합니다. search가 있으면 username 또는 이름 접두어로 찾습니다.
        비로그인 사용자에게는 비공개 커뮤니티를 보여주지 않습니다.
        """
        term = (search or '').strip()
        if term:
            # username(소문자 slug) 접두어 결과 뒤에 이름 접두어 결과를 붙입니다.
            slug = term.lower()
            queries = [
                self.communities_ref.where('username', '>=', slug).where('username', '<=', slug + '\uf8ff').order_by('username'),
                self.communities_ref.where('name', '>=', term).where('name', '<=', term + '\uf8ff').order_by('name'),
            ]
        else:
            queries = [self.communities_ref.order_by('created_at', direction=firestore.Query.DESCENDING)]

        communities = []
        seen = set()
        for query in queries:
            for doc in query.limit(limit * 2).stream():
                community = doc.to_dict()
                if community['community_id'] in seen or (community.get('is_private') and not viewer_id):
                    continue
                seen.add(community['community_id'])
                communities.append(self._present(community, viewer_id))
                if len(communities) >= limit:
                    return communities
        return communities

    def list_user_communities(self, user_id: str) -> List[Dict[str, Any]]:
        """사용자가 가입한 커뮤니티 목록"""
        query = self.communities_ref.where('member_ids', 'array_contains', user_id)
        return [self._present(doc.to_dict(), user_id) for doc in query.stream()]

    def update_community(self, id_or_username: str, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        community = self._get_or_raise(id_or_username)
        self._require_admin(community, user_id)
        if not data:
            return self._present(community, user_id)

        update_data = dict(data)
        if 'settings' in update_data:
            update_data['settings'] = {**community.get('settings', {}), **update_data['settings']}
        update_data['updated_at'] = DateTimeUtils.now()

        community_ref = self.communities_ref.document(community['community_id'])
        community_ref.update(update_data)

        old_image = community.get('image')
        if self.storage_service and 'image' in data and old_image and old_image != data['image']:
            self.storage_service.delete_by_url(old_image)
        return self._present(community_ref.get().to_dict(), user_id)

    def delete_community(self, id_or_username: str, user_id: str) -> int:
        """
        생성자만 커뮤니티를 삭제할 수 있습니다.
        커뮤니티에 올라온 chirp(답글 포함), 멤버십, 가입 요청도 함께 삭제하고 삭제한 chirp 수를 반환합니다.
        """
        community = self._get_or_raise(id_or_username)
        if community.get('creator_id') != user_id:
            raise PermissionError("커뮤니티 생성자만 삭제할 수 있습니다.")
        community_id = community['community_id']

        deleted_chirps = 0
        if self.chirp_service:
            chirp_query = self.chirp_service.chirps_ref.where('community_id', '==', community_id)
            for chirp_id in [doc.to_dict()['chirp_id'] for doc in chirp_query.stream()]:
                if self.chirp_service.chirps_ref.document(chirp_id).get().exists:
                    deleted_chirps += self.chirp_service.delete_chirp(chirp_id, user_id)

        for doc in self.members_ref.where('community_id', '==', community_id).stream():
            self.members_ref.document(membership_id(community_id, doc.to_dict()['user_id'])).delete()
        for doc in self.join_requests_ref.where('community_id', '==', community_id).stream():
            self.join_requests_ref.document(membership_id(community_id, doc.to_dict()['user_id'])).delete()

        self.communities_ref.document(community_id).delete()
        logging.info(f"커뮤니티 삭제 완료 (community_id: {community_id}, 삭제된 chirp 수: {deleted_chirps})")
        return deleted_chirps

    # --- 멤버십 ---
    def join_community(self, id_or_username: str, user: User, message: str = "") -> str:
        """
        공개 커뮤니티는 바로 가입하고, 비공개 커뮤니티는 가입 요청을 남깁니다.
        :return: 'joined' | 'already_member' | 'request_sent' | 'request_pending'
        """
        if not user.onboarded:
            raise PermissionError("프로필 설정(온보딩)을 먼저 완료해주세요.")
        community = self._get_or_raise(id_or_username)
        community_id = community['community_id']

        if user.user_id in community.get('member_ids', []):
            return 'already_member'

        if not community.get('is_private'):
            self._add_member(community_id, user.user_id)
            logging.info(f"커뮤니티 가입 (community_id: {community_id}, user_id: {user.user_id})")
            return 'joined'

        request_ref = self.join_requests_ref.document(membership_id(community_id, user.user_id))
        if request_ref.get().exists:
            return 'request_pending'

        request_ref.set(asdict(JoinRequest(community_id=community_id, user_id=user.user_id, message=message)))
        if self.notification_service:
            admin_ids = set(community.get('admin_ids', [])) | {community['creator_id']}
            for admin_id in admin_ids:
                self.notification_service.create_notification(
                    recipient_id=admin_id,
                    sender_id=user.user_id,
                    n_type=NotificationType.COMMUNITY_JOIN_REQUEST,
                    target_id=community_id,
                    target_summary=community.get('name')
                )
        return 'request_sent'

    def leave_community(self, id_or_username: str, user_id: str) -> bool:
        """커뮤니티를 탈퇴합니다. 생성자는 탈퇴할 수 없습니다."""
        community = self._get_or_raise(id_or_username)
        if community.get('creator_id') == user_id:
            raise PermissionError("커뮤니티 생성자는 탈퇴할 수 없습니다.")
        if user_id not in community.get('member_ids', []):
            return False
        self._remove_member(community['community_id'], user_id)
        return True

    def list_join_requests(self, id_or_username: str, admin_id: str) -> List[Dict[str, Any]]:
        community = self._get_or_raise(id_or_username)
        self._require_admin(community, admin_id)

        requests = [doc.to_dict() for doc in self.join_requests_ref.where('community_id', '==', community['community_id']).stream()]
        users = fetch_documents_by_ids(self.users_ref, 'user_id', [r['user_id'] for r in requests])
        return [
            {**user_summary(users[r['user_id']]), 'message': r.get('message', ''), 'requested_at': r.get('requested_at')}
            for r in requests if r['user_id'] in users
        ]

    def _pop_join_request(self, community: Dict[str, Any], admin_id: str, user_id: str):
        self._require_admin(community, admin_id)
        request_ref = self.join_requests_ref.document(membership_id(community['community_id'], user_id))
        if not request_ref.get().exists:
            raise ValueError("가입 요청을 찾을 수 없습니다.")
        request_ref.delete()

    def approve_join_request(self, id_or_username: str, admin_id: str, user_id: str):
        community = self._get_or_raise(id_or_username)
        self._pop_join_request(community, admin_id, user_id)
        if user_id not in community.get('member_ids', []):
            self._add_member(community['community_id'], user_id)
        logging.info(f"가입 요청 승인 (community_id: {community['community_id']}, user_id: {user_id})")

    def reject_join_request(self, id_or_username: str, admin_id: str, user_id: str):
        community = self._get_or_raise(id_or_username)
        self._pop_join_request(community, admin_id, user_id)
        logging.info(f"가입 요청 거절 (community_id: {community['community_id']}, user_id: {user_id})")

    def remove_member(self, id_or_username: str, admin_id: str, user_id: str):
        """관리자가 멤버를 내보냅니다. 생성자는 내보낼 수 없습니다."""
        community = self._get_or_raise(id_or_username)
        self._require_admin(community, admin_id)
        if community.get('creator_id') == user_id:
            raise PermissionError("커뮤니티 생성자는 내보낼 수 없습니다.")
        if user_id not in community.get('member_ids', []):
            raise ValueError("커뮤니티 멤버가 아닙니다.")
        self._remove_member(community['community_id'], user_id)

    def promote_to_admin(self, id_or_username: str, creator_id: str, user_id: str):
        """생성자가 멤버를 관리자로 지정합니다."""
        community = self._get_or_raise(id_or_username)
        if community.get('creator_id') != creator_id:
            raise PermissionError("커뮤니티 생성자만 관리자를 지정할 수 있습니다.")
        if user_id not in community.get('member_ids', []):
            raise ValueError("커뮤니티 멤버가 아닙니다.")

        community_id = community['community_id']
        self.members_ref.document(membership_id(community_id, user_id)).update({'role': MemberRole.ADMIN.value})
        self.communities_ref.document(community_id).update({
            'admin_ids': firestore.ArrayUnion([user_id]),
            'moderator_ids': firestore.ArrayRemove([user_id]),
            'updated_at': DateTimeUtils.now()
        })

    def list_members(self, id_or_username: str, viewer_id: Optional[str]) -> List[Dict[str, Any]]:
        """멤버 목록. 멤버 목록 공개 설정이 꺼져 있으면 멤버만 볼 수 있습니다."""
        community = self._get_or_raise(id_or_username)
        is_member = role_of(community, viewer_id) is not None
        if not community.get('settings', {}).get('show_member_list', True) and not is_member:
            raise PermissionError("멤버 목록을 볼 권한이 없습니다.")
        if community.get('is_private') and not is_member:
            raise PermissionError("비공개 커뮤니티의 멤버 목록은 멤버만 볼 수 있습니다.")

        members = [doc.to_dict() for doc in self.members_ref.where('community_id', '==', community['community_id']).stream()]
        users = fetch_documents_by_ids(self.users_ref, 'user_id', [m['user_id'] for m in members])
        return [
            {**user_summary(users[m['user_id']]), 'role': role_of(community, m['user_id']) or m.get('role'), 'joined_at': m.get('joined_at')}
            for m in members if m['user_id'] in users
        ]

    def get_community_chirps(self, id_or_username: str, viewer_id: Optional[str], limit: int = 20,
                             cursor: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """커뮤니티 글 목록. 비공개 커뮤니티는 멤버만 볼 수 있습니다."""
        community = self._get_or_raise(id_or_username)
        if community.get('is_private') and role_of(community, viewer_id) is None:
            raise PermissionError("비공개 커뮤니티의 글은 멤버만 볼 수 있습니다.")
        return self.chirp_service.get_community_chirps(community['community_id'], viewer_id, limit, cursor)
