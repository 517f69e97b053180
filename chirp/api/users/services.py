# chirp/api/users/services.py
import logging
from typing import Optional, Dict, Any, List
from firebase_admin import firestore

from chirp.models.follow import edge_id
from chirp.services.firestore_service import count_documents, user_summary
from chirp.utils.datetime_utils import DateTimeUtils

class UsernameTakenError(ValueError):
    """다른 사용자가 이미 사용 중인 username일 때 발생합니다."""

class UserService:
    """
    사용자 프로필(온보딩, 수정, 조회, 검색) 관련 비즈니스 로직을 담당하는 서비스 클래스.
    """
    def __init__(self, db=None, storage_service=None):
        self.db = db if db is not None else firestore.client()
        self.users_ref = self.db.collection('users')
        self.follows_ref = self.db.collection('follows')
        self.chirps_ref = self.db.collection('chirps')
        self.storage_service = storage_service

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        doc = self.users_ref.document(user_id).get()
        return doc.to_dict() if doc.exists else None

    def get_user_profile(self, user_id: str, viewer_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        사용자의 프로필에 팔로워/팔로잉/chirp 수를 붙여 반환합니다.
        viewer_id가 있으면 서로의 팔로우 관계도 함께 포함합니다.
        """
        user_data = self.get_user(user_id)
        if not user_data:
            return None

        user_data['follower_count'] = count_documents(self.follows_ref.where('followee_id', '==', user_id))
        user_data['following_count'] = count_documents(self.follows_ref.where('follower_id', '==', user_id))
        user_data['chirp_count'] = count_documents(
            self.chirps_ref.where('author_id', '==', user_id).where('parent_id', '==', None)
        )

        if viewer_id and viewer_id != user_id:
            user_data['is_following'] = self.follows_ref.document(edge_id(viewer_id, user_id)).get().exists
            user_data['is_followed_by'] = self.follows_ref.document(edge_id(user_id, viewer_id)).get().exists
        return user_data

    def _ensure_username_available(self, username: str, user_id: str):
        query = self.users_ref.where('username', '==', username).limit(1).stream()
        existing = next(query, None)
        if existing and existing.to_dict().get('user_id') != user_id:
            raise UsernameTakenError(f"'{username}'은(는) 이미 사용 중인 username입니다.")

    def complete_onboarding(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        프로필 정보를 저장하고 onboarded=True로 바꿉니다.
        이미 온보딩한 사용자가 다시 호출하면 프로필 수정처럼 동작합니다.
        """
        user_ref = self.users_ref.document(user_id)
        if not user_ref.get().exists:
            raise ValueError("사용자를 찾을 수 없습니다.")

        self._ensure_username_available(data['username'], user_id)

        update_data = DateTimeUtils.for_firestore({**data, 'onboarded': True})
        user_ref.update(update_data)
        logging.info(f"사용자 온보딩 완료 (user_id: {user_id}, username: {data['username']})")
        return user_ref.get().to_dict()

    def update_profile(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """보낸 필드만 변경합니다. 프로필 이미지가 바뀌면 이전 이미지를 Storage에서 지웁니다."""
        user_ref = self.users_ref.document(user_id)
        doc = user_ref.get()
        if not doc.exists:
            raise ValueError("사용자를 찾을 수 없습니다.")
        if not data:
            return doc.to_dict()

        if 'username' in data:
            self._ensure_username_available(data['username'], user_id)

        old_image = doc.to_dict().get('image')
        user_ref.update(DateTimeUtils.for_firestore(data))

        if self.storage_service and 'image' in data and old_image and old_image != data['image']:
            self.storage_service.delete_by_url(old_image)

        return user_ref.get().to_dict()

    def update_privacy(self, user_id: str, is_private: bool) -> Dict[str, Any]:
        """
        계정 공개 범위를 바꿉니다.
        비공개로 바꿔도 기존 팔로워는 유지되고, 이후의 팔로우만 요청으로 처리됩니다.
        """
        user_ref = self.users_ref.document(user_id)
        if not user_ref.get().exists:
            raise ValueError("사용자를 찾을 수 없습니다.")
        user_ref.update({'is_private': is_private})
        logging.info(f"계정 공개 범위 변경 (user_id: {user_id}, is_private: {is_private})")
        return user_ref.get().to_dict()

    def search_users(self, term: str, limit: int = 20, exclude_user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """username 접두어로 온보딩을 마친 사용자를 검색합니다."""
        term = (term or '').strip().lstrip('@').lower()
        query = self.users_ref.where('onboarded', '==', True)
        if term:
            query = query.where('username', '>=', term).where('username', '<=', term + '\uf8ff')
        query = query.order_by('username').limit(limit + 1)

        results = []
        for doc in query.stream():
            data = doc.to_dict()
            if data.get('user_id') == exclude_user_id:
                continue
            results.append(user_summary(data))
        return results[:limit]

