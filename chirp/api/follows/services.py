# chirp/api/follows/services.py
import logging
from dataclasses import asdict
from typing import Dict, Any, List
from firebase_admin import firestore

from chirp.models.follow import Follow, FollowRequest, edge_id
from chirp.models.notification import NotificationType
from chirp.models.report import UserReport
from chirp.services.firestore_service import fetch_documents_by_ids, user_summary, count_documents

class SelfFollowError(ValueError):
    """자기 자신을 팔로우, 차단하거나 신고하려 할 때 발생합니다."""

class FollowService:
    """
    사용자 간 팔로우/차단/신고 관계를 관리하는 서비스 클래스.
    'follows' 문서 ID를 f"{follower_id}_{followee_id}"로 고정하여
    같은 쌍의 팔로우가 두 번 저장되지 않도록 합니다.
    비공개 계정에 대한 팔로우는 같은 규칙의 ID로 'follow_requests'에 먼저 저장됩니다.
    """
    def __init__(self, db=None, notification_service=None):
        self.db = db if db is not None else firestore.client()
        self.follows_ref = self.db.collection('follows')
        self.follow_requests_ref = self.db.collection('follow_requests')
        self.reports_ref = self.db.collection('user_reports')
        self.users_ref = self.db.collection('users')
        self.notification_service = notification_service

    def _get_user_or_raise(self, user_id: str) -> Dict[str, Any]:
        doc = self.users_ref.document(user_id).get()
        if not doc.exists:
            raise ValueError("사용자를 찾을 수 없습니다.")
        return doc.to_dict()

    def _notify(self, recipient_id: str, sender_id: str, n_type: NotificationType):
        if self.notification_service:
            self.notification_service.create_notification(
                recipient_id=recipient_id,
                sender_id=sender_id,
                n_type=n_type,
                target_id=sender_id
            )

    def _create_edge(self, follower_id: str, followee_id: str):
        follow = Follow(follower_id=follower_id, followee_id=followee_id)
        self.follows_ref.document(follow.edge_id).set(asdict(follow))
        logging.info(f"팔로우 생성: {follower_id} -> {followee_id}")

    def follow(self, follower_id: str, followee_id: str) -> str:
        """
        follower가 followee를 팔로우합니다.
        followee가 비공개 계정이면 팔로우 대신 팔로우 요청을 보냅니다.

        :return: 'following' | 'already_following' | 'request_sent' | 'request_pending'
        """
        if follower_id == followee_id:
            raise SelfFollowError("자기 자신을 팔로우할 수 없습니다.")

        follower = self._get_user_or_raise(follower_id)
        followee = self._get_user_or_raise(followee_id)
        if followee_id in follower.get('blocked_ids', []) or follower_id in followee.get('blocked_ids', []):
            raise PermissionError("차단 관계인 사용자는 팔로우할 수 없습니다.")

        if self.follows_ref.document(edge_id(follower_id, followee_id)).get().exists:
            return "already_following"

        if followee.get('is_private'):
            request_ref = self.follow_requests_ref.document(edge_id(follower_id, followee_id))
            if request_ref.get().exists:
                return "request_pending"
            request_ref.set(asdict(FollowRequest(requester_id=follower_id, target_id=followee_id)))
            logging.info(f"팔로우 요청: {follower_id} -> {followee_id}")
            self._notify(followee_id, follower_id, NotificationType.FOLLOW_REQUEST)
            return "request_sent"

        self._create_edge(follower_id, followee_id)
        self._notify(followee_id, follower_id, NotificationType.FOLLOW)
        return "following"

    def unfollow(self, follower_id: str, followee_id: str) -> bool:
        """
        팔로우를 취소합니다. 아직 수락되지 않은 팔로우 요청이 있으면 요청을 취소합니다.
        둘 다 없으면 오류 없이 False를 반환합니다.
        """
        follow_ref = self.follows_ref.document(edge_id(follower_id, followee_id))
        if follow_ref.get().exists:
            follow_ref.delete()
            logging.info(f"팔로우 취소: {follower_id} -> {followee_id}")
            return True

        request_ref = self.follow_requests_ref.document(edge_id(follower_id, followee_id))
        if request_ref.get().exists:
            request_ref.delete()
            logging.info(f"팔로우 요청 취소: {follower_id} -> {followee_id}")
            return True
        return False

    # --- 팔로우 요청 (비공개 계정) ---
    def list_follow_requests(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """user_id에게 들어온 팔로우 요청을 최신순으로 반환합니다. (요청자 요약 + requested_at)"""
        self._get_user_or_raise(user_id)
        query = self.follow_requests_ref.where('target_id', '==', user_id).order_by(
            'created_at', direction=firestore.Query.DESCENDING
        ).limit(limit)
        requests = [doc.to_dict() for doc in query.stream()]
        users = fetch_documents_by_ids(self.users_ref, 'user_id', [r['requester_id'] for r in requests])
        return [
            {"user": user_summary(users[r['requester_id']]), "requested_at": r['created_at']}
            for r in requests if r['requester_id'] in users
        ]

    def accept_follow_request(self, user_id: str, requester_id: str):
        """requester의 팔로우 요청을 수락하여 requester -> user_id 팔로우를 만듭니다."""
        request_ref = self.follow_requests_ref.document(edge_id(requester_id, user_id))
        if not request_ref.get().exists:
            raise ValueError("팔로우 요청을 찾을 수 없습니다.")
        request_ref.delete()
        self._create_edge(requester_id, user_id)
        self._notify(requester_id, user_id, NotificationType.FOLLOW)

    def reject_follow_request(self, user_id: str, requester_id: str):
        """requester의 팔로우 요청을 거절(삭제)합니다."""
        request_ref = self.follow_requests_ref.document(edge_id(requester_id, user_id))
        if not request_ref.get().exists:
            raise ValueError("팔로우 요청을 찾을 수 없습니다.")
        request_ref.delete()
        logging.info(f"팔로우 요청 거절: {requester_id} -> {user_id}")

    def _list_users(self, id_field: str, other_field: str, user_id: str, limit: int) -> List[Dict[str, Any]]:
        query = self.follows_ref.where(id_field, '==', user_id).order_by(
            'created_at', direction=firestore.Query.DESCENDING
        ).limit(limit)
        other_ids = [doc.to_dict()[other_field] for doc in query.stream()]
        users = fetch_documents_by_ids(self.users_ref, 'user_id', other_ids)
        # 팔로우 순서를 유지하고, 탈퇴 등으로 사라진 사용자는 제외합니다.
        return [user_summary(users[uid]) for uid in other_ids if uid in users]

    def list_followers(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """user_id를 팔로우하는 사용자 목록"""
        self._get_user_or_raise(user_id)
        return self._list_users('followee_id', 'follower_id', user_id, limit)

    def list_following(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """user_id가 팔로우하는 사용자 목록"""
        self._get_user_or_raise(user_id)
        return self._list_users('follower_id', 'followee_id', user_id, limit)

    def relationship(self, viewer_id: str, target_id: str) -> Dict[str, Any]:
        """viewer 기준으로 target과의 팔로우/요청/차단/신고 관계를 반환합니다."""
        viewer = self._get_user_or_raise(viewer_id)
        target = self._get_user_or_raise(target_id)
        return {
            "user_id": target_id,
            "is_self": viewer_id == target_id,
            "is_private": bool(target.get('is_private')),
            "is_following": self.follows_ref.document(edge_id(viewer_id, target_id)).get().exists,
            "is_followed_by": self.follows_ref.document(edge_id(target_id, viewer_id)).get().exists,
            "has_pending_request": self.follow_requests_ref.document(edge_id(viewer_id, target_id)).get().exists,
            "has_incoming_request": self.follow_requests_ref.document(edge_id(target_id, viewer_id)).get().exists,
            "is_blocked": target_id in viewer.get('blocked_ids', []),
            "is_reported": self.reports_ref.document(edge_id(viewer_id, target_id)).get().exists,
            "follower_count": count_documents(self.follows_ref.where('followee_id', '==', target_id)),
            "following_count": count_documents(self.follows_ref.where('follower_id', '==', target_id)),
        }

    def toggle_block(self, user_id: str, target_id: str) -> bool:
        """
        target을 차단하거나 차단을 해제합니다.
        차단하면 양방향 팔로우 관계와 대기 중인 팔로우 요청이 모두 끊어집니다.

        :return: 처리 후 차단 상태이면 True
        """
        if user_id == target_id:
            raise SelfFollowError("자기 자신을 차단할 수 없습니다.")

        user = self._get_user_or_raise(user_id)
        self._get_user_or_raise(target_id)
        user_ref = self.users_ref.document(user_id)

        if target_id in user.get('blocked_ids', []):
            user_ref.update({'blocked_ids': firestore.ArrayRemove([target_id])})
            logging.info(f"차단 해제: {user_id} -> {target_id}")
            return False

        user_ref.update({'blocked_ids': firestore.ArrayUnion([target_id])})
        self.unfollow(user_id, target_id)
        self.unfollow(target_id, user_id)
        logging.info(f"차단: {user_id} -> {target_id}")
        return True

    def report_user(self, reporter_id: str, target_id: str, reason: str) -> Dict[str, Any]:
        """
        target을 신고합니다. 같은 사용자를 다시 신고하면 사유와 시간이 갱신됩니다.
        """
        if reporter_id == target_id:
            raise SelfFollowError("자기 자신을 신고할 수 없습니다.")

        self._get_user_or_raise(reporter_id)
        self._get_user_or_raise(target_id)

        report = UserReport(reporter_id=reporter_id, target_id=target_id, reason=reason)
        self.reports_ref.document(edge_id(reporter_id, target_id)).set(asdict(report))
        logging.info(f"사용자 신고: {reporter_id} -> {target_id}")
        return asdict(report)
