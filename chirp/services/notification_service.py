# chirp/services/notification_service.py
import logging
import uuid
from dataclasses import asdict
from firebase_admin import firestore
from typing import Optional, List, Dict, Any

from chirp.models.notification import Notification, NotificationType

class NotificationService:
    """
    알림 관련 비즈니스 로직을 담당하는 공용 서비스 클래스.
    좋아요, 답글, 멘션, 팔로우, 커뮤니티 가입 요청 알림을 저장하고 조회합니다.
    """
    def __init__(self, db=None):
        self.db = db if db is not None else firestore.client()
        self.notifications_ref = self.db.collection('notifications')
        self.users_ref = self.db.collection('users')

    def create_notification(self, recipient_id: str, sender_id: str, n_type: NotificationType, target_id: str, target_summary: Optional[str] = None):
        """
        다양한 종류의 알림을 생성하여 Firestore에 저장합니다.
        - 자기 자신에게 보내는 알림은 생성하지 않습니다.
        - 알림 실패가 원래 요청을 실패시키지 않도록 예외는 로그만 남깁니다.

        :param recipient_id: 알림을 받을 사용자 ID
        :param sender_id: 알림을 유발한 사용자 ID
        :param n_type: 알림 유형 (NotificationType Enum)
        :param target_id: 알림의 대상이 되는 객체 ID (chirp_id, user_id, community_id)
        :param target_summary: 알림에 표시될 요약 텍스트 (예: chirp 내용 일부)
        """
        if not recipient_id or recipient_id == sender_id:
            return None

        try:
            sender_doc = self.users_ref.document(sender_id).get()
            if not sender_doc.exists:
                logging.warning(f"알림 생성 실패: 발신자(sender)를 찾을 수 없음 (ID: {sender_id})")
                return None

            sender_info = sender_doc.to_dict()
            sender_data = {
                "user_id": sender_id,
                "username": sender_info.get('username'),
                "name": sender_info.get('name'),
                "image": sender_info.get('image')
            }

            notification = Notification(
                notification_id=str(uuid.uuid4()),
                recipient_id=recipient_id,
                sender=sender_data,
                type=n_type,
                target_id=target_id,
                target_summary=target_summary
            )

            # Enum 멤버를 문자열 값으로 변환하여 저장
            notification_dict = asdict(notification)
            notification_dict['type'] = notification.type.value

            self.notifications_ref.document(notification.notification_id).set(notification_dict)
            logging.info(f"{n_type.value} 알림 생성 완료: {sender_id} -> {recipient_id}")
            return notification_dict

        except Exception as e:
            logging.error(f"알림 생성 중 오류 발생: {e}", exc_info=True)
            return None

    def list_notifications(self, user_id: str, limit: int = 20, unread_only: bool = False) -> List[Dict[str, Any]]:
        """사용자가 받은 알림을 최신순으로 조회합니다."""
        query = self.notifications_ref.where('recipient_id', '==', user_id)
        if unread_only:
            query = query.where('is_read', '==', False)
        docs = query.order_by('created_at', direction=firestore.Query.DESCENDING).limit(limit).stream()
        return [doc.to_dict() for doc in docs]

    def count_unread(self, user_id: str) -> int:
        query = self.notifications_ref.where('recipient_id', '==', user_id).where('is_read', '==', False)
        return sum(1 for _ in query.stream())

    def mark_as_read(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        """알림 하나를 읽음 처리합니다. (수신자 본인만 가능)"""
        notification_ref = self.notifications_ref.document(notification_id)
        doc = notification_ref.get()
        if not doc.exists:
            raise ValueError("알림을 찾을 수 없습니다.")
        if doc.to_dict().get('recipient_id') != user_id:
            raise PermissionError("알림을 변경할 권한이 없습니다.")

        notification_ref.update({'is_read': True})
        return notification_ref.get().to_dict()

    def mark_all_as_read(self, user_id: str) -> int:
        """읽지 않은 알림을 모두 읽음 처리하고, 처리한 개수를 반환합니다."""
        query = self.notifications_ref.where('recipient_id', '==', user_id).where('is_read', '==', False)
        updated = 0
        for doc in query.stream():
            self.notifications_ref.document(doc.to_dict()['notification_id']).update({'is_read': True})
            updated += 1
        return updated
