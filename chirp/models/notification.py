# chirp/models/notification.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional

from chirp.utils.datetime_utils import DateTimeUtils

class NotificationType(Enum):
    """알림 유형을 정의하는 Enum 클래스"""
    CHIRP_LIKE = "CHIRP_LIKE"
    REPLY = "REPLY"
    MENTION = "MENTION"
    FOLLOW = "FOLLOW"
    FOLLOW_REQUEST = "FOLLOW_REQUEST"
    COMMUNITY_JOIN_REQUEST = "COMMUNITY_JOIN_REQUEST"

@dataclass
class Notification:
    """
    Firestore 'notifications' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    """
    notification_id: str
    recipient_id: str      # 알림을 받는 사용자 ID
    sender: Dict[str, Any] # 알림을 유발한 사용자 요약 정보
    type: NotificationType
    target_id: str         # chirp_id, user_id, community_id 등
    target_summary: Optional[str] = None
    is_read: bool = False
    created_at: datetime = field(default_factory=DateTimeUtils.now)
