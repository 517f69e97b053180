# chirp/models/follow.py
from dataclasses import dataclass, field
from datetime import datetime

from chirp.utils.datetime_utils import DateTimeUtils

def edge_id(follower_id: str, followee_id: str) -> str:
    """팔로우 문서 ID. (follower, followee) 쌍마다 문서가 하나뿐이므로 엣지가 중복되지 않습니다."""
    return f"{follower_id}_{followee_id}"

@dataclass
class Follow:
    """
    Firestore 'follows' 컬렉션의 문서 구조 (Relationship Edge follower -> followee).
    """
    follower_id: str
    followee_id: str
    created_at: datetime = field(default_factory=DateTimeUtils.now)

    @property
    def edge_id(self) -> str:
        return edge_id(self.follower_id, self.followee_id)

@dataclass
class FollowRequest:
    """
    Firestore 'follow_requests' 컬렉션의 문서 구조.
    비공개 계정(is_private=True)을 팔로우하려 하면 엣지 대신 요청이 저장되고,
    대상 사용자가 수락하면 Follow 문서로 바뀝니다. 문서 ID는 edge_id(requester, target)입니다.
    """
    requester_id: str
    target_id: str
    created_at: datetime = field(default_factory=DateTimeUtils.now)
