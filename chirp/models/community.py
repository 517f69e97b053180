# chirp/models/community.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from chirp.utils.datetime_utils import DateTimeUtils

DEFAULT_COMMUNITY_IMAGE = "/assets/community-default.svg"

class MemberRole(Enum):
    """커뮤니티 멤버 역할. 생성자는 creator_id로 별도 저장됩니다."""
    MEMBER = "member"
    MODERATOR = "moderator"
    ADMIN = "admin"

@dataclass
class CommunitySettings:
    allow_member_posts: bool = True
    require_approval_for_posts: bool = False
    allow_member_invites: bool = True
    show_member_list: bool = True

@dataclass
class Community:
    """
    Firestore 'communities' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    member_ids/admin_ids는 array_contains 쿼리를 위해 community_members 문서를 그대로 반영합니다.
    """
    community_id: str
    name: str
    username: str
    creator_id: str
    description: Optional[str] = None
    image: str = DEFAULT_COMMUNITY_IMAGE
    cover_image: Optional[str] = None
    is_private: bool = False
    admin_ids: List[str] = field(default_factory=list)
    moderator_ids: List[str] = field(default_factory=list)
    member_ids: List[str] = field(default_factory=list)
    settings: CommunitySettings = field(default_factory=CommunitySettings)
    tags: List[str] = field(default_factory=list)
    rules: List[Dict[str, str]] = field(default_factory=list)
    created_at: datetime = field(default_factory=DateTimeUtils.now)
    updated_at: datetime = field(default_factory=DateTimeUtils.now)

@dataclass
class CommunityMember:
    """Firestore 'community_members' 문서. 문서 ID: f"{community_id}_{user_id}"."""
    community_id: str
    user_id: str
    role: MemberRole = MemberRole.MEMBER
    joined_at: datetime = field(default_factory=DateTimeUtils.now)

@dataclass
class JoinRequest:
    """비공개 커뮤니티 가입 요청. 문서 ID: f"{community_id}_{user_id}"."""
    community_id: str
    user_id: str
    message: str = ""
    requested_at: datetime = field(default_factory=DateTimeUtils.now)

def role_of(community: Dict[str, Any], user_id: Optional[str]) -> Optional[str]:
    """creator > admin > moderator > member 순서로 사용자의 역할을 판별합니다."""
    if not user_id:
        return None
    if community.get("creator_id") == user_id:
        return "creator"
    if user_id in community.get("admin_ids", []):
        return MemberRole.ADMIN.value
    if user_id in community.get("moderator_ids", []):
        return MemberRole.MODERATOR.value
    if user_id in community.get("member_ids", []):
        return MemberRole.MEMBER.value
    return None

def is_admin(community: Dict[str, Any], user_id: Optional[str]) -> bool:
    return role_of(community, user_id) in ("creator", MemberRole.ADMIN.value)
