# chirp/models/chirp.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from chirp.utils.datetime_utils import DateTimeUtils

class AttachmentType(Enum):
    """첨부 파일 종류"""
    IMAGE = "image"
    FILE = "file"
    AUDIO = "audio"

@dataclass
class Mention:
    """Chirp 문서 내부에 저장될 멘션. username은 작성 시점의 대상 사용자 값을 복사합니다."""
    user_id: str
    username: str

@dataclass
class CommunityTag:
    """일반 chirp에서 커뮤니티를 태그할 때 저장되는 정보."""
    community_id: str
    community_username: str

@dataclass
class Attachment:
    type: AttachmentType
    url: str
    filename: Optional[str] = None
    size: Optional[int] = None

    def to_document(self) -> Dict[str, Any]:
        return {"type": self.type.value, "url": self.url, "filename": self.filename, "size": self.size}

@dataclass
class Chirp:
    """
    Firestore 'chirps' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    parent_id가 있으면 답글이며, 해당 ID는 부모 문서의 children에도 기록됩니다.
    """
    chirp_id: str
    text: str
    author_id: str
    author: Dict[str, Any]  # {'user_id', 'username', 'name', 'image'}
    community_id: Optional[str] = None
    community: Optional[Dict[str, Any]] = None  # 커뮤니티 글일 때 {community_id, name, username, image}
    parent_id: Optional[str] = None
    children: List[str] = field(default_factory=list)
    hashtags: List[str] = field(default_factory=list)
    mentions: List[Mention] = field(default_factory=list)
    community_tags: List[CommunityTag] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    likes: List[str] = field(default_factory=list)
    shares: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=DateTimeUtils.now)

    def to_document(self) -> Dict[str, Any]:
        """Enum 멤버를 문자열 값으로 바꾼 Firestore 저장용 dict."""
        return {
            "chirp_id": self.chirp_id,
            "text": self.text,
            "author_id": self.author_id,
            "author": self.author,
            "community_id": self.community_id,
            "community": self.community,
            "parent_id": self.parent_id,
            "children": list(self.children),
            "hashtags": list(self.hashtags),
            "mentions": [{"user_id": m.user_id, "username": m.username} for m in self.mentions],
            "community_tags": [
                {"community_id": t.community_id, "community_username": t.community_username}
                for t in self.community_tags
            ],
            # community_tags는 map 배열이라 array_contains 조회용 username 목록을 함께 저장합니다.
            "community_tag_usernames": [t.community_username for t in self.community_tags],
            "attachments": [a.to_document() for a in self.attachments],
            "likes": list(self.likes),
            "shares": list(self.shares),
            "created_at": self.created_at,
        }
