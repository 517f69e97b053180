# chirp/models/user.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List

from chirp.utils.datetime_utils import DateTimeUtils

@dataclass
class User:
    """
    Firestore 'users' 컬렉션의 문서 구조를 정의하는 데이터클래스 (Identity Record).
    최초 로그인 시 onboarded=False 상태로 생성되고, 온보딩을 마쳐야 True가 됩니다.
    """
    user_id: str
    external_id: str              # Google 'sub' 값. 전체 사용자 중 유일해야 함
    auth_provider: str = "google"
    username: Optional[str] = None  # 소문자, 유일값. 온보딩 시 설정
    name: Optional[str] = None
    image: Optional[str] = None
    bio: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    is_private: bool = False       # True면 팔로우 요청을 수락해야 팔로워가 됩니다
    onboarded: bool = False
    blocked_ids: List[str] = field(default_factory=list)
    joined_date: datetime = field(default_factory=DateTimeUtils.now)

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def summary(self) -> dict:
        """Chirp/notification 문서에 복사되는 작성자 요약 정보."""
        return {
            "user_id": self.user_id,
            "username": self.username,
            "name": self.name,
            "image": self.image,
        }
