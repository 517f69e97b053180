# chirp/models/report.py
from dataclasses import dataclass, field
from datetime import datetime

from chirp.utils.datetime_utils import DateTimeUtils

@dataclass
class UserReport:
    """
    Firestore 'user_reports' 컬렉션의 문서 구조 (신고자 -> 신고 대상).
    문서 ID는 f"{reporter_id}_{target_id}"이며, 같은 사용자를 다시 신고하면 사유만 갱신됩니다.
    """
    reporter_id: str
    target_id: str
    reason: str
    created_at: datetime = field(default_factory=DateTimeUtils.now)
