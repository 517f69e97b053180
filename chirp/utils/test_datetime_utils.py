# chirp/utils/test_datetime_utils.py
"""
통합 시간 관리 유틸리티 기능 테스트

사용법: python -m pytest chirp/utils/test_datetime_utils.py -v
"""

from datetime import datetime, date, timezone, timedelta
from chirp.utils.datetime_utils import DateTimeUtils

def test_for_firestore():
    """Firestore 변환 테스트"""
    test_data = {
        'date_of_birth': date(2000, 1, 15),
        'timestamp': datetime(2024, 1, 15, 10, 30),
        'nested': {
            'event_date': date(2023, 12, 25)
        },
        'list_data': [
            {'created_at': datetime(2024, 1, 1)}
        ],
        'text': 'unchanged'
    }

    converted = DateTimeUtils.for_firestore(test_data)

    # date는 datetime으로 변환되어야 함
    assert isinstance(converted['date_of_birth'], datetime)
    assert isinstance(converted['nested']['event_date'], datetime)
    assert converted['timestamp'].tzinfo == timezone.utc
    assert converted['list_data'][0]['created_at'].tzinfo == timezone.utc
    assert converted['text'] == 'unchanged'

def test_for_firestore_converts_offset_to_utc():
    kst = timezone(timedelta(hours=9))
    converted = DateTimeUtils.for_firestore(datetime(2024, 1, 15, 19, 30, tzinfo=kst))
    assert converted == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
    assert converted.tzinfo == timezone.utc

def test_now_is_timezone_aware():
    assert DateTimeUtils.now().tzinfo == timezone.utc
