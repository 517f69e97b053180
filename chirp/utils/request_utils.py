# chirp/utils/request_utils.py
from flask import request

# 목록 API 한 번에 돌려줄 수 있는 최대 항목 수
MAX_PAGE_SIZE = 100

def get_limit_arg(default: int, maximum: int = MAX_PAGE_SIZE) -> int:
    """
    쿼리스트링의 limit 값을 읽어 1 ~ maximum 범위로 맞춥니다.
    숫자가 아닌 값이면 default를 사용합니다.
    """
    limit = request.args.get('limit', default, type=int)
    return max(1, min(limit, maximum))
