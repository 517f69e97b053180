# chirp/services/firestore_service.py
from typing import Dict, Any, List, Iterable

# Firestore 'in' 연산자는 한 번에 최대 30개 값까지만 허용합니다.
IN_QUERY_LIMIT = 30

def fetch_documents_by_ids(collection_ref, id_field: str, ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """
    ID 목록에 해당하는 문서들을 30개씩 나누어 'in' 쿼리로 조회합니다.

    :param collection_ref: 조회할 컬렉션 참조
    :param id_field: 문서 안에 저장된 ID 필드명 (예: 'user_id', 'chirp_id')
    :param ids: 조회할 ID 목록 (중복은 제거됩니다)
    :return: {id: 문서 dict}
    """
    unique_ids: List[str] = list(dict.fromkeys(i for i in ids if i))
    documents: Dict[str, Dict[str, Any]] = {}
    for i in range(0, len(unique_ids), IN_QUERY_LIMIT):
        chunk_ids = unique_ids[i:i + IN_QUERY_LIMIT]
        for doc in collection_ref.where(id_field, 'in', chunk_ids).stream():
            data = doc.to_dict()
            documents[data[id_field]] = data
    return documents

def count_documents(query) -> int:
    """
    집계 쿼리(count)로 문서 수를 반환합니다.
    모든 문서를 가져오지 않고 숫자만 집계하므로 비용이 적게 듭니다.
    집계 실패(GoogleAPIError)는 그대로 전파되어 503 응답으로 처리됩니다.
    """
    count_result = query.count().get()
    return count_result[0][0].value

def user_summary(user_data: Dict[str, Any]) -> Dict[str, Any]:
    """users 문서에서 공개 가능한 요약 정보만 추립니다."""
    return {
        "user_id": user_data.get("user_id"),
        "username": user_data.get("username"),
        "name": user_data.get("name"),
        "image": user_data.get("image"),
    }
