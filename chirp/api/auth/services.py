# chirp/api/auth/services.py
import uuid
import logging
from datetime import datetime, timezone
from typing import Tuple, Optional
from dataclasses import asdict
from firebase_admin import firestore
from flask import Flask
from chirp.models.user import User
from chirp.utils.datetime_utils import DateTimeUtils

class AuthService:
    """
    외부 인증(Google) 사용자와 앱의 Identity Record를 연결하고,
    로그아웃된 토큰의 무효화 목록(blocklist)을 관리합니다.
    """
    def __init__(self):
        self.db = None
        self.users_ref = None
        self.revoked_tokens_ref = None
        self.app: Optional[Flask] = None

    def init_app(self, app: Flask, db=None):
        """앱 초기화 과정에서 호출되어 DB 연결 및 앱 컨텍스트를 설정합니다."""
        self.db = db if db is not None else firestore.client()
        self.users_ref = self.db.collection('users')
        self.revoked_tokens_ref = self.db.collection('revoked_tokens')
        self.app = app

    def upsert_identity(self, provider_user: dict) -> Tuple[User, bool]:
        """
        외부 인증 사용자에 해당하는 Identity Record를 찾고, 없으면 새로 만듭니다.
        새로 만든 사용자는 onboarded=False 상태이며 온보딩 전까지 글을 쓸 수 없습니다.

        :param provider_user: GoogleAuthService.to_provider_user()의 반환값
        :return: (사용자, 신규 생성 여부)
        """
        external_id = provider_user.get('external_id')
        if not external_id:
            raise ValueError("외부 인증 사용자 정보에 'external_id'가 없습니다.")

        query = self.users_ref.where('external_id', '==', external_id).limit(1).stream()
        user_doc = next(query, None)

        if user_doc:
            return User.from_dict(user_doc.to_dict()), False

        user_id = str(uuid.uuid4())
        new_user = User(
            user_id=user_id,
            external_id=external_id,
            email=provider_user.get('email'),
            name=provider_user.get('name'),
            image=provider_user.get('image'),
            joined_date=DateTimeUtils.now()
        )
        # Firestore 호환 변환 후 저장
        self.users_ref.document(user_id).set(DateTimeUtils.for_firestore(asdict(new_user)))
        logging.info(f"신규 사용자 생성 (user_id: {user_id})")
        return new_user, True

    def resolve_identity(self, user_id: Optional[str]) -> Optional[User]:
        """user_id로 Identity Record를 조회합니다. 없으면 None을 반환합니다."""
        if not user_id:
            return None
        doc = self.users_ref.document(user_id).get()
        if not doc.exists:
            return None
        return User.from_dict(doc.to_dict())

    # --- Blocklist 관련 로직 ---
    def add_token_to_blocklist(self, jti: str, expires: datetime):
        """전달받은 토큰의 jti를 만료 시간과 함께 Firestore에 저장합니다."""
        try:
            token_data = DateTimeUtils.for_firestore({
                'revoked_at': DateTimeUtils.now(),
                'expires_at': expires
            })
            self.revoked_tokens_ref.document(jti).set(token_data)
        except Exception as e:
            logging.error(f"Blocklist 토큰 추가 실패 (jti: {jti}): {e}")
            raise

    def is_token_revoked(self, jwt_payload: dict) -> bool:
        """jti를 이용해 해당 토큰이 무효화 목록에 있는지 확인합니다."""
        jti = jwt_payload.get('jti')
        if not jti:
            return False
        return self.revoked_tokens_ref.document(jti).get().exists

    def logout_user(self, access_jti: str, access_exp: int, refresh_jti: str, refresh_exp: int):
        """Access 토큰과 Refresh 토큰을 모두 Blocklist에 추가합니다."""
        self.add_token_to_blocklist(access_jti, datetime.fromtimestamp(access_exp, tz=timezone.utc))
        self.add_token_to_blocklist(refresh_jti, datetime.fromtimestamp(refresh_exp, tz=timezone.utc))
        logging.info(f"사용자 로그아웃 처리 완료. JTI: {access_jti[:8]}..., {refresh_jti[:8]}...")

auth_service = AuthService()
