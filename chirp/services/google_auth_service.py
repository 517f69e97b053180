# chirp/services/google_auth_service.py

import logging
import requests
from google_auth_oauthlib.flow import Flow

class GoogleAuthService:
    """실제 Google OAuth 2.0 통신을 담당하는 서비스 클래스입니다."""
    _user_info_url = "https://www.googleapis.com/oauth2/v3/userinfo"
    _scopes = [
        "https://www.googleapis.com/auth/userinfo.profile",
        "https://www.googleapis.com/auth/userinfo.email",
        "openid"
    ]

    @staticmethod
    def exchange_code_for_user_info(auth_code: str, client_secrets_path: str, redirect_uri: str = "postmessage") -> dict:
        """
        인증 코드를 Access Token으로 교환하고, 이를 사용해 사용자 정보를 가져옵니다.

        :return: Google userinfo 응답 ('sub', 'email', 'name', 'picture' 등)
        """
        try:
            # 1. OAuth 2.0 Flow 객체를 생성하고 인증 코드를 토큰으로 교환합니다.
            flow = Flow.from_client_secrets_file(client_secrets_path, scopes=GoogleAuthService._scopes)
            flow.redirect_uri = redirect_uri
            flow.fetch_token(code=auth_code)

            # 2. Access Token을 사용하여 사용자 정보를 요청합니다.
            return GoogleAuthService.get_user_info(flow.credentials.token)

        except Exception as e:
            logging.error(f"Google OAuth failed: {e}", exc_info=True)
            raise

    @staticmethod
    def get_user_info(access_token: str) -> dict:
        """Access Token으로 userinfo 엔드포인트를 호출합니다."""
        response = requests.get(
            GoogleAuthService._user_info_url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=10
        )
        response.raise_for_status()
        return response.json()

    @staticmethod
    def to_provider_user(user_info: dict) -> dict:
        """Google userinfo를 앱에서 쓰는 외부 인증 사용자 형식으로 변환합니다."""
        email = user_info.get('email')
        return {
            "external_id": user_info.get('sub'),
            "email": email,
            "name": user_info.get('name'),
            "image": user_info.get('picture'),
            "username_hint": email.split('@')[0].lower() if email else None,
        }
