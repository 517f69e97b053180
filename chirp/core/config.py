# chirp/core/config.py

import os # 환경 변수를 읽기 위해 사용합니다. (.env 파일은 chirp/__init__.py에서 load_dotenv로 로드)

class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # JWT 토큰 서명에 사용되는 키. 토큰의 위변조를 방지합니다.
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')
    # Google OAuth 클라이언트 시크릿 파일 경로와 리다이렉트 URI
    GOOGLE_CLIENT_SECRETS_PATH = os.getenv('GOOGLE_CLIENT_SECRETS_PATH')
    GOOGLE_REDIRECT_URI = os.getenv('GOOGLE_REDIRECT_URI', 'postmessage')

    FIREBASE_CREDENTIALS_PATH = os.getenv('FIREBASE_CREDENTIALS_PATH')
    FIREBASE_STORAGE_BUCKET = os.getenv('FIREBASE_STORAGE_BUCKET')

    # 피드/목록 API의 기본 페이지 크기
    CHIRPS_PAGE_SIZE = int(os.getenv('CHIRPS_PAGE_SIZE', 20))
    # 온보딩이 끝나지 않은 사용자를 보낼 클라이언트 경로
    ONBOARDING_PATH = '/onboarding'

class DevelopmentConfig(Config):
    """개발 환경을 위한 설정 클래스입니다."""
    DEBUG = True
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH', Config.FIREBASE_CREDENTIALS_PATH)

class TestingConfig(Config):
    """테스트 환경을 위한 설정 클래스입니다. Firestore/Storage 클라이언트는 create_app에 직접 주입합니다."""
    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'chirp-testing-secret-key-with-enough-length')
    GOOGLE_CLIENT_SECRETS_PATH = os.getenv('GOOGLE_CLIENT_SECRETS_PATH', 'client_secrets.json')
    FIREBASE_STORAGE_BUCKET = os.getenv('FIREBASE_STORAGE_BUCKET', 'chirp-testing.appspot.com')

class ProductionConfig(Config):
    """운영 환경 설정. DEBUG를 끄고 나머지는 환경 변수를 그대로 사용합니다."""
    DEBUG = False

# FLASK_ENV 값에 따라 create_app에서 설정 클래스를 선택합니다.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig
)
