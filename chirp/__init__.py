# chirp/__init__.py

# =====================================================================================
# 1. 환경 변수 로드 (가장 먼저 실행)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. 모듈 임포트 (Module Imports)
# =====================================================================================
import os
import logging
from flask import Flask, jsonify
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException
from google.api_core.exceptions import GoogleAPIError
from flask_jwt_extended import JWTManager
import firebase_admin
from firebase_admin import credentials, firestore

# - 설정
from chirp.core.config import config_by_name

# - API 블루프린트
from chirp.api.auth.routes import auth_bp
from chirp.api.uploads.routes import uploads_bp
from chirp.api.users.routes import users_bp
from chirp.api.follows.routes import follows_bp
from chirp.api.chirps.routes import chirps_bp
from chirp.api.communities.routes import communities_bp
from chirp.api.notifications.routes import notifications_bp

# - 서비스 모듈
from chirp.services import storage_service as storage_service_module
from chirp.services import notification_service as notification_service_module
from chirp.api.auth import services as auth_service_module
from chirp.api.users.services import UserService
from chirp.api.follows.services import FollowService
from chirp.api.chirps.services import ChirpService
from chirp.api.communities.services import CommunityService

def create_app(config_name=None, db=None, bucket=None):
    """
    Flask 애플리케이션 팩토리 함수.

    :param config_name: 'development' | 'testing' | 'production' (없으면 FLASK_ENV 사용)
    :param db: Firestore 클라이언트. 테스트에서는 mock 클라이언트를 주입합니다.
    :param bucket: Storage 버킷. 테스트에서는 mock 버킷을 주입합니다.
    """
    # =====================================================================================
    # 3. Flask 앱 생성 및 기본 설정
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    # =====================================================================================
    # 4. 확장 기능 및 외부 서비스 초기화
    # =====================================================================================
    jwt = JWTManager(app)

    if db is None:
        if not firebase_admin._apps:
            cred_path = app.config['FIREBASE_CREDENTIALS_PATH']
            if not cred_path or not os.path.exists(cred_path):
                raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(cred, {
                'storageBucket': app.config['FIREBASE_STORAGE_BUCKET']
            })
        db = firestore.client()

    # =====================================================================================
    # 5. 서비스 인스턴스 생성 및 'app.services'에 저장 (의존성 주입)
    # =====================================================================================
    app.services = {}

    # 5-1. 다른 서비스의 기반이 되는 공용 서비스 먼저 생성
    try:
        storage_instance = storage_service_module.StorageService()
        storage_instance.init_app(app, bucket=bucket)
        app.services['storage'] = storage_instance
        logging.info("Storage service initialized successfully")
    except Exception as e:
        logging.error(f"Failed to initialize storage service: {e}")
        raise

    app.services['notifications'] = notification_service_module.NotificationService(db=db)

    # - 인증 서비스
    auth_service_module.auth_service.init_app(app, db=db)
    app.services['auth'] = auth_service_module.auth_service

    # 5-2. 다른 서비스를 주입받아야 하는 도메인 서비스 생성
    app.services['users'] = UserService(db=db, storage_service=app.services['storage'])
    app.services['follows'] = FollowService(db=db, notification_service=app.services['notifications'])
    app.services['chirps'] = ChirpService(
        db=db,
        notification_service=app.services['notifications'],
        storage_service=app.services['storage']
    )
    app.services['communities'] = CommunityService(
        db=db,
        chirp_service=app.services['chirps'],
        notification_service=app.services['notifications'],
        storage_service=app.services['storage']
    )

    # =====================================================================================
    # 6. JWT 콜백 설정
    # =====================================================================================
    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        return app.services['auth'].is_token_revoked(jwt_payload)

    @jwt.unauthorized_loader
    def handle_missing_token(reason):
        return jsonify({"error_code": "AUTHENTICATION_REQUIRED", "message": "로그인이 필요합니다."}), 401

    @jwt.invalid_token_loader
    def handle_invalid_token(reason):
        return jsonify({"error_code": "INVALID_TOKEN", "message": "유효하지 않은 토큰입니다."}), 401

    @jwt.expired_token_loader
    def handle_expired_token(jwt_header, jwt_payload):
        return jsonify({"error_code": "TOKEN_EXPIRED", "message": "토큰이 만료되었습니다."}), 401

    @jwt.revoked_token_loader
    def handle_revoked_token(jwt_header, jwt_payload):
        return jsonify({"error_code": "TOKEN_REVOKED", "message": "로그아웃된 토큰입니다."}), 401

    # =====================================================================================
    # 7. 블루프린트 등록
    # =====================================================================================
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(uploads_bp, url_prefix='/api/uploads')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(follows_bp, url_prefix='/api/users')
    app.register_blueprint(chirps_bp, url_prefix='/api/chirps')
    app.register_blueprint(communities_bp, url_prefix='/api/communities')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')

    # =====================================================================================
    # 8. 전역 에러 핸들러 설정
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(GoogleAPIError)
    def handle_store_unavailable(err):
        logging.error(f"Firestore/Storage 요청 실패: {err}", exc_info=True)
        response = {"error_code": "SERVICE_UNAVAILABLE", "message": "저장소에 일시적으로 접근할 수 없습니다. 잠시 후 다시 시도해주세요."}
        return jsonify(response), 503

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        # 404/405 등 Flask가 만든 HTTP 예외는 그대로 응답합니다.
        if isinstance(err, HTTPException):
            return err
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부에서 예상치 못한 오류가 발생했습니다."}
        return jsonify(response), 500

    # =====================================================================================
    # 9. 로깅 및 앱 반환
    # =====================================================================================
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
