# chirp/core/security.py
from functools import wraps
from flask import jsonify, g, current_app
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity

def onboarding_required(f):
    """
    글쓰기/팔로우 등 콘텐츠를 만드는 엔드포인트에 사용하는 데코레이터.
    - 토큰이 없거나 유효하지 않으면 flask-jwt-extended가 401을 반환합니다.
    - Identity Record가 없거나 온보딩을 마치지 않았으면 403과 함께 온보딩 경로를 알려줍니다.
    - 통과하면 g.current_user에 User 객체를 저장합니다.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        verify_jwt_in_request()
        user = current_app.services['auth'].resolve_identity(get_jwt_identity())

        if user is None or not user.onboarded:
            return jsonify({
                "error_code": "ONBOARDING_REQUIRED",
                "message": "프로필 설정(온보딩)을 먼저 완료해주세요.",
                "redirect_to": current_app.config['ONBOARDING_PATH']
            }), 403

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function
