# chirp/api/users/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from chirp.api.users.schemas import (
    OnboardingSchema, ProfileUpdateSchema, PrivacyUpdateSchema,
    UserPublicResponseSchema, UserPrivateResponseSchema, UserSummarySchema
)
from chirp.api.users.services import UsernameTakenError
from chirp.api.chirps.schemas import ChirpResponseSchema
from chirp.core.security import onboarding_required
from chirp.utils.request_utils import get_limit_arg

users_bp = Blueprint('users_bp', __name__)

@users_bp.route('/me', methods=['GET'])
@jwt_required()
def get_my_profile():
    """
    현재 로그인된 사용자의 정보를 조회합니다.
    온보딩 전 사용자도 호출할 수 있으며, 클라이언트는 onboarded 값으로 온보딩 화면 이동 여부를 판단합니다.
    """
    user_service = current_app.services['users']
    user_id = get_jwt_identity()
    profile = user_service.get_user_profile(user_id)
    if not profile:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": "사용자를 찾을 수 없습니다."}), 404
    return jsonify(UserPrivateResponseSchema().dump(profile)), 200


@users_bp.route('/me/onboarding', methods=['POST'])
@jwt_required()
def complete_onboarding():
    """프로필 정보를 저장하고 온보딩을 완료합니다."""
    user_service = current_app.services['users']
    user_id = get_jwt_identity()
    try:
        data = OnboardingSchema().load(request.get_json() or {})
        user = user_service.complete_onboarding(user_id, data)
        return jsonify(UserPrivateResponseSchema().dump(user)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except UsernameTakenError as e:
        return jsonify({"error_code": "USERNAME_TAKEN", "message": str(e)}), 409
    except ValueError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404


@users_bp.route('/me', methods=['PATCH'])
@onboarding_required
def update_my_profile():
    """현재 로그인된 사용자의 프로필 중 보낸 필드만 수정합니다."""
    user_service = current_app.services['users']
    user_id = g.current_user.user_id
    try:
        data = ProfileUpdateSchema(partial=True).load(request.get_json() or {})
        user = user_service.update_profile(user_id, data)
        return jsonify(UserPrivateResponseSchema().dump(user)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except UsernameTakenError as e:
        return jsonify({"error_code": "USERNAME_TAKEN", "message": str(e)}), 409
    except ValueError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404


@users_bp.route('/me/privacy', methods=['PUT'])
@onboarding_required
def update_my_privacy():
    """계정을 비공개(팔로우 요청 수락 필요) 또는 공개로 설정합니다."""
    user_service = current_app.services['users']
    try:
        data = PrivacyUpdateSchema().load(request.get_json(silent=True) or {})
        user = user_service.update_privacy(g.current_user.user_id, data['is_private'])
        return jsonify(UserPrivateResponseSchema().dump(user)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404


@users_bp.route('/me/activity', methods=['GET'])
@jwt_required()
def get_my_activity():
    """내 chirp에 다른 사용자가 남긴 답글을 최신순으로 조회합니다."""
    chirp_service = current_app.services['chirps']
    user_id = get_jwt_identity()
    limit = get_limit_arg(current_app.config['CHIRPS_PAGE_SIZE'])
    replies = chirp_service.get_activity(user_id, limit)
    return jsonify({"activity": ChirpResponseSchema(many=True).dump(replies)}), 200


@users_bp.route('/search', methods=['GET'])
@jwt_required(optional=True)
def search_users():
    """username 접두어로 사용자를 검색합니다. (?q=검색어&limit=20)"""
    user_service = current_app.services['users']
    term = request.args.get('q', '', type=str)
    limit = get_limit_arg(20)
    users = user_service.search_users(term, limit, exclude_user_id=get_jwt_identity())
    return jsonify({"users": UserSummarySchema(many=True).dump(users)}), 200


@users_bp.route('/<string:user_id>', methods=['GET'])
@jwt_required(optional=True)
def get_user_profile(user_id: str):
    """특정 사용자의 공개 프로필 정보(팔로워, 팔로잉, chirp 수 포함)를 조회합니다."""
    user_service = current_app.services['users']
    user_profile = user_service.get_user_profile(user_id, viewer_id=get_jwt_identity())
    if not user_profile:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": "사용자를 찾을 수 없습니다."}), 404
    return jsonify(UserPublicResponseSchema().dump(user_profile)), 200


@users_bp.route('/<string:user_id>/chirps', methods=['GET'])
@jwt_required(optional=True)
def get_user_chirps(user_id: str):
    """특정 사용자가 작성한 최상위 chirp 목록을 최신순으로 조회합니다."""
    chirp_service = current_app.services['chirps']
    limit = get_limit_arg(current_app.config['CHIRPS_PAGE_SIZE'])
    cursor = request.args.get('cursor', None, type=str)
    chirps, next_cursor = chirp_service.get_user_chirps(user_id, get_jwt_identity(), limit, cursor)
    return jsonify({
        "chirps": ChirpResponseSchema(many=True).dump(chirps),
        "next_cursor": next_cursor
    }), 200


@users_bp.route('/<string:user_id>/replies', methods=['GET'])
@jwt_required(optional=True)
def get_user_replies(user_id: str):
    """특정 사용자가 남긴 답글 목록을 최신순으로 조회합니다."""
    chirp_service = current_app.services['chirps']
    limit = get_limit_arg(current_app.config['CHIRPS_PAGE_SIZE'])
    replies = chirp_service.get_user_replies(user_id, get_jwt_identity(), limit)
    return jsonify({"replies": ChirpResponseSchema(many=True).dump(replies)}), 200
