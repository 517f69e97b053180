# chirp/api/follows/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from chirp.api.follows.schemas import (
    FollowStatusResponseSchema, RelationshipResponseSchema,
    FollowRequestResponseSchema, ReportCreateSchema, ReportResponseSchema
)
from chirp.api.follows.services import SelfFollowError
from chirp.api.users.schemas import UserSummarySchema
from chirp.core.security import onboarding_required
from chirp.utils.request_utils import get_limit_arg

# /api/users 아래에 함께 등록됩니다. (예: POST /api/users/{user_id}/follow)
follows_bp = Blueprint('follows_bp', __name__)

@follows_bp.route('/<string:user_id>/follow', methods=['POST'])
@onboarding_required
def follow_user(user_id: str):
    """
    다른 사용자를 팔로우합니다. 이미 팔로우 중이면 아무것도 바꾸지 않습니다.
    비공개 계정이면 팔로우 요청을 보내고 status로 'request_sent'를 돌려줍니다.
    """
    follow_service = current_app.services['follows']
    try:
        status = follow_service.follow(g.current_user.user_id, user_id)
        changed = status in ('following', 'request_sent')
        result = {
            "user_id": user_id,
            "status": status,
            "is_following": status in ('following', 'already_following'),
            "has_pending_request": status in ('request_sent', 'request_pending'),
            "changed": changed
        }
        return jsonify(FollowStatusResponseSchema().dump(result)), 201 if changed else 200
    except SelfFollowError as e:
        return jsonify({"error_code": "INVALID_TARGET", "message": str(e)}), 400
    except ValueError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403


@follows_bp.route('/<string:user_id>/follow', methods=['DELETE'])
@onboarding_required
def unfollow_user(user_id: str):
    """팔로우(또는 대기 중인 팔로우 요청)를 취소합니다. 팔로우 중이 아니어도 성공으로 응답합니다."""
    follow_service = current_app.services['follows']
    removed = follow_service.unfollow(g.current_user.user_id, user_id)
    result = {
        "user_id": user_id,
        "status": "unfollowed" if removed else "not_following",
        "is_following": False,
        "has_pending_request": False,
        "changed": removed
    }
    return jsonify(FollowStatusResponseSchema().dump(result)), 200


@follows_bp.route('/<string:user_id>/followers', methods=['GET'])
@jwt_required(optional=True)
def get_followers(user_id: str):
    follow_service = current_app.services['follows']
    limit = get_limit_arg(50)
    try:
        users = follow_service.list_followers(user_id, limit)
        return jsonify({"users": UserSummarySchema(many=True).dump(users)}), 200
    except ValueError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404


@follows_bp.route('/<string:user_id>/following', methods=['GET'])
@jwt_required(optional=True)
def get_following(user_id: str):
    follow_service = current_app.services['follows']
    limit = get_limit_arg(50)
    try:
        users = follow_service.list_following(user_id, limit)
        return jsonify({"users": UserSummarySchema(many=True).dump(users)}), 200
    except ValueError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404


@follows_bp.route('/<string:user_id>/relationship', methods=['GET'])
@jwt_required()
def get_relationship(user_id: str):
    """로그인 사용자와 대상 사용자의 팔로우/차단 관계를 조회합니다."""
    follow_service = current_app.services['follows']
    try:
        relationship = follow_service.relationship(get_jwt_identity(), user_id)
        return jsonify(RelationshipResponseSchema().dump(relationship)), 200
    except ValueError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404


@follows_bp.route('/<string:user_id>/block', methods=['POST'])
@onboarding_required
def toggle_block(user_id: str):
    """사용자를 차단하거나 차단을 해제합니다. 차단하면 서로의 팔로우가 끊어집니다."""
    follow_service = current_app.services['follows']
    try:
        is_blocked = follow_service.toggle_block(g.current_user.user_id, user_id)
        message = "사용자를 차단했습니다." if is_blocked else "차단을 해제했습니다."
        return jsonify({"user_id": user_id, "is_blocked": is_blocked, "message": message}), 200
    except SelfFollowError as e:
        return jsonify({"error_code": "INVALID_TARGET", "message": str(e)}), 400
    except ValueError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404


@follows_bp.route('/me/follow-requests', methods=['GET'])
@onboarding_required
def get_follow_requests():
    """나(비공개 계정)에게 들어온 팔로우 요청 목록을 조회합니다."""
    follow_service = current_app.services['follows']
    requests = follow_service.list_follow_requests(g.current_user.user_id, get_limit_arg(50))
    return jsonify({"requests": FollowRequestResponseSchema(many=True).dump(requests)}), 200


@follows_bp.route('/me/follow-requests/<string:requester_id>/accept', methods=['POST'])
@onboarding_required
def accept_follow_request(requester_id: str):
    follow_service = current_app.services['follows']
    try:
        follow_service.accept_follow_request(g.current_user.user_id, requester_id)
        return jsonify({"user_id": requester_id, "message": "팔로우 요청을 수락했습니다."}), 200
    except ValueError as e:
        return jsonify({"error_code": "FOLLOW_REQUEST_NOT_FOUND", "message": str(e)}), 404


@follows_bp.route('/me/follow-requests/<string:requester_id>/reject', methods=['POST'])
@onboarding_required
def reject_follow_request(requester_id: str):
    follow_service = current_app.services['follows']
    try:
        follow_service.reject_follow_request(g.current_user.user_id, requester_id)
        return jsonify({"user_id": requester_id, "message": "팔로우 요청을 거절했습니다."}), 200
    except ValueError as e:
        return jsonify({"error_code": "FOLLOW_REQUEST_NOT_FOUND", "message": str(e)}), 404


@follows_bp.route('/<string:user_id>/report', methods=['POST'])
@onboarding_required
def report_user(user_id: str):
    """사용자를 신고합니다. 같은 사용자를 다시 신고하면 사유가 갱신됩니다."""
    follow_service = current_app.services['follows']
    try:
        data = ReportCreateSchema().load(request.get_json(silent=True) or {})
        report = follow_service.report_user(g.current_user.user_id, user_id, data['reason'])
        return jsonify(ReportResponseSchema().dump(report)), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except SelfFollowError as e:
        return jsonify({"error_code": "INVALID_TARGET", "message": str(e)}), 400
    except ValueError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404
