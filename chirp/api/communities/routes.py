# chirp/api/communities/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from chirp.api.communities.schemas import (
    CommunityCreateSchema, CommunityUpdateSchema, JoinRequestSchema,
    CommunityResponseSchema, CommunityMemberResponseSchema, JoinRequestResponseSchema
)
from chirp.api.communities.services import CommunityUsernameTakenError
from chirp.api.chirps.schemas import ChirpResponseSchema
from chirp.core.security import onboarding_required
from chirp.utils.request_utils import get_limit_arg

communities_bp = Blueprint('communities_bp', __name__)

JOIN_MESSAGES = {
    'joined': "커뮤니티에 가입했습니다.",
    'already_member': "이미 가입한 커뮤니티입니다.",
    'request_sent': "가입 요청을 보냈습니다. 관리자의 승인을 기다려주세요.",
    'request_pending': "이미 가입 요청을 보낸 상태입니다.",
}

def _forbidden(e):
    return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403

def _not_found(e):
    return jsonify({"error_code": "COMMUNITY_NOT_FOUND", "message": str(e)}), 404

# --- 생성 / 조회 ---
@communities_bp.route('/', methods=['POST'])
@onboarding_required
def create_community():
    community_service = current_app.services['communities']
    try:
        data = CommunityCreateSchema().load(request.get_json() or {})
        community = community_service.create_community(g.current_user, data)
        return jsonify(CommunityResponseSchema().dump(community)), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except CommunityUsernameTakenError as e:
        return jsonify({"error_code": "COMMUNITY_USERNAME_TAKEN", "message": str(e)}), 409
    except PermissionError as e:
        return _forbidden(e)


@communities_bp.route('/', methods=['GET'])
@jwt_required(optional=True)
def list_communities():
    """커뮤니티 목록 (?q=username 또는 이름 접두어&limit=20)"""
    community_service = current_app.services['communities']
    search = request.args.get('q', None, type=str)
    limit = get_limit_arg(20)
    communities = community_service.list_communities(get_jwt_identity(), search, limit)
    return jsonify({"communities": CommunityResponseSchema(many=True).dump(communities)}), 200


@communities_bp.route('/joined', methods=['GET'])
@jwt_required()
def list_my_communities():
    community_service = current_app.services['communities']
    communities = community_service.list_user_communities(get_jwt_identity())
    return jsonify({"communities": CommunityResponseSchema(many=True).dump(communities)}), 200


@communities_bp.route('/<string:community_id>', methods=['GET'])
@jwt_required(optional=True)
def get_community(community_id: str):
    """커뮤니티 ID 또는 username으로 커뮤니티 정보를 조회합니다."""
    community_service = current_app.services['communities']
    community = community_service.get_community(community_id, get_jwt_identity())
    if not community:
        return jsonify({"error_code": "COMMUNITY_NOT_FOUND", "message": "커뮤니티를 찾을 수 없습니다."}), 404
    return jsonify(CommunityResponseSchema().dump(community)), 200


@communities_bp.route('/<string:community_id>/chirps', methods=['GET'])
@jwt_required(optional=True)
def get_community_chirps(community_id: str):
    community_service = current_app.services['communities']
    limit = get_limit_arg(current_app.config['CHIRPS_PAGE_SIZE'])
    cursor = request.args.get('cursor', None, type=str)
    try:
        chirps, next_cursor = community_service.get_community_chirps(community_id, get_jwt_identity(), limit, cursor)
        return jsonify({
            "chirps": ChirpResponseSchema(many=True).dump(chirps),
            "next_cursor": next_cursor
        }), 200
    except ValueError as e:
        return _not_found(e)
    except PermissionError as e:
        return _forbidden(e)

# --- 수정 / 삭제 ---
@communities_bp.route('/<string:community_id>', methods=['PATCH'])
@onboarding_required
def update_community(community_id: str):
    community_service = current_app.services['communities']
    try:
        data = CommunityUpdateSchema().load(request.get_json() or {})
        community = community_service.update_community(community_id, g.current_user.user_id, data)
        return jsonify(CommunityResponseSchema().dump(community)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return _not_found(e)
    except PermissionError as e:
        return _forbidden(e)


@communities_bp.route('/<string:community_id>', methods=['DELETE'])
@onboarding_required
def delete_community(community_id: str):
    community_service = current_app.services['communities']
    try:
        deleted_chirps = community_service.delete_community(community_id, g.current_user.user_id)
        return jsonify({"message": "커뮤니티가 삭제되었습니다.", "deleted_chirp_count": deleted_chirps}), 200
    except ValueError as e:
        return _not_found(e)
    except PermissionError as e:
        return _forbidden(e)

# --- 멤버십 ---
@communities_bp.route('/<string:community_id>/join', methods=['POST'])
@onboarding_required
def join_community(community_id: str):
    community_service = current_app.services['communities']
    try:
        data = JoinRequestSchema().load(request.get_json(silent=True) or {})
        status = community_service.join_community(community_id, g.current_user, data['message'])
        return jsonify({"status": status, "message": JOIN_MESSAGES[status]}), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return _not_found(e)
    except PermissionError as e:
        return _forbidden(e)


@communities_bp.route('/<string:community_id>/leave', methods=['POST'])
@onboarding_required
def leave_community(community_id: str):
    community_service = current_app.services['communities']
    try:
        left = community_service.leave_community(community_id, g.current_user.user_id)
        message = "커뮤니티에서 탈퇴했습니다." if left else "가입하지 않은 커뮤니티입니다."
        return jsonify({"left": left, "message": message}), 200
    except ValueError as e:
        return _not_found(e)
    except PermissionError as e:
        return _forbidden(e)


@communities_bp.route('/<string:community_id>/members', methods=['GET'])
@jwt_required(optional=True)
def list_members(community_id: str):
    community_service = current_app.services['communities']
    try:
        members = community_service.list_members(community_id, get_jwt_identity())
        return jsonify({"members": CommunityMemberResponseSchema(many=True).dump(members)}), 200
    except ValueError as e:
        return _not_found(e)
    except PermissionError as e:
        return _forbidden(e)


@communities_bp.route('/<string:community_id>/members/<string:user_id>', methods=['DELETE'])
@onboarding_required
def remove_member(community_id: str, user_id: str):
    community_service = current_app.services['communities']
    try:
        community_service.remove_member(community_id, g.current_user.user_id, user_id)
        return jsonify({"message": "멤버를 내보냈습니다."}), 200
    except ValueError as e:
        return _not_found(e)
    except PermissionError as e:
        return _forbidden(e)


@communities_bp.route('/<string:community_id>/members/<string:user_id>/promote', methods=['POST'])
@onboarding_required
def promote_member(community_id: str, user_id: str):
    community_service = current_app.services['communities']
    try:
        community_service.promote_to_admin(community_id, g.current_user.user_id, user_id)
        return jsonify({"message": "관리자로 지정했습니다."}), 200
    except ValueError as e:
        return _not_found(e)
    except PermissionError as e:
        return _forbidden(e)


@communities_bp.route('/<string:community_id>/join-requests', methods=['GET'])
@onboarding_required
def list_join_requests(community_id: str):
    community_service = current_app.services['communities']
    try:
        requests = community_service.list_join_requests(community_id, g.current_user.user_id)
        return jsonify({"requests": JoinRequestResponseSchema(many=True).dump(requests)}), 200
    except ValueError as e:
        return _not_found(e)
    except PermissionError as e:
        return _forbidden(e)


@communities_bp.route('/<string:community_id>/join-requests/<string:user_id>/approve', methods=['POST'])
@onboarding_required
def approve_join_request(community_id: str, user_id: str):
    community_service = current_app.services['communities']
    try:
        community_service.approve_join_request(community_id, g.current_user.user_id, user_id)
        return jsonify({"message": "가입 요청을 승인했습니다."}), 200
    except ValueError as e:
        return _not_found(e)
    except PermissionError as e:
        return _forbidden(e)


@communities_bp.route('/<string:community_id>/join-requests/<string:user_id>/reject', methods=['POST'])
@onboarding_required
def reject_join_request(community_id: str, user_id: str):
    community_service = current_app.services['communities']
    try:
        community_service.reject_join_request(community_id, g.current_user.user_id, user_id)
        return jsonify({"message": "가입 요청을 거절했습니다."}), 200
    except ValueError as e:
        return _not_found(e)
    except PermissionError as e:
        return _forbidden(e)
