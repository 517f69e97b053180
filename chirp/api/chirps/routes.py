# chirp/api/chirps/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from chirp.api.chirps.schemas import (
    ChirpCreateSchema, ReplyCreateSchema, ChirpResponseSchema, TrendingHashtagSchema
)
from chirp.core.security import onboarding_required
from chirp.utils.request_utils import get_limit_arg

chirps_bp = Blueprint('chirps_bp', __name__)

def _load_submission(schema):
    """
    요청 본문을 검증합니다. accountId가 없으면 로그인 사용자로 채우고,
    다른 사용자의 ID가 들어오면 PermissionError를 발생시킵니다.
    """
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    # 객체가 아닌 본문(배열, 문자열 등)은 스키마가 VALIDATION_ERROR로 거절합니다.
    if isinstance(payload, dict):
        payload.setdefault('accountId', g.current_user.user_id)
    submission = schema.load(payload)
    if submission['account_id'] != g.current_user.user_id:
        raise PermissionError("다른 사용자 명의로 글을 작성할 수 없습니다.")
    return submission

# --- 작성 ---
@chirps_bp.route('/', methods=['POST'])
@onboarding_required
def create_chirp():
    chirp_service = current_app.services['chirps']
    try:
        submission = _load_submission(ChirpCreateSchema())
        new_chirp = chirp_service.create_chirp(g.current_user, submission)
        return jsonify(ChirpResponseSchema().dump(new_chirp)), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except ValueError as e:
        return jsonify({"error_code": "RESOURCE_NOT_FOUND", "message": str(e)}), 404


@chirps_bp.route('/<string:chirp_id>/replies', methods=['POST'])
@onboarding_required
def create_reply(chirp_id: str):
    chirp_service = current_app.services['chirps']
    try:
        submission = _load_submission(ReplyCreateSchema())
        reply = chirp_service.add_reply(chirp_id, g.current_user, submission)
        return jsonify(ChirpResponseSchema().dump(reply)), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except ValueError as e:
        return jsonify({"error_code": "CHIRP_NOT_FOUND", "message": str(e)}), 404

# --- 조회 ---
@chirps_bp.route('/', methods=['GET'])
@jwt_required(optional=True)
def get_feed():
    chirp_service = current_app.services['chirps']
    limit = get_limit_arg(current_app.config['CHIRPS_PAGE_SIZE'])
    cursor = request.args.get('cursor', None, type=str)
    chirps, next_cursor = chirp_service.get_feed(get_jwt_identity(), limit, cursor)
    return jsonify({
        "chirps": ChirpResponseSchema(many=True).dump(chirps),
        "next_cursor": next_cursor
    }), 200


@chirps_bp.route('/trending', methods=['GET'])
def get_trending_hashtags():
    chirp_service = current_app.services['chirps']
    limit = get_limit_arg(10)
    hashtags = chirp_service.get_trending_hashtags(limit)
    return jsonify({"hashtags": TrendingHashtagSchema(many=True).dump(hashtags)}), 200


@chirps_bp.route('/hashtags/<string:hashtag>', methods=['GET'])
@jwt_required(optional=True)
def get_chirps_by_hashtag(hashtag: str):
    chirp_service = current_app.services['chirps']
    limit = get_limit_arg(current_app.config['CHIRPS_PAGE_SIZE'])
    cursor = request.args.get('cursor', None, type=str)
    chirps, next_cursor = chirp_service.get_chirps_by_hashtag(hashtag, get_jwt_identity(), limit, cursor)
    return jsonify({
        "hashtag": hashtag.lstrip('#').lower(),
        "chirps": ChirpResponseSchema(many=True).dump(chirps),
        "next_cursor": next_cursor
    }), 200


@chirps_bp.route('/community-tags/<string:community_username>', methods=['GET'])
@jwt_required(optional=True)
def get_chirps_by_community_tag(community_username: str):
    chirp_service = current_app.services['chirps']
    limit = get_limit_arg(current_app.config['CHIRPS_PAGE_SIZE'])
    cursor = request.args.get('cursor', None, type=str)
    chirps, next_cursor = chirp_service.get_chirps_by_community_tag(community_username, get_jwt_identity(), limit, cursor)
    return jsonify({
        "chirps": ChirpResponseSchema(many=True).dump(chirps),
        "next_cursor": next_cursor
    }), 200


@chirps_bp.route('/<string:chirp_id>', methods=['GET'])
@jwt_required(optional=True)
def get_chirp(chirp_id: str):
    chirp_service = current_app.services['chirps']
    chirp = chirp_service.get_chirp(chirp_id, get_jwt_identity())
    if not chirp:
        return jsonify({"error_code": "CHIRP_NOT_FOUND", "message": "chirp를 찾을 수 없습니다."}), 404
    return jsonify(ChirpResponseSchema().dump(chirp)), 200

# --- 좋아요 / 공유 / 삭제 ---
@chirps_bp.route('/<string:chirp_id>/like', methods=['POST'])
@onboarding_required
def toggle_like(chirp_id: str):
    chirp_service = current_app.services['chirps']
    try:
        is_liked = chirp_service.toggle_like(chirp_id, g.current_user.user_id)
        message = "좋아요가 추가되었습니다." if is_liked else "좋아요가 취소되었습니다."
        return jsonify({"chirp_id": chirp_id, "is_liked": is_liked, "message": message}), 200
    except ValueError as e:
        return jsonify({"error_code": "CHIRP_NOT_FOUND", "message": str(e)}), 404


@chirps_bp.route('/<string:chirp_id>/share', methods=['POST'])
@onboarding_required
def toggle_share(chirp_id: str):
    chirp_service = current_app.services['chirps']
    try:
        is_shared = chirp_service.toggle_share(chirp_id, g.current_user.user_id)
        message = "chirp를 공유했습니다." if is_shared else "공유를 취소했습니다."
        return jsonify({"chirp_id": chirp_id, "is_shared": is_shared, "message": message}), 200
    except ValueError as e:
        return jsonify({"error_code": "CHIRP_NOT_FOUND", "message": str(e)}), 404


@chirps_bp.route('/<string:chirp_id>', methods=['DELETE'])
@onboarding_required
def delete_chirp(chirp_id: str):
    chirp_service = current_app.services['chirps']
    try:
        deleted = chirp_service.delete_chirp(chirp_id, g.current_user.user_id)
        return jsonify({"message": "chirp가 삭제되었습니다.", "deleted_count": deleted}), 200
    except ValueError as e:
        return jsonify({"error_code": "CHIRP_NOT_FOUND", "message": str(e)}), 404
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
