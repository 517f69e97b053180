# chirp/api/notifications/routes.py
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from chirp.api.notifications.schemas import NotificationResponseSchema
from chirp.utils.request_utils import get_limit_arg

notifications_bp = Blueprint('notifications_bp', __name__)

@notifications_bp.route('/', methods=['GET'])
@jwt_required()
def list_notifications():
    """내가 받은 알림 목록 (?unread_only=true&limit=20)"""
    notification_service = current_app.services['notifications']
    limit = get_limit_arg(20)
    unread_only = request.args.get('unread_only', 'false').lower() == 'true'
    notifications = notification_service.list_notifications(get_jwt_identity(), limit, unread_only)
    return jsonify({"notifications": NotificationResponseSchema(many=True).dump(notifications)}), 200


@notifications_bp.route('/unread-count', methods=['GET'])
@jwt_required()
def get_unread_count():
    notification_service = current_app.services['notifications']
    return jsonify({"unread_count": notification_service.count_unread(get_jwt_identity())}), 200


@notifications_bp.route('/<string:notification_id>/read', methods=['POST'])
@jwt_required()
def mark_as_read(notification_id: str):
    notification_service = current_app.services['notifications']
    try:
        notification = notification_service.mark_as_read(notification_id, get_jwt_identity())
        return jsonify(NotificationResponseSchema().dump(notification)), 200
    except ValueError as e:
        return jsonify({"error_code": "NOTIFICATION_NOT_FOUND", "message": str(e)}), 404
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403


@notifications_bp.route('/read-all', methods=['POST'])
@jwt_required()
def mark_all_as_read():
    notification_service = current_app.services['notifications']
    updated = notification_service.mark_all_as_read(get_jwt_identity())
    return jsonify({"updated_count": updated, "message": "모든 알림을 읽음 처리했습니다."}), 200
