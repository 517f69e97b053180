# chirp/api/follows/schemas.py
from marshmallow import Schema, fields, validate

from chirp.api.users.schemas import UserSummarySchema

class FollowStatusResponseSchema(Schema):
    """
    팔로우/언팔로우 요청의 결과
    status: following | already_following | request_sent | request_pending | unfollowed | not_following
    """
    user_id = fields.Str()
    status = fields.Str()
    is_following = fields.Bool()
    has_pending_request = fields.Bool()
    changed = fields.Bool()

class RelationshipResponseSchema(Schema):
    """GET /api/users/{user_id}/relationship"""
    user_id = fields.Str()
    is_self = fields.Bool()
    is_private = fields.Bool()
    is_following = fields.Bool()
    is_followed_by = fields.Bool()
    has_pending_request = fields.Bool()
    has_incoming_request = fields.Bool()
    is_blocked = fields.Bool()
    is_reported = fields.Bool()
    follower_count = fields.Int()
    following_count = fields.Int()

class FollowRequestResponseSchema(Schema):
    """GET /api/users/me/follow-requests"""
    user = fields.Nested(UserSummarySchema)
    requested_at = fields.DateTime()

class ReportCreateSchema(Schema):
    """POST /api/users/{user_id}/report"""
    reason = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=500),
        error_messages={"required": "신고 사유는 필수 항목입니다."}
    )

class ReportResponseSchema(Schema):
    reporter_id = fields.Str()
    target_id = fields.Str()
    reason = fields.Str()
    created_at = fields.DateTime()
