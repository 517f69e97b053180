# chirp/api/notifications/schemas.py
from marshmallow import Schema, fields

class SenderSchema(Schema):
    user_id = fields.Str()
    username = fields.Str(allow_none=True)
    name = fields.Str(allow_none=True)
    image = fields.Str(allow_none=True)

class NotificationResponseSchema(Schema):
    """GET /api/notifications/"""
    notification_id = fields.Str(required=True)
    recipient_id = fields.Str()
    sender = fields.Nested(SenderSchema)
    type = fields.Str()
    target_id = fields.Str()
    target_summary = fields.Str(allow_none=True)
    is_read = fields.Bool()
    created_at = fields.DateTime()
