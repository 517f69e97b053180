# chirp/api/communities/schemas.py
from marshmallow import Schema, fields, validate, post_load

from chirp.api.users.schemas import USERNAME_PATTERN

class CommunitySettingsSchema(Schema):
    allow_member_posts = fields.Bool(load_default=True)
    require_approval_for_posts = fields.Bool(load_default=False)
    allow_member_invites = fields.Bool(load_default=True)
    show_member_list = fields.Bool(load_default=True)

class CommunityRuleSchema(Schema):
    title = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    description = fields.Str(load_default="", validate=validate.Length(max=500))

class CommunityCreateSchema(Schema):
    """
    POST /api/communities/
    커뮤니티 생성 요청. username은 커뮤니티 주소(slug)로 쓰이며 소문자로 저장됩니다.
    """
    name = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=100),
        error_messages={"required": "name은 필수 항목입니다."}
    )
    username = fields.Str(
        required=True,
        validate=validate.Regexp(USERNAME_PATTERN, error="username은 영문, 숫자, '_'로 된 3~30자여야 합니다."),
        error_messages={"required": "username은 필수 항목입니다."}
    )
    description = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=500))
    image = fields.Str(load_default=None, allow_none=True)
    cover_image = fields.Str(load_default=None, allow_none=True)
    is_private = fields.Bool(load_default=False)
    tags = fields.List(fields.Str(validate=validate.Length(min=1, max=30)), load_default=list)
    rules = fields.List(fields.Nested(CommunityRuleSchema), load_default=list)
    settings = fields.Nested(CommunitySettingsSchema, load_default=dict)

    @post_load
    def normalize(self, data, **kwargs):
        if data.get('username'):
            data['username'] = data['username'].lower()
        if 'tags' in data:
            data['tags'] = list(dict.fromkeys(t.strip().lower() for t in data['tags'] if t.strip()))
        return data

class CommunityUpdateSchema(Schema):
    """PATCH /api/communities/{community_id}. username(slug)은 바꿀 수 없습니다."""
    name = fields.Str(validate=validate.Length(min=1, max=100))
    description = fields.Str(allow_none=True, validate=validate.Length(max=500))
    image = fields.Str(allow_none=True)
    cover_image = fields.Str(allow_none=True)
    is_private = fields.Bool()
    tags = fields.List(fields.Str(validate=validate.Length(min=1, max=30)))
    rules = fields.List(fields.Nested(CommunityRuleSchema))
    settings = fields.Nested(CommunitySettingsSchema)

class JoinRequestSchema(Schema):
    """POST /api/communities/{community_id}/join (비공개 커뮤니티 가입 요청 메시지)"""
    message = fields.Str(load_default="", validate=validate.Length(max=200))

class CommunityResponseSchema(Schema):
    community_id = fields.Str(required=True)
    name = fields.Str()
    username = fields.Str()
    description = fields.Str(allow_none=True)
    image = fields.Str(allow_none=True)
    cover_image = fields.Str(allow_none=True)
    is_private = fields.Bool()
    creator_id = fields.Str()
    admin_ids = fields.List(fields.Str())
    moderator_ids = fields.List(fields.Str())
    settings = fields.Nested(CommunitySettingsSchema)
    tags = fields.List(fields.Str())
    rules = fields.List(fields.Nested(CommunityRuleSchema))
    member_count = fields.Int()
    viewer_role = fields.Str(allow_none=True)
    has_pending_request = fields.Bool()
    created_at = fields.DateTime()
    updated_at = fields.DateTime()

class CommunityMemberResponseSchema(Schema):
    user_id = fields.Str()
    username = fields.Str(allow_none=True)
    name = fields.Str(allow_none=True)
    image = fields.Str(allow_none=True)
    role = fields.Str()
    joined_at = fields.DateTime()

class JoinRequestResponseSchema(Schema):
    user_id = fields.Str()
    username = fields.Str(allow_none=True)
    name = fields.Str(allow_none=True)
    image = fields.Str(allow_none=True)
    message = fields.Str()
    requested_at = fields.DateTime()
