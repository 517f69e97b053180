# chirp/api/users/schemas.py
from marshmallow import Schema, fields, validate, post_load

USERNAME_PATTERN = r'^[A-Za-z0-9_]{3,30}$'

class OnboardingSchema(Schema):
    """
    POST /api/users/me/onboarding
    온보딩(프로필 설정) 요청 본문의 유효성을 검사하는 스키마.
    username은 소문자로 바꿔 저장합니다.
    """
    username = fields.Str(
        required=True,
        validate=validate.Regexp(USERNAME_PATTERN, error="username은 영문, 숫자, '_'로 된 3~30자여야 합니다."),
        error_messages={"required": "username은 필수 항목입니다."}
    )
    name = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=50),
        error_messages={"required": "name은 필수 항목입니다."}
    )
    bio = fields.Str(load_default="", validate=validate.Length(max=1000))
    image = fields.Str(allow_none=True)
    email = fields.Email(allow_none=True)
    website = fields.URL(allow_none=True)
    location = fields.Str(allow_none=True, validate=validate.Length(max=100))
    date_of_birth = fields.Date(allow_none=True)

    @post_load
    def normalize_username(self, data, **kwargs):
        if data.get('username'):
            data['username'] = data['username'].lower()
        return data

class ProfileUpdateSchema(OnboardingSchema):
    """
    PATCH /api/users/me
    프로필 수정 요청. 보낸 필드만 변경합니다. (load 시 partial=True로 사용)
    """
    bio = fields.Str(validate=validate.Length(max=1000))

class PrivacyUpdateSchema(Schema):
    """
    PUT /api/users/me/privacy
    is_private=True이면 새 팔로워는 팔로우 요청 수락을 거쳐야 합니다.
    """
    is_private = fields.Bool(
        required=True,
        error_messages={"required": "is_private는 필수 항목입니다."}
    )

class UserPublicResponseSchema(Schema):
    """
    GET /api/users/{user_id}
    다른 사용자의 프로필 정보를 응답할 때 사용하는 스키마.
    민감한 정보(email, external_id, date_of_birth, blocked_ids)는 제외합니다.
    """
    user_id = fields.Str(required=True, dump_only=True)
    username = fields.Str(allow_none=True)
    name = fields.Str(allow_none=True)
    image = fields.Str(allow_none=True)
    bio = fields.Str(allow_none=True)
    website = fields.Str(allow_none=True)
    location = fields.Str(allow_none=True)
    onboarded = fields.Bool()
    is_private = fields.Bool()
    joined_date = fields.DateTime(allow_none=True)
    follower_count = fields.Int()
    following_count = fields.Int()
    chirp_count = fields.Int()
    # 로그인 사용자 기준 관계 정보 (비로그인 시 생략)
    is_following = fields.Bool()
    is_followed_by = fields.Bool()

class UserPrivateResponseSchema(UserPublicResponseSchema):
    """GET /api/users/me. 본인에게만 보여주는 필드를 추가합니다."""
    email = fields.Str(allow_none=True)
    date_of_birth = fields.DateTime(allow_none=True)
    auth_provider = fields.Str()
    blocked_ids = fields.List(fields.Str())

class UserSummarySchema(Schema):
    """검색 결과, 팔로워 목록 등에서 사용하는 간단한 사용자 정보."""
    user_id = fields.Str()
    username = fields.Str(allow_none=True)
    name = fields.Str(allow_none=True)
    image = fields.Str(allow_none=True)
