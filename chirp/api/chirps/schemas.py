# chirp/api/chirps/schemas.py
from typing import List
from marshmallow import Schema, fields, validate, validates, post_load, ValidationError

from chirp.models.chirp import AttachmentType

CHIRP_MIN_LENGTH = 3
CHIRP_MAX_LENGTH = 2000

def normalize_hashtags(hashtags: List[str]) -> List[str]:
    """'#Flask', ' flask ' 처럼 들어온 해시태그를 'flask' 하나로 정리합니다. (입력 순서 유지)"""
    normalized = []
    for tag in hashtags:
        cleaned = tag.strip().lstrip('#').strip().lower()
        if cleaned and cleaned not in normalized:
            normalized.append(cleaned)
    return normalized

# --- 요청(Request) 스키마 ---
# 클라이언트 폼과 맞추기 위해 chirp 작성 요청은 camelCase 키를 사용합니다.
class MentionSchema(Schema):
    user_id = fields.Str(required=True, data_key="userId", validate=validate.Length(min=1))
    username = fields.Str(
        required=True,
        validate=validate.Length(min=1, error="username은 비어 있을 수 없습니다."),
        error_messages={"required": "username은 필수 항목입니다."}
    )

class CommunityTagSchema(Schema):
    community_id = fields.Str(required=True, data_key="communityId", validate=validate.Length(min=1))
    community_username = fields.Str(
        required=True,
        data_key="communityUsername",
        validate=validate.Length(min=1, error="communityUsername은 비어 있을 수 없습니다."),
        error_messages={"required": "communityUsername은 필수 항목입니다."}
    )

class AttachmentSchema(Schema):
    type = fields.Str(
        required=True,
        validate=validate.OneOf([t.value for t in AttachmentType], error="type은 image, file, audio 중 하나여야 합니다.")
    )
    url = fields.URL(required=True, error_messages={"required": "url은 필수 항목입니다."})
    filename = fields.Str(load_default=None, allow_none=True)
    size = fields.Int(load_default=None, allow_none=True, validate=validate.Range(min=0))

class ReplyCreateSchema(Schema):
    """
    POST /api/chirps/{chirp_id}/replies
    답글 작성 요청의 유효성을 검사하는 스키마. (I/O 없이 형식만 검사합니다)
    """
    text = fields.Str(
        required=True,
        data_key="chirp",
        validate=validate.Length(max=CHIRP_MAX_LENGTH, error=f"최대 {CHIRP_MAX_LENGTH}자까지 입력할 수 있습니다."),
        error_messages={"required": "chirp 내용은 필수 항목입니다."}
    )
    account_id = fields.Str(
        required=True,
        data_key="accountId",
        validate=validate.Length(min=1),
        error_messages={"required": "accountId는 필수 항목입니다."}
    )
    hashtags = fields.List(fields.Str(validate=validate.Length(min=1, max=50)), load_default=list)
    mentions = fields.List(fields.Nested(MentionSchema), load_default=list)
    attachments = fields.List(
        fields.Nested(AttachmentSchema),
        load_default=list,
        validate=validate.Length(max=10, error="첨부 파일은 최대 10개까지 가능합니다.")
    )

    @validates("text")
    def validate_text(self, value, **kwargs):
        if len(value.strip()) < CHIRP_MIN_LENGTH:
            raise ValidationError(f"최소 {CHIRP_MIN_LENGTH}자 이상 입력해야 합니다.")

    @post_load
    def normalize(self, data, **kwargs):
        data['text'] = data['text'].strip()
        data['hashtags'] = normalize_hashtags(data.get('hashtags', []))
        return data

class ChirpCreateSchema(ReplyCreateSchema):
    """
    POST /api/chirps/
    최상위 chirp 작성 요청. 커뮤니티에 올리거나 다른 커뮤니티를 태그할 수 있습니다.
    """
    community_id = fields.Str(load_default=None, allow_none=True, data_key="communityId")
    community_tags = fields.List(fields.Nested(CommunityTagSchema), load_default=list, data_key="communityTags")


# --- 응답(Response) 스키마 ---
class AuthorSchema(Schema):
    user_id = fields.Str()
    username = fields.Str(allow_none=True)
    name = fields.Str(allow_none=True)
    image = fields.Str(allow_none=True)

class MentionResponseSchema(Schema):
    user_id = fields.Str()
    username = fields.Str()

class CommunityTagResponseSchema(Schema):
    community_id = fields.Str()
    community_username = fields.Str()

class AttachmentResponseSchema(Schema):
    type = fields.Str()
    url = fields.Str()
    filename = fields.Str(allow_none=True)
    size = fields.Int(allow_none=True)

class ChirpResponseSchema(Schema):
    """chirp 조회 응답. get_chirp에서는 replies에 답글 목록이 함께 담깁니다."""
    chirp_id = fields.Str(required=True)
    text = fields.Str()
    author_id = fields.Str()
    author = fields.Nested(AuthorSchema)
    community_id = fields.Str(allow_none=True)
    community = fields.Dict(allow_none=True)
    parent_id = fields.Str(allow_none=True)
    children = fields.List(fields.Str())
    hashtags = fields.List(fields.Str())
    mentions = fields.List(fields.Nested(MentionResponseSchema))
    community_tags = fields.List(fields.Nested(CommunityTagResponseSchema))
    attachments = fields.List(fields.Nested(AttachmentResponseSchema))
    likes = fields.List(fields.Str())
    shares = fields.List(fields.Str())
    like_count = fields.Int()
    share_count = fields.Int()
    reply_count = fields.Int()
    is_liked = fields.Bool()
    is_shared = fields.Bool()
    created_at = fields.DateTime()
    replies = fields.List(fields.Nested(lambda: ChirpResponseSchema(exclude=("replies",))))

class TrendingHashtagSchema(Schema):
    hashtag = fields.Str()
    count = fields.Int()
