# chirp/api/uploads/routes.py

import logging
from flask import request, jsonify, Blueprint, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import Schema, fields, validate, ValidationError

from chirp.services.storage_service import StorageService

# 프로필 이미지, 커뮤니티 이미지, chirp 첨부 파일 업로드를 위한 블루프린트 ('/api/uploads')
uploads_bp = Blueprint('uploads', __name__)

class UploadUrlRequestSchema(Schema):
    """Pre-signed URL 발급 요청 스키마"""
    upload_type = fields.Str(
        required=True,
        validate=validate.OneOf(list(StorageService.PATH_MAP.keys())),
        error_messages={"required": "upload_type은 필수입니다."}
    )
    filename = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    content_type = fields.Str(required=True, validate=validate.Length(min=1))

class FilePathSchema(Schema):
    """파일 경로 유효성 검사를 위한 스키마"""
    file_path = fields.Str(required=True, error_messages={"required": "파일 경로는 필수입니다."})
    # 첨부 파일 응답에 함께 돌려줄 선택 정보
    filename = fields.Str(load_default=None, allow_none=True)
    content_type = fields.Str(load_default=None, allow_none=True)
    size = fields.Int(load_default=None, allow_none=True, validate=validate.Range(min=0))


@uploads_bp.route('/url', methods=['POST'])
@jwt_required()
def get_upload_url():
    """
    파일 업로드를 위한 Pre-signed URL을 발급합니다.
    클라이언트는 이 URL로 파일을 직접 올린 뒤 /finalize를 호출합니다.
    """
    user_id = get_jwt_identity()
    storage_service = current_app.services['storage']

    try:
        data = UploadUrlRequestSchema().load(request.get_json() or {})
        url_info = storage_service.generate_upload_url(user_id, data['upload_type'], data['filename'], data['content_type'])
        return jsonify(url_info), 200
    except ValidationError as err:
        logging.warning(f"URL 발급 요청 실패 (잘못된 파라미터): {err.messages}")
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "INVALID_UPLOAD_TYPE", "message": str(e)}), 400
    except Exception as e:
        logging.error(f"Pre-signed URL 생성 중 서버 오류 발생: {e}", exc_info=True)
        return jsonify({"error_code": "URL_GENERATION_FAILED", "message": "URL 생성 중 서버 오류가 발생했습니다."}), 500


@uploads_bp.route('/finalize', methods=['POST'])
@jwt_required()
def finalize_upload():
    """
    업로드가 끝난 파일을 공개로 전환하고 URL을 반환합니다.
    응답의 attachment는 chirp 작성 요청의 attachments 항목에 그대로 넣을 수 있습니다.
    """
    user_id = get_jwt_identity()
    storage_service = current_app.services['storage']

    try:
        data = FilePathSchema().load(request.get_json() or {})
        public_url = storage_service.make_public_and_get_url(data['file_path'], user_id=user_id)

        attachment = {
            "type": StorageService.attachment_type_for(data['content_type']).value,
            "url": public_url,
            "filename": data['filename'],
            "size": data['size'],
        }
        return jsonify({"public_url": public_url, "attachment": attachment}), 200

    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except FileNotFoundError as e:
        return jsonify({"error_code": "FILE_NOT_FOUND", "message": str(e)}), 404
    except ValueError as e:
        return jsonify({"error_code": "INVALID_FILE_PATH", "message": str(e)}), 400
    except Exception as e:
        logging.error(f"파일 공개 전환 중 오류 발생: {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "파일 처리 중 오류가 발생했습니다."}), 500
