# chirp/services/storage_service.py
import uuid
import logging
from datetime import timedelta
from typing import Optional
from flask import Flask
from firebase_admin import storage

from chirp.models.chirp import AttachmentType

class StorageService:
    """
    Firebase Storage 관련 로직을 담당하는 범용 서비스 클래스입니다.
    파일은 클라이언트가 Pre-signed URL로 직접 업로드하고,
    서버는 업로드가 끝난 파일의 공개 URL만 chirp/프로필 문서에 저장합니다.
    """

    # 업로드 목적별 저장 폴더
    PATH_MAP = {
        "profile_image": "profile_images",
        "community_image": "community_images",
        "chirp_attachment": "chirp_attachments",
    }

    def __init__(self):
        """실제 버킷 객체는 init_app 메서드를 통해 주입됩니다."""
        self.bucket = None

    def init_app(self, app: Flask, bucket=None):
        """
        Flask 앱 초기화 과정에서 호출되어 Storage 버킷을 설정합니다.

        :param app: Flask 애플리케이션 객체
        :param bucket: 테스트 등에서 직접 주입하는 버킷 객체 (없으면 설정값으로 생성)
        """
        if bucket is not None:
            self.bucket = bucket
            return

        bucket_name = app.config.get('FIREBASE_STORAGE_BUCKET')
        if not bucket_name:
            raise ValueError("FIREBASE_STORAGE_BUCKET 설정이 .env 또는 설정 파일에 필요합니다.")

        self.bucket = storage.bucket(bucket_name)
        logging.info("StorageService: Firebase Storage 서비스가 성공적으로 초기화되었습니다.")

    def generate_upload_url(self, user_id: str, upload_type: str, filename: str, content_type: str) -> dict:
        """
        업로드 타입에 맞는 경로로 파일을 올릴 수 있는 Pre-signed URL을 생성합니다.

        :param user_id: JWT에서 추출한 현재 로그인된 사용자의 고유 ID
        :param upload_type: 업로드 목적 ("profile_image", "community_image", "chirp_attachment")
        :param filename: 클라이언트가 업로드할 원본 파일명 (확장자 파악에 사용)
        :param content_type: 업로드할 파일의 MIME 타입 (예: "image/jpeg")
        :return: 업로드 URL, 저장 경로, 첨부 파일 타입이 담긴 딕셔너리
        """
        if not self.bucket:
            raise RuntimeError("StorageService가 초기화되지 않았습니다. init_app을 먼저 호출해주세요.")

        folder = self.PATH_MAP.get(upload_type)
        if not folder:
            raise ValueError(f"'{upload_type}'은(는) 유효한 업로드 타입이 아닙니다.")

        extension = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
        unique_filename = f"{uuid.uuid4()}.{extension}" if extension else str(uuid.uuid4())
        destination_blob_name = f"{folder}/{user_id}/{unique_filename}"

        blob = self.bucket.blob(destination_blob_name)

        # 15분 동안 유효한 업로드 전용 URL을 생성합니다.
        upload_url = blob.generate_signed_url(
            version="v4",
            expiration=timedelta(minutes=15),
            method="PUT",
            content_type=content_type
        )

        return {
            "upload_url": upload_url,
            "file_path": destination_blob_name,
            "attachment_type": self.attachment_type_for(content_type).value
        }

    def make_public_and_get_url(self, file_path: str, user_id: Optional[str] = None) -> str:
        """
        업로드된 파일을 공개로 전환하고 고정 URL을 반환합니다.
        user_id가 주어지면 본인 폴더의 파일인지 확인합니다.
        """
        if not self.bucket:
            raise RuntimeError("StorageService가 초기화되지 않았습니다. init_app을 먼저 호출해주세요.")

        parts = file_path.split('/')
        if len(parts) < 3 or parts[0] not in self.PATH_MAP.values():
            raise ValueError(f"올바르지 않은 파일 경로입니다: {file_path}")
        if user_id and parts[1] != user_id:
            raise PermissionError("본인이 업로드한 파일만 공개할 수 있습니다.")

        blob = self.bucket.blob(file_path)
        if not blob.exists():
            raise FileNotFoundError(f"파일을 찾을 수 없습니다: {file_path}")

        try:
            blob.make_public()
            return blob.public_url
        except Exception as e:
            logging.error(f"파일 공개 전환 실패: {e}", exc_info=True)
            raise

    def delete_by_url(self, url: str) -> bool:
        """공개 URL에 해당하는 blob이 이 버킷에 있으면 삭제합니다. 실패해도 예외를 던지지 않습니다."""
        if not self.bucket or not url:
            return False
        try:
            marker = f"/{self.bucket.name}/"
            if marker not in url:
                return False
            file_path = url.split("?")[0].split(marker, 1)[1]
            blob = self.bucket.blob(file_path)
            if blob.exists():
                blob.delete()
                return True
        except Exception as e:
            logging.error(f"Storage 파일 삭제 실패 (url: {url}): {e}")
        return False

    @staticmethod
    def attachment_type_for(content_type: Optional[str]) -> AttachmentType:
        """MIME 타입을 첨부 파일 종류(image/audio/file)로 변환합니다."""
        main_type = (content_type or '').split('/')[0].lower()
        if main_type == 'image':
            return AttachmentType.IMAGE
        if main_type == 'audio':
            return AttachmentType.AUDIO
        return AttachmentType.FILE
