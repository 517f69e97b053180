# chirp/services/test_storage_service.py
from unittest.mock import MagicMock

import pytest

from chirp.models.chirp import AttachmentType
from chirp.services.storage_service import StorageService

@pytest.fixture
def storage(app):
    return app.services['storage']

def test_upload_url_uses_folder_per_type(storage, bucket):
    info = storage.generate_upload_url("u1", "chirp_attachment", "Voice.M4A", "audio/mp4")

    assert info['file_path'].startswith("chirp_attachments/u1/")
    assert info['file_path'].endswith(".m4a")
    assert info['attachment_type'] == "audio"
    assert info['upload_url'] == bucket.blob.return_value.generate_signed_url.return_value

def test_upload_url_rejects_unknown_type(storage):
    with pytest.raises(ValueError):
        storage.generate_upload_url("u1", "video", "a.mp4", "video/mp4")

def test_uninitialized_service_raises():
    with pytest.raises(RuntimeError):
        StorageService().generate_upload_url("u1", "profile_image", "a.png", "image/png")

def test_make_public_checks_owner_and_existence(storage, bucket):
    with pytest.raises(PermissionError):
        storage.make_public_and_get_url("profile_images/other/a.png", user_id="u1")
    with pytest.raises(ValueError):
        storage.make_public_and_get_url("somewhere/a.png", user_id="u1")

    bucket.blob.return_value.exists.return_value = False
    with pytest.raises(FileNotFoundError):
        storage.make_public_and_get_url("profile_images/u1/a.png", user_id="u1")

def test_delete_by_url_only_touches_own_bucket(storage, bucket):
    blob = bucket.blob.return_value

    assert storage.delete_by_url("https://example.com/avatar.png") is False
    assert storage.delete_by_url(None) is False
    blob.delete.assert_not_called()

    url = f"https://storage.googleapis.com/{bucket.name}/profile_images/u1/a.png?alt=media"
    assert storage.delete_by_url(url) is True
    bucket.blob.assert_called_with("profile_images/u1/a.png")
    blob.delete.assert_called_once()

def test_delete_by_url_swallows_storage_errors(storage, bucket):
    bucket.blob.return_value.delete = MagicMock(side_effect=RuntimeError("boom"))
    assert storage.delete_by_url(f"https://storage.googleapis.com/{bucket.name}/profile_images/u1/a.png") is False

@pytest.mark.parametrize("content_type, expected", [
    ("image/png", AttachmentType.IMAGE),
    ("audio/mpeg", AttachmentType.AUDIO),
    ("application/pdf", AttachmentType.FILE),
    (None, AttachmentType.FILE),
])
def test_attachment_type_for(content_type, expected):
    assert StorageService.attachment_type_for(content_type) == expected
