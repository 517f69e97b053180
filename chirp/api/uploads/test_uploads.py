# chirp/api/uploads/test_uploads.py

def test_upload_url_requires_login(client):
    assert client.post('/api/uploads/url', json={}).status_code == 401

def test_upload_url(client, auth_headers):
    response = client.post('/api/uploads/url', json={
        "upload_type": "profile_image", "filename": "me.jpg", "content_type": "image/jpeg"
    }, headers=auth_headers("u1"))

    assert response.status_code == 200
    body = response.get_json()
    assert body['file_path'].startswith("profile_images/u1/")
    assert body['attachment_type'] == "image"

def test_upload_url_rejects_invalid_type(client, auth_headers):
    response = client.post('/api/uploads/url', json={
        "upload_type": "video", "filename": "clip.mp4", "content_type": "video/mp4"
    }, headers=auth_headers("u1"))

    assert response.status_code == 400
    assert "upload_type" in response.get_json()['details']

def test_finalize_returns_attachment(client, bucket, auth_headers):
    response = client.post('/api/uploads/finalize', json={
        "file_path": "chirp_attachments/u1/file.png", "filename": "file.png", "content_type": "image/png", "size": 42
    }, headers=auth_headers("u1"))

    assert response.status_code == 200
    body = response.get_json()
    assert body['public_url'] == bucket.blob.return_value.public_url
    assert body['attachment'] == {"type": "image", "url": body['public_url'], "filename": "file.png", "size": 42}
    bucket.blob.return_value.make_public.assert_called_once()

def test_finalize_other_users_file_is_forbidden(client, auth_headers):
    response = client.post('/api/uploads/finalize', json={"file_path": "chirp_attachments/u2/file.png"}, headers=auth_headers("u1"))
    assert response.status_code == 403

def test_finalize_missing_file(client, bucket, auth_headers):
    bucket.blob.return_value.exists.return_value = False
    response = client.post('/api/uploads/finalize', json={"file_path": "chirp_attachments/u1/file.png"}, headers=auth_headers("u1"))
    assert response.status_code == 404
    assert response.get_json()['error_code'] == "FILE_NOT_FOUND"

def test_finalize_invalid_path(client, auth_headers):
    response = client.post('/api/uploads/finalize', json={"file_path": "file.png"}, headers=auth_headers("u1"))
    assert response.status_code == 400
