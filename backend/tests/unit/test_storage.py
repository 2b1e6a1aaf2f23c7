"""Unit tests for attachment storage backends."""

import re
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from reportdesk.config import Settings
from reportdesk.exceptions import InvalidInput, NotFound
from reportdesk.storage import (
    LocalStorage,
    S3Storage,
    compute_content_hash,
    generate_storage_key,
    validate_upload,
)


class TestLocalStorage:
    def test_put_get_delete(self, tmp_path):
        storage = LocalStorage(tmp_path)

        locator = storage.put(b"quarterly numbers", "Figures.PDF", "application/pdf")

        assert locator.startswith("local://attachments/")
        assert locator.endswith(".pdf")
        assert storage.get(locator) == b"quarterly numbers"

        storage.delete(locator)
        with pytest.raises(NotFound):
            storage.get(locator)

    def test_stream_yields_chunks(self, tmp_path):
        storage = LocalStorage(tmp_path)
        data = b"x" * (200 * 1024)
        locator = storage.put(data, "big.txt")

        chunks = list(storage.stream(locator))

        assert len(chunks) > 1
        assert b"".join(chunks) == data

    def test_delete_missing_is_ignored(self, tmp_path):
        LocalStorage(tmp_path).delete("local://attachments/nothing.txt")

    def test_foreign_locator_is_rejected(self, tmp_path):
        with pytest.raises(InvalidInput):
            LocalStorage(tmp_path).get("s3://bucket/key.txt")

    def test_path_escape_is_rejected(self, tmp_path):
        with pytest.raises(InvalidInput):
            LocalStorage(tmp_path / "root").get("local://../../etc/passwd")


class TestS3Storage:
    @pytest.fixture
    def s3(self):
        client = MagicMock()
        settings = Settings(storage_backend="s3", s3_bucket="reports")
        with patch("reportdesk.storage.boto3.client", return_value=client):
            storage = S3Storage(settings)
        return storage, client

    def test_put_uploads_with_content_type(self, s3):
        storage, client = s3

        locator = storage.put(b"data", "sheet.xlsx")

        assert locator.startswith("s3://reports/attachments/")
        args, kwargs = client.upload_fileobj.call_args
        assert args[1] == "reports"
        assert kwargs["ExtraArgs"]["Metadata"]["sha256"] == compute_content_hash(b"data")

    def test_missing_key_is_not_found(self, s3):
        storage, client = s3
        client.download_fileobj.side_effect = ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject"
        )

        with pytest.raises(NotFound):
            storage.get("s3://reports/attachments/2026-01/abc.pdf")

    def test_other_bucket_is_rejected(self, s3):
        storage, _ = s3

        with pytest.raises(InvalidInput):
            storage.delete("s3://elsewhere/attachments/abc.pdf")

    def test_delete_calls_client(self, s3):
        storage, client = s3

        storage.delete("s3://reports/attachments/2026-01/abc.pdf")

        client.delete_object.assert_called_once_with(
            Bucket="reports", Key="attachments/2026-01/abc.pdf"
        )


class TestUploadRules:
    @pytest.fixture
    def settings(self):
        return Settings(max_upload_bytes=1024)

    def test_allowed_file_passes(self, settings):
        validate_upload("scan.PNG", 100, settings)

    def test_empty_file_is_rejected(self, settings):
        with pytest.raises(InvalidInput, match="empty"):
            validate_upload("scan.png", 0, settings)

    def test_oversized_file_is_rejected(self, settings):
        with pytest.raises(InvalidInput, match="too large"):
            validate_upload("scan.png", 2048, settings)

    @pytest.mark.parametrize("filename", ["run.exe", "archive.zip", "noextension"])
    def test_disallowed_extension_is_rejected(self, settings, filename):
        with pytest.raises(InvalidInput, match="not allowed"):
            validate_upload(filename, 10, settings)

    def test_storage_key_layout(self):
        key = generate_storage_key("My Report.DOCX")

        assert re.fullmatch(r"attachments/\d{4}-\d{2}/[0-9a-f]{32}\.docx", key)
