# tests/functional/services/test_file_storage.py
import pytest
from unittest.mock import AsyncMock, MagicMock
from pytest_mock import MockerFixture
from azure.core.exceptions import ResourceNotFoundError

from adminhub.services import file_storage
from adminhub.services.file_storage import FileValidationError


def test_document_folder():
    assert file_storage.document_folder("pan_card") == "pan_cards"
    assert file_storage.document_folder("aadhar_card") == "aadhar_cards"
    assert file_storage.document_folder("passport") == "other_documents"
    assert file_storage.document_folder("other") == "other_documents"

def test_generate_file_name_is_sanitised_and_unique():
    first = file_storage.generate_file_name("My PAN (front).PDF", "user-1", "pan_card")
    second = file_storage.generate_file_name("My PAN (front).PDF", "user-1", "pan_card")
    assert first.startswith("user-1_pan_card_my_pan__front__")
    assert first.endswith(".PDF")
    assert first != second

def test_validate_file_accepts_allowed_upload():
    assert file_storage.validate_file("image/png", 1024) == []

def test_validate_file_reports_every_problem():
    errors = file_storage.validate_file("image/gif", 6 * 1024 * 1024)
    assert len(errors) == 2
    assert errors[0] == "File size exceeds maximum limit of 5MB"
    assert errors[1].startswith("File type image/gif is not allowed")

def test_file_validation_error_message():
    error = FileValidationError(["too big", "wrong type"])
    assert error.errors == ["too big", "wrong type"]
    assert str(error) == "File validation failed: too big, wrong type"


@pytest.fixture
def container(mocker: MockerFixture) -> MagicMock:
    container_client = MagicMock()
    blob_client = MagicMock()
    blob_client.upload_blob = AsyncMock()
    blob_client.delete_blob = AsyncMock()
    container_client.get_blob_client.return_value = blob_client
    mocker.patch("adminhub.services.file_storage._get_container_client", return_value=container_client)
    return container_client

async def test_save_file_uploads_under_document_folder(container: MagicMock):
    stored = await file_storage.save_file(b"%PDF-1.4", "pan.pdf", "application/pdf", "user-1", "pan_card")

    assert stored is not None
    assert stored.file_path == f"kyc/pan_cards/{stored.file_name}"
    assert stored.original_file_name == "pan.pdf"
    assert stored.file_size == 8
    assert stored.mime_type == "application/pdf"
    container.get_blob_client.assert_called_once_with(stored.file_path)
    container.get_blob_client.return_value.upload_blob.assert_awaited_once()

async def test_save_file_rejects_invalid_upload(container: MagicMock):
    with pytest.raises(FileValidationError):
        await file_storage.save_file(b"GIF89a", "pic.gif", "image/gif", "user-1", "other")
    container.get_blob_client.assert_not_called()

async def test_save_file_without_storage_configured(mocker: MockerFixture):
    mocker.patch("adminhub.services.file_storage._get_container_client", return_value=None)
    assert await file_storage.save_file(b"%PDF", "a.pdf", "application/pdf", "user-1", "pan_card") is None

async def test_delete_missing_blob_counts_as_deleted(container: MagicMock):
    container.get_blob_client.return_value.delete_blob.side_effect = ResourceNotFoundError("gone")

    assert await file_storage.delete_file("kyc/pan_cards/gone.pdf") is True
