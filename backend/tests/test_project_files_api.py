"""Tests for project file uploads against a stubbed object store."""

import io
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from fastapi import HTTPException

from bizops.services import file_storage

from conftest import headers_for


@pytest.fixture
def s3(monkeypatch):
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://storage.example/signed"
    monkeypatch.setattr(file_storage, "_client", lambda: client)
    return client


def _url(pid, suffix=""):
    return f"/api/v1/projects/{pid}/files/{suffix}"


def _upload(client, pid, role="partner", name="contract.pdf", content=b"%PDF-1.4", ctype="application/pdf",
            category="contract"):
    return client.post(_url(pid), files={"file": (name, content, ctype)}, data={"category": category},
                       headers=headers_for(role))


class TestCheckFileType:

    def test_known_type_passes(self):
        assert file_storage.check_file_type("a.pdf", "application/pdf") == "application/pdf"

    def test_generic_type_falls_back_to_extension(self):
        assert file_storage.check_file_type("scan.JPG", "application/octet-stream") == "image/jpeg"

    def test_disallowed_type(self):
        with pytest.raises(HTTPException) as exc:
            file_storage.check_file_type("run.exe", "application/x-msdownload")
        assert exc.value.status_code == 400


class TestProjectFiles:

    def test_upload_list_download(self, client, make_project, s3):
        pid = make_project("in_progress")
        resp = _upload(client, pid)
        assert resp.status_code == 200, resp.text
        record = resp.json()
        assert record["file_name"] == "contract.pdf"
        assert record["category"] == "contract"
        assert record["storage_path"].startswith(f"{pid}/")
        s3.put_object.assert_called_once()

        listed = client.get(_url(pid), headers=headers_for("assistant_1")).json()
        assert [f["id"] for f in listed] == [record["id"]]

        link = client.get(_url(pid, f"{record['id']}/download"), headers=headers_for("assistant_1")).json()
        assert link == {"url": "https://storage.example/signed", "file_name": "contract.pdf"}

    def test_assistant_cannot_upload(self, client, make_project, s3):
        pid = make_project("in_progress")
        assert _upload(client, pid, role="assistant_1").status_code == 403
        s3.put_object.assert_not_called()

    def test_rejects_bad_category_and_empty_file(self, client, make_project, s3):
        pid = make_project("in_progress")
        assert _upload(client, pid, category="invoice").status_code == 400
        assert _upload(client, pid, content=b"").status_code == 400

    def test_storage_failure_is_500(self, client, make_project, s3):
        pid = make_project("in_progress")
        s3.put_object.side_effect = ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        assert _upload(client, pid).status_code == 500

    def test_only_uploader_or_admin_deletes(self, client, make_project, s3):
        pid = make_project("in_progress")
        fid = _upload(client, pid).json()["id"]

        assert client.delete(_url(pid, fid), headers=headers_for("manager_2")).status_code == 403
        assert client.delete(_url(pid, fid), headers=headers_for("admin")).status_code == 200
        s3.delete_object.assert_called_once()
        assert client.get(_url(pid), headers=headers_for("partner")).json() == []

    def test_unknown_project(self, client, s3):
        resp = _upload(client, "00000000-0000-0000-0000-0000000000ff")
        assert resp.status_code == 404


class TestUploadCap:

    def test_oversize_upload_is_413_without_buffering_it_all(self, monkeypatch, s3):
        monkeypatch.setattr(file_storage, "MAX_FILE_SIZE", 4)
        stream = io.BytesIO(b"%PDF-1.4 and much more")
        upload = SimpleNamespace(filename="big.pdf", content_type="application/pdf", file=stream)

        with pytest.raises(HTTPException) as exc:
            file_storage.save_upload(upload, "p1")
        assert exc.value.status_code == 413
        assert stream.tell() == 5
        s3.put_object.assert_not_called()

    def test_upload_at_the_cap_is_stored(self, monkeypatch, s3):
        monkeypatch.setattr(file_storage, "MAX_FILE_SIZE", 4)
        upload = SimpleNamespace(filename="ok.pdf", content_type="application/pdf", file=io.BytesIO(b"%PDF"))
        key, name, size, ctype = file_storage.save_upload(upload, "p1")
        assert key.startswith("p1/") and key.endswith(".pdf")
        assert (name, size, ctype) == ("ok.pdf", 4, "application/pdf")
