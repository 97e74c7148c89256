"""
HTTP tests for /api/attachments: upload validation, listing, download framing
and deletion.
"""
import asyncio
import base64
import io

import pytest
from fastapi import UploadFile

from crm.api.routes.attachments import content_disposition
from crm.api.uploads import read_upload
from crm.models.attachment import Attachment
from crm.services.attachment_storage import AttachmentStorageService, StoredPayload
from crm.services.attachments import MAX_FILE_SIZE

TEN_BYTES = b"0123456789"


def upload(client, content=TEN_BYTES, filename="notes.txt", mime_type="text/plain", **parents):
    form = {}
    if "contact_id" in parents:
        form["contactId"] = parents["contact_id"]
    if "log_entry_id" in parents:
        form["logEntryId"] = parents["log_entry_id"]
    return client.post(
        "/api/attachments",
        files={"file": (filename, content, mime_type)},
        data=form,
    )


class TestUploadScenario:
    def test_upload_list_download(self, client, contact):
        """10-byte text file on an existing contact goes all the way through."""
        resp = upload(client, contact_id=contact["id"])

        assert resp.status_code == 201
        body = resp.json()
        assert "data" not in body
        assert body["filename"] == "notes.txt"
        assert body["mimeType"] == "text/plain"
        assert body["size"] == 10
        assert body["contactId"] == contact["id"]
        assert body["logEntryId"] is None
        assert body["storageProvider"] == "database"

        listed = client.get("/api/attachments", params={"contactId": contact["id"]})
        assert listed.status_code == 200
        assert [a["id"] for a in listed.json()] == [body["id"]]
        assert all("data" not in a for a in listed.json())

        download = client.get(f"/api/attachments/{body['id']}")
        assert download.status_code == 200
        assert download.content == TEN_BYTES
        assert download.headers["content-type"] == "text/plain"
        assert download.headers["content-length"] == "10"
        assert download.headers["content-disposition"] == 'attachment; filename="notes.txt"'

    def test_upload_to_log_entry(self, client, log_entry):
        resp = upload(client, b"%PDF-1.4", "report.pdf", "application/pdf", log_entry_id=log_entry["id"])

        assert resp.status_code == 201
        assert resp.json()["logEntryId"] == log_entry["id"]
        assert resp.json()["contactId"] is None

        listed = client.get("/api/attachments", params={"logEntryId": log_entry["id"]}).json()
        assert len(listed) == 1

    def test_contact_listing_embeds_metadata(self, client, contact):
        upload(client, contact_id=contact["id"])

        fetched = client.get(f"/api/contacts/{contact['id']}").json()

        assert len(fetched["attachments"]) == 1
        assert fetched["attachments"][0]["filename"] == "notes.txt"
        assert "data" not in fetched["attachments"][0]

    def test_metadata_endpoint(self, client, contact):
        created = upload(client, contact_id=contact["id"]).json()

        resp = client.get(f"/api/attachments/{created['id']}/metadata")

        assert resp.status_code == 200
        assert resp.json() == created

    def test_mime_parameters_are_dropped(self, client, contact):
        resp = upload(client, mime_type="text/plain; charset=utf-8", contact_id=contact["id"])

        assert resp.status_code == 201
        assert resp.json()["mimeType"] == "text/plain"

    def test_filename_path_is_stripped(self, client, contact):
        resp = upload(client, filename="../../etc/passwd.txt", contact_id=contact["id"])

        assert resp.status_code == 201
        assert resp.json()["filename"] == "passwd.txt"

    def test_content_disposition(self):
        assert content_disposition("notes.txt") == 'attachment; filename="notes.txt"'
        assert content_disposition("résumé.txt") == (
            "attachment; filename=\"rsum.txt\"; filename*=utf-8''r%C3%A9sum%C3%A9.txt"
        )
        assert content_disposition("日本.pdf").startswith('attachment; filename=".pdf"')


class TestUploadValidation:
    def test_oversized_file_rejected(self, client, contact):
        resp = upload(client, b"a" * (MAX_FILE_SIZE + 1), contact_id=contact["id"])

        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_ERROR"
        assert resp.json()["error"] == "File size exceeds 5MB limit"
        assert client.get("/api/attachments", params={"contactId": contact["id"]}).json() == []

    def test_read_stops_past_the_limit(self):
        upload_file = UploadFile(file=io.BytesIO(b"a" * 1000), filename="big.txt")

        content = asyncio.run(read_upload(upload_file, limit=100))

        assert len(content) == 101
        assert upload_file.file.tell() == 101

    def test_read_within_limit_is_complete(self):
        upload_file = UploadFile(file=io.BytesIO(TEN_BYTES), filename="notes.txt")

        assert asyncio.run(read_upload(upload_file, limit=100)) == TEN_BYTES

    def test_far_oversized_file_rejected(self, client, contact):
        resp = upload(client, b"a" * (2 * MAX_FILE_SIZE), contact_id=contact["id"])

        assert resp.status_code == 400
        assert resp.json()["error"] == "File size exceeds 5MB limit"

    def test_file_at_limit_accepted(self, client, contact):
        resp = upload(client, b"a" * MAX_FILE_SIZE, contact_id=contact["id"])

        assert resp.status_code == 201
        assert resp.json()["size"] == MAX_FILE_SIZE

    @pytest.mark.parametrize("mime_type", ["application/x-msdownload", "text/html", "image/svg+xml"])
    def test_disallowed_type_rejected(self, client, contact, mime_type):
        resp = upload(client, mime_type=mime_type, contact_id=contact["id"])

        assert resp.status_code == 400
        assert resp.json()["error"] == "File type not allowed"

    def test_both_parents_rejected(self, client, contact, log_entry):
        resp = upload(client, contact_id=contact["id"], log_entry_id=log_entry["id"])

        assert resp.status_code == 400
        assert resp.json()["error"] == "Cannot attach to both contact and log entry"

    def test_no_parent_rejected(self, client):
        resp = upload(client)

        assert resp.status_code == 400
        assert resp.json()["error"] == "Either contactId or logEntryId must be provided"

    def test_blank_parent_counts_as_missing(self, client):
        resp = upload(client, contact_id="")

        assert resp.status_code == 400
        assert resp.json()["error"] == "Either contactId or logEntryId must be provided"

    def test_missing_file_rejected(self, client, contact):
        resp = client.post("/api/attachments", data={"contactId": contact["id"]})

        assert resp.status_code == 400
        assert resp.json()["error"] == "No file provided"

    def test_unknown_contact(self, client, db_session):
        resp = upload(client, contact_id="does-not-exist")

        assert resp.status_code == 404
        assert resp.json()["error"] == "Contact not found"
        assert db_session.query(Attachment).count() == 0

    def test_unknown_log_entry(self, client, db_session):
        resp = upload(client, log_entry_id="does-not-exist")

        assert resp.status_code == 404
        assert resp.json()["error"] == "Log entry not found"
        assert db_session.query(Attachment).count() == 0


class TestListing:
    def test_requires_a_parent(self, client):
        resp = client.get("/api/attachments")

        assert resp.status_code == 400

    def test_rejects_both_parents(self, client):
        resp = client.get("/api/attachments", params={"contactId": "a", "logEntryId": "b"})

        assert resp.status_code == 400

    def test_newest_first(self, client, contact, db_session):
        first = upload(client, filename="first.txt", contact_id=contact["id"]).json()
        second = upload(client, filename="second.txt", contact_id=contact["id"]).json()

        # Pin timestamps so ordering does not depend on clock resolution
        from datetime import datetime
        db_session.get(Attachment, first["id"]).created_at = datetime(2024, 1, 1)
        db_session.get(Attachment, second["id"]).created_at = datetime(2024, 6, 1)
        db_session.commit()

        listed = client.get("/api/attachments", params={"contactId": contact["id"]}).json()

        assert [a["filename"] for a in listed] == ["second.txt", "first.txt"]

    def test_only_own_parent(self, client, contact):
        other = client.post("/api/contacts", json={"name": "Charles Babbage"}).json()
        upload(client, contact_id=contact["id"])

        assert client.get("/api/attachments", params={"contactId": other["id"]}).json() == []


class TestDeletion:
    def test_delete_then_download(self, client, contact):
        created = upload(client, contact_id=contact["id"]).json()

        resp = client.delete(f"/api/attachments/{created['id']}")
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

        assert client.get(f"/api/attachments/{created['id']}").status_code == 404

    def test_delete_twice(self, client, contact):
        created = upload(client, contact_id=contact["id"]).json()
        client.delete(f"/api/attachments/{created['id']}")

        resp = client.delete(f"/api/attachments/{created['id']}")

        assert resp.status_code == 404
        assert resp.json()["error"] == "Attachment not found"

    def test_download_unknown(self, client):
        resp = client.get("/api/attachments/nope")

        assert resp.status_code == 404
        assert resp.json()["code"] == "NOT_FOUND"

    def test_deleting_contact_removes_attachments(self, client, contact):
        created = upload(client, contact_id=contact["id"]).json()

        assert client.delete(f"/api/contacts/{contact['id']}").status_code == 200
        assert client.get(f"/api/attachments/{created['id']}").status_code == 404

    def test_deleting_log_entry_removes_attachments(self, client, log_entry):
        created = upload(client, log_entry_id=log_entry["id"]).json()

        assert client.delete(f"/api/logs/{log_entry['id']}").status_code == 200
        assert client.get(f"/api/attachments/{created['id']}").status_code == 404


class TestStorageFailures:
    def test_corrupt_payload_is_500(self, client, contact, db_session):
        db_session.add(Attachment(
            id="corrupt",
            filename="x.txt",
            mime_type="text/plain",
            size=10,
            data="not base64!!",
            storage_provider="database",
            contact_id=contact["id"],
        ))
        db_session.commit()

        resp = client.get("/api/attachments/corrupt")

        assert resp.status_code == 500
        assert resp.json() == {"error": "Attachment storage failure", "code": "STORAGE_ERROR"}

    def test_size_mismatch_is_500(self, client, contact, db_session):
        db_session.add(Attachment(
            id="short",
            filename="x.txt",
            mime_type="text/plain",
            size=99,
            data=base64.b64encode(TEN_BYTES).decode(),
            storage_provider="database",
            contact_id=contact["id"],
        ))
        db_session.commit()

        assert client.get("/api/attachments/short").status_code == 500

    def test_unregistered_provider_is_500(self, client, contact, db_session):
        db_session.add(Attachment(
            id="elsewhere",
            filename="x.txt",
            mime_type="text/plain",
            size=10,
            data="",
            storage_provider="s3",
            storage_reference="bucket/key",
            contact_id=contact["id"],
        ))
        db_session.commit()

        resp = client.get("/api/attachments/elsewhere")

        assert resp.status_code == 500
        assert resp.json()["code"] == "STORAGE_ERROR"

    def test_untagged_rows_use_default_provider(self, client, contact, db_session):
        db_session.add(Attachment(
            id="legacy",
            filename="x.txt",
            mime_type="text/plain",
            size=10,
            data=base64.b64encode(TEN_BYTES).decode(),
            storage_provider=None,
            contact_id=contact["id"],
        ))
        db_session.commit()

        resp = client.get("/api/attachments/legacy")

        assert resp.status_code == 200
        assert resp.content == TEN_BYTES


class FlakyRemoveProvider:
    """Stores in memory and always fails on remove."""

    provider_name = "flaky"

    def __init__(self):
        self.blobs = {}
        self.remove_calls = 0

    def store(self, payload):
        key = f"blob-{len(self.blobs)}"
        self.blobs[key] = payload
        return StoredPayload(data="", storage_provider=self.provider_name, storage_reference=key)

    def read(self, record):
        return self.blobs[record.storage_reference]

    def remove(self, record):
        self.remove_calls += 1
        raise OSError("backend unavailable")


class TestOutOfBandProvider:
    @pytest.fixture
    def provider(self):
        return FlakyRemoveProvider()

    @pytest.fixture
    def storage(self, provider):
        return AttachmentStorageService(default=provider)

    def test_round_trip_through_registered_provider(self, client, contact, provider):
        created = upload(client, contact_id=contact["id"]).json()

        assert created["storageProvider"] == "flaky"
        assert created["storageReference"] == "blob-0"
        assert client.get(f"/api/attachments/{created['id']}").content == TEN_BYTES

    def test_remove_failure_does_not_block_delete(self, client, contact, provider):
        created = upload(client, contact_id=contact["id"]).json()

        resp = client.delete(f"/api/attachments/{created['id']}")

        assert resp.status_code == 200
        assert provider.remove_calls == 1
        assert client.get(f"/api/attachments/{created['id']}").status_code == 404

    def test_missing_parent_discards_stored_payload(self, client, provider):
        resp = upload(client, contact_id="ghost")

        assert resp.status_code == 404
        assert provider.remove_calls == 1
