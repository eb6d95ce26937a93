"""Tests for the customer document portal"""
import pytest

from cmsportal.config import settings
from cmsportal.errors import FileTooLarge, Forbidden, LastVersion, NotFound, VersionNotFound
from cmsportal.schemas.documents import (
    AccessPermissions,
    DocumentDownloadRequest,
    DocumentSearchFilters,
    DocumentUploadRequest,
    FolderCreate,
    UploadedFile,
)
from cmsportal.schemas.identity import Identity, Role
from cmsportal.services.documents import Actor, DocumentStore, storage_key


def _actor(subject: str, role: Role, customer_id=None, is_demo=False) -> Actor:
    identity = Identity(subject=subject, email=f"{subject}@example.com", customer_id=customer_id, is_demo=is_demo)
    return Actor(identity=identity, role=role)


ADMIN = _actor("admin-1", Role.ADMIN)
STAFF = _actor("staff-1", Role.STAFF)
ACME = _actor("acme-user", Role.CUSTOMER, customer_id="customer-1")
OTHER = _actor("other-user", Role.CUSTOMER, customer_id="customer-2")
DEMO = _actor("demo-user", Role.CUSTOMER, is_demo=True)


def _upload(name="report.pdf", content=b"%PDF-1.4 data", customer_id="customer-1", **kwargs) -> DocumentUploadRequest:
    return DocumentUploadRequest(
        file=UploadedFile(file_name=name, content=content, mime_type="application/pdf"),
        customer_id=customer_id,
        **kwargs,
    )


@pytest.fixture
def documents(store, storage) -> DocumentStore:
    return DocumentStore(store, storage, max_upload_bytes=1024, access_log_retention=100)


# ---------------------------------------------------------------------------
# Upload and versions
# ---------------------------------------------------------------------------

def test_upload_creates_document(documents, storage):
    document = documents.upload_document(_upload(tags=["q3"], description="Quarterly"), STAFF)

    assert document.id.startswith("doc_")
    assert document.current_version == 0
    assert len(document.versions) == 1
    assert document.versions[0].version == 1
    assert document.access_permissions.can_view == ["customer-1"]
    assert document.access_permissions.can_download == ["customer-1"]
    assert document.created_by == "staff-1"
    assert storage.objects[document.versions[0].storage_key] == b"%PDF-1.4 data"
    assert [e.action for e in documents.get_access_log(document.id)] == ["upload"]


def test_same_name_in_same_folder_adds_version(documents):
    first = documents.upload_document(_upload("Contract.PDF"), STAFF)
    second = documents.upload_document(_upload("contract.pdf", content=b"v2"), STAFF)

    assert second.id == first.id
    assert len(second.versions) == 2
    assert second.versions[1].version == 2
    assert second.current_version == 1
    assert len(documents.get_documents()) == 1


def test_same_name_in_other_folder_is_a_new_document(documents):
    first = documents.upload_document(_upload(), STAFF)
    second = documents.upload_document(_upload(folder_id="folder-x"), STAFF)

    assert second.id != first.id


def test_customer_uploads_only_to_own_account(documents):
    documents.upload_document(_upload(), ACME)

    with pytest.raises(Forbidden):
        documents.upload_document(_upload(customer_id="customer-1"), OTHER)


def test_upload_for_unknown_customer(documents):
    with pytest.raises(NotFound):
        documents.upload_document(_upload(customer_id="customer-404"), STAFF)


def test_upload_size_limit(documents):
    with pytest.raises(FileTooLarge) as exc_info:
        documents.upload_document(_upload(content=b"x" * 2048), STAFF)
    assert exc_info.value.details["max_bytes"] == 1024


def test_storage_key_sanitizes_file_name():
    key = storage_key("customer-1", "doc_1", 2, "Q3 report (final).pdf")
    assert key == "customers/customer-1/documents/doc_1/v2/Q3_report__final_.pdf"


# ---------------------------------------------------------------------------
# Version deletion
# ---------------------------------------------------------------------------

def test_cannot_delete_only_version(documents):
    document = documents.upload_document(_upload(), STAFF)

    with pytest.raises(LastVersion):
        documents.delete_document_version(document.id, 1, ADMIN)


def test_delete_version_clamps_current_version(documents):
    document = documents.upload_document(_upload(), STAFF)
    documents.upload_document(_upload(content=b"v2"), STAFF)

    assert documents.delete_document_version(document.id, 2, ADMIN) is True

    updated = documents.get_document(document.id)
    assert len(updated.versions) == 1
    assert updated.current_version == 0
    assert updated.versions[0].version == 1


def test_delete_earlier_version_keeps_current_pointing_at_same_version(documents):
    document = documents.upload_document(_upload(), STAFF)
    documents.upload_document(_upload(content=b"v2"), STAFF)
    documents.upload_document(_upload(content=b"v3"), STAFF)

    documents.delete_document_version(document.id, 1, ADMIN)

    updated = documents.get_document(document.id)
    assert [v.version for v in updated.versions] == [2, 3]
    assert updated.versions[updated.current_version].version == 3


def test_delete_version_requires_admin(documents):
    document = documents.upload_document(_upload(), STAFF)
    documents.upload_document(_upload(content=b"v2"), STAFF)

    with pytest.raises(Forbidden):
        documents.delete_document_version(document.id, 1, STAFF)


def test_delete_missing_document_or_version(documents):
    document = documents.upload_document(_upload(), STAFF)

    assert documents.delete_document_version("doc_missing", 1, ADMIN) is False
    assert documents.delete_document_version(document.id, 5, ADMIN) is False


def test_version_numbers_are_not_reused_after_delete(documents, storage):
    document = documents.upload_document(_upload(content=b"one"), STAFF)
    documents.upload_document(_upload(content=b"two"), STAFF)
    documents.upload_document(_upload(content=b"three"), STAFF)
    documents.delete_document_version(document.id, 2, ADMIN)

    updated = documents.add_document_version(
        document.id, UploadedFile(file_name="report.pdf", content=b"four", mime_type="application/pdf"), STAFF
    )

    assert [v.version for v in updated.versions] == [1, 3, 4]
    assert updated.versions[updated.current_version].version == 4
    by_number = {v.version: v for v in updated.versions}
    assert storage.objects[by_number[3].storage_key] == b"three"
    assert storage.objects[by_number[4].storage_key] == b"four"

    result = documents.download_document(DocumentDownloadRequest(document_id=document.id, version=3), STAFF)
    assert result.version == 3
    with pytest.raises(VersionNotFound):
        documents.download_document(DocumentDownloadRequest(document_id=document.id, version=2), STAFF)


def test_delete_uses_version_number_not_position(documents):
    document = documents.upload_document(_upload(), STAFF)
    documents.upload_document(_upload(content=b"v2"), STAFF)
    documents.upload_document(_upload(content=b"v3"), STAFF)
    documents.delete_document_version(document.id, 1, ADMIN)

    assert documents.delete_document_version(document.id, 1, ADMIN) is False
    assert documents.delete_document_version(document.id, 3, ADMIN) is True

    updated = documents.get_document(document.id)
    assert [v.version for v in updated.versions] == [2]
    result = documents.download_document(DocumentDownloadRequest(document_id=document.id, version=2), STAFF)
    assert result.version == 2


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------

def test_download_current_version(documents, storage):
    document = documents.upload_document(_upload(), STAFF)
    documents.upload_document(_upload(content=b"v2"), STAFF)

    result = documents.download_document(DocumentDownloadRequest(document_id=document.id), ACME)

    assert result.version == 2
    assert result.url == f"https://mock-storage.local/{documents.get_document(document.id).versions[1].storage_key}"
    assert documents.get_document(document.id).last_accessed_at is not None
    assert documents.get_access_log(document.id)[0].action == "download"


def test_download_specific_version(documents):
    document = documents.upload_document(_upload(), STAFF)
    documents.upload_document(_upload(content=b"v2"), STAFF)

    result = documents.download_document(DocumentDownloadRequest(document_id=document.id, version=1), STAFF)

    assert result.version == 1


def test_forbidden_download_never_asks_for_url(documents, storage):
    document = documents.upload_document(_upload(), STAFF)

    with pytest.raises(Forbidden):
        documents.download_document(DocumentDownloadRequest(document_id=document.id), OTHER)

    assert storage.url_requests == 0
    assert all(e.action != "download" for e in documents.get_access_log(document.id))


def test_download_missing_document_or_version(documents):
    document = documents.upload_document(_upload(), STAFF)

    with pytest.raises(NotFound):
        documents.download_document(DocumentDownloadRequest(document_id="doc_missing"), STAFF)
    with pytest.raises(VersionNotFound):
        documents.download_document(DocumentDownloadRequest(document_id=document.id, version=3), STAFF)


def test_explicit_download_grant(documents):
    document = documents.upload_document(_upload(), STAFF)
    documents.update_document_permissions(
        document.id,
        AccessPermissions(can_view=["other-user"], can_download=["other-user"]),
        ADMIN,
    )

    result = documents.download_document(DocumentDownloadRequest(document_id=document.id), OTHER)

    assert result.document_id == document.id


def test_customer_download_requires_customer_grant(documents):
    document = documents.upload_document(_upload(), STAFF)
    documents.update_document_permissions(document.id, AccessPermissions(can_view=["customer-1"]), ADMIN)

    with pytest.raises(Forbidden):
        documents.download_document(DocumentDownloadRequest(document_id=document.id), ACME)


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------

def test_customers_only_list_their_documents(documents, store):
    documents.upload_document(_upload("acme.pdf"), STAFF)
    documents.upload_document(_upload("demo.pdf", customer_id="demo-customer-001"), STAFF)

    assert [d.name for d in documents.get_documents(actor=ACME)] == ["acme.pdf"]
    assert documents.get_documents(actor=OTHER) == []
    assert len(documents.get_documents(actor=STAFF)) == 2


def test_demo_identity_sees_demo_customer_documents(documents):
    document = documents.upload_document(_upload("demo.pdf", customer_id="demo-customer-001"), STAFF)
    documents.upload_document(_upload("acme.pdf"), STAFF)

    visible = documents.get_documents(actor=DEMO)

    assert [d.id for d in visible] == [document.id]
    assert documents.download_document(DocumentDownloadRequest(document_id=document.id), DEMO).version == 1


def test_view_document_logs_access(documents):
    document = documents.upload_document(_upload(), STAFF)

    documents.view_document(document.id, ACME)

    assert documents.get_access_log(document.id)[0].action == "view"
    with pytest.raises(Forbidden):
        documents.view_document(document.id, OTHER)
    with pytest.raises(NotFound):
        documents.view_document("doc_missing", ACME)


def test_search_filters(documents):
    documents.upload_document(_upload("a.pdf", tags=["finance"], is_confidential=True), STAFF)
    documents.upload_document(_upload("b.pdf", tags=["legal"]), STAFF)

    by_tag = documents.get_documents(DocumentSearchFilters(tags=["finance"]))
    confidential = documents.get_documents(DocumentSearchFilters(confidential_only=True))
    by_type = documents.get_documents(DocumentSearchFilters(file_types=["pdf"]))
    by_customer = documents.get_documents(DocumentSearchFilters(customer_id="demo-customer-001"))

    assert [d.name for d in by_tag] == ["a.pdf"]
    assert [d.name for d in confidential] == ["a.pdf"]
    assert len(by_type) == 2
    assert by_customer == []


# ---------------------------------------------------------------------------
# Permissions, folders, access log
# ---------------------------------------------------------------------------

def test_only_creator_or_admin_updates_permissions(documents):
    document = documents.upload_document(_upload(), STAFF)
    permissions = AccessPermissions(can_view=["x"], can_download=["x"], can_upload=["x"])

    with pytest.raises(Forbidden):
        documents.update_document_permissions(document.id, permissions, _actor("staff-2", Role.STAFF))

    assert documents.update_document_permissions(document.id, permissions, STAFF) is True
    assert documents.update_document_permissions(document.id, permissions, ADMIN) is True
    assert documents.update_document_permissions("doc_missing", permissions, ADMIN) is False
    assert documents.get_document(document.id).access_permissions.can_upload == ["x"]


def test_create_folder(documents):
    parent = documents.create_folder(FolderCreate(name="Contracts", customer_id="customer-1"), ACME)
    child = documents.create_folder(
        FolderCreate(name="2024", customer_id="customer-1", parent_folder_id=parent.id), STAFF
    )

    assert child.parent_folder_id == parent.id
    assert [f.name for f in documents.get_folders("customer-1")] == ["Contracts", "2024"]

    with pytest.raises(Forbidden):
        documents.create_folder(FolderCreate(name="Nope", customer_id="customer-1"), OTHER)
    with pytest.raises(NotFound):
        documents.create_folder(
            FolderCreate(name="Cross", customer_id="demo-customer-001", parent_folder_id=parent.id), STAFF
        )


def test_access_log_retention(store, storage):
    documents = DocumentStore(store, storage, access_log_retention=3)
    document = documents.upload_document(_upload(), STAFF)
    for _ in range(4):
        documents.view_document(document.id, STAFF)

    log = documents.get_access_log()

    assert len(log) == 3
    assert all(e.action == "view" for e in log)


def test_deactivated_customer_is_hidden(documents):
    assert documents.deactivate_customer("customer-1") is True
    assert documents.get_customer("customer-1") is None
    assert documents.deactivate_customer("customer-1") is False
    with pytest.raises(NotFound):
        documents.upload_document(_upload(), STAFF)


def test_find_customer_by_email(documents):
    assert documents.find_customer_by_email("Contact@ACME.com").id == "customer-1"
    assert documents.find_customer_by_email("nobody@acme.com") is None
    assert documents.find_customer_by_email(None) is None

    documents.deactivate_customer("customer-1")
    assert documents.find_customer_by_email("contact@acme.com") is None


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

def _multipart(name="brief.pdf", content=b"%PDF brief", **form):
    return {"files": {"file": (name, content, "application/pdf")}, "data": form}


def test_api_upload_and_download(client, editor_headers, storage):
    response = client.post(
        "/documents",
        headers=editor_headers,
        **_multipart(customer_id="customer-1", tags="legal, q3", is_confidential="true"),
    )
    assert response.status_code == 201, response.text
    document = response.json()
    assert document["tags"] == ["legal", "q3"]
    assert document["is_confidential"] is True

    response = client.get(f"/documents/{document['id']}/download", headers=editor_headers)
    assert response.status_code == 200
    assert response.json()["url"].startswith("https://mock-storage.local/customers/customer-1/")

    response = client.get(f"/documents/{document['id']}/download?version=2", headers=editor_headers)
    assert response.status_code == 404


def test_api_upload_over_limit_is_rejected(client, editor_headers, storage, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 16)

    response = client.post(
        "/documents",
        headers=editor_headers,
        **_multipart(content=b"x" * 64, customer_id="customer-1"),
    )

    assert response.status_code == 413
    assert response.json()["error"] == "file_too_large"
    assert response.json()["max_bytes"] == 16
    assert storage.objects == {}

    response = client.post(
        "/documents",
        headers=editor_headers,
        **_multipart(content=b"x" * 16, customer_id="customer-1"),
    )
    assert response.status_code == 201


def test_api_documents_require_authentication(client):
    response = client.get("/documents")
    assert response.status_code == 401
    assert response.json()["login_url"] == "/auth/login"


def test_api_customer_visibility(access_client, token_headers):
    response = access_client.get("/documents", headers=token_headers(email="jane@corp.test"))
    assert response.status_code == 200
    assert response.json() == []

    staff = token_headers(email="jane@corp.test")
    for customer_id, name in [("customer-1", "acme.pdf"), ("demo-customer-001", "demo.pdf")]:
        response = access_client.post(
            "/documents", headers=staff, **_multipart(name=name, customer_id=customer_id)
        )
        assert response.status_code == 201, response.text

    acme = token_headers(email="buyer@acme.com", custom={"customer_id": "customer-1"})
    response = access_client.get("/documents", headers=acme)
    assert response.status_code == 200
    assert [d["name"] for d in response.json()] == ["acme.pdf"]

    demo_id = next(d["id"] for d in access_client.get("/documents", headers=staff).json() if d["name"] == "demo.pdf")
    assert access_client.get(f"/documents/{demo_id}", headers=acme).status_code == 403
    assert access_client.get(f"/documents/{demo_id}/download", headers=acme).status_code == 403


def test_api_customer_associated_by_email(access_client, token_headers):
    staff = token_headers(email="jane@corp.test")
    access_client.post("/documents", headers=staff, **_multipart(customer_id="customer-1"))

    contact = token_headers(email="Contact@Acme.com")
    response = access_client.get("/auth/me", headers=contact)
    assert response.json()["customer_id"] == "customer-1"
    assert response.json()["role"] == "customer"

    assert len(access_client.get("/documents", headers=contact).json()) == 1


def test_api_unknown_identity_has_no_role(access_client, token_headers):
    response = access_client.get("/documents", headers=token_headers(email="stranger@nowhere.io"))
    assert response.status_code == 403


def test_api_delete_version_admin_only(client, admin_headers, editor_headers):
    doc = client.post("/documents", headers=editor_headers, **_multipart(customer_id="customer-1")).json()
    client.post(f"/documents/{doc['id']}/versions", headers=editor_headers, **_multipart(content=b"v2"))

    assert client.delete(f"/documents/{doc['id']}/versions/1", headers=editor_headers).status_code == 403
    assert client.delete(f"/documents/{doc['id']}/versions/9", headers=admin_headers).status_code == 404
    assert client.delete(f"/documents/{doc['id']}/versions/1", headers=admin_headers).status_code == 204

    response = client.delete(f"/documents/{doc['id']}/versions/1", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "last_version"

    assert client.delete("/documents/doc_missing/versions/1", headers=admin_headers).status_code == 404


def test_api_access_log(client, admin_headers, editor_headers):
    doc = client.post("/documents", headers=editor_headers, **_multipart(customer_id="customer-1")).json()
    client.get(f"/documents/{doc['id']}", headers=editor_headers)

    response = client.get(f"/documents/{doc['id']}/access-log", headers=admin_headers)

    assert response.status_code == 200
    assert [e["action"] for e in response.json()] == ["view", "upload"]


def test_api_folders(client, editor_headers):
    response = client.post("/folders", headers=editor_headers, json={"name": "Board", "customer_id": "customer-1"})
    assert response.status_code == 201

    response = client.get("/customers/customer-1/folders", headers=editor_headers)
    assert [f["name"] for f in response.json()] == ["Board"]
