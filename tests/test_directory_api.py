import pytest
from fastapi import status

from councilhub.members.enums import Role
from tests.conftest import auth_headers, make_user


@pytest.mark.anyio
async def test_contact_crud(client, editor):
    headers = auth_headers(editor)
    response = await client.post(
        "/api/contacts",
        json={"contact_name": "Riverside Sports", "email": "hi@riverside.example", "contact_type": "sponsor"},
        headers=headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    contact = response.json()["data"]
    assert contact["contact_type"] == "sponsor"

    response = await client.get("/api/contacts", params={"type": "sponsor"}, headers=headers)
    assert [c["id"] for c in response.json()["data"]] == [contact["id"]]
    response = await client.get("/api/contacts", params={"search": "river"}, headers=headers)
    assert len(response.json()["data"]) == 1

    response = await client.put(
        f"/api/contacts/{contact['id']}",
        json={"contact_name": "Riverside Sports Club", "contact_type": "partner"},
        headers=headers,
    )
    assert response.json()["data"]["contact_type"] == "partner"

    response = await client.delete(f"/api/contacts/{contact['id']}", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    response = await client.get(f"/api/contacts/{contact['id']}", headers=headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.anyio
async def test_directory_requires_editor(client, dbsession):
    member = await make_user(dbsession, "member@example.com", role=Role.MEMBER)
    response = await client.get("/api/contacts", headers=auth_headers(member))
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.anyio
async def test_csv_upload(client, editor):
    content = (
        "contact_name,email,contact_type\n"
        "Alpha,alpha@example.com,vendor\n"
        ",missing@example.com,vendor\n"
    )
    response = await client.post(
        "/api/contacts/import",
        files={"file": ("contacts.csv", content.encode("utf-8"), "text/csv")},
        headers=auth_headers(editor),
    )
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert body["data"]["imported_count"] == 1
    assert body["data"]["total_rows"] == 2
    assert body["warnings"] == ["row 2: contact name is required"]


@pytest.mark.anyio
async def test_csv_upload_rejects_other_files(client, editor):
    response = await client.post(
        "/api/contacts/import",
        files={"file": ("contacts.pdf", b"%PDF-1.4", "application/pdf")},
        headers=auth_headers(editor),
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "Only CSV files are allowed"


@pytest.mark.anyio
async def test_csv_upload_survives_oversized_field(client, editor):
    content = "contact_name,notes\nAlice,short\nBob," + "x" * 200_000 + "\nCarol,ok\n"
    response = await client.post(
        "/api/contacts/import",
        files={"file": ("contacts.csv", content.encode("utf-8"), "text/csv")},
        headers=auth_headers(editor),
    )
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["data"]["imported_count"] == 2
    assert body["data"]["total_rows"] == 3
    assert body["warnings"][0].startswith("row 2: malformed CSV row")


@pytest.mark.anyio
async def test_template_download(client, editor):
    response = await client.get("/api/contacts/import/template", headers=auth_headers(editor))
    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"].startswith("text/csv")
    assert response.text.splitlines()[0].startswith("contact_name,organization")
