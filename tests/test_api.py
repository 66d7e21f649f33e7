"""HTTP API tests over an in-memory database."""
import pytest
from httpx import ASGITransport, AsyncClient

from taxportal.database import get_db
from taxportal.main import app


@pytest.fixture
async def api(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def as_user(user):
    return {"X-User-Id": str(user.id)}


class TestAuth:

    @pytest.mark.asyncio
    async def test_health(self, api):
        response = await api.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_missing_identity(self, api):
        response = await api.get("/api/documents")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user(self, api):
        response = await api.get(
            "/api/documents", headers={"X-User-Id": "00000000-0000-0000-0000-000000000000"}
        )
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_staff_route_forbidden_for_clients(self, api, client_user, personal_return):
        response = await api.patch(
            f"/api/admin/returns/{personal_return.id}/status",
            json={"status": "filed"},
            headers=as_user(client_user),
        )
        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"


class TestQuestionnaireAndChecklist:

    @pytest.mark.asyncio
    async def test_save_then_list_checklist(self, api, client_user):
        response = await api.put(
            "/api/questionnaire",
            json={"answers": {"employment_type": ["W-2 Employment"], "side_business": False}},
            headers=as_user(client_user),
        )
        assert response.status_code == 200
        assert response.json() == {"added": 3, "removed": 0, "kept": 0, "total": 3}

        response = await api.get("/api/questionnaire", headers=as_user(client_user))
        assert response.json()["answers"]["side_business"] is False
        assert response.json()["is_complete"] is False

        response = await api.get("/api/required-documents", headers=as_user(client_user))
        body = response.json()
        assert body["total"] == 3
        assert body["satisfied"] == 0
        assert body["is_complete"] is False
        assert body["items"][0]["document_type"] == "w2"

    @pytest.mark.asyncio
    async def test_mark_not_applicable(self, api, client_user, other_user):
        await api.put(
            "/api/questionnaire", json={"answers": {"dependents": True}}, headers=as_user(client_user)
        )
        items = (await api.get("/api/required-documents", headers=as_user(client_user))).json()["items"]

        response = await api.patch(
            f"/api/required-documents/{items[0]['id']}/not-applicable",
            json={"value": True},
            headers=as_user(client_user),
        )
        assert response.status_code == 200
        assert response.json()["marked_not_applicable"] is True

        response = await api.patch(
            f"/api/required-documents/{items[0]['id']}/not-applicable",
            json={"value": True},
            headers=as_user(other_user),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_complete_questionnaire(self, api, client_user):
        await api.put(
            "/api/questionnaire", json={"answers": {"dependents": True}}, headers=as_user(client_user)
        )
        response = await api.post("/api/questionnaire/complete", headers=as_user(client_user))

        assert response.status_code == 200
        assert [r["status"] for r in response.json()] == ["documents_gathering"]


class TestDocuments:

    @pytest.mark.asyncio
    async def test_upload_links_and_reports_rejections(self, api, client_user):
        await api.put(
            "/api/questionnaire",
            json={"answers": {"employment_type": ["W-2 Employment"]}},
            headers=as_user(client_user),
        )

        response = await api.post(
            "/api/documents/upload",
            files=[
                ("files", ("acme_w2.pdf", b"%PDF-1.4", "application/pdf")),
                ("files", ("setup.exe", b"MZ", "application/x-msdownload")),
            ],
            headers=as_user(client_user),
        )

        assert response.status_code == 200
        body = response.json()
        assert len(body["documents"]) == 1
        assert body["documents"][0]["document_type"] == "w2"
        assert body["documents"][0]["status"] == "processing"
        assert body["rejected"][0]["filename"] == "setup.exe"

        items = (await api.get("/api/required-documents", headers=as_user(client_user))).json()["items"]
        w2 = next(i for i in items if i["document_type"] == "w2")
        assert w2["document_id"] == body["documents"][0]["id"]

    @pytest.mark.asyncio
    async def test_upload_to_selected_item_then_delete(self, api, client_user):
        await api.put(
            "/api/questionnaire", json={"answers": {"dependents": True}}, headers=as_user(client_user)
        )
        items = (await api.get("/api/required-documents", headers=as_user(client_user))).json()["items"]

        response = await api.post(
            "/api/documents/upload",
            files=[("files", ("scan.png", b"\x89PNG", "image/png"))],
            data={"requiredDocumentId": items[1]["id"]},
            headers=as_user(client_user),
        )
        document = response.json()["documents"][0]

        items = (await api.get("/api/required-documents", headers=as_user(client_user))).json()["items"]
        assert items[1]["is_uploaded"] is True
        assert items[1]["document_id"] == document["id"]

        response = await api.delete(f"/api/documents/{document['id']}", headers=as_user(client_user))
        assert response.status_code == 200

        items = (await api.get("/api/required-documents", headers=as_user(client_user))).json()["items"]
        assert items[1]["is_uploaded"] is False
        assert (await api.get("/api/documents", headers=as_user(client_user))).json() == []

    @pytest.mark.asyncio
    async def test_invalid_required_document_id(self, api, client_user):
        response = await api.post(
            "/api/documents/upload",
            files=[("files", ("w2.pdf", b"%PDF", "application/pdf"))],
            data={"requiredDocumentId": "not-a-uuid"},
            headers=as_user(client_user),
        )
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_staff_document_override(self, api, client_user, staff_user):
        response = await api.post(
            "/api/documents/upload",
            files=[("files", ("scan.pdf", b"%PDF", "application/pdf"))],
            headers=as_user(client_user),
        )
        document_id = response.json()["documents"][0]["id"]

        response = await api.patch(
            f"/api/admin/documents/{document_id}",
            json={"status": "rejected", "document_type": "1099_b"},
            headers=as_user(staff_user),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        assert response.json()["document_type"] == "1099_b"

    @pytest.mark.asyncio
    async def test_staff_override_with_bad_type_changes_nothing(self, api, client_user, staff_user):
        response = await api.post(
            "/api/documents/upload",
            files=[("files", ("scan.pdf", b"%PDF", "application/pdf"))],
            headers=as_user(client_user),
        )
        document_id = response.json()["documents"][0]["id"]

        response = await api.patch(
            f"/api/admin/documents/{document_id}",
            json={"status": "rejected", "document_type": "tax_stuff"},
            headers=as_user(staff_user),
        )
        assert response.status_code == 400

        documents = (await api.get("/api/documents", headers=as_user(client_user))).json()
        assert documents[0]["status"] == "processing"
        assert documents[0]["document_type"] == "other"


class TestReturns:

    @pytest.mark.asyncio
    async def test_signature_advance_flow(self, api, client_user, staff_user, personal_return):
        url = f"/api/returns/{personal_return.id}"

        response = await api.post(f"{url}/advance", headers=as_user(client_user))
        assert response.status_code == 409
        assert response.json()["code"] == "precondition_failed"

        response = await api.patch(
            f"/api/admin/returns/{personal_return.id}/status",
            json={"status": "signature_required"},
            headers=as_user(staff_user),
        )
        assert response.status_code == 200

        stages = (await api.get(f"{url}/stages", headers=as_user(client_user))).json()
        assert stages["current_stage"] == "signature_required"
        assert stages["stages"][6]["action_hint"]["label"] == "Sign Form 8879"

        response = await api.post(f"{url}/advance", headers=as_user(client_user))
        assert response.status_code == 409
        assert response.json()["details"]["condition"] == "form_8879_signed"

        response = await api.post(
            "/api/signatures",
            json={"document_type": "form_8879", "signature_data": "data:image/png;base64,AAAA"},
            headers=as_user(client_user),
        )
        assert response.status_code == 200

        stages = (await api.get(f"{url}/stages", headers=as_user(client_user))).json()
        assert stages["stages"][6]["action_hint"]["action"] == "advance"

        response = await api.post(f"{url}/advance", headers=as_user(client_user))
        assert response.status_code == 200
        assert response.json()["status"] == "filing"

    @pytest.mark.asyncio
    async def test_stage_view_for_personal_alias(self, api, client_user):
        response = await api.get("/api/returns/personal/stages", headers=as_user(client_user))

        assert response.status_code == 200
        body = response.json()
        assert body["explicit_status"] is None
        assert body["current_stage"] == "not_started"
        assert len(body["stages"]) == 9

    @pytest.mark.asyncio
    async def test_other_users_return_is_not_found(self, api, other_user, personal_return):
        response = await api.get(f"/api/returns/{personal_return.id}/stages", headers=as_user(other_user))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_refund_update(self, api, staff_user, client_user, personal_return):
        response = await api.patch(
            f"/api/admin/returns/{personal_return.id}/refund",
            json={"federal_status": "submitted", "federal_amount": "1250.00"},
            headers=as_user(staff_user),
        )
        assert response.status_code == 200
        assert response.json()["federal_status"] == "submitted"
        assert response.json()["status"] is None

        returns = (await api.get("/api/returns", headers=as_user(client_user))).json()
        assert returns[0]["federal_status"] == "submitted"

    @pytest.mark.asyncio
    async def test_invalid_signature_type(self, api, client_user):
        response = await api.post(
            "/api/signatures",
            json={"document_type": "w2", "signature_data": "sig"},
            headers=as_user(client_user),
        )
        assert response.status_code == 400


class TestMessages:

    @pytest.mark.asyncio
    async def test_post_and_list(self, api, client_user):
        response = await api.post(
            "/api/messages", json={"content": "Is my W-2 enough?"}, headers=as_user(client_user)
        )
        assert response.status_code == 200
        assert response.json()["is_from_client"] is True

        messages = (await api.get("/api/messages", headers=as_user(client_user))).json()
        assert [m["content"] for m in messages] == ["Is my W-2 enough?"]


class TestStaffViews:

    @pytest.mark.asyncio
    async def test_stage_board(self, api, client_user, staff_user, personal_return):
        await api.patch(
            f"/api/admin/returns/{personal_return.id}/status",
            json={"status": "client_review"},
            headers=as_user(staff_user),
        )

        response = await api.get("/api/admin/kanban", headers=as_user(staff_user))

        assert response.status_code == 200
        body = response.json()
        assert body["statuses"][0] == "not_started"
        assert body["statuses"][-1] == "filed"
        assert len(body["statuses"]) == 9
        assert set(body["columns"]) == set(body["statuses"])
        cards = body["columns"]["client_review"]
        assert [c["return_id"] for c in cards] == [str(personal_return.id)]
        assert cards[0]["client_name"] == "Casey Client"
        assert cards[0]["client_email"] == "client@example.com"
        assert body["columns"]["not_started"] == []

    @pytest.mark.asyncio
    async def test_stage_board_type_filter(self, api, client_user, staff_user, personal_return):
        personal = (await api.get("/api/admin/kanban?type=personal", headers=as_user(staff_user))).json()
        business = (await api.get("/api/admin/kanban?type=business", headers=as_user(staff_user))).json()
        everything = (await api.get("/api/admin/kanban?type=all", headers=as_user(staff_user))).json()

        assert len(personal["columns"]["not_started"]) == 1
        assert business["columns"]["not_started"] == []
        assert len(everything["columns"]["not_started"]) == 1

    @pytest.mark.asyncio
    async def test_stage_board_unknown_type(self, api, staff_user):
        response = await api.get("/api/admin/kanban?type=trust", headers=as_user(staff_user))
        assert response.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path",
        ["/api/admin/kanban", "/api/admin/documents", "/api/admin/clients/{id}/documents",
         "/api/admin/clients/{id}/required-documents"],
    )
    async def test_client_cannot_use_staff_views(self, api, client_user, path):
        response = await api.get(path.format(id=client_user.id), headers=as_user(client_user))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_client_checklist_and_documents(self, api, client_user, staff_user):
        await api.put(
            "/api/questionnaire",
            json={"answers": {"employment_type": ["W-2 Employment"]}},
            headers=as_user(client_user),
        )
        await api.post(
            "/api/documents/upload",
            files=[("files", ("acme_w2.pdf", b"%PDF-1.4", "application/pdf"))],
            headers=as_user(client_user),
        )

        checklist = await api.get(
            f"/api/admin/clients/{client_user.id}/required-documents", headers=as_user(staff_user)
        )
        documents = await api.get(
            f"/api/admin/clients/{client_user.id}/documents", headers=as_user(staff_user)
        )

        assert checklist.status_code == 200
        own = (await api.get("/api/required-documents", headers=as_user(client_user))).json()
        assert checklist.json() == own
        assert [d["original_name"] for d in documents.json()] == ["acme_w2.pdf"]

    @pytest.mark.asyncio
    async def test_unknown_client(self, api, staff_user):
        response = await api.get(
            "/api/admin/clients/00000000-0000-0000-0000-000000000000/documents",
            headers=as_user(staff_user),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_all_documents_with_client(self, api, client_user, other_user, staff_user):
        for user, name in ((client_user, "w2.pdf"), (other_user, "1098.pdf")):
            await api.post(
                "/api/documents/upload",
                files=[("files", (name, b"%PDF", "application/pdf"))],
                headers=as_user(user),
            )

        response = await api.get("/api/admin/documents", headers=as_user(staff_user))

        assert response.status_code == 200
        rows = {d["original_name"]: d for d in response.json()}
        assert set(rows) == {"w2.pdf", "1098.pdf"}
        assert rows["w2.pdf"]["client_name"] == "Casey Client"
        assert rows["w2.pdf"]["client_email"] == "client@example.com"
        assert rows["1098.pdf"]["user_id"] == str(other_user.id)
