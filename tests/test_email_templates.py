import pytest

TEMPLATE = {
    "name": "Interview Invitation",
    "subject": "Interview for {{job_title}}",
    "body": "Dear {{candidate_name}}, we would like to invite you to an interview.",
    "usage_context": "recruitment",
    "category": "Recruitment",
}


def _create_template(client, user, auth_headers, **overrides):
    return client.post("/api/communication/templates", json=dict(TEMPLATE, **overrides), headers=auth_headers(user))


def test_admin_creates_and_lists_templates(client, admin_user, manager_user, auth_headers):
    response = _create_template(client, admin_user, auth_headers)
    assert response.status_code == 201
    assert response.json()["subject"] == "Interview for {{job_title}}"

    _create_template(client, admin_user, auth_headers, name="Offer Letter", category="Offers")
    response = client.get("/api/communication/templates", headers=auth_headers(manager_user))
    assert response.status_code == 200
    assert [t["name"] for t in response.json()] == ["Interview Invitation", "Offer Letter"]

    response = client.get("/api/communication/templates?category=Offers", headers=auth_headers(manager_user))
    assert [t["name"] for t in response.json()] == ["Offer Letter"]


def test_template_names_unique_per_tenant(client, admin_user, auth_headers):
    assert _create_template(client, admin_user, auth_headers).status_code == 201
    response = _create_template(client, admin_user, auth_headers)
    assert response.status_code == 409
    assert "already exists" in response.json()["errors"][0]["msg"]


def test_manager_cannot_write_templates(client, manager_user, auth_headers):
    assert _create_template(client, manager_user, auth_headers).status_code == 403


def test_employee_cannot_read_templates(client, employee_user, auth_headers):
    response = client.get("/api/communication/templates", headers=auth_headers(employee_user))
    assert response.status_code == 403


def test_update_template(client, admin_user, auth_headers):
    template_id = _create_template(client, admin_user, auth_headers).json()["id"]
    response = client.put(f"/api/communication/templates/{template_id}", json={"subject": "Next steps"},
                          headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.json()["subject"] == "Next steps"
    assert response.json()["name"] == "Interview Invitation"


@pytest.mark.parametrize("field", ["name", "subject", "body"])
def test_null_template_field_is_422(client, admin_user, auth_headers, field):
    template_id = _create_template(client, admin_user, auth_headers).json()["id"]
    response = client.put(f"/api/communication/templates/{template_id}", json={field: None},
                          headers=auth_headers(admin_user))
    assert response.status_code == 422
    assert response.json()["errors"][0]["details"]["field"] == field


def test_delete_template(client, admin_user, auth_headers):
    template_id = _create_template(client, admin_user, auth_headers).json()["id"]
    response = client.delete(f"/api/communication/templates/{template_id}", headers=auth_headers(admin_user))
    assert response.status_code == 200
    response = client.get(f"/api/communication/templates/{template_id}", headers=auth_headers(admin_user))
    assert response.status_code == 404
    assert response.json()["errors"][0]["code"] == "NOT_FOUND"


def test_templates_are_tenant_scoped(client, db_session, admin_user, make_user, auth_headers):
    from app.models.tenant import Tenant
    from app.models.user import UserRole
    template_id = _create_template(client, admin_user, auth_headers).json()["id"]

    other = Tenant(name="Other Corp", subdomain="other")
    db_session.add(other)
    db_session.commit()
    outsider = make_user("outsider", UserRole.ADMIN, tenant_id=other.id)

    response = client.get(f"/api/communication/templates/{template_id}", headers=auth_headers(outsider))
    assert response.status_code == 404
    assert client.get("/api/communication/templates", headers=auth_headers(outsider)).json() == []
