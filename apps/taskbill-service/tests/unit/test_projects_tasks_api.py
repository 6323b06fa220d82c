import uuid

from taskbill.db import models, schemas
from taskbill.services import billing_service


def _h(email, user="tester"):
    return {"x-auth-request-user": user, "x-auth-request-email": email}


def _email():
    return f"user_{uuid.uuid4().hex[:8]}@example.com"


def test_reads_require_identity(client):
    r = client.get("/projects")
    assert r.status_code == 401


def test_create_and_list_projects(client):
    email = _email()
    r = client.post(
        "/projects",
        json={"name": "  Website  ", "hourly_rate": 40, "priority": "HIGH"},
        headers=_h(email),
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["name"] == "Website"
    assert body["priority"] == "high"
    assert body["rate_type"] == "hourly"

    r = client.get("/projects", headers=_h(email))
    assert r.status_code == 200
    assert [p["name"] for p in r.json()] == ["Website"]

    r = client.get("/projects?status=completed", headers=_h(email))
    assert r.json() == []

    r = client.get("/projects?status=bogus", headers=_h(email))
    assert r.status_code == 422


def test_fixed_rate_project_requires_fixed_rate(client):
    r = client.post("/projects", json={"name": "Fixed", "rate_type": "fixed"}, headers=_h(_email()))
    assert r.status_code == 422


def test_project_update_restricted_to_creator_or_billing(client, make_user):
    owner = _email()
    r = client.post("/projects", json={"name": "Mine"}, headers=_h(owner))
    project_id = r.json()["id"]

    r = client.patch(f"/projects/{project_id}", json={"name": "Theirs"}, headers=_h(_email()))
    assert r.status_code == 403

    manager = make_user(role="manager")
    r = client.patch(f"/projects/{project_id}", json={"name": "Managed"}, headers=_h(manager.email))
    assert r.status_code == 200
    assert r.json()["name"] == "Managed"


def test_project_status_cascades_to_tasks(client, db_session, make_project, make_task):
    email = _email()
    r = client.post("/projects", json={"name": "Cascade"}, headers=_h(email))
    project_id = uuid.UUID(r.json()["id"])
    project = db_session.get(models.Project, project_id)
    todo = make_task(project, status="todo")
    review = make_task(project, status="review", progress_percentage=80)

    r = client.patch(f"/projects/{project_id}", json={"status": "on_hold"}, headers=_h(email))
    assert r.status_code == 200
    db_session.expire_all()
    assert db_session.get(models.Task, todo.id).status == "hold"
    assert db_session.get(models.Task, review.id).status == "hold"

    r = client.patch(f"/projects/{project_id}", json={"status": "active"}, headers=_h(email))
    db_session.expire_all()
    assert db_session.get(models.Task, todo.id).status == "todo"

    r = client.patch(f"/projects/{project_id}", json={"status": "completed"}, headers=_h(email))
    db_session.expire_all()
    completed = db_session.get(models.Task, review.id)
    assert completed.status == "completed"
    assert completed.progress_percentage == 100
    assert completed.completed_on is not None


def test_delete_project_removes_tasks(client, db_session, make_task):
    email = _email()
    r = client.post("/projects", json={"name": "Gone"}, headers=_h(email))
    project_id = uuid.UUID(r.json()["id"])
    task_id = make_task(db_session.get(models.Project, project_id)).id

    r = client.delete(f"/projects/{project_id}", headers=_h(email))
    assert r.status_code == 204
    db_session.expire_all()
    assert db_session.get(models.Task, task_id) is None
    assert client.get(f"/projects/{project_id}", headers=_h(email)).status_code == 404


def test_create_task_applies_status_defaults(client, make_project):
    project = make_project()
    email = _email()
    r = client.post(
        "/tasks",
        json={"project_id": str(project.id), "title": "Build", "status": "in_progress", "hours_worked": -2},
        headers=_h(email),
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "in_progress"
    assert body["progress_percentage"] == 30
    assert body["hours_worked"] == 0
    assert body["invoice_status"] == "not_invoiced"


def test_create_task_unknown_project(client):
    r = client.post(
        "/tasks",
        json={"project_id": str(uuid.uuid4()), "title": "Orphan"},
        headers=_h(_email()),
    )
    assert r.status_code == 404


def test_update_task_status_and_progress(client, make_project, make_task):
    task = make_task(make_project())
    email = _email()

    r = client.patch(f"/tasks/{task.id}", json={"status": "completed"}, headers=_h(email))
    assert r.status_code == 200
    body = r.json()
    assert body["progress_percentage"] == 100
    assert body["completed_on"] is not None

    r = client.patch(f"/tasks/{task.id}", json={"status": "archived"}, headers=_h(email))
    assert r.json()["previous_status"] == "completed"
    assert r.json()["archived_at"] is not None

    r = client.patch(f"/tasks/{task.id}/progress", json={"progress_percentage": 120}, headers=_h(email))
    assert r.status_code == 422

    r = client.patch(f"/tasks/{task.id}/progress", json={"progress_percentage": 60}, headers=_h(email))
    assert r.status_code == 200
    assert r.json()["progress_percentage"] == 60


def test_list_tasks_filters(client, make_project, make_task):
    project = make_project()
    other = make_project()
    make_task(project, status="todo", assigned_to="ana")
    make_task(project, status="review")
    make_task(other, status="todo")
    email = _email()

    r = client.get(f"/tasks?project_id={project.id}", headers=_h(email))
    assert len(r.json()) == 2
    r = client.get("/tasks?status=todo", headers=_h(email))
    assert len(r.json()) == 2
    r = client.get("/tasks?assigned_to=ana", headers=_h(email))
    assert len(r.json()) == 1


def _billed(db_session, project, task):
    payload = schemas.InvoiceCreate(project_id=project.id, task_ids=[task.id], recipient_email="ap@example.com")
    return billing_service.create_invoice(db_session, payload=payload, created_by=None)


def test_delete_task_on_invoice_conflicts(client, db_session, make_project, make_task):
    project = make_project(hourly_rate=20)
    email = _email()

    drafted = make_task(project, status="completed", hours_worked=1)
    _billed(db_session, project, drafted)
    assert client.delete(f"/tasks/{drafted.id}", headers=_h(email)).status_code == 409

    paid = make_task(project, status="completed", hours_worked=1)
    invoice = _billed(db_session, project, paid)
    billing_service.mark_invoice_sent(db_session, invoice)
    billing_service.transition_invoice(db_session, invoice, "paid")
    r = client.delete(f"/tasks/{paid.id}", headers=_h(email))
    assert r.status_code == 409
    db_session.expire_all()
    assert len(db_session.get(models.Invoice, invoice.id).items) == 1

    cancelled = make_task(project, status="completed", hours_worked=1)
    billing_service.cancel_invoice(db_session, _billed(db_session, project, cancelled))
    assert client.delete(f"/tasks/{cancelled.id}", headers=_h(email)).status_code == 204

    free = make_task(project)
    free_id = free.id
    assert client.delete(f"/tasks/{free_id}", headers=_h(email)).status_code == 204
    assert client.get(f"/tasks/{free_id}", headers=_h(email)).status_code == 404
