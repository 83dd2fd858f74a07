from datetime import timedelta

from utils.time_and_ids import now_utc


def iso(delta):
    return (now_utc() + delta).isoformat()


class TestTasks:
    def test_task_without_lead(self, client, bd_headers):
        res = client.post("/api/tasks/", json={
            "title": "Prepare pitch", "type": "meeting", "due_date": iso(timedelta(days=5)),
        }, headers=bd_headers)
        assert res.status_code == 201
        task = res.json()
        assert task["lead_id"] is None
        assert task["lead_name"] is None
        assert task["user_id"] == "BD001"
        assert task["priority"] == "upcoming"

    def test_task_with_missing_lead(self, client, bd_headers):
        res = client.post("/api/tasks/", json={
            "title": "Ghost", "due_date": iso(timedelta(days=1)), "lead_id": 999,
        }, headers=bd_headers)
        assert res.status_code == 400

    def test_overdue_and_toggle(self, client, bd_headers):
        task = client.post("/api/tasks/", json={
            "title": "Late follow-up", "due_date": iso(-timedelta(hours=2)),
        }, headers=bd_headers).json()
        assert task["priority"] == "overdue"

        res = client.patch(f"/api/tasks/{task['id']}/toggle", headers=bd_headers)
        assert res.status_code == 200
        assert res.json()["completed"] is True
        assert res.json()["priority"] == "completed"

    def test_priority_filter(self, client, bd_headers):
        client.post("/api/tasks/", json={"title": "Old", "due_date": iso(-timedelta(days=2))}, headers=bd_headers)
        client.post("/api/tasks/", json={"title": "Later", "due_date": iso(timedelta(days=10))}, headers=bd_headers)

        res = client.get("/api/tasks/", params={"priority": "overdue"}, headers=bd_headers)
        assert [t["title"] for t in res.json()] == ["Old"]
        assert client.get("/api/tasks/", params={"priority": "soon"}, headers=bd_headers).status_code == 400

    def test_version_conflict(self, client, bd_headers):
        task = client.post("/api/tasks/", json={"title": "T", "due_date": iso(timedelta(days=1))}, headers=bd_headers).json()
        res = client.put(f"/api/tasks/{task['id']}", json={"version": task["version"], "title": "T2"}, headers=bd_headers)
        assert res.status_code == 200
        assert res.json()["version"] == task["version"] + 1

        res = client.put(f"/api/tasks/{task['id']}", json={"version": task["version"], "title": "T3"}, headers=bd_headers)
        assert res.status_code == 409

    def test_null_completed_is_ignored(self, client, bd_headers):
        task = client.post("/api/tasks/", json={"title": "T", "due_date": iso(timedelta(days=1))}, headers=bd_headers).json()
        res = client.put(f"/api/tasks/{task['id']}", json={
            "version": task["version"], "completed": None, "title": None, "description": "Bring the deck",
        }, headers=bd_headers)
        assert res.status_code == 200, res.text
        assert res.json()["completed"] is False
        assert res.json()["title"] == "T"
        assert res.json()["description"] == "Bring the deck"

    def test_bd_only_sees_own_tasks(self, client, bd_headers, bd_other_headers, admin_headers):
        task = client.post("/api/tasks/", json={"title": "Mine", "due_date": iso(timedelta(days=1))}, headers=bd_headers).json()
        assert client.get(f"/api/tasks/{task['id']}", headers=bd_other_headers).status_code == 403
        assert client.get("/api/tasks/", headers=bd_other_headers).json() == []
        assert len(client.get("/api/tasks/", headers=admin_headers).json()) == 1

    def test_delete_is_logged(self, client, admin_headers):
        task = client.post("/api/tasks/", json={"title": "Drop me", "due_date": iso(timedelta(days=1))}, headers=admin_headers).json()
        assert client.delete(f"/api/tasks/{task['id']}", headers=admin_headers).status_code == 200

        logged = client.get(
            "/api/activitylogs/activities",
            params={"entity": "Task", "entity_id": str(task["id"])},
            headers=admin_headers,
        ).json()
        assert [a["action"] for a in logged] == ["delete", "create"]


class TestProposals:
    def test_proposal_lifecycle(self, client, bd_headers, create_lead):
        lead = create_lead(bd_headers)
        res = client.post("/api/proposals/", json={
            "lead_id": lead["id"], "template_used": "Standard RPO", "sent_via": "WhatsApp",
        }, headers=bd_headers)
        assert res.status_code == 201
        proposal = res.json()
        assert proposal["company_name"] == "Acme Staffing"
        assert proposal["status"] == "Draft"
        assert proposal["user_id"] == "BD001"

        res = client.put(f"/api/proposals/{proposal['id']}", json={"status": "Sent"}, headers=bd_headers)
        assert res.json()["status"] == "Sent"

        listed = client.get(f"/api/proposals/lead/{lead['id']}", headers=bd_headers).json()
        assert [p["id"] for p in listed] == [proposal["id"]]

        logged = client.get(
            "/api/activitylogs/activities", params={"entity": "Proposal"}, headers=bd_headers,
        ).json()
        assert logged[0]["changes"] == [{"field": "status", "old_value": "Draft", "new_value": "Sent"}]
        assert logged[0]["lead_id"] == lead["id"]

    def test_bd_cannot_propose_on_foreign_lead(self, client, bd_headers, bd_other_headers, create_lead):
        lead = create_lead(bd_headers)
        res = client.post("/api/proposals/", json={"lead_id": lead["id"]}, headers=bd_other_headers)
        assert res.status_code == 403

    def test_proposals_removed_with_lead(self, client, admin_headers, create_lead):
        lead = create_lead(admin_headers)
        proposal = client.post("/api/proposals/", json={"lead_id": lead["id"]}, headers=admin_headers).json()
        client.delete(f"/api/leads/{lead['id']}", headers=admin_headers)
        assert client.get(f"/api/proposals/{proposal['id']}", headers=admin_headers).status_code == 404
