import smtplib
from unittest.mock import patch, MagicMock

from db.models import EmailRecord


def send(client, headers, recipient_id, subject="Hello", content="Hi there"):
    return client.post("/api/messages/", json={
        "recipient_id": recipient_id, "subject": subject, "content": content,
    }, headers=headers)


class TestInternalMessages:
    def test_bd_messages_manager(self, client, bd_headers, manager_headers, manager):
        res = send(client, bd_headers, "MGR001")
        assert res.status_code == 201
        assert res.json()["message_type"] == "direct"

        inbox = client.get("/api/messages/", params={"box": "inbox"}, headers=manager_headers).json()
        assert [m["sender_id"] for m in inbox] == ["BD001"]
        assert client.get("/api/messages/unread-count", headers=manager_headers).json() == {"unread": 1}

        res = client.patch(f"/api/messages/{inbox[0]['id']}/read", headers=manager_headers)
        assert res.json()["status"] == "read"
        assert client.get("/api/messages/unread-count", headers=manager_headers).json() == {"unread": 0}

    def test_bd_cannot_message_bd(self, client, bd_headers, bd_other):
        assert send(client, bd_headers, "BD002").status_code == 403

    def test_bd_cannot_broadcast(self, client, bd_headers):
        assert send(client, bd_headers, "ALL").status_code == 403

    def test_cannot_message_self(self, client, manager_headers):
        assert send(client, manager_headers, "MGR001").status_code == 400

    def test_unknown_recipient(self, client, manager_headers):
        assert send(client, manager_headers, "NOBODY").status_code == 404

    def test_broadcast_reaches_everyone(self, client, admin_headers, bd_headers, bd_other_headers):
        res = send(client, admin_headers, "ALL", subject="Town hall")
        assert res.status_code == 201
        assert res.json()["message_type"] == "broadcast"

        for headers in (bd_headers, bd_other_headers):
            inbox = client.get("/api/messages/", params={"box": "inbox"}, headers=headers).json()
            assert [m["subject"] for m in inbox] == ["Town hall"]

    def test_sender_cannot_mark_read(self, client, admin_headers, bd):
        message = send(client, admin_headers, "BD001").json()
        assert client.patch(f"/api/messages/{message['id']}/read", headers=admin_headers).status_code == 400

    def test_outsider_cannot_see_direct_message(self, client, manager_headers, bd_headers, bd_other_headers):
        message = send(client, bd_headers, "MGR001").json()
        assert client.patch(f"/api/messages/{message['id']}/read", headers=bd_other_headers).status_code == 404

    def test_recipients_for_bd(self, client, bd_headers, admin, manager, bd_other):
        codes = {r["employee_code"] for r in client.get("/api/messages/recipients", headers=bd_headers).json()}
        assert codes == {"ADM001", "MGR001"}


class TestEmail:
    form = {
        "from_email": "bina@acmecrm.io",
        "app_password": "app-pass",
        "subject": "Proposal",
        "content": "<p>Please find attached</p>",
    }

    def test_empty_recipients_rejected_before_smtp(self, client, bd_headers):
        with patch("services.mail.smtplib.SMTP_SSL") as smtp:
            res = client.post("/api/emails/send-email", data=self.form, headers=bd_headers)
            assert res.status_code == 400
            smtp.assert_not_called()

    def test_blank_recipient_entries_rejected(self, client, bd_headers):
        with patch("services.mail.smtplib.SMTP_SSL") as smtp:
            res = client.post("/api/emails/send-email", data={**self.form, "to": [" ", ","]}, headers=bd_headers)
            assert res.status_code == 400
            smtp.assert_not_called()

    def test_send_stores_sent_record(self, client, db, bd_headers):
        server = MagicMock()
        server.send_message.return_value = {}
        with patch("services.mail.smtplib.SMTP_SSL") as smtp:
            smtp.return_value.__enter__.return_value = server
            res = client.post(
                "/api/emails/send-email",
                data={**self.form, "to": ["hr@client.com", "cto@client.com"]},
                headers=bd_headers,
            )
        assert res.status_code == 200, res.text
        assert res.json()["status"] == "success"
        server.login.assert_called_once_with("bina@acmecrm.io", "app-pass")

        record = db.query(EmailRecord).one()
        assert record.type == "sent"
        assert record.to_address == "hr@client.com, cto@client.com"

    def test_smtp_failure_is_bad_gateway(self, client, db, bd_headers):
        server = MagicMock()
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"auth failed")
        with patch("services.mail.smtplib.SMTP_SSL") as smtp:
            smtp.return_value.__enter__.return_value = server
            res = client.post(
                "/api/emails/send-email",
                data={**self.form, "to": ["hr@client.com"]},
                headers=bd_headers,
            )
        assert res.status_code == 502
        assert db.query(EmailRecord).count() == 0

    def test_inbox_sync_dedupes_on_message_id(self, client, admin_headers):
        fetched = [
            {"message_id": "<a@mail>", "from_address": "x@client.com", "to_address": "adm001@acmecrm.io",
             "subject": "One", "content": "body", "sender_name": "X", "receiver_name": None,
             "attachments": [], "date": None},
        ]
        with patch("routes.mail_service.send_mail.fetch_recent", return_value=fetched):
            body = {"email": "adm001@acmecrm.io", "app_password": "pw", "limit": 5}
            first = client.post("/api/emails/inbox/sync", json=body, headers=admin_headers).json()
            second = client.post("/api/emails/inbox/sync", json=body, headers=admin_headers).json()

        assert first == {"fetched": 1, "stored": 1, "skipped_duplicates": 0}
        assert second == {"fetched": 1, "stored": 0, "skipped_duplicates": 1}

        inbox = client.get("/api/emails/inbox", headers=admin_headers).json()
        assert [e["subject"] for e in inbox] == ["One"]

    def test_inbox_sync_needs_credentials(self, client, admin_headers):
        with patch("routes.mail_service.send_mail.IMAP_USER", None), \
                patch("routes.mail_service.send_mail.IMAP_PASSWORD", None):
            res = client.post("/api/emails/inbox/sync", headers=admin_headers)
        assert res.status_code == 400

    def test_bd_cannot_read_other_mailbox(self, client, bd_headers):
        res = client.get("/api/emails/sent", params={"user_email": "boss@acmecrm.io"}, headers=bd_headers)
        assert res.status_code == 403
