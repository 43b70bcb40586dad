from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import crud
import schemas
from conftest import FakeMailer, ensure_user
from main import app
from mailer import SmtpMailer
from reminders import build_reminder, dispatch_reminders
from settings import Settings, get_settings

DUE = date(2030, 3, 14)


def _seed(db: Session, owner: str, title: str, deadline: date = DUE):
    ensure_user(db, owner)
    return crud.create_job(
        db,
        owner=owner,
        job=schemas.JobCreate(title=title, company="Acme", description="", deadline=deadline),
    )


def test_build_reminder_references_title_and_company(db_session: Session):
    job = _seed(db_session, "a@example.com", "Data Engineer")

    subject, body = build_reminder(job)
    assert subject == "Reminder: Data Engineer at Acme"
    assert body == "Don't forget to apply for Data Engineer at Acme. Deadline is today."


@pytest.mark.asyncio
async def test_dispatch_sends_one_message_per_due_job(db_session: Session):
    _seed(db_session, "a@example.com", "Due A")
    _seed(db_session, "b@example.com", "Due B")
    _seed(db_session, "a@example.com", "Yesterday", deadline=date(2030, 3, 13))
    _seed(db_session, "c@example.com", "Tomorrow", deadline=date(2030, 3, 15))
    mailer = FakeMailer()

    result = await dispatch_reminders(db_session, mailer, DUE)

    assert result.sent == 2
    assert result.failed == []
    assert sorted((m["to"], m["subject"]) for m in mailer.sent) == [
        ("a@example.com", "Reminder: Due A at Acme"),
        ("b@example.com", "Reminder: Due B at Acme"),
    ]


@pytest.mark.asyncio
async def test_dispatch_continues_after_a_failed_send(db_session: Session):
    broken = _seed(db_session, "broken@example.com", "First")
    _seed(db_session, "ok1@example.com", "Second")
    _seed(db_session, "ok2@example.com", "Third")
    mailer = FakeMailer(failing_recipients={"broken@example.com"})

    result = await dispatch_reminders(db_session, mailer, DUE)

    assert result.sent == 2
    assert result.failed == [broken.id]
    assert {m["to"] for m in mailer.sent} == {"ok1@example.com", "ok2@example.com"}


@pytest.mark.asyncio
async def test_dispatch_with_no_matches_sends_nothing(db_session: Session):
    _seed(db_session, "a@example.com", "Later", deadline=date(2031, 1, 1))
    mailer = FakeMailer()

    result = await dispatch_reminders(db_session, mailer, DUE)

    assert result.sent == 0
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_repeated_dispatch_sends_again(db_session: Session):
    _seed(db_session, "a@example.com", "Due")
    mailer = FakeMailer()

    await dispatch_reminders(db_session, mailer, DUE)
    await dispatch_reminders(db_session, mailer, DUE)

    assert len(mailer.sent) == 2


def test_reminder_trigger_endpoint(test_client: TestClient, register_and_login, fake_mailer, db_session: Session):
    register_and_login("due@example.com")
    today = date(2030, 3, 14)
    _seed(db_session, "due@example.com", "Due today", deadline=today)

    with patch("main.today_utc", return_value=today):
        response = test_client.get("/reminders/send")

    assert response.status_code == status.HTTP_200_OK
    assert response.text == "Reminders sent"
    assert [m["to"] for m in fake_mailer.sent] == ["due@example.com"]


def test_reminder_trigger_requires_operator_token_when_configured(test_client: TestClient, fake_mailer):
    app.dependency_overrides[get_settings] = lambda: Settings(
        jwt_secret="x", reminder_trigger_token="operator-secret"
    )

    assert test_client.get("/reminders/send").status_code == status.HTTP_403_FORBIDDEN
    response = test_client.get("/reminders/send", headers={"X-Operator-Token": "guess"})
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = test_client.get("/reminders/send", headers={"X-Operator-Token": "operator-secret"})
    assert response.status_code == status.HTTP_200_OK


# --- SMTP transport ---

def test_smtp_mailer_sends_with_starttls_and_login():
    mailer = SmtpMailer(
        host="smtp.example.com", port=587, username="bot@example.com", password="app-pass"
    )
    with patch("mailer.smtplib.SMTP") as smtp_cls:
        server = MagicMock()
        smtp_cls.return_value.__enter__.return_value = server

        mailer.send_message("to@example.com", "Subject", "Body")

    smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=30.0)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("bot@example.com", "app-pass")
    sent = server.send_message.call_args.args[0]
    assert sent["To"] == "to@example.com"
    assert sent["From"] == "bot@example.com"
    assert sent["Subject"] == "Subject"
    assert sent.get_content().strip() == "Body"


def test_smtp_mailer_skips_login_without_credentials():
    mailer = SmtpMailer(host="localhost", port=25, use_tls=False)
    with patch("mailer.smtplib.SMTP") as smtp_cls:
        server = MagicMock()
        smtp_cls.return_value.__enter__.return_value = server

        mailer.send_message("to@example.com", "Subject", "Body")

    server.starttls.assert_not_called()
    server.login.assert_not_called()
    server.send_message.assert_called_once()
