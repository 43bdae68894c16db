from datetime import date, timedelta

from fastapi.testclient import TestClient
from pydantic import SecretStr
import pytest

from slotkeeper.core.config import settings
from slotkeeper.core.timezone_utils import utc_now
from slotkeeper.database import get_db
from slotkeeper.main import create_app
from slotkeeper.routes.admin import get_session_factory
from tests.factories import create_appointment, create_member, create_provider, set_weekly


@pytest.fixture
def client(session_factory):
    app = create_app(install_listeners=False)

    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] is True


def test_recalculate_provider_slot(client, db):
    provider = create_provider(db)
    set_weekly(db, create_member(db, provider), open_days=range(7))
    db.commit()

    response = client.post(f"/admin/providers/{provider.id}/next-slot")

    assert response.status_code == 200
    body = response.json()
    assert body["provider_id"] == provider.id
    assert date.fromisoformat(body["new_slot"]) <= date.today() + timedelta(days=2)


def test_recalculate_unknown_provider_is_404(client):
    response = client.post("/admin/providers/missing/next-slot")
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "PROVIDER_NOT_FOUND"


def test_sweep_returns_summary(client, db):
    provider = create_provider(db)
    set_weekly(db, create_member(db, provider))
    db.commit()

    response = client.post("/admin/next-slot/sweep", params={"force": True})

    assert response.status_code == 200
    assert response.json()["candidates"] == 1
    assert response.json()["errors"] == 0


def test_reminders_and_agenda_runs(client, db):
    provider = create_provider(db)
    create_appointment(db, provider, create_member(db, provider), utc_now() + timedelta(hours=2))
    db.commit()

    reminders = client.post("/admin/reminders/run", params={"provider_id": provider.id})
    agenda = client.post("/admin/agenda/run")

    assert reminders.status_code == 200
    assert reminders.json()["found"] == 1
    assert agenda.status_code == 200
    assert agenda.json()["providers"] == 1


def test_admin_token_is_enforced_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "admin_api_token", SecretStr("s3cret"))

    assert client.post("/admin/next-slot/sweep").status_code == 401
    assert client.post("/admin/next-slot/sweep", headers={"X-Admin-Token": "wrong"}).status_code == 401
    assert client.post("/admin/next-slot/sweep", headers={"X-Admin-Token": "s3cret"}).status_code == 200
