"""Tests for API routes."""

from datetime import datetime
from uuid import uuid4

from fastapi.testclient import TestClient

from planner.calendar.store import EventStore
from planner.core.errors import StoreError
from planner.models import Event

from conftest import OTHER_UID


def _start_create(client: TestClient, on_date: str = "2024-06-03"):
    response = client.post("/events/new", data={"date": on_date}, follow_redirects=False)
    assert response.status_code == 303
    return response


def _draft_form(**fields) -> dict:
    form = {
        "title": "",
        "date": "",
        "start_time": "",
        "end_time": "",
        "location": "",
        "notes": "",
    }
    form.update(fields)
    return form


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_check(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestSignedOut:
    """Requests without a signed-in user."""

    def test_root_redirects_to_sign_in(self, anon_client: TestClient):
        response = anon_client.get("/", follow_redirects=False)
        assert response.status_code == 307
        assert "/auth/signed-out" in response.headers["location"]

    def test_events_page_redirects(self, anon_client: TestClient):
        response = anon_client.get("/events", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/auth/signed-out"

    def test_json_gets_401(self, anon_client: TestClient):
        response = anon_client.get("/calendar/feed", headers={"Accept": "application/json"})
        assert response.status_code == 401

    def test_mutations_get_401(self, anon_client: TestClient):
        response = anon_client.post("/events/new", data={"date": "2024-06-03"})
        assert response.status_code == 401

    def test_signed_out_page(self, anon_client: TestClient):
        response = anon_client.get("/auth/signed-out")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]

    def test_auth_status(self, anon_client: TestClient):
        data = anon_client.get("/auth/status").json()
        assert data["authenticated"] is False
        assert data["uid"] is None

    def test_callback_without_login_fails_cleanly(self, anon_client: TestClient):
        response = anon_client.get("/auth/callback?code=x&state=y")
        assert response.status_code == 401
        assert anon_client.get("/auth/status").json()["authenticated"] is False


class TestListView:
    def test_grouped_page(self, client: TestClient, standup: Event, holiday: Event):
        response = client.get("/events")
        assert response.status_code == 200
        text = response.text
        assert "Standup" in text
        assert "Holiday" in text
        assert text.index("2024-06-03") < text.index("2024-06-05")

    def test_empty(self, client: TestClient):
        response = client.get("/events")
        assert response.status_code == 200
        assert "No events yet" in response.text

    def test_does_not_show_other_users_events(self, client: TestClient, foreign_event: Event):
        assert "Not Yours" not in client.get("/events").text

    def test_list_failure_shows_notice(self, client: TestClient, monkeypatch):
        def failing_list(self):
            raise StoreError("Could not load events")

        monkeypatch.setattr(EventStore, "list", failing_list)
        response = client.get("/events")
        assert response.status_code == 200
        assert "Could not load events" in response.text

    def test_grouped_json(self, client: TestClient, standup: Event, holiday: Event):
        data = client.get("/events/grouped").json()
        assert data["notice"] is None
        assert [group["date_key"] for group in data["groups"]] == ["2024-06-03", "2024-06-05"]
        [event] = data["groups"][0]["events"]
        assert event["title"] == "Standup"
        assert "user_id" not in event


class TestCreate:
    def test_create_flow(self, client: TestClient, store: EventStore):
        _start_create(client)
        form_page = client.get("/events/draft")
        assert form_page.status_code == 200
        assert 'value="2024-06-03"' in form_page.text

        response = client.post(
            "/events/draft",
            data=_draft_form(title="Standup", date="2024-06-03", start_time="09:00", end_time="09:15"),
            follow_redirects=False,
        )
        assert response.status_code == 303
        assert response.headers["location"] == "/events"

        [event] = store.list()
        assert event.title == "Standup"
        assert event.all_day is False
        assert event.start_at == datetime(2024, 6, 3, 9, 0)
        assert event.end_at == datetime(2024, 6, 3, 9, 15)
        assert event.date_key == "2024-06-03"

        # Back to idle after a successful save
        assert client.get("/events/draft", follow_redirects=False).status_code == 303

    def test_all_day_create(self, client: TestClient, store: EventStore):
        _start_create(client, "2024-06-05")
        client.post("/events/draft", data=_draft_form(title="Holiday", date="2024-06-05"))
        [event] = store.list()
        assert event.all_day is True
        assert event.end_at is None

    def test_empty_title_keeps_draft(self, client: TestClient, store: EventStore):
        _start_create(client)
        response = client.post(
            "/events/draft",
            data=_draft_form(title="  ", date="2024-06-03", start_time="09:00"),
        )
        assert response.status_code == 422
        assert "title required" in response.text
        assert store.list() == []

        form_page = client.get("/events/draft")
        assert form_page.status_code == 200
        assert 'value="09:00"' in form_page.text

    def test_inverted_times_rejected(self, client: TestClient, store: EventStore):
        _start_create(client)
        response = client.post(
            "/events/draft",
            data=_draft_form(title="Lunch", date="2024-06-03", start_time="13:00", end_time="12:00"),
        )
        assert response.status_code == 422
        assert store.list() == []

    def test_store_failure_keeps_draft(self, client: TestClient, store: EventStore, monkeypatch):
        def failing_create(self, fields):
            raise StoreError("Could not save event")

        monkeypatch.setattr(EventStore, "create", failing_create)
        _start_create(client)
        response = client.post("/events/draft", data=_draft_form(title="Lunch", date="2024-06-03"))
        assert response.status_code == 502
        assert "Could not save event" in response.text
        assert 'value="Lunch"' in client.get("/events/draft").text

    def test_oversized_notes_not_kept_in_session(self, client: TestClient, store: EventStore):
        _start_create(client)
        client.post("/events/draft", data=_draft_form(title="", date="2024-06-03", notes="short"))

        response = client.post(
            "/events/draft", data=_draft_form(title="Lunch", date="2024-06-03", notes="x" * 5000)
        )
        assert response.status_code == 422
        assert "notes too long" in response.text
        assert store.list() == []
        assert 'value="short"' in client.get("/events/draft").text

    def test_save_while_idle(self, client: TestClient):
        response = client.post("/events/draft", data=_draft_form(title="Lunch", date="2024-06-03"))
        assert response.status_code == 400

    def test_bad_date_for_new(self, client: TestClient):
        response = client.post("/events/new", data={"date": "not-a-date"})
        assert response.status_code == 422

    def test_cancel(self, client: TestClient, store: EventStore):
        _start_create(client)
        response = client.post("/events/cancel", follow_redirects=False)
        assert response.status_code == 303
        assert client.get("/events/draft", follow_redirects=False).status_code == 303
        assert store.list() == []


class TestEdit:
    def test_edit_flow(self, client: TestClient, standup: Event, store: EventStore):
        response = client.get(f"/events/{standup.id}/edit", follow_redirects=False)
        assert response.status_code == 303

        form_page = client.get("/events/draft")
        assert 'value="Standup"' in form_page.text
        assert 'value="09:15"' in form_page.text

        client.post(
            "/events/draft",
            data=_draft_form(title="Retro", date="2024-06-04", start_time="15:00"),
        )
        updated = store.get(standup.id)
        assert updated.title == "Retro"
        assert updated.date_key == "2024-06-04"
        assert updated.end_at is None
        assert updated.created_at == standup.created_at

    def test_edit_missing(self, client: TestClient):
        response = client.get(f"/events/{uuid4()}/edit")
        assert response.status_code == 404

    def test_edit_other_users_event(self, client: TestClient, foreign_event: Event):
        response = client.get(f"/events/{foreign_event.id}/edit")
        assert response.status_code == 404


class TestDelete:
    def test_confirmed_delete(self, client: TestClient, standup: Event, store: EventStore):
        client.get(f"/events/{standup.id}/edit", follow_redirects=False)

        confirm_page = client.get(f"/events/{standup.id}/delete")
        assert confirm_page.status_code == 200
        assert "Standup" in confirm_page.text

        response = client.post(
            f"/events/{standup.id}/delete", data={"confirm": "true"}, follow_redirects=False
        )
        assert response.status_code == 303
        assert store.list() == []
        assert client.get("/events/draft", follow_redirects=False).status_code == 303

    def test_declined_delete(self, client: TestClient, standup: Event, store: EventStore):
        client.get(f"/events/{standup.id}/edit", follow_redirects=False)
        client.get(f"/events/{standup.id}/delete")

        response = client.post(f"/events/{standup.id}/delete", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/events/draft"
        assert len(store.list()) == 1

    def test_confirmation_page_changes_nothing(self, client: TestClient, standup: Event, store: EventStore):
        client.get(f"/events/{standup.id}/edit", follow_redirects=False)
        client.get(f"/events/{standup.id}/delete")
        client.get(f"/events/{standup.id}/delete")

        assert client.get("/events/draft", follow_redirects=False).status_code == 200
        response = client.post(f"/events/{standup.id}/delete", follow_redirects=False)
        assert response.headers["location"] == "/events/draft"
        assert len(store.list()) == 1

    def test_confirm_without_visiting_page(self, client: TestClient, standup: Event, store: EventStore):
        client.get(f"/events/{standup.id}/edit", follow_redirects=False)
        response = client.post(
            f"/events/{standup.id}/delete", data={"confirm": "true"}, follow_redirects=False
        )
        assert response.status_code == 303
        assert store.list() == []

    def test_delete_requires_editing(self, client: TestClient, standup: Event, store: EventStore):
        assert client.get(f"/events/{standup.id}/delete").status_code == 400
        assert len(store.list()) == 1

    def test_event_already_gone(self, client: TestClient, standup: Event, store: EventStore):
        client.get(f"/events/{standup.id}/edit", follow_redirects=False)
        client.get(f"/events/{standup.id}/delete")
        store.remove(standup.id)

        response = client.post(f"/events/{standup.id}/delete", data={"confirm": "true"})
        assert response.status_code == 404


class TestCalendar:
    def test_month_page(self, client: TestClient):
        response = client.get("/calendar")
        assert response.status_code == 200
        assert "/calendar/feed" in response.text

    def test_feed(self, client: TestClient, standup: Event, holiday: Event):
        feed = client.get("/calendar/feed").json()
        by_title = {item["title"]: item for item in feed}
        assert by_title["Standup"]["start"] == "2024-06-03T09:00:00"
        assert by_title["Standup"]["end"] == "2024-06-03T09:15:00"
        assert by_title["Standup"]["allDay"] is False
        assert by_title["Holiday"]["allDay"] is True
        assert by_title["Holiday"]["end"] is None

    def test_feed_keeps_last_known_on_failure(self, client: TestClient, standup: Event, monkeypatch):
        client.get("/calendar/feed")

        def failing_list(self):
            raise StoreError("Could not load events")

        monkeypatch.setattr(EventStore, "list", failing_list)
        response = client.get("/calendar/feed")
        assert response.status_code == 200
        assert [item["title"] for item in response.json()] == ["Standup"]
        assert "Could not load events" in response.headers["x-planner-notice"]

    def test_date_selected_starts_create(self, client: TestClient):
        response = client.post("/calendar/date-selected", json={"date": "2024-06-07"})
        assert response.status_code == 200
        data = response.json()
        assert data["mode"] == "creating"
        assert data["draft"]["date"] == "2024-06-07"
        assert 'value="2024-06-07"' in client.get("/events/draft").text

    def test_date_selected_invalid(self, client: TestClient):
        response = client.post("/calendar/date-selected", json={"date": "soon"})
        assert response.status_code == 422

    def test_move(self, client: TestClient, standup: Event, store: EventStore):
        response = client.post(
            f"/calendar/events/{standup.id}/move",
            json={"start": "2024-06-04T09:00:00", "end": "2024-06-04T09:15:00", "allDay": False},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["event"]["start"] == "2024-06-04T09:00:00"

        moved = store.get(standup.id)
        assert moved.date_key == "2024-06-04"
        assert moved.start_at == datetime(2024, 6, 4, 9, 0)

    def test_failed_move_reverts(self, client: TestClient, standup: Event, store: EventStore, monkeypatch):
        client.get("/calendar/feed")

        def failing_update(self, event_id, fields):
            raise StoreError("Could not save event")

        monkeypatch.setattr(EventStore, "update", failing_update)
        response = client.post(
            f"/calendar/events/{standup.id}/move",
            json={"start": "2024-06-04T09:00:00", "end": "2024-06-04T09:15:00", "allDay": False},
        )
        assert response.status_code == 409
        data = response.json()
        assert data["ok"] is False
        assert data["notice"]
        assert data["revert"]["start"] == "2024-06-03T09:00:00"
        assert data["revert"]["end"] == "2024-06-03T09:15:00"

        feed = client.get("/calendar/feed").json()
        assert feed[0]["start"] == "2024-06-03T09:00:00"
        assert store.get(standup.id).date_key == "2024-06-03"

    def test_move_with_unparsable_start(self, client: TestClient, standup: Event):
        response = client.post(f"/calendar/events/{standup.id}/move", json={"start": "later"})
        assert response.status_code == 409
        assert response.json()["ok"] is False

    def test_move_other_users_event(self, client: TestClient, foreign_event: Event, session):
        response = client.post(
            f"/calendar/events/{foreign_event.id}/move",
            json={"start": "2024-06-09T10:00:00", "allDay": False},
        )
        assert response.status_code == 409
        assert EventStore(session, OTHER_UID).get(foreign_event.id).date_key == "2024-06-03"
