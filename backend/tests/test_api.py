import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure the project root is importable when running tests outside the package
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("DB_NAME", "test_api.sqlite")

from backend.app.db.session import Base, engine  # noqa: E402
from backend.app.main import app  # noqa: E402


WEEK_THREE_CSV = (
    "Name,2024-01-15,2024-01-16,2024-01-17,Total Distance\n"
    "Alice,5000,6000,7000,9.0\n"
    "Bob,8000,8000,8000,12\n"
    "Carol,1000,,2000,\n"
)


@pytest.fixture(autouse=True)
def clean_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client() -> TestClient:
    with TestClient(app) as test_client:
        yield test_client


def _create_group(client: TestClient, name: str = "Office Walkers") -> dict:
    response = client.post(
        "/api/groups",
        json={"name": name, "created_by": "user-1", "owner_name": "Olivia Owner"},
    )
    assert response.status_code == 201
    return response.json()


def _upload(client: TestClient, group_id: str, content: str = WEEK_THREE_CSV, filename: str = "week3.csv"):
    return client.post(
        f"/api/groups/{group_id}/uploads",
        files={"file": (filename, content.encode("utf-8"), "text/csv")},
    )


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_upload_and_weekly_leaderboard(client: TestClient) -> None:
    group = _create_group(client)

    response = _upload(client, group["id"])
    assert response.status_code == 200
    summary = response.json()
    assert summary["status"] == "success"
    assert summary["week_number"] == 3
    assert summary["week_start_date"] == "2024-01-15"
    assert summary["succeeded"] == ["Alice", "Bob", "Carol"]
    assert summary["entries_ranked"] == 3

    response = client.get(f"/api/groups/{group['id']}/leaderboard")
    assert response.status_code == 200
    board = response.json()
    assert board["week"]["title"] == "Week 3, 2024"
    assert [(row["participant_name"], row["points"]) for row in board["entries"]] == [
        ("Bob", 3),
        ("Alice", 2),
        ("Carol", 1),
    ]
    assert board["summary"]["top_performer"] == "Bob"

    weeks = client.get(f"/api/groups/{group['id']}/weeks").json()
    assert [week["week_number"] for week in weeks] == [3]


def test_invalid_csv_reports_headers(client: TestClient) -> None:
    group = _create_group(client)

    response = _upload(client, group["id"], content="Person,2024-01-15\nAlice,100\n")

    assert response.status_code == 400
    assert "Found headers: Person, 2024-01-15" in response.json()["detail"]

    status = client.get("/admin/db/status").json()
    assert status["recent_runs"][0]["status"] == "error"
    assert status["row_counts"]["weekly_challenges"] == 0


def test_upload_rejects_non_csv_files(client: TestClient) -> None:
    group = _create_group(client)

    response = _upload(client, group["id"], filename="week3.xlsx")

    assert response.status_code == 400


def test_unknown_group_is_not_found(client: TestClient) -> None:
    assert _upload(client, "missing").status_code == 404
    assert client.get("/api/groups/missing/leaderboard").status_code == 404
    assert client.get("/api/groups/missing").status_code == 404


def test_manual_entry_edit_and_delete(client: TestClient) -> None:
    group = _create_group(client)
    week = _upload(client, group["id"]).json()

    response = client.post(
        f"/api/groups/{group['id']}/entries",
        json={"name": "Dan", "steps": 30000, "challenge_id": week["challenge_id"]},
    )
    assert response.status_code == 201
    entry = response.json()
    assert entry["rank"] == 1
    assert entry["points"] == 4
    assert entry["distance"] == 15.0

    response = client.patch(
        f"/api/entries/{entry['id']}",
        json={"participant_id": entry["participant_id"], "steps": 100},
    )
    assert response.status_code == 200
    assert response.json()["points"] == 1

    response = client.patch(f"/api/entries/{entry['id']}", json={"participant_id": "someone-else", "steps": 1})
    assert response.status_code == 404

    response = client.delete(f"/api/groups/{group['id']}/participants/{entry['participant_id']}")
    assert response.status_code == 200
    assert response.json()["affected_weeks"] == [week["challenge_id"]]

    board = client.get(f"/api/groups/{group['id']}/leaderboard").json()
    assert sorted(row["points"] for row in board["entries"]) == [1, 2, 3]


def test_overall_stats_and_analytics(client: TestClient) -> None:
    group = _create_group(client)
    _upload(client, group["id"])

    overall = client.get(f"/api/groups/{group['id']}/leaderboard/overall").json()
    assert [row["name"] for row in overall["rows"]] == ["Bob", "Alice", "Carol"]
    assert overall["summary"]["champion"] == "Bob"

    stats = client.get(f"/api/groups/{group['id']}/stats", params={"name": "bob"}).json()
    assert stats["total_steps"] == 24000
    assert client.get(f"/api/groups/{group['id']}/stats", params={"name": "Nobody"}).status_code == 404

    weekly = client.get(f"/api/groups/{group['id']}/analytics/weekly").json()
    assert weekly["summary"]["daily_champion"]["name"] == "Bob"
    wins = list(weekly["summary"]["daily_wins"].values())
    assert [(row["name"], row["wins"]) for row in wins] == [("Bob", 3)]
    assert weekly["summary"]["daily_wins"] == {wins[0]["participant_id"]: wins[0]}
    assert weekly["summary"]["participation_rate"] == pytest.approx(38.1)

    all_time = client.get(f"/api/groups/{group['id']}/analytics/all-time").json()
    assert all_time["weeks_recorded"] == 1
    assert all_time["longest_win_streak"]["name"] == "Bob"
    assert all_time["longest_win_streak"]["length"] == 3

    participants = client.get(f"/api/groups/{group['id']}/participants").json()
    counts = {row["name"]: row["entry_count"] for row in participants}
    assert counts == {"Olivia Owner": 0, "Alice": 1, "Bob": 1, "Carol": 1}

    alice_id = next(row["id"] for row in participants if row["name"] == "Alice")
    history = client.get(f"/api/groups/{group['id']}/participants/{alice_id}/entries").json()
    assert history[0]["week"]["week_number"] == 3
    assert history[0]["steps"] == 18000


def test_group_membership_endpoints(client: TestClient) -> None:
    group = _create_group(client)

    response = client.post(f"/api/groups/{group['id']}/join", json={"user_id": "user-2", "name": "Sam"})
    assert response.status_code == 201
    response = client.post(f"/api/groups/{group['id']}/join", json={"user_id": "user-2", "name": "Sam"})
    assert response.status_code == 409

    members = client.get(f"/api/groups/{group['id']}/members").json()
    assert [(row["user_id"], row["name"]) for row in members] == [("user-1", "Olivia Owner"), ("user-2", "Sam")]
    assert client.get("/api/groups/missing/members").status_code == 404

    found = client.get("/api/groups/search", params={"name": "office walkers"})
    assert found.status_code == 200
    assert found.json()["id"] == group["id"]

    owned = client.get("/api/groups", params={"owner": "user-1"}).json()
    assert [item["id"] for item in owned] == [group["id"]]

    assert client.delete(f"/api/groups/{group['id']}").status_code == 204
    assert client.get(f"/api/groups/{group['id']}").status_code == 404


def test_recalculate_endpoint(client: TestClient) -> None:
    group = _create_group(client)
    week = _upload(client, group["id"]).json()

    response = client.post(f"/api/challenges/{week['challenge_id']}/recalculate")
    assert response.status_code == 200
    assert len(response.json()["updated"]) == 3
    assert client.post("/api/challenges/missing/recalculate").status_code == 404


def test_database_status(client: TestClient) -> None:
    group = _create_group(client)
    _upload(client, group["id"])

    response = client.get("/admin/db/status")

    assert response.status_code == 200
    status = response.json()
    assert status["engine"] == "sqlite"
    assert status["row_counts"]["leaderboard_entries"] == 3
    assert status["row_counts"]["daily_steps"] == 9
    assert status["recent_runs"][0]["rows_succeeded"] == 3
    assert status["last_duration_seconds"] is not None
