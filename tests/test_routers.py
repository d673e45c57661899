import asyncio
import time

from conftest import ADMIN
from models.activity import ActivityType
from utils.encryption import decrypt_secret


def wait_for_state(api, flow_id, state, attempts=100):
    """Poll a visit until its timed transition lands"""
    for _ in range(attempts):
        body = api.get(f"/api/flows/{flow_id}").json()
        if body["state"] == state:
            return body
        time.sleep(0.01)
    raise AssertionError(f"flow never reached {state}, last seen {body['state']}")


def start_flow(api, lesson_id="l1"):
    response = api.post(f"/api/lessons/{lesson_id}/flow")
    assert response.status_code == 200
    return response.json()["flow"]["flow_id"]


def answer(api, flow_id, options):
    for option in options:
        assert api.post(f"/api/flows/{flow_id}/answer", json={"option_index": option}).status_code == 200
        response = api.post(f"/api/flows/{flow_id}/next")
        assert response.status_code == 200
    return response.json()


def test_health(api):
    assert api.get("/api/health").json()["status"] == "healthy"


def test_lesson_catalog_merges_progress(api, progress_store):
    asyncio.run(progress_store.upsert_progress(7, "l2", 90, True))
    body = api.get("/api/lessons").json()
    assert [l["id"] for l in body["lessons"]] == ["l1", "l2", "l3"]
    assert body["lessons"][0]["questions_count"] == 4
    assert not body["lessons"][0]["completed"]
    assert body["lessons"][1]["completed"]
    assert body["lessons"][1]["score"] == 90


def test_lesson_detail_hides_answer_key(api):
    body = api.get("/api/lessons/l1").json()
    assert body["title"] == "Traffic Signals"
    assert body["game"]["kind"] == "traffic_light"
    assert "correct_answer" not in body["quiz_questions"][0]
    assert body["progress"] is None


def test_unknown_lesson_redirects_to_dashboard(api):
    for response in (api.get("/api/lessons/nope"), api.post("/api/lessons/nope/flow")):
        assert response.status_code == 404
        assert response.json()["detail"]["redirect"] == "/dashboard"


def test_full_visit(api, progress_store, telemetry):
    flow_id = start_flow(api)
    assert api.post(f"/api/flows/{flow_id}/continue").json()["state"] == "quiz"

    body = answer(api, flow_id, [1, 1, 2, 3])
    assert body["quiz_result"]["score"] == 75
    assert body["review"][1] == {
        "question_id": "l1-q2", "selected": 1, "correct_answer": 0, "explanation": "Option 0 is right.",
    }

    body = wait_for_state(api, flow_id, "game")
    assert body["game"]["kind"] == "traffic_light"

    assert api.post(f"/api/flows/{flow_id}/game/complete", json={"score": 137}).json()["game_score"] == 100
    assert api.post(f"/api/flows/{flow_id}/game/complete", json={"score": 10}).status_code == 409

    body = wait_for_state(api, flow_id, "complete")
    assert body["summary"]["game_score"] == 100

    finished = api.post(f"/api/flows/{flow_id}/finish").json()
    assert finished["destination"] == {"path": "/lessons/l2", "lesson_id": "l2"}
    assert api.get(f"/api/flows/{flow_id}").status_code == 404

    assert progress_store.writes == [(7, "l1", 75, True)]
    for _ in range(100):
        if ActivityType.LESSON_COMPLETE in telemetry.types():
            break
        time.sleep(0.01)
    assert telemetry.types() == [
        ActivityType.LESSON_START, ActivityType.QUIZ_ATTEMPT, ActivityType.QUIZ_COMPLETE,
        ActivityType.GAME_PLAY, ActivityType.LESSON_COMPLETE,
    ]


def test_last_lesson_finishes_on_dashboard(api):
    flow_id = start_flow(api, "l3")
    api.post(f"/api/flows/{flow_id}/continue")
    answer(api, flow_id, [1, 0, 2, 3])
    wait_for_state(api, flow_id, "game")
    api.post(f"/api/flows/{flow_id}/game/complete", json={"score": 60})
    wait_for_state(api, flow_id, "complete")
    assert api.post(f"/api/flows/{flow_id}/finish").json()["destination"]["path"] == "/dashboard"


def test_failed_quiz_and_retake(api):
    flow_id = start_flow(api)
    api.post(f"/api/flows/{flow_id}/continue")
    body = answer(api, flow_id, [0, 1, 1, 0])
    assert body["quiz_result"] == {"score": 0, "correct_count": 0, "total_questions": 4, "passed": False}

    body = api.post(f"/api/flows/{flow_id}/retake").json()
    assert body["state"] == "quiz"
    assert body["current_question_index"] == 0
    assert body["answers"] == {}
    assert body["quiz_result"] is None


def test_guard_violations_are_conflicts(api):
    flow_id = start_flow(api)
    assert api.post(f"/api/flows/{flow_id}/next").status_code == 409
    assert api.post(f"/api/flows/{flow_id}/finish").status_code == 409
    assert api.post(f"/api/flows/{flow_id}/game/complete", json={"score": 50}).status_code == 409
    api.post(f"/api/flows/{flow_id}/continue")
    assert api.post(f"/api/flows/{flow_id}/next").status_code == 409
    assert api.post(f"/api/flows/{flow_id}/answer", json={"option_index": 9}).status_code == 409


def test_visits_are_private(api, caller):
    flow_id = start_flow(api)
    caller.update(ADMIN)
    assert api.get(f"/api/flows/{flow_id}").status_code == 404


def test_leaving_a_lesson(api, registry):
    flow_id = start_flow(api)
    assert api.delete(f"/api/flows/{flow_id}").json() == {"success": True}
    assert len(registry) == 0
    assert api.delete(f"/api/flows/{flow_id}").status_code == 404


def test_dashboard(api, progress_store):
    flow_id = start_flow(api)
    api.post(f"/api/flows/{flow_id}/continue")
    answer(api, flow_id, [1, 0, 2, 3])
    wait_for_state(api, flow_id, "game")

    body = api.get("/api/progress/dashboard").json()
    assert body["lessons_completed"] == 1
    assert body["best_score"] == 100
    assert body["completion_rate"] == 33
    assert body["streak"] == 1


def test_page_view_tracking(api, telemetry):
    body = api.post("/api/progress/page-view", json={"page_path": "/lessons", "duration_seconds": 12}).json()
    assert body == {"success": True, "recorded": True}
    _, event_type, payload = telemetry.events[-1]
    assert event_type == ActivityType.PAGE_VIEW
    assert payload["page_url"] == "/lessons"


def test_narration_plan_uses_caller_language(api, caller):
    caller["language"] = "hi"
    body = api.post("/api/narration", json={"text": "Wear a helmet."}).json()
    assert body["lang"] == "hi-IN"
    assert body["rate"] == 0.8


def test_narration_audio_needs_configuration(api):
    assert api.post("/api/narration/audio", json={"text": "Wear a helmet."}).status_code == 503


def test_admin_routes_need_admin_role(api):
    assert api.get("/api/admin/settings").status_code == 403


def test_admin_settings(api, caller, settings_store):
    caller.update(ADMIN)
    body = api.get("/api/admin/settings").json()
    assert body["default_country"] == "US"
    assert body["max_login_attempts"] == 5
    assert not body["narration_configured"]

    response = api.put("/api/admin/settings", json={
        "maintenance_mode": True, "narration_api_key": "sk-live-abcdef123456",
    })
    body = response.json()
    assert body["maintenance_mode"] is True
    assert body["narration_key_masked"] == "****3456"
    assert decrypt_secret(settings_store.values["narration_api_key"]) == "sk-live-abcdef123456"

    assert api.put("/api/admin/settings", json={"default_language": "xx"}).status_code == 400


def test_admin_analytics_rejects_unknown_range(api, caller):
    caller.update(ADMIN)
    assert api.get("/api/admin/analytics", params={"range": "1y"}).status_code == 400
    assert api.get("/api/admin/analytics/export", params={"format": "xml"}).status_code == 400


def test_admin_cannot_delete_self(api, caller):
    caller.update(ADMIN)
    assert api.delete(f"/api/admin/users/{ADMIN['user_id']}").status_code == 400


def test_certificate_needs_a_completed_lesson(api, progress_store):
    assert api.get("/api/progress/certificate").status_code == 409

    asyncio.run(progress_store.upsert_progress(7, "l1", 90, True))
    response = api.get("/api/progress/certificate")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert "Learn2Go_Certificate_learner.pdf" in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")
