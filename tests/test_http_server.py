from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.http_server import app, get_db
from models.base import Base


def _client_and_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    def override_get_db():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    return client, session


def _register(client, name, power):
    response = client.post(
        "/v1/objects",
        json={"name": name, "energy": {"available_power": power}, "caller_identity": "http-test"},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    return payload["data"]["id"]


def test_http_end_to_end_flow():
    client, _ = _client_and_session()

    assert client.get("/health").json() == {"status": "ok"}

    target = _register(client, "Inflation", 0.0)
    bank = _register(client, "Central Bank", 2.0)

    ingest = client.post(
        "/v1/relations",
        json={
            "relations": [{
                "source_id": bank,
                "target_id": target,
                "relation_type": "positive_feedback",
                "impact_factor": 0.8,
                "certainty_score": 0.9,
                "source_name": "wire-a",
            }],
            "caller_identity": "http-test",
        },
    )
    ingest_payload = ingest.json()
    assert ingest.status_code == 200
    assert ingest_payload["status"] == "ok"
    assert ingest_payload["data"]["verification"]["detected"] is False
    first_relation = ingest_payload["data"]["relations"][0]["id"]

    steering = client.post(
        "/v1/steering-simulations",
        json={"target_node_id": target, "goal": "weaken", "caller_identity": "http-test"},
    )
    steering_payload = steering.json()
    assert steering.status_code == 200
    assert steering_payload["status"] == "ok"
    assert steering_payload["data"]["primary_recommendation"]["object_id"] == bank
    assert abs(steering_payload["data"]["ranked_influential_nodes"][0]["control_leverage"] - 2.16) < 1e-9
    assert steering_payload["audit_id"]

    contradicting = client.post(
        "/v1/relations",
        json={
            "relations": [{
                "source_id": bank,
                "target_id": target,
                "relation_type": "negative_feedback",
                "impact_factor": 0.75,
                "certainty_score": 0.85,
                "source_name": "wire-a",
            }],
        },
    )
    verification = contradicting.json()["data"]["verification"]
    assert verification["summary"]["total_contradictions"] == 1
    assert verification["contradictions"][0]["existing_relation_id"] == first_relation

    alerts = client.get("/v1/alerts", params={"status": "active"}).json()
    assert alerts["status"] == "ok"
    assert len(alerts["data"]) == 1
    alert_id = alerts["data"][0]["id"]

    resolved = client.post(
        f"/v1/alerts/{alert_id}/status",
        json={"status": "resolved", "caller_identity": "analyst-1"},
    ).json()
    assert resolved["status"] == "ok"
    assert resolved["data"]["resolved_by"] == "analyst-1"

    reliability = client.get("/v1/sources/wire-a/reliability").json()
    assert abs(reliability["data"]["reliability_index"] - 0.4) < 1e-9

    superseded = client.post(f"/v1/relations/{first_relation}/supersede", json={"caller_identity": "http-test"})
    assert superseded.json()["status"] == "ok"

    verify = client.post("/v1/relations/verifications", json={"relation_ids": [first_relation]}).json()
    assert verify["status"] == "ok"

    log = client.post(
        "/v1/audit-log",
        json={"operation": "simulate_steering", "limit": 10, "caller_identity": "http-test"},
    )
    log_payload = log.json()
    assert log.status_code == 200
    assert log_payload["status"] == "ok"
    assert any(entry["caller_identity"] == "http-test" for entry in log_payload["records"])


def test_http_unknown_target_is_audited_error():
    client, _ = _client_and_session()

    bad = client.post(
        "/v1/steering-simulations",
        json={"target_node_id": "does-not-exist", "caller_identity": "http-test"},
    )
    payload = bad.json()
    assert bad.status_code == 200
    assert payload["status"] == "error"
    assert payload["metadata"]["error_type"] == "not_found"
    assert payload["audit_id"]


def test_http_request_validation():
    client, _ = _client_and_session()

    bad_goal = client.post("/v1/steering-simulations", json={"target_node_id": "x", "goal": "sideways"})
    bad_impact = client.post(
        "/v1/relations",
        json={"relations": [{"source_id": "a", "target_id": "b", "relation_type": "supply", "impact_factor": 3.0}]},
    )
    bad_relation = client.post(
        "/v1/relations",
        json={"relations": [{"source_id": "a", "target_id": "b", "relation_type": "teleport", "impact_factor": 0.5}]},
    )
    empty_batch = client.post("/v1/relations", json={"relations": []})

    assert bad_goal.status_code == 422
    assert bad_impact.status_code == 422
    assert bad_relation.status_code == 422
    assert empty_batch.status_code == 422
