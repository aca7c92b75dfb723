import subprocess
import sys
import time

import httpx


def _ok(resp: httpx.Response, label: str) -> dict:
    body = resp.json()
    print(f"{label}: {body['status']} | {body.get('causal_explanation', '')}")
    return body


def run_verification(port: int = 8000) -> bool:
    print("Starting Influence Steering HTTP server...")
    server_process = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "api.http_server:app", "--port", str(port)],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    time.sleep(3)

    try:
        client = httpx.Client(base_url=f"http://127.0.0.1:{port}")
        print(f"Health: {client.get('/health').json()}")

        ids = {}
        for name, power in (("Parliament", 0.5), ("Central Bank", 2.0), ("Inflation", 0.0)):
            body = _ok(client.post("/v1/objects", json={
                "name": name,
                "energy": {"available_power": power},
                "caller_identity": "verification-script",
            }), f"Register {name}")
            ids[name] = body["data"]["id"]

        _ok(client.post("/v1/relations", json={
            "relations": [
                {"source_id": ids["Central Bank"], "target_id": ids["Inflation"],
                 "relation_type": "positive_feedback", "impact_factor": 0.8,
                 "certainty_score": 0.9, "source_name": "wire-a"},
                {"source_id": ids["Parliament"], "target_id": ids["Central Bank"],
                 "relation_type": "direct_control", "impact_factor": 0.6,
                 "certainty_score": 0.7, "source_name": "wire-b"},
            ],
            "caller_identity": "verification-script",
        }), "Ingest")

        contradiction = _ok(client.post("/v1/relations", json={
            "relations": [
                {"source_id": ids["Central Bank"], "target_id": ids["Inflation"],
                 "relation_type": "negative_feedback", "impact_factor": 0.75,
                 "certainty_score": 0.85, "source_name": "wire-a"},
            ],
            "caller_identity": "verification-script",
        }), "Ingest contradicting relation")
        summary = contradiction["data"]["verification"]["summary"]
        print(f"Contradictions: {summary['total_contradictions']} | action: {summary['recommended_action']}")

        _ok(client.post("/v1/steering-simulations", json={
            "target_node_id": ids["Inflation"],
            "goal": "weaken",
            "caller_identity": "verification-script",
        }), "Steering")

        alerts = _ok(client.get("/v1/alerts", params={"status": "active"}), "Active alerts")
        reliability = _ok(client.get("/v1/sources/wire-a/reliability"), "Reliability wire-a")

        audit = client.post("/v1/audit-log", json={
            "operation": "simulate_steering",
            "limit": 5,
        }).json()
        print("\n--- Recent steering audit records ---")
        for record in audit.get("records", []):
            print(f"ID: {record['id']} | Caller: {record['caller_identity']} | TS: {record['timestamp']}")

        passed = (
            summary["total_contradictions"] >= 1
            and len(alerts["data"]) >= 1
            and reliability["data"]["reliability_index"] < 0.5
            and any(r["caller_identity"] == "verification-script" for r in audit["records"])
        )
        print("\nVerification SUCCESS" if passed else "\nVerification FAILURE")
        return passed

    finally:
        print("\nShutting down server...")
        server_process.terminate()
        try:
            server_process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            server_process.kill()


if __name__ == "__main__":
    sys.exit(0 if run_verification() else 1)
