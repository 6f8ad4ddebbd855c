"""
Pre-Deploy and Smoke Test Script.

Runs against a live server (uvicorn taxibook.app.main:app) and executes a smoke test:
1. Health Check
2. Driver prices a route (token from the debug-only test-token endpoint)
3. Recommendations for that route
4. Guest negotiation: open -> counter -> accept
"""

import sys
import time
import uuid
import httpx

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"


def print_step(step, msg):
    print(f"[{step}] {msg}")


def fail(msg):
    print(f"❌ FAILURE: {msg}")
    sys.exit(1)


def success(msg):
    print(f"✅ {msg}")


def wait_for_server(client: httpx.Client, retries=10, delay=2):
    for _ in range(retries):
        try:
            if client.get("/health").status_code == 200:
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    return False


def get_token(client: httpx.Client, user_id: str, role: str, driver_id: str = None) -> str:
    params = {"user_id": user_id, "role": role}
    if driver_id:
        params["driver_id"] = driver_id
    res = client.post("/auth/test-token", params=params)
    if res.status_code != 200:
        fail(f"Token endpoint unavailable ({res.status_code}); is DEBUG enabled?")
    return res.json()["access_token"]


def main(driver_id: str):
    print("🚀 Starting Deployment Validation...")

    with httpx.Client(base_url=BASE_URL, timeout=10) as client:
        # 1. Health Check
        print_step("PRE-DEPLOY", "Checking /health...")
        if not wait_for_server(client):
            fail("Server did not answer /health")
        health = client.get("/health").json()
        if health.get("cache") != "up":
            print("⚠️ Cache is down; recommendations will be computed on every request")
        success(f"Health: {health}")

        # 2. Driver prices a route
        route = {"from_location": "Smoke Town", "to_location": f"Smoke {uuid.uuid4().hex[:6]}", "price": 500}
        driver_headers = {
            "Authorization": f"Bearer {get_token(client, 'smoke-driver', 'DRIVER', driver_id)}"
        }
        print_step("SMOKE", f"Pricing {route['from_location']} -> {route['to_location']}...")
        res = client.put(f"{API_PREFIX}/driver/pricing/routes", json=route, headers=driver_headers)
        if res.status_code != 200:
            fail(f"Setting route price failed: {res.status_code} {res.text}")
        success("Route priced")

        # 3. Recommendations
        res = client.get(
            f"{API_PREFIX}/recommendations",
            params={"from": route["to_location"], "to": route["from_location"]},
        )
        if res.status_code != 200:
            fail(f"Recommendations failed: {res.status_code} {res.text}")
        lowest = res.json()["lowest_price"]
        if lowest is None:
            print("⚠️ Driver not recommended; is the driver active, subscribed and visible?")
        else:
            success(f"Lowest price: {lowest['driver_name']} at {lowest['price']}")

        # 4. Negotiation flow
        print_step("SMOKE", "Running guest negotiation...")
        res = client.post(f"{API_PREFIX}/negotiations", json={
            "customer_name": "Smoke Test",
            "customer_phone": "+254700000000",
            "driver_id": driver_id,
            "original_price": route["price"],
            "proposed_price": 400,
        })
        if res.status_code != 201:
            fail(f"Opening negotiation failed: {res.status_code} {res.text}")
        negotiation_id = res.json()["id"]

        res = client.post(
            f"{API_PREFIX}/negotiations/{negotiation_id}/counter",
            json={"sender": "driver", "price": 450},
            headers=driver_headers,
        )
        if res.status_code != 200:
            fail(f"Counter offer failed: {res.status_code} {res.text}")

        res = client.post(f"{API_PREFIX}/negotiations/{negotiation_id}/accept", json={"sender": "customer"})
        if res.status_code != 200 or res.json()["status"] != "accepted":
            fail(f"Accept failed: {res.status_code} {res.text}")
        success(f"Negotiation {negotiation_id} agreed at {res.json()['current_offer']}")

        # Cleanup
        client.delete(
            f"{API_PREFIX}/driver/pricing/routes",
            params={"from": route["from_location"], "to": route["to_location"]},
            headers=driver_headers,
        )

    success("Deployment Validation Passed!")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python scripts/validate_deployment.py <driver_id>")
        sys.exit(2)
    main(sys.argv[1])
