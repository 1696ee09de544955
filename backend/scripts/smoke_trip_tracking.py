"""Smoke check for live trip tracking against a running server.

Prerequisites:
1. The ASGI server must be running (`daphne carhire_backend.asgi:application`
   or `python manage.py runserver` with channels installed).
2. Install the scripts extra once: `pip install -e .[scripts]`.

Steps:
- Sign in (or sign up) a demo customer and a demo driver.
- The customer books a trip with the driver.
- The driver opens the trip tracker socket.
- The customer starts sharing over HTTP; the tracker must report it.
- The customer stops sharing; the tracker must report that too.
"""

from __future__ import annotations

import json
import os
import time
from typing import Callable, Dict

import requests
import websocket  # type: ignore

BASE_URL = os.environ.get("CARHIRE_BASE_URL", "http://127.0.0.1:8000")
WS_URL = BASE_URL.replace("http", "ws", 1)
TIMEOUT = 10

DEMO_ACCOUNTS = {
    "customer": {"username": "smoke_customer", "password": "demo1234", "is_driver": False},
    "driver": {
        "username": "smoke_driver",
        "password": "demo1234",
        "is_driver": True,
        "phone_number": "+2348000000001",
    },
}


def sign_in(account: Dict) -> requests.Session:
    session = requests.Session()
    credentials = {"username": account["username"], "password": account["password"]}

    resp = session.post(f"{BASE_URL}/api/auth/login/", json=credentials, timeout=TIMEOUT)
    if resp.status_code != 200:
        session.post(f"{BASE_URL}/api/auth/register/", json=account, timeout=TIMEOUT).raise_for_status()
        resp = session.post(f"{BASE_URL}/api/auth/login/", json=credentials, timeout=TIMEOUT)
    resp.raise_for_status()

    body = resp.json()
    session.headers["Authorization"] = f"Bearer {body['tokens']['access']}"
    session.user = body["user"]  # type: ignore[attr-defined]
    session.access_token = body["tokens"]["access"]  # type: ignore[attr-defined]
    return session


def wait_for(ws, check: Callable[[Dict], bool], label: str, deadline: float = 30.0) -> Dict:
    end = time.monotonic() + deadline
    while time.monotonic() < end:
        frame = json.loads(ws.recv())
        print(f"  [ws] {frame.get('type')} progress={frame.get('progress')} status={frame.get('status_message')}")
        if check(frame):
            return frame
    raise TimeoutError(f"Tracker never reported: {label}")


def main() -> None:
    customer = sign_in(DEMO_ACCOUNTS["customer"])
    driver = sign_in(DEMO_ACCOUNTS["driver"])
    print(f"[http] customer #{customer.user['id']}, driver #{driver.user['id']}")

    resp = customer.post(
        f"{BASE_URL}/api/trips/",
        json={"driver_id": driver.user["id"], "pickup_location": "Victoria Island", "destination": "Ikeja"},
        timeout=TIMEOUT,
    )
    resp.raise_for_status()
    trip_id = resp.json()["id"]
    print(f"[http] trip #{trip_id} booked")

    ws = websocket.create_connection(
        f"{WS_URL}/ws/trips/{trip_id}/track/?token={driver.access_token}", timeout=30
    )
    try:
        wait_for(ws, lambda f: f.get("type") == "tracker_view", "initial view")

        customer.post(
            f"{BASE_URL}/api/trips/location/start/",
            json={"lat": 6.4474, "lng": 3.3903, "trip_id": trip_id},
            timeout=TIMEOUT,
        ).raise_for_status()
        wait_for(ws, lambda f: f.get("customer_sharing") is True, "customer sharing")

        customer.post(
            f"{BASE_URL}/api/trips/location/stop/", json={"trip_id": trip_id}, timeout=TIMEOUT
        ).raise_for_status()
        wait_for(ws, lambda f: f.get("customer_sharing") is False, "customer stopped")
    finally:
        ws.close()

    print("[done] trip tracking smoke check passed")


if __name__ == "__main__":
    main()
