#!/usr/bin/env python3
"""
EventHub Quickstart — the full event lifecycle in one script.

Signs up an organizer, an admin and an attendee → the organizer creates
an event → the admin approves it → the attendee RSVPs and changes their
mind. Run `eventhub watch` in another terminal to see each step arrive
over the websocket.

Run with: python examples/quickstart.py
Backend must be running: eventhub serve  (http://localhost:3000)
"""

import sys
import uuid
from datetime import datetime, timedelta, timezone

import httpx

BASE = "http://localhost:3000"


def signup_and_login(client: httpx.Client, role: str, run_id: str) -> dict:
    """Create a user with ``role`` and return auth headers for them."""
    email = f"{role.lower()}-{run_id}@example.com"
    password = "demo-password-123"

    resp = client.post("/auth/signup", json={"email": email, "password": password, "role": role})
    assert resp.status_code == 201, f"Signup failed: {resp.text}"

    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, f"Login failed: {resp.text}"
    print(f"   {role:9s} {email}")
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def main():
    run_id = uuid.uuid4().hex[:6]
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        health = client.get("/health").json()
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}. Start it with: eventhub serve")
        sys.exit(1)
    print(f"   Database: {'✓' if health['database'] == 'ok' else '✗'}")
    print(f"   Realtime clients: {health['connections']}")

    # ── Users ─────────────────────────────────────────────────────
    print("\n1. Signing up users...")
    organizer = signup_and_login(client, "ORGANIZER", run_id)
    admin = signup_and_login(client, "ADMIN", run_id)
    attendee = signup_and_login(client, "ATTENDEE", run_id)

    # ── Create event (waits for approval) ─────────────────────────
    print("\n2. Organizer creates an event...")
    when = datetime.now(timezone.utc) + timedelta(days=14)
    resp = client.post("/events", headers=organizer, json={
        "title": f"Launch Party {run_id}",
        "description": "Celebrating the 1.0 release",
        "date": when.isoformat(),
        "location": "Rooftop, Building 4",
    })
    assert resp.status_code == 201, f"Failed: {resp.text}"
    event = resp.json()["event"]
    print(f"   Event: {event['title']} (approved={event['approved']})")

    # ── Approve ───────────────────────────────────────────────────
    print("\n3. Admin approves it...")
    resp = client.put(f"/events/{event['id']}/approve", headers=admin)
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   approved={resp.json()['event']['approved']}")

    # ── RSVP ──────────────────────────────────────────────────────
    print("\n4. Attendee RSVPs...")
    resp = client.post(f"/events/{event['id']}/rsvp", headers=attendee, json={"status": "MAYBE"})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    print(f"   → {resp.json()['rsvp']['status']}")

    resp = client.put(f"/events/{event['id']}/rsvp", headers=attendee, json={"status": "GOING"})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   → {resp.json()['rsvp']['status']}")

    # ── Listing ───────────────────────────────────────────────────
    print("\n5. Approved events:")
    events = client.get("/events", headers=attendee).json()["events"]
    for e in events:
        going = sum(1 for r in e["rsvps"] if r["status"] == "GOING")
        print(f"   {e['date'][:10]}  {e['title']:30s}  going={going}")

    ours = next(e for e in events if e["id"] == event["id"])
    print(f"\n✓ Lifecycle finished. Event {event['id'][:8]}... has {len(ours['rsvps'])} RSVP(s).")


if __name__ == "__main__":
    main()
