#!/usr/bin/env python3
"""
Drive a short season through the HTTP API.
Run with the API already up, with "admin" as a site admin:

  CHEF_LEAGUE_ADMINS=admin uvicorn chef_league.api:app --reload --port 8000
  python3 scripts/try_api.py
"""
from __future__ import annotations

import json
import sys
import uuid

try:
    import httpx
except ImportError:
    print("Install httpx: pip install httpx", file=sys.stderr)
    sys.exit(1)

BASE = "http://127.0.0.1:8000"


def _auth(client: httpx.Client, username: str) -> dict[str, str]:
    """Sign up (or log in if the user exists) and return bearer headers."""
    creds = {"username": username, "password": "demo-password"}
    r = client.post(f"{BASE}/signup", json=creds)
    if r.status_code == 400:
        r = client.post(f"{BASE}/login", json=creds)
    r.raise_for_status()
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def main() -> None:
    client = httpx.Client(timeout=30.0)
    try:
        admin = _auth(client, "admin")
        alice = _auth(client, "alice")
        bob = _auth(client, "bob")

        # Chef catalog (admin only)
        tag = uuid.uuid4().hex[:4]
        chef_ids = []
        for name in ("Ana", "Ben"):
            r = client.post(f"{BASE}/chefs", json={"name": f"{name} {tag}"}, headers=admin)
            r.raise_for_status()
            chef_ids.append(r.json()["id"])
        print(f"Created chefs: {chef_ids}")

        # League, join, draft
        r = client.post(f"{BASE}/leagues", json={"name": f"API Kitchen {tag}", "season": 22}, headers=alice)
        r.raise_for_status()
        league = r.json()
        client.post(f"{BASE}/leagues/join", json={"invite_code": league["invite_code"]}, headers=bob).raise_for_status()
        client.post(f"{BASE}/leagues/{league['id']}/draft", json={"chef_id": chef_ids[0]}, headers=alice).raise_for_status()
        client.post(f"{BASE}/leagues/{league['id']}/draft", json={"chef_id": chef_ids[1]}, headers=bob).raise_for_status()

        # Second draft of the same chef is rejected with a precise code
        dup = client.post(f"{BASE}/leagues/{league['id']}/draft", json={"chef_id": chef_ids[0]}, headers=bob)
        print(f"Duplicate draft: {dup.status_code} {dup.json().get('code')}")

        client.post(f"{BASE}/leagues/{league['id']}/status", json={"status": "active"}, headers=alice).raise_for_status()

        # One scored week
        body = {"week": 1, "performances": [
            {"chef_id": chef_ids[0], "highlights": ["quickfire_win", "challenge_win"]},
            {"chef_id": chef_ids[1], "highlights": ["bottom"]},
        ]}
        r = client.post(f"{BASE}/admin/scoring", json=body, headers=admin)
        if r.status_code != 200:
            print("Server error response:", r.text[:500])
        r.raise_for_status()

        r = client.get(f"{BASE}/leagues/{league['id']}/leaderboard", headers=bob)
        r.raise_for_status()
        print("--- Leaderboard ---")
        print(json.dumps(r.json(), indent=2))
    finally:
        client.close()


if __name__ == "__main__":
    main()
