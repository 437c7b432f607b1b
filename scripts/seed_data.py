#!/usr/bin/env python3
"""
Seed script — creates a realistic dataset for trying out the showcase API.

Creates:
  • 8 users (password: "password123")
  • up to 4 project posts per user across a handful of specializations
  • random likes and comments, so the feed and leaderboard have something to rank

Run against a running API:
  python scripts/seed_data.py --api-url http://localhost:8000

Posts are created "now", so the home feed order is driven by engagement.
"""
import argparse
import json
import random
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional


BASE_USERS = [
    ("Alice Chen", "alice@example.com"),
    ("Bob Martinez", "bob@example.com"),
    ("Carol Singh", "carol@example.com"),
    ("Dave Kim", "dave@example.com"),
    ("Eve Johnson", "eve@example.com"),
    ("Frank Williams", "frank@example.com"),
    ("Grace Li", "grace@example.com"),
    ("Henry Brown", "henry@example.com"),
]

SPECIALIZATIONS = ["web-dev", "ai-ml", "mobile", "data-science", "devops"]

SAMPLE_POSTS = [
    ("Realtime chat with WebSockets", "Rooms, typing indicators and presence in under 500 lines."),
    ("Handwritten digit classifier", "A small CNN that hits 99% on MNIST, trained on a laptop."),
    ("Budget tracker app", "Offline-first mobile app syncing through a tiny REST backend."),
    ("Housing price analysis", "Cleaning and modelling a city's open housing dataset."),
    ("Zero-downtime deploys", "Blue/green rollout with health checks and automatic rollback."),
    ("Portfolio site generator", "Static site builder that turns Markdown into a portfolio."),
    ("Sentiment dashboard", "Streaming tweets through a sentiment model into live charts."),
    ("Recipe recommender", "Collaborative filtering over a few thousand user ratings."),
    ("Home lab Kubernetes", "Three Raspberry Pis, k3s, and a lot of patience."),
    ("Campus events map", "Interactive map of events pulled from club calendars."),
    ("Bug bounty notes", "What I learned reporting my first three vulnerabilities."),
    ("Compiler in a weekend", "A tiny Lisp with a bytecode VM and a REPL."),
]

SAMPLE_COMMENTS = [
    "This is great, how long did it take?",
    "Love the write-up!",
    "Did you consider caching the results?",
    "Would be cool to see a demo video.",
    "Bookmarking this for later.",
]


@dataclass
class ApiClient:
    base_url: str
    token: Optional[str] = None

    def _request(self, method: str, path: str, data: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        body = json.dumps(data).encode() if data is not None else None
        req = urllib.request.Request(url, data=body, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on {method} {path}: {e.read().decode()}")
            return {}

    def post(self, path: str, data: dict) -> dict:
        return self._request("POST", path, data)

    def put(self, path: str, data: Optional[dict] = None) -> dict:
        return self._request("PUT", path, data)

    def get(self, path: str) -> dict:
        return self._request("GET", path)

    def as_user(self, token: str) -> "ApiClient":
        return ApiClient(self.base_url, token)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            if client.get("/health").get("status") == "ok":
                print("  API is ready!\n")
                return
        except (urllib.error.URLError, ConnectionError):
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def login_or_register(client: ApiClient, name: str, email: str) -> Optional[str]:
    creds = {"email": email, "password": "password123"}
    result = client.post("/auth/register", {"name": name, **creds})
    if not result:
        result = client.post("/auth/login", creds)
    return result.get("token")


def main(api_url: str) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Create users ─────────────────────────────────────────────────────
    print("Creating users...")
    sessions: list[ApiClient] = []
    for name, email in BASE_USERS:
        token = login_or_register(client, name, email)
        if token:
            sessions.append(client.as_user(token))
            print(f"  ✓ {name} <{email}>")
        else:
            print(f"  ✗ Failed to create {email}")

    if not sessions:
        print("No users created — aborting")
        return

    # ── Create posts ──────────────────────────────────────────────────────
    print("\nCreating posts...")
    post_ids: list[str] = []
    posts = SAMPLE_POSTS[:]
    random.shuffle(posts)
    for i, session in enumerate(sessions):
        for j in range(random.randint(1, 4)):
            title, description = posts[(i * 4 + j) % len(posts)]
            result = session.post(
                "/posts/",
                {
                    "title": title,
                    "description": description,
                    "specialization": random.choice(SPECIALIZATIONS),
                },
            )
            pid = result.get("post", {}).get("post_id", "")
            if pid:
                post_ids.append(pid)
    print(f"  ✓ {len(post_ids)} posts created")

    # ── Likes and comments ────────────────────────────────────────────────
    print("\nAdding engagement...")
    likes = comments = 0
    for post_id in post_ids:
        for session in random.sample(sessions, k=random.randint(0, len(sessions))):
            if session.put(f"/posts/{post_id}/like"):
                likes += 1
        for session in random.sample(sessions, k=random.randint(0, 2)):
            if session.post(f"/posts/{post_id}/comment", {"text": random.choice(SAMPLE_COMMENTS)}):
                comments += 1
    print(f"  ✓ {likes} likes, {comments} comments added")

    # ── Print summary ─────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    print("# Home feed (decay-ranked):")
    print(f"  curl -s '{api_url}/posts/' | python3 -m json.tool\n")
    print("# Leaderboard for one specialization:")
    print(f"  curl -s '{api_url}/posts/leaderboard?specialization=ai-ml' | python3 -m json.tool\n")
    print(f"# Log in as {BASE_USERS[0][1]} / password123:")
    print(f"  curl -s -X POST '{api_url}/auth/login' \\")
    print("    -H 'Content-Type: application/json' \\")
    print(f"    -d '{{\"email\": \"{BASE_USERS[0][1]}\", \"password\": \"password123\"}}'\n")
    print(f"# Prometheus metrics: {api_url}/metrics")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Project Showcase API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
