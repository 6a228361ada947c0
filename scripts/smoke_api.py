# scripts/smoke_api.py
import os
import sys

import httpx
from rich.console import Console

API = os.getenv("SMOKE_API_URL", "http://localhost:9000")
QUERIES = [
    {"q": "Amsterdam", "expect": "Amsterdam"},
    {"q": "lond",      "expect": "London"},
    {"q": "NEW YORK",  "expect": "New York"},
    {"q": "paris",     "expect": "Paris"},
]

console = Console(highlight=False)
ok = err = 0


def passed(msg):
    global ok; ok += 1; console.print(f"[green]✓ {msg}")


def failed(msg):
    global err; err += 1; console.print(f"[red]✗ {msg}")


def main():
    client = httpx.Client(base_url=API, timeout=10)

    # ---------- health ----------
    r = client.get("/health")
    if r.status_code == 200 and r.json().get("dependencies", {}).get("catalog") == "healthy":
        passed(f"health ({r.json()['status']})")
    else:
        failed(f"health {r.status_code}")

    # ---------- city lookup ----------
    first_id = None
    for item in QUERIES:
        r = client.get("/city", params={"q": item["q"]})
        names = [city["name"] for city in r.json()] if r.status_code == 200 else []
        if any(name.startswith(item["expect"]) for name in names):
            passed(f"GET /city?q={item['q']} -> {len(names)} matches")
            first_id = first_id or r.json()[0]["id"]
        else:
            failed(f"GET /city?q={item['q']} -> {r.status_code}")

    r = client.get("/city", params={"q": ""})
    if r.status_code == 200 and r.json() == []: passed("empty query")
    else: failed(f"empty query -> {r.status_code} {r.text[:80]}")

    r = client.get("/city", params={"q": "a", "limit": 3})
    if r.status_code == 200 and len(r.json()) <= 3: passed("limit")
    else: failed(f"limit -> {r.status_code}")

    # ---------- weather proxy ----------
    if first_id is not None:
        for path in (f"/weather/{first_id}", f"/forecast/{first_id}"):
            r = client.get(path)
            if r.status_code == 200: passed(f"GET {path}")
            else: failed(f"GET {path} -> {r.status_code}")

    r = client.get("/stations")
    if r.status_code == 200: passed("GET /stations")
    else: failed(f"GET /stations -> {r.status_code}")

    # ---------- metrics ----------
    r = client.get("/metrics")
    if r.status_code == 200: passed("metrics")
    else: failed(f"metrics {r.status_code}")

    # ---------- summary ----------
    total = ok + err
    console.print(f"\n[bold]RESULT:[/] {ok}/{total} passed, {err} failed")
    return 1 if err else 0


if __name__ == "__main__":
    sys.exit(main())
