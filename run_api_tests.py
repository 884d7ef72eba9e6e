import urllib.request
import urllib.error
import json
import time

BASE = "http://localhost:8000/api/v1"

def post(path, body):
    data = json.dumps(body).encode()
    req = urllib.request.Request(
        f"{BASE}{path}",
        data=data,
        headers={"Content-Type": "application/json"}
    )
    try:
        with urllib.request.urlopen(req) as r:
            return json.loads(r.read())
    except urllib.error.HTTPError as e:
        return json.loads(e.read())

def get(path, params=None):
    url = f"{BASE}{path}"
    if params:
        url += "?" + "&".join(f"{k}={v}" for k, v in params.items())
    req = urllib.request.Request(url)
    try:
        with urllib.request.urlopen(req) as r:
            return json.loads(r.read())
    except urllib.error.HTTPError as e:
        return json.loads(e.read())

def section(title):
    print(f"\n{'='*60}")
    print(f"### {title} ###")
    print('='*60)

def label(name):
    print(f"\n--- {name} ---")

def out(data):
    print(json.dumps(data, indent=2, ensure_ascii=False))

# ── Idle state ─────────────────────────────────────────────────
section("IDLE")

label("Reset: stop any running simulation")
out(post("/control", {"action": "stop"}))

label("Status while idle")
out(get("/control/status"))

label("Pricing while idle (opening price, is_live=false)")
out(get("/pricing"))

label("Market while idle (expect 503 / code 1003)")
out(get("/market"))

label("Invalid control action (expect 400 / code 1004)")
out(post("/control", {"action": "pause"}))

# ── Start ──────────────────────────────────────────────────────
section("START")

label("Start simulation")
r = post("/control", {"action": "start"})
out(r)
GEN = r.get("data", {}).get("generation")

label("Second start (expect 409 / code 1001)")
out(post("/control", {"action": "start"}))

# ── Rounds ─────────────────────────────────────────────────────
section("ROUNDS")

WAIT_S = 12
print(f"\nWaiting {WAIT_S}s for a few rounds (TICK_INTERVAL_MS defaults to 5000)...")
time.sleep(WAIT_S)

label("Status")
out(get("/control/status"))

label("Live pricing")
out(get("/pricing", {"product_id": "apple"}))

label("Participants")
r = get("/market/participants")
for p in r.get("data") or []:
    print(f"  {p['display_name']:<16} balance=${p['balance']:.4f} holdings={p['holdings']}")

label("Last 2 rounds")
for entry in get("/market/history", {"limit": 2}).get("data") or []:
    print(
        f"  round {entry['round']}: ${entry['price_before']:.4f} -> ${entry['price_after']:.4f}, "
        f"{len(entry['transactions'])} transactions, inventory={entry['market']['inventory']}"
    )

label("Conservation check: inventory + holdings")
m = get("/market").get("data") or {}
if m:
    held = sum(p["holdings"] for p in m["participants"])
    print(f"  inventory={m['market']['inventory']} held={held} total={m['market']['inventory'] + held}")

# ── Stop / restart ─────────────────────────────────────────────
section("STOP / RESTART")

label("Stop")
out(post("/control", {"action": "stop"}))

label("Stop again (idempotent, was_running=false)")
out(post("/control", {"action": "stop"}))

label("Restart (new generation, round 0)")
r = post("/control", {"action": "start"})
out(r)
print(f"\n  generation {GEN} -> {r.get('data', {}).get('generation')}")

label("Final stop")
out(post("/control", {"action": "stop"}))
