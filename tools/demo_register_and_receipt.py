import json, os, secrets, requests

BASE = os.getenv("MOLTR_BASE", "http://127.0.0.1:3000")
suffix = secrets.token_hex(3)
alice, bob = f"alice_{suffix}", f"bob_{suffix}"

a = requests.post(BASE + "/api/v1/tags/register", json={"username": alice, "walletAddress": "AliceWa11et111"}).json()
b = requests.post(BASE + "/api/v1/tags/register", json={"username": bob, "walletAddress": "BobWa11et111"}).json()
print("Registered:", a["username"], b["username"])

print("Lookup:", requests.get(BASE + f"/api/v1/tags/{bob}").json())

receipt = requests.post(
    BASE + "/api/v1/receipts/create",
    json={"signature": "5demoSig", "memo": "coffee", "fromTag": alice, "toTag": bob, "amount": 1500000},
    headers={"x-api-key": a["apiKey"]},
).json()
print("Receipt:", json.dumps(receipt, indent=2))

resp = requests.get(BASE + f"/api/v1/receipts/{receipt['id']}", headers={"x-api-key": b["apiKey"]})
print("Read by receiver:", resp.status_code, resp.text)

print("Receiver list:", requests.get(BASE + "/api/v1/receipts", params={"limit": 5}, headers={"x-api-key": b["apiKey"]}).json())
print("Health:", requests.get(BASE + "/health").json())
