import os

os.environ.setdefault("USE_MOCK_DB", "true")

from fastapi.testclient import TestClient
from rapidaid.main import app

client = TestClient(app)

print('ROOT:')
print(client.get('/').json())

print('\nHEALTH:')
print(client.get('/health').json())

print('\nDB HEALTH:')
try:
    resp = client.get('/health/db')
    print(resp.status_code)
    try:
        print(resp.json())
    except Exception:
        print(resp.text)
except Exception as e:
    print('DB call raised exception:', e)

print('\nREGISTER + ALERT:')
client.post('/facilities', json={"type": "fire", "name": "Demo Fire Station", "phone": "9000000001", "lat": 22.57, "lng": 88.36})
resp = client.post('/alerts/fire', json={"lat": 22.5701, "lng": 88.3601, "userId": "demo-user"})
print(resp.status_code, resp.json().get("outcome"), resp.json().get("dispatch"))
