from locust import HttpUser, task, between
import random


class TipperUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Register a barista for this simulated client to tip
        self.handle = f"barista_{random.randint(1, 1_000_000)}"
        r = self.client.post("/auth/register", json={
            "email": f"{self.handle}@example.com",
            "password": "password123",
            "name": "Load Barista",
            "role": "BARISTA",
            "handle": self.handle,
        })
        self.token = r.json()["token"] if r.status_code == 201 else None

    @task(5)
    def send_tip(self):
        if not self.token:
            return
        self.client.post("/tips", json={"toHandle": self.handle, "amountCents": random.randint(100, 5000)})

    @task(2)
    def list_incoming(self):
        if not self.token:
            return
        self.client.get("/tips/incoming", headers={"Authorization": f"Bearer {self.token}"})

    @task(1)
    def view_portal(self):
        self.client.get(f"/portal/{self.handle}", name="/portal/[handle]")
