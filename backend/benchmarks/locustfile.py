import os

from locust import HttpUser, task, between

# bearer token of a pre-provisioned grower account
TOKEN = os.getenv("AGROTECH_BENCH_TOKEN", "")
EMAIL = os.getenv("AGROTECH_BENCH_EMAIL", "load@agrotech.test")


class GrowerUser(HttpUser):
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = {"Authorization": f"Bearer {TOKEN}"}

    @task(3)
    def list_analyses(self):
        self.client.get(
            f"/api/soil-analysis/user/{EMAIL}",
            headers=self.headers,
            name="/api/soil-analysis/user/[email]",
        )

    @task(2)
    def poll_session(self):
        self.client.get("/api/session", headers=self.headers)

    @task(1)
    def submit_analysis(self):
        data = {"fieldName": "bench plot", "cropType": "Soy", "pH": 6.1, "nitrogen": 10}
        self.client.post("/api/soil-analysis", json=data, headers=self.headers)
