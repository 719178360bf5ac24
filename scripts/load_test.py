# Run with: locust -f scripts/load_test.py --host http://localhost:8080
from locust import HttpUser, task, between
from locust.log import setup_logging

# Set up logging for locust
setup_logging("INFO")


class DummyLoggerUser(HttpUser):
    # Wait time between requests for each user (simulates realistic user behavior)
    wait_time = between(0.1, 0.5)

    # Host to test (set via --host command-line argument)
    host = "http://localhost:8080"

    @task(3)
    def list_users(self):
        with self.client.get("/users", name="list_users", catch_response=True) as response:
            if response.status_code != 200:
                response.failure(f"Unexpected status code: {response.status_code}")
            elif response.headers.get("x-served-by") is None:
                response.failure("Missing X-Served-By header")
            else:
                response.success()

    @task(2)
    def get_product(self):
        # The id is ignored by the server; name= groups every id under one entry
        with self.client.get(
            "/products/123", name="/products/{id}", catch_response=True
        ) as response:
            if response.status_code != 200:
                response.failure(f"Unexpected status code: {response.status_code}")
            else:
                response.success()

    @task(1)
    def create_order(self):
        with self.client.post(
            "/orders",
            json={"items": [{"productId": "p-100", "quantity": 1}]},
            name="create_order",
            catch_response=True,
        ) as response:
            if response.status_code != 201:
                response.failure(f"Unexpected status code: {response.status_code}")
            else:
                response.success()

    @task(1)
    def unknown_route(self):
        with self.client.get(
            "/not/modelled", name="fallback", catch_response=True
        ) as response:
            if response.status_code != 200:
                response.failure(f"Unexpected status code: {response.status_code}")
            else:
                response.success()

