"""
Load testing for the Directory service using Locust.

This file contains load tests for:
- Record creation and point lookups
- Listing queries by category, region and both
- Rating submissions
- Record deletion
"""

import itertools
import random

from locust import HttpUser, TaskSet, task, between, events


CATEGORIES = [
    "Italian", "Chinese", "Japanese", "Mexican", "Indian", "French", "Thai", "Spanish", "Greek", "Lebanese",
    "Turkish", "Moroccan", "Vietnamese", "Korean", "Caribbean", "Brazilian", "Ethiopian", "Russian", "German",
]

REGIONS = [
    "Acre", "Arad", "Ashdod", "Ashkelon", "BatYam", "Beersheba", "Eilat", "Haifa", "Herzliya", "Holon",
    "Jerusalem", "Karmiel", "Nahariya", "Netanya", "RamatGan", "Rehovot", "TelAviv", "Tiberias", "Yavne",
]

_sequence = itertools.count(1)


class DirectoryTasks(TaskSet):
    """Mixed read/write workload against the Directory service."""

    def on_start(self):
        """Setup for each user."""
        self.owned = []

    def _payload(self, index: int) -> dict:
        return {
            "name": f"LoadRecord{index}",
            "category": CATEGORIES[index % len(CATEGORIES)],
            "region": REGIONS[index % len(REGIONS)],
        }

    @task(2)
    def create_record(self):
        """Test record creation."""
        payload = self._payload(next(_sequence))
        with self.client.post("/records", json=payload, name="/records [create]", catch_response=True) as response:
            if response.status_code == 200:
                self.owned.append(payload)
                response.success()
            else:
                response.failure(f"Create failed: {response.status_code}")

    @task(6)
    def get_record(self):
        """Test point lookup of a record this user created."""
        if not self.owned:
            return
        payload = random.choice(self.owned)
        with self.client.get(f"/records/{payload['name']}", name="/records/{name}", catch_response=True) as response:
            if response.status_code != 200:
                response.failure(f"Lookup failed: {response.status_code}")
                return
            data = response.json()
            if data.get("category") == payload["category"] and data.get("region") == payload["region"]:
                response.success()
            else:
                response.failure("Record fields do not match")

    @task(3)
    def list_by_category(self):
        """Test category listing with a rating floor."""
        params = {"limit": random.randint(1, 100), "minRating": random.choice([0, 1.5, 3, 4.5])}
        category = random.choice(CATEGORIES)
        with self.client.get(f"/records/category/{category}", params=params,
                             name="/records/category/{category}", catch_response=True) as response:
            if response.status_code == 200 and isinstance(response.json(), list):
                response.success()
            else:
                response.failure(f"Category listing failed: {response.status_code}")

    @task(2)
    def list_by_region(self):
        """Test region listing."""
        region = random.choice(REGIONS)
        with self.client.get(f"/records/region/{region}", params={"limit": random.randint(1, 100)},
                             name="/records/region/{region}", catch_response=True) as response:
            if response.status_code == 200:
                response.success()
            else:
                response.failure(f"Region listing failed: {response.status_code}")

    @task(2)
    def list_by_region_and_category(self):
        """Test region and category listing."""
        region = random.choice(REGIONS)
        category = random.choice(CATEGORIES)
        with self.client.get(f"/records/region/{region}/category/{category}",
                             name="/records/region/{region}/category/{category}",
                             catch_response=True) as response:
            if response.status_code == 200:
                response.success()
            else:
                response.failure(f"Region/category listing failed: {response.status_code}")

    @task(2)
    def submit_rating(self):
        """Test rating submission."""
        if not self.owned:
            return
        payload = {"name": random.choice(self.owned)["name"], "rating": random.choice([0, 1, 2.5, 3, 4, 5])}
        with self.client.post("/records/rating", json=payload, catch_response=True) as response:
            if response.status_code == 200:
                response.success()
            else:
                response.failure(f"Rating failed: {response.status_code}")

    @task(1)
    def delete_record(self):
        """Test record deletion."""
        if not self.owned:
            return
        payload = self.owned.pop(random.randrange(len(self.owned)))
        with self.client.delete(f"/records/{payload['name']}", name="/records/{name} [delete]",
                                catch_response=True) as response:
            if response.status_code == 200 and response.json() == {"success": True}:
                response.success()
            else:
                response.failure(f"Delete failed: {response.status_code}")


class DirectoryUser(HttpUser):
    """Directory Service load test user."""
    tasks = [DirectoryTasks]
    wait_time = between(0.5, 2)
    host = "http://localhost:8080"


# Custom event handlers for additional metrics
@events.request.add_listener
def on_request(request_type, name, response_time, response_length, exception, context, **kwargs):
    """Custom request event handler."""
    if exception:
        print(f"Request failed: {request_type} {name} - {exception}")
    elif response_time > 1000:  # Log slow requests
        print(f"Slow request: {request_type} {name} - {response_time}ms")


# Performance thresholds
class PerformanceThresholds:
    """Performance thresholds for load testing."""

    # Response time thresholds (milliseconds)
    RESPONSE_TIME_THRESHOLDS = {
        "create_record": 300,
        "get_record": 50,
        "list_by_category": 100,
        "list_by_region": 100,
        "list_by_region_and_category": 100,
        "submit_rating": 300,
        "delete_record": 300,
    }

    # Error rate threshold (percentage)
    ERROR_RATE_THRESHOLD = 1.0

    # Throughput threshold (requests per second)
    THROUGHPUT_THRESHOLD = 200


# Load test scenarios
class LoadTestScenarios:
    """Predefined load test scenarios."""

    @staticmethod
    def light_load():
        """Light load scenario."""
        return {"users": 10, "spawn_rate": 2, "duration": "5m"}

    @staticmethod
    def heavy_load():
        """Heavy load scenario."""
        return {"users": 100, "spawn_rate": 10, "duration": "15m"}
