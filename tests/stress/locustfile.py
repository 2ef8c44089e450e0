"""
StockLedger Load Testing with Locust

Run with:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5000

Or headless:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5000 \
           --users 10 --spawn-rate 2 --run-time 60s --headless

Pass thresholds:
- p95 response time < 500ms for reads
- p95 response time < 1000ms for writes
- Error rate < 1%

409 (insufficient stock) is an expected outcome for stock-out under load and
is not counted as an error.
"""

import random
import time
import uuid
from typing import Dict, List, Optional

from locust import HttpUser, between, events, task


# =============================================================================
# METRICS TRACKING
# =============================================================================

class MetricsCollector:
    """Collect and report metrics."""

    def __init__(self):
        self.request_counts: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.response_times: Dict[str, List[float]] = {}

    def record(self, name: str, response_time: float, success: bool):
        if name not in self.request_counts:
            self.request_counts[name] = 0
            self.error_counts[name] = 0
            self.response_times[name] = []

        self.request_counts[name] += 1
        if not success:
            self.error_counts[name] += 1
        self.response_times[name].append(response_time)

    def get_summary(self) -> Dict:
        summary = {}
        for name in self.request_counts:
            times = sorted(self.response_times[name])
            count = len(times)
            if count == 0:
                continue

            p50_idx = int(count * 0.50)
            p95_idx = int(count * 0.95)
            p99_idx = int(count * 0.99)

            summary[name] = {
                "count": self.request_counts[name],
                "errors": self.error_counts[name],
                "error_rate": self.error_counts[name] / self.request_counts[name] * 100,
                "avg_ms": sum(times) / count,
                "p50_ms": times[p50_idx] if p50_idx < count else times[-1],
                "p95_ms": times[p95_idx] if p95_idx < count else times[-1],
                "p99_ms": times[p99_idx] if p99_idx < count else times[-1],
            }
        return summary


metrics = MetricsCollector()


# =============================================================================
# USER BEHAVIORS
# =============================================================================

class LedgerUser(HttpUser):
    """
    Base user that owns one product for the duration of the run.

    Every user hammers its own product plus one shared hot product, so the
    run exercises both independent and contended ledger writes.
    """
    wait_time = between(0.5, 2)
    abstract = True

    product_id: Optional[int] = None
    shared_product_id: int = 1

    def on_start(self):
        self.product_id = self.create_product()

    def create_product(self) -> Optional[int]:
        start = time.time()
        response = self.client.post(
            "/api/products",
            json={
                "code": f"LOAD-{uuid.uuid4().hex[:12]}",
                "name": "Load test product",
                "unit": "pcs",
                "category": "load-test",
            },
            name="products/create",
        )
        ok = response.status_code == 201
        metrics.record("products/create", (time.time() - start) * 1000, ok)
        return response.json().get("id") if ok else None

    def target(self) -> int:
        if self.product_id is None or random.random() < 0.3:
            return self.shared_product_id
        return self.product_id

    def record(self, transaction_type: str, quantity: int, price: Optional[float] = None):
        start = time.time()
        body = {
            "product_id": self.target(),
            "transaction_type": transaction_type,
            "quantity": quantity,
        }
        if price is not None:
            body["price_per_unit"] = price
        response = self.client.post("/api/transactions", json=body, name=f"transactions/post_{transaction_type}")
        metrics.record(
            f"transactions/post_{transaction_type}",
            (time.time() - start) * 1000,
            response.status_code in (201, 404, 409),
        )


class BrowsingUser(LedgerUser):
    """
    User that primarily reads summaries and reports.
    """
    weight = 3

    @task(5)
    def get_product_summary(self):
        start = time.time()
        response = self.client.get(f"/api/inventory/{self.target()}/summary", name="inventory/summary")
        metrics.record("inventory/summary", (time.time() - start) * 1000, response.status_code in (200, 404))

    @task(3)
    def list_summaries(self):
        start = time.time()
        response = self.client.get("/api/inventory/summary", name="inventory/summary_list")
        metrics.record("inventory/summary_list", (time.time() - start) * 1000, response.status_code == 200)

    @task(2)
    def low_stock(self):
        start = time.time()
        response = self.client.get("/api/inventory/low-stock", name="inventory/low_stock")
        metrics.record("inventory/low_stock", (time.time() - start) * 1000, response.status_code == 200)

    @task(1)
    def dashboard(self):
        start = time.time()
        response = self.client.get("/api/inventory/dashboard", name="inventory/dashboard")
        metrics.record("inventory/dashboard", (time.time() - start) * 1000, response.status_code == 200)

    @task(1)
    def health_check(self):
        start = time.time()
        response = self.client.get("/api/health", name="system/health")
        metrics.record("system/health", (time.time() - start) * 1000, response.status_code == 200)


class StockUser(LedgerUser):
    """
    User that records stock movements.
    """
    weight = 2

    @task(4)
    def stock_in(self):
        self.record("in", random.randint(1, 10), round(random.uniform(1, 20), 2))

    @task(3)
    def stock_out(self):
        self.record("out", random.randint(1, 6))

    @task(1)
    def list_transactions(self):
        start = time.time()
        response = self.client.get(
            "/api/transactions",
            params={"product_id": self.target()},
            name="transactions/list",
        )
        metrics.record("transactions/list", (time.time() - start) * 1000, response.status_code == 200)


# =============================================================================
# EVENT HANDLERS
# =============================================================================

@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary when test stops."""
    print("\n" + "=" * 80)
    print("LOAD TEST SUMMARY")
    print("=" * 80)

    summary = metrics.get_summary()

    print(f"\n{'Endpoint':<30} {'Count':>8} {'Errors':>8} {'Err%':>8} {'Avg(ms)':>10} {'P95(ms)':>10}")
    print("-" * 80)

    total_requests = 0
    total_errors = 0
    all_pass = True

    for name, stats in sorted(summary.items()):
        total_requests += stats["count"]
        total_errors += stats["errors"]

        p95_threshold = 1000 if "create" in name or "post" in name else 500
        passed = stats["p95_ms"] < p95_threshold and stats["error_rate"] < 1

        status = "PASS" if passed else "FAIL"
        if not passed:
            all_pass = False

        print(f"{name:<30} {stats['count']:>8} {stats['errors']:>8} {stats['error_rate']:>7.2f}% {stats['avg_ms']:>9.1f} {stats['p95_ms']:>9.1f} [{status}]")

    print("-" * 80)
    print(f"{'TOTAL':<30} {total_requests:>8} {total_errors:>8} {total_errors/max(total_requests,1)*100:>7.2f}%")
    print("=" * 80)

    if all_pass:
        print("\n[PASS] All endpoints within thresholds")
    else:
        print("\n[FAIL] Some endpoints exceeded thresholds")
        print("  - Reads (list/get): P95 < 500ms, Error rate < 1%")
        print("  - Writes (create/post): P95 < 1000ms, Error rate < 1%")

    print("=" * 80)
