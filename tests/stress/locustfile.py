"""
InvenBill Load Testing with Locust

Run against a live backend (flask --app wsgi run --port 5001):
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5001

Or headless:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5001 \
           --users 10 --spawn-rate 2 --run-time 60s --headless

Setup: create a manager profile (flask --app wsgi profiles create ...) and
export its id as INVENBILL_LOAD_USER_ID. The run seeds its own customer and
product.

Pass thresholds:
- p95 response time < 500ms for reads
- p95 response time < 1000ms for writes
- Error rate < 1%
- No duplicate invoice numbers across concurrent creates
"""

import os
import time
import random
from typing import Dict, List, Optional

from locust import HttpUser, task, between, events


USER_ID = os.environ.get("INVENBILL_LOAD_USER_ID", "1")


# =============================================================================
# METRICS TRACKING
# =============================================================================

class MetricsCollector:
    """Collect and report metrics."""

    def __init__(self):
        self.request_counts: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.response_times: Dict[str, List[float]] = {}
        self.invoice_numbers: List[str] = []

    def record(self, name: str, response_time: float, success: bool):
        self.request_counts.setdefault(name, 0)
        self.error_counts.setdefault(name, 0)
        self.response_times.setdefault(name, [])

        self.request_counts[name] += 1
        if not success:
            self.error_counts[name] += 1
        self.response_times[name].append(response_time)

    def get_summary(self) -> Dict:
        summary = {}
        for name, times in self.response_times.items():
            times = sorted(times)
            count = len(times)
            if count == 0:
                continue
            p95_idx = min(int(count * 0.95), count - 1)
            summary[name] = {
                "count": self.request_counts[name],
                "errors": self.error_counts[name],
                "error_rate": self.error_counts[name] / self.request_counts[name] * 100,
                "avg_ms": sum(times) / count,
                "p95_ms": times[p95_idx],
            }
        return summary


metrics = MetricsCollector()


# =============================================================================
# USER BEHAVIORS
# =============================================================================

class InvenBillUser(HttpUser):
    """Base user; every request carries the caller header."""
    wait_time = between(0.5, 2)
    abstract = True

    customer_id: Optional[int] = None
    product_id: Optional[int] = None

    def on_start(self):
        self.seed()

    def headers(self) -> Dict:
        return {"Content-Type": "application/json", "X-User-Id": USER_ID}

    def seed(self):
        """Create a customer and a stocked product for this user."""
        suffix = f"{int(time.time() * 1000)}-{random.randint(0, 9999)}"
        resp = self.client.post(
            "/api/customers",
            json={"name": f"Load Customer {suffix}"},
            headers=self.headers(),
            name="customers/create",
        )
        if resp.status_code == 201:
            self.customer_id = resp.json()["id"]

        resp = self.client.post(
            "/api/products",
            json={"sku": f"LOAD-{suffix}", "name": f"Load Product {suffix}", "price": "9.99", "stock": 10000},
            headers=self.headers(),
            name="products/create",
        )
        if resp.status_code == 201:
            self.product_id = resp.json()["id"]

    def timed(self, name: str, method: str, url: str, ok=(200,), **kwargs):
        start = time.time()
        resp = self.client.request(method, url, headers=self.headers(), name=name, **kwargs)
        metrics.record(name, (time.time() - start) * 1000, resp.status_code in ok)
        return resp


class BrowsingUser(InvenBillUser):
    """Reads catalog, documents and reports."""
    weight = 3

    @task(5)
    def list_products(self):
        self.timed("products/list", "GET", "/api/products")

    @task(3)
    def list_invoices(self):
        self.timed("invoices/list", "GET", "/api/invoices")

    @task(2)
    def dashboard(self):
        self.timed("reports/dashboard", "GET", "/api/reports/dashboard", ok=(200, 403))

    @task(1)
    def health_check(self):
        self.timed("system/health", "GET", "/api/health")


class BillingUser(InvenBillUser):
    """Creates invoices concurrently; exercises number allocation."""
    weight = 2

    @task(4)
    def create_invoice(self):
        if self.customer_id is None:
            return
        resp = self.timed(
            "invoices/create",
            "POST",
            "/api/invoices",
            ok=(201,),
            json={
                "customer_id": self.customer_id,
                "tax_rate": "8.25",
                "items": [{"product_name": "Service", "quantity": random.randint(1, 5), "unit_price": "12.50"}],
            },
        )
        if resp.status_code == 201:
            metrics.invoice_numbers.append(resp.json()["invoice_number"])

    @task(1)
    def record_payment(self):
        if self.customer_id is None:
            return
        self.timed(
            "payments/create",
            "POST",
            "/api/payments",
            ok=(201,),
            json={"customer_id": self.customer_id, "amount": "10.00"},
        )


class InventoryUser(InvenBillUser):
    """Posts stock movements against a shared product."""
    weight = 1

    @task(3)
    def record_sale(self):
        if self.product_id is None:
            return
        self.timed(
            "stock/sale",
            "POST",
            "/api/stock-movements",
            ok=(201, 400),
            json={"product_id": self.product_id, "movement_type": "sale", "quantity_change": -random.randint(1, 3)},
        )

    @task(2)
    def record_purchase(self):
        if self.product_id is None:
            return
        self.timed(
            "stock/purchase",
            "POST",
            "/api/stock-movements",
            ok=(201,),
            json={"product_id": self.product_id, "movement_type": "purchase", "quantity_change": random.randint(1, 10)},
        )

    @task(5)
    def list_movements(self):
        if self.product_id is None:
            return
        self.timed("stock/list", "GET", "/api/stock-movements", params={"product_id": self.product_id})


# =============================================================================
# EVENT HANDLERS
# =============================================================================

@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary when test stops."""
    print("\n" + "=" * 80)
    print("LOAD TEST SUMMARY")
    print("=" * 80)

    print(f"\n{'Endpoint':<30} {'Count':>8} {'Errors':>8} {'Err%':>8} {'Avg(ms)':>10} {'P95(ms)':>10}")
    print("-" * 80)

    all_pass = True
    for name, stats in sorted(metrics.get_summary().items()):
        is_write = name.endswith(("create", "sale", "purchase"))
        p95_threshold = 1000 if is_write else 500
        passed = stats["p95_ms"] < p95_threshold and stats["error_rate"] < 1
        all_pass = all_pass and passed
        status = "PASS" if passed else "FAIL"
        print(f"{name:<30} {stats['count']:>8} {stats['errors']:>8} {stats['error_rate']:>7.2f}% "
              f"{stats['avg_ms']:>9.1f} {stats['p95_ms']:>9.1f} [{status}]")

    numbers = metrics.invoice_numbers
    duplicates = len(numbers) - len(set(numbers))
    print("-" * 80)
    print(f"Invoice numbers issued: {len(numbers)}, duplicates: {duplicates}")
    if duplicates:
        all_pass = False

    print("\n[PASS] All endpoints within thresholds" if all_pass else "\n[FAIL] Thresholds exceeded")
    print("=" * 80)
