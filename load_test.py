"""
Oversell check for the order service.
Fires concurrent order creations at a single product and verifies that the
stock debited never exceeds what was available, then reports p50/p90/p95/p99
latency. Optionally cancels the created orders and checks the stock returns.

Usage:
    python load_test.py --user-id <id> --product-id <id> [--requests 500] [--workers 50] [--cancel]
"""
import argparse
import asyncio
import json
import statistics
import time
from collections import defaultdict
from datetime import datetime

import aiohttp


class OrderLoadTester:
    def __init__(self, base_url, user_id, product_id, total_requests=500, concurrent_workers=50, quantity=1):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.product_id = product_id
        self.total_requests = total_requests
        self.concurrent_workers = concurrent_workers
        self.quantity = quantity
        self.results = {
            "created": [],
            "rejected": 0,
            "timeouts": 0,
            "response_times": [],
            "errors": defaultdict(int),
            "status_codes": defaultdict(int),
        }

    @property
    def headers(self):
        return {"X-User-Id": self.user_id}

    async def product_stock(self, session):
        async with session.get(f"{self.base_url}/api/products/{self.product_id}") as response:
            response.raise_for_status()
            data = await response.json()
            return int(data["stock"])

    async def place_order(self, session):
        payload = {
            "address": "Rua de Teste, 100",
            "items": [{"product_id": self.product_id, "quantity": self.quantity}],
        }
        start_time = time.time()
        try:
            async with session.post(
                f"{self.base_url}/api/orders",
                json=payload,
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=30),
            ) as response:
                body = await response.json(content_type=None)
                self.results["response_times"].append(time.time() - start_time)
                self.results["status_codes"][response.status] += 1
                if response.status == 201:
                    self.results["created"].append(body["id"])
                else:
                    self.results["rejected"] += 1
                    self.results["errors"][body.get("kind", "unknown")] += 1
        except asyncio.TimeoutError:
            self.results["timeouts"] += 1
            self.results["errors"]["Timeout"] += 1
        except aiohttp.ClientError as e:
            self.results["errors"][type(e).__name__] += 1

    async def cancel_order(self, session, order_id):
        async with session.put(
            f"{self.base_url}/api/orders/{order_id}",
            json={"status": "CANCELLED"},
            headers=self.headers,
        ) as response:
            return response.status == 200

    async def worker(self, session, task_queue):
        while True:
            task = await task_queue.get()
            try:
                if task is None:  # Poison pill
                    return
                await self.place_order(session)
            finally:
                task_queue.task_done()

    async def run(self, cancel=False):
        print(f"\n{'='*80}")
        print("ORDER LOAD TEST STARTED")
        print(f"{'='*80}")
        print(f"Base URL: {self.base_url}")
        print(f"Product: {self.product_id}  Quantity per order: {self.quantity}")
        print(f"Total Requests: {self.total_requests:,}  Concurrent Workers: {self.concurrent_workers}")

        connector = aiohttp.TCPConnector(limit=self.concurrent_workers)
        async with aiohttp.ClientSession(connector=connector) as session:
            stock_before = await self.product_stock(session)

            task_queue = asyncio.Queue()
            for _ in range(self.total_requests):
                task_queue.put_nowait(True)
            for _ in range(self.concurrent_workers):
                task_queue.put_nowait(None)

            start_time = time.time()
            workers = [asyncio.create_task(self.worker(session, task_queue)) for _ in range(self.concurrent_workers)]
            await asyncio.gather(*workers)
            total_time = time.time() - start_time

            stock_after = await self.product_stock(session)

            stock_restored = None
            if cancel and self.results["created"]:
                cancelled = await asyncio.gather(*(self.cancel_order(session, oid) for oid in self.results["created"]))
                stock_restored = await self.product_stock(session)
                print(f"\nCancelled {sum(cancelled):,} of {len(cancelled):,} orders")

        return self.report(total_time, stock_before, stock_after, stock_restored)

    def report(self, total_time, stock_before, stock_after, stock_restored=None):
        debited = len(self.results["created"]) * self.quantity
        oversold = debited > stock_before or stock_after < 0
        consistent = stock_after == stock_before - debited

        print(f"\n{'='*80}")
        print("ORDER LOAD TEST RESULTS")
        print(f"{'='*80}\n")
        print(f"  Total Time: {total_time:.2f} seconds")
        print(f"  Requests/sec: {self.total_requests/total_time:.2f}")
        print(f"  Created: {len(self.results['created']):,}  Rejected: {self.results['rejected']:,}  Timeouts: {self.results['timeouts']:,}")
        print("\nSTOCK:")
        print(f"  Before: {stock_before}  After: {stock_after}  Debited by created orders: {debited}")
        print(f"  Oversold: {'YES' if oversold else 'no'}")
        print(f"  Stock matches created orders: {'yes' if consistent else 'NO'}")
        if stock_restored is not None:
            print(f"  After cancelling all created orders: {stock_restored} (expected {stock_before})")

        response_times = sorted(self.results["response_times"])
        latency = {}
        if response_times:
            for name, pct in (("p50", 0.50), ("p90", 0.90), ("p95", 0.95), ("p99", 0.99)):
                latency[f"{name}_ms"] = response_times[min(int(len(response_times) * pct), len(response_times) - 1)] * 1000
            latency["mean_ms"] = statistics.mean(response_times) * 1000
            print("\nRESPONSE TIMES (LATENCY):")
            for key, value in latency.items():
                print(f"  {key}: {value:.2f}")

        if self.results["status_codes"]:
            print("\nSTATUS CODES:")
            for code, count in sorted(self.results["status_codes"].items()):
                print(f"  {code}: {count:,}")
        if self.results["errors"]:
            print("\nERRORS:")
            for error, count in sorted(self.results["errors"].items(), key=lambda x: x[1], reverse=True):
                print(f"  {error}: {count:,}")

        results_data = {
            "total_time": total_time,
            "total_requests": self.total_requests,
            "created": len(self.results["created"]),
            "rejected": self.results["rejected"],
            "timeouts": self.results["timeouts"],
            "stock_before": stock_before,
            "stock_after": stock_after,
            "stock_restored": stock_restored,
            "oversold": oversold,
            "response_times": latency,
            "status_codes": dict(self.results["status_codes"]),
            "errors": dict(self.results["errors"]),
        }
        results_file = f"order_load_test_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
        with open(results_file, "w") as f:
            json.dump(results_data, f, indent=2)
        print(f"\nResults saved to: {results_file}\n")
        return results_data


def parse_args():
    parser = argparse.ArgumentParser(description="Concurrent order creation against one product")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--product-id", required=True)
    parser.add_argument("--requests", type=int, default=500)
    parser.add_argument("--workers", type=int, default=50)
    parser.add_argument("--quantity", type=int, default=1)
    parser.add_argument("--cancel", action="store_true", help="cancel created orders and check stock is restored")
    return parser.parse_args()


async def main():
    args = parse_args()
    tester = OrderLoadTester(
        base_url=args.base_url,
        user_id=args.user_id,
        product_id=args.product_id,
        total_requests=args.requests,
        concurrent_workers=args.workers,
        quantity=args.quantity,
    )
    await tester.run(cancel=args.cancel)


if __name__ == "__main__":
    asyncio.run(main())
