"""HTTP benchmark for the article read path.

Run against a seeded server; compare results with and without REDIS_URL
set to see the effect of the read-through cache.
"""
import argparse
import asyncio
import statistics
import time

import httpx

DEFAULT_BASE_URL = "http://localhost:8000"

ENDPOINTS = [
    ("GET /api/v1/articles", "/api/v1/articles"),
    ("GET /api/v1/articles?page=3&limit=50", "/api/v1/articles?page=3&limit=50"),
    ("GET /api/v1/articles?search=redis", "/api/v1/articles?search=redis"),
    ("GET /api/v1/articles?published_from=...", "/api/v1/articles?published_from=2024-01-01T00:00:00Z"),
]


async def benchmark_endpoint(client: httpx.AsyncClient, name: str, url: str, iterations: int = 50):
    times = []
    errors = 0

    # Warmup (also populates the cache)
    for _ in range(3):
        try:
            await client.get(url)
        except httpx.HTTPError:
            pass

    for _ in range(iterations):
        try:
            start = time.perf_counter()
            resp = await client.get(url)
            elapsed = (time.perf_counter() - start) * 1000
            if resp.status_code == 200:
                times.append(elapsed)
            else:
                errors += 1
        except httpx.HTTPError:
            errors += 1

    if not times:
        return {"name": name, "error": f"All {iterations} requests failed"}

    ordered = sorted(times)
    return {
        "name": name,
        "avg_ms": round(statistics.mean(times), 2),
        "p50_ms": round(ordered[len(ordered) // 2], 2),
        "p95_ms": round(ordered[int(len(ordered) * 0.95)], 2),
        "p99_ms": round(ordered[int(len(ordered) * 0.99)], 2),
        "errors": errors,
    }


async def run_benchmark(base_url: str, iterations: int = 50):
    print("=" * 80)
    print(f"Articles API Benchmark — {iterations} iterations per endpoint")
    print(f"Target: {base_url}")
    print("=" * 80)

    async with httpx.AsyncClient(base_url=base_url) as client:
        try:
            resp = await client.get("/health")
            resp.raise_for_status()
        except httpx.HTTPError as e:
            print(f"ERROR: Cannot reach {base_url} — {e}")
            return
        print(f"Health: {resp.json()}")

        endpoints = list(ENDPOINTS)
        first_page = (await client.get("/api/v1/articles?limit=1")).json()
        if first_page["items"]:
            article_id = first_page["items"][0]["id"]
            endpoints.append(("GET /api/v1/articles/{id}", f"/api/v1/articles/{article_id}"))

        print()
        print(f"{'Endpoint':<45} {'Avg':>8} {'P50':>8} {'P95':>8} {'P99':>8} {'Err':>4}")
        print("-" * 80)

        for name, path in endpoints:
            result = await benchmark_endpoint(client, name, path, iterations)
            if "error" in result:
                print(f"{result['name']:<45} {'ERROR':>8}")
                continue
            print(
                f"{result['name']:<45} "
                f"{result['avg_ms']:>7.1f}ms "
                f"{result['p50_ms']:>7.1f}ms "
                f"{result['p95_ms']:>7.1f}ms "
                f"{result['p99_ms']:>7.1f}ms "
                f"{result['errors']:>4}"
            )

        print("-" * 80)
        cache_stats = (await client.get("/health")).json()["cache"]
        print(f"Cache: {cache_stats}")
        print("\nBenchmark complete.")


def main():
    parser = argparse.ArgumentParser(description="Benchmark the articles API")
    parser.add_argument("-n", "--iterations", type=int, default=50, help="Iterations per endpoint")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL, help="API base URL")
    args = parser.parse_args()
    asyncio.run(run_benchmark(args.base_url, args.iterations))


if __name__ == "__main__":
    main()
