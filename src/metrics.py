"""Prometheus metrics for the catalog crawler."""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("catalog_crawler", "Catalog crawler application info")
app_info.info({"version": "0.1.0", "name": "catalog-crawler"})

# Task metrics
crawl_tasks_total = Counter(
    "crawl_tasks_total",
    "Total number of crawl task outcomes",
    ["site", "kind", "status"],
)

crawl_task_duration_seconds = Histogram(
    "crawl_task_duration_seconds",
    "Time spent processing a single crawl task",
    ["site", "kind"],
    buckets=[1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
)

# Output metrics
crawl_products_emitted_total = Counter(
    "crawl_products_emitted_total",
    "Total number of product records emitted to the catalog sink",
    ["site"],
)

# Dedup metrics
crawl_dedup_checks_total = Counter(
    "crawl_dedup_checks_total",
    "Total number of batched existence checks",
    ["site", "status"],
)

# Interstitial metrics
crawl_interstitials_total = Counter(
    "crawl_interstitials_total",
    "Interstitial handling outcomes",
    ["site", "outcome"],
)

# Run metrics
crawl_runs_total = Counter(
    "crawl_runs_total",
    "Total number of crawl runs",
    ["site", "status"],
)


def record_task(site: str, kind: str, status: str, duration: float):
    """Record the outcome of a task attempt."""
    crawl_tasks_total.labels(site=site, kind=kind, status=status).inc()
    crawl_task_duration_seconds.labels(site=site, kind=kind).observe(duration)


def record_product_emitted(site: str):
    """Record a product handed to the catalog sink."""
    crawl_products_emitted_total.labels(site=site).inc()


def record_dedup_check(site: str, success: bool):
    """Record a batched existence check."""
    status = "success" if success else "error"
    crawl_dedup_checks_total.labels(site=site, status=status).inc()


def record_interstitial(site: str, outcome: str):
    """Record how an interstitial scan ended."""
    crawl_interstitials_total.labels(site=site, outcome=outcome).inc()


def record_run(site: str, success: bool):
    """Record a finished crawl run."""
    status = "success" if success else "error"
    crawl_runs_total.labels(site=site, status=status).inc()
