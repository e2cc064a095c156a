"""Prometheus metrics for the product detail scraper."""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("product_detail_scraper", "Product detail scraper application info")
app_info.info({"version": "0.1.0", "name": "product-detail-scraper"})

# Extraction metrics
extractions_total = Counter(
    "extractions_total",
    "Total number of extraction attempts",
    ["source", "status"],
)

extraction_duration_seconds = Histogram(
    "extraction_duration_seconds",
    "Time spent on one extraction attempt (browser start to teardown)",
    ["source"],
    buckets=[1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
)

price_strategy_hits_total = Counter(
    "price_strategy_hits_total",
    "Number of times each price strategy produced the accepted price",
    ["strategy"],
)

# Navigation metrics
navigation_retries_total = Counter(
    "navigation_retries_total",
    "Navigation retries after HTTP 429 or transient failures",
    ["reason"],
)

# Coordination metrics
coordinator_short_circuits_total = Counter(
    "coordinator_short_circuits_total",
    "Refresh requests answered without starting a new extraction",
    ["reason"],
)

# Persistence metrics
entity_updates_total = Counter(
    "entity_updates_total",
    "Product fields overwritten by reconciliation",
    ["field"],
)
