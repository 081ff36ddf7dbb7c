from prometheus_client import Counter, Histogram

# ===== Search metrics =====
search_latency_seconds = Histogram(
    "docsearch_search_latency_seconds",
    "Multi-search plus fusion duration in seconds",
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

search_results_total = Counter(
    "docsearch_search_results_total",
    "Documents returned by multi-search after fusion",
    ["zero_results"],
)


def record_search(duration_seconds: float, result_count: int) -> None:
    search_latency_seconds.observe(duration_seconds)
    search_results_total.labels(zero_results=str(result_count == 0).lower()).inc(result_count)
