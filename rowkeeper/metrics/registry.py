from prometheus_client import Counter, Histogram

DB_WRITE_TOTAL = Counter(
    "rowkeeper_db_write_total",
    "Statements executed by TableManager write batches",
    ["table", "op_type", "status"],
)

DB_WRITE_LATENCY_SECONDS = Histogram(
    "rowkeeper_db_write_latency_seconds",
    "Latency of write batch statements, measured up to commit or rollback",
    ["table", "op_type"],
)

DB_READ_TOTAL = Counter(
    "rowkeeper_db_read_total",
    "Reads executed by TableManager",
    ["table", "status"],
)
