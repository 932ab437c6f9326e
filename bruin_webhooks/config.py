import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./webhooks.db")

# Per-attempt HTTP timeout in seconds
TIMEOUT_SECONDS = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))

MAX_ATTEMPTS = int(os.getenv("WEBHOOK_MAX_ATTEMPTS", "5"))

# Delay before attempt n+1 is RETRY_INTERVALS[n-1], clamped to the last entry
RETRY_INTERVALS = [
    float(value)
    for value in os.getenv("WEBHOOK_RETRY_INTERVALS", "10,30,60,300,900").split(",")
    if value.strip()
]

MAX_WORKERS = int(os.getenv("WEBHOOK_MAX_WORKERS", "8"))

LOG_RETENTION_HOURS = int(os.getenv("WEBHOOK_LOG_RETENTION_HOURS", "72"))
LOG_CLEANUP_INTERVAL_HOURS = int(os.getenv("WEBHOOK_LOG_CLEANUP_INTERVAL_HOURS", "24"))

SIGNATURE_HEADER = os.getenv("WEBHOOK_SIGNATURE_HEADER", "X-Bruin-Signature")

# "any_success": any successful attempt resets failure_count
# "same_sequence": only a success that ends a sequence which itself failed resets it
FAILURE_RESET_POLICY = os.getenv("FAILURE_RESET_POLICY", "any_success")
