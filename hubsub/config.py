import os
from datetime import timedelta

HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "5"))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")

# Renew once the lease has less than this much time left
RENEWAL_WINDOW = timedelta(hours=float(os.getenv("RENEWAL_WINDOW_HOURS", "24")))
# Minimum gap between two subscribe attempts while still pending
SUBSCRIBE_RETRY_COOLDOWN = timedelta(
    minutes=float(os.getenv("SUBSCRIBE_RETRY_COOLDOWN_MINUTES", "60"))
)
RENEWAL_INTERVAL = timedelta(hours=float(os.getenv("RENEWAL_INTERVAL_HOURS", "12")))
LOG_RETENTION = timedelta(hours=float(os.getenv("LOG_RETENTION_HOURS", "72")))
LOG_PURGE_INTERVAL = timedelta(hours=float(os.getenv("LOG_PURGE_INTERVAL_HOURS", "1")))
