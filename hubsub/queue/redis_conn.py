import os
import redis
from rq import Queue

REDIS_URL = os.getenv("REDIS_URL")
if REDIS_URL is None:
    raise ValueError("REDIS_URL environment variable not set")

# Redis connection & RQ queue for hub jobs (renewal ticks, seed fetches, retention)
redis_conn_global = redis.from_url(REDIS_URL)
hub_queue = Queue("hub", connection=redis_conn_global)
