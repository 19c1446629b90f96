from hubsub.core.controller import SubscriptionController
from hubsub.db.session import AsyncSessionLocal
from hubsub.wiring import build_controller
from hubsub.workers.seed_worker import enqueue_seed

# One controller per process: its store owns the per-subscription locks
_controller: SubscriptionController | None = None


async def get_async_db():
    async with AsyncSessionLocal() as session:
        yield session


def get_controller() -> SubscriptionController:
    global _controller
    if _controller is None:
        _controller = build_controller(schedule_seed=enqueue_seed)
    return _controller
