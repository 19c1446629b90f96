from dotenv import load_dotenv

# Load environment variables first, before importing modules that depend on them
load_dotenv()

from fastapi import FastAPI
from hubsub.db.session import Base, engine
from hubsub.models import event, subscription, subscription_log  # noqa: F401
from hubsub.api.routes.subscriptions import router as subs_router
from hubsub.api.routes.callback import router as callback_router
from hubsub.api.routes.status import router as status_router

# Auto-create all tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="WebSub Subscriber Service",
    version="0.2.0",
    openapi_url="/openapi.json",
    docs_url="/docs",
)

# Subscription management
app.include_router(
    subs_router,
    prefix="/subscriptions",
    tags=["subscriptions"],
)

# Hub callback endpoint
app.include_router(
    callback_router,
    tags=["callback"],
)

# Events, logs & health
app.include_router(
    status_router,
    tags=["analytics"],
)
