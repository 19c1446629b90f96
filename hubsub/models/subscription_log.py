import uuid
from hubsub.core.clock import utcnow
from sqlalchemy import Column, Text, DateTime, Uuid
from hubsub.db.session import Base


class SubscriptionLog(Base):
    __tablename__ = "subscription_logs"

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    subscription_id = Column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )
    timestamp = Column(
        DateTime(timezone=False),
        default=utcnow,
        nullable=False,
    )
    # "info" or "error"
    level = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
