import uuid
from hubsub.core.clock import utcnow
from sqlalchemy import Column, Text, DateTime, LargeBinary, Uuid
from hubsub.db.session import Base


class Event(Base):
    __tablename__ = "events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subscription_id = Column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )
    # "hub" for pushed content, "seed" for the fetch made on confirmation
    source = Column(Text, nullable=False)
    format = Column(Text, nullable=True)
    # body exactly as received; decoded with the declared charset on output
    raw = Column(LargeBinary, nullable=False)
    created_at = Column(
        DateTime(timezone=False),
        default=utcnow,
        nullable=False,
        index=True,
    )
