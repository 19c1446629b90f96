import enum
import uuid
from hubsub.core.clock import utcnow
from sqlalchemy import Column, Text, Integer, DateTime, Enum, Uuid
from hubsub.db.session import Base


class SubscriptionState(str, enum.Enum):
    UNSUBSCRIBED = "unsubscribed"
    PENDING_SUBSCRIBE = "pending_subscribe"
    ACTIVE = "active"
    PENDING_UNSUBSCRIBE = "pending_unsubscribe"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # feed_url, hub_url and secret never change after creation
    feed_url = Column(Text, nullable=False)
    hub_url = Column(Text, nullable=False)
    secret = Column(Text, nullable=False)
    expected_receive_period_in_days = Column(Integer, nullable=False, default=1)

    state = Column(
        Enum(
            SubscriptionState,
            native_enum=False,
            length=32,
            values_callable=lambda states: [s.value for s in states],
        ),
        nullable=False,
        default=SubscriptionState.UNSUBSCRIBED,
    )
    # set only while state == ACTIVE
    lease_expiry = Column(DateTime(timezone=False), nullable=True)
    last_error = Column(Text, nullable=True)
    last_error_at = Column(DateTime(timezone=False), nullable=True)
    last_attempt_at = Column(DateTime(timezone=False), nullable=True)
    created_at = Column(
        DateTime(timezone=False),
        default=utcnow,
        nullable=False,
    )
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
