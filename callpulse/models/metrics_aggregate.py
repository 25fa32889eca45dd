"""
MetricsAggregate model — precomputed daily rollups, read-only to the app.
"""
from sqlalchemy import Column, Integer, Float, Text, Date, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from callpulse.database import Base
from callpulse.models._helpers import new_id, utcnow, isoformat


class MetricsAggregate(Base):
    __tablename__ = 'metrics_aggregates'
    __table_args__ = (
        UniqueConstraint('user_id', 'date', name='uq_metrics_aggregate_user_date'),
    )

    id = Column(Text, primary_key=True, default=new_id)
    user_id = Column(Text, nullable=False, index=True)
    date = Column(Date, nullable=False)
    total_calls = Column(Integer, nullable=True)
    avg_sentiment = Column(Float, nullable=True)
    avg_engagement = Column(Float, nullable=True)
    conversion_rate = Column(Float, nullable=True)
    objections_rate = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'date': isoformat(self.date),
            'total_calls': self.total_calls,
            'avg_sentiment': self.avg_sentiment,
            'avg_engagement': self.avg_engagement,
            'conversion_rate': self.conversion_rate,
            'objections_rate': self.objections_rate,
        }
