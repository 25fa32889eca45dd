"""
LeadGroup model — named bucket of leads owned by one user.
"""
from sqlalchemy import Column, Text, DateTime
from sqlalchemy.sql import func

from callpulse.database import Base
from callpulse.models._helpers import new_id, utcnow, isoformat


class LeadGroup(Base):
    __tablename__ = 'lead_groups'

    id = Column(Text, primary_key=True, default=new_id)
    user_id = Column(Text, nullable=False, index=True)
    group_name = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utcnow)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'group_name': self.group_name,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
