"""
Lead model — one sales prospect, optionally filed under a LeadGroup.
"""
from sqlalchemy import Column, Text, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from callpulse.database import Base
from callpulse.models._helpers import new_id, utcnow, isoformat


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Text, primary_key=True, default=new_id)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    contact = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    other = Column(JSON, nullable=True)               # free-form extra fields
    group_id = Column(Text, ForeignKey('lead_groups.id', ondelete='SET NULL'), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utcnow)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), default=utcnow, onupdate=utcnow)

    group = relationship('LeadGroup', lazy='joined')

    def to_dict(self, include_group=True):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'email': self.email,
            'contact': self.contact,
            'description': self.description,
            'other': self.other,
            'group_id': self.group_id,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
        if include_group:
            data['lead_groups'] = (
                {'id': self.group.id, 'group_name': self.group.group_name}
                if self.group is not None else None
            )
        return data
