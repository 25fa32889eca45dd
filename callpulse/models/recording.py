"""
Recording model — an uploaded call file or pasted transcript.

Created once at intake and never updated by the application. Deleting a
recording deletes its Analysis (ORM cascade + ON DELETE CASCADE).
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from callpulse.database import Base
from callpulse.models._helpers import new_id, utcnow, isoformat


class Recording(Base):
    __tablename__ = 'recordings'
    __table_args__ = (
        UniqueConstraint('user_id', 'file_name', name='uq_recording_user_file_name'),
    )

    id = Column(Text, primary_key=True, default=new_id)
    user_id = Column(Text, nullable=False, index=True)
    lead_id = Column(Text, ForeignKey('leads.id', ondelete='SET NULL'), nullable=True, index=True)
    file_name = Column(Text, nullable=False)
    file_size = Column(Integer, nullable=True)
    stored_file_url = Column(Text, nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    transcript = Column(Text, nullable=True)
    call_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utcnow)

    lead = relationship('Lead', lazy='joined')
    analysis = relationship(
        'Analysis',
        back_populates='recording',
        uselist=False,
        cascade='all, delete-orphan',
    )

    def to_dict(self, include_lead=False):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'lead_id': self.lead_id,
            'file_name': self.file_name,
            'file_size': self.file_size,
            'stored_file_url': self.stored_file_url,
            'duration_seconds': self.duration_seconds,
            'transcript': self.transcript,
            'call_date': isoformat(self.call_date),
            'created_at': isoformat(self.created_at),
        }
        if include_lead:
            data['leads'] = (
                {'id': self.lead.id, 'name': self.lead.name, 'email': self.lead.email}
                if self.lead is not None else None
            )
        return data
