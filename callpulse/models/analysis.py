"""
Analysis model — one-to-one result record for a Recording.

Created as a 'pending' placeholder at intake; the external analysis
pipeline fills the scores and explanation fields in place later.
"""
from sqlalchemy import Column, Integer, Float, Text, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from callpulse.database import Base
from callpulse.models._helpers import new_id, utcnow, isoformat


# Fields the external pipeline (and PATCH /api/analyses/<id>) may write.
SCORE_FIELDS = (
    'sentiments_score',             # 0-100
    'engagement_score',             # 0-100
    'confidence_score_executive',   # 0-10
    'confidence_score_person',      # 0-10
)

RESULT_FIELDS = (
    'participants',
    'lead_type',
    'objections_handeled',
    'no_of_objections_detected',
    'no_of_objections_handeled',
    'next_steps',
    'improvements',
    'call_outcome',
    'short_summary',
)

EXPLANATION_FIELDS = (
    'lead_type_explanation',
    'sentiments_explanation',
    'engagement_explanation',
    'confidence_explanation_executive',
    'confidence_explanation_person',
    'objections_detected',
    'objections_handling_details',
    'next_steps_detailed',
    'improvements_for_team',
    'call_outcome_rationale',
    'evidence_quotes',
)

UPDATABLE_FIELDS = ('status',) + SCORE_FIELDS + RESULT_FIELDS + EXPLANATION_FIELDS


class Analysis(Base):
    __tablename__ = 'analyses'

    id = Column(Text, primary_key=True, default=new_id)
    recording_id = Column(
        Text, ForeignKey('recordings.id', ondelete='CASCADE'),
        nullable=False, unique=True,
    )
    user_id = Column(Text, nullable=False, index=True)
    status = Column(Text, nullable=False, default='pending')

    sentiments_score = Column(Float, nullable=True)
    engagement_score = Column(Float, nullable=True)
    confidence_score_executive = Column(Float, nullable=True)
    confidence_score_person = Column(Float, nullable=True)

    participants = Column(JSON, nullable=True)        # {count, names}
    lead_type = Column(Text, nullable=True)           # hot / warm / cold, free text
    objections_handeled = Column(Text, nullable=True)
    no_of_objections_detected = Column(Integer, nullable=True)
    no_of_objections_handeled = Column(Integer, nullable=True)
    next_steps = Column(Text, nullable=True)
    improvements = Column(Text, nullable=True)
    call_outcome = Column(Text, nullable=True)
    short_summary = Column(Text, nullable=True)

    lead_type_explanation = Column(Text, nullable=True)
    sentiments_explanation = Column(Text, nullable=True)
    engagement_explanation = Column(Text, nullable=True)
    confidence_explanation_executive = Column(Text, nullable=True)
    confidence_explanation_person = Column(Text, nullable=True)
    objections_detected = Column(Text, nullable=True)
    objections_handling_details = Column(Text, nullable=True)
    next_steps_detailed = Column(Text, nullable=True)
    improvements_for_team = Column(Text, nullable=True)
    call_outcome_rationale = Column(Text, nullable=True)
    evidence_quotes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utcnow)

    recording = relationship('Recording', back_populates='analysis')

    def to_dict(self, include_recording=False):
        data = {
            'id': self.id,
            'recording_id': self.recording_id,
            'user_id': self.user_id,
            'status': self.status,
            'created_at': isoformat(self.created_at),
        }
        for field in SCORE_FIELDS + RESULT_FIELDS + EXPLANATION_FIELDS:
            data[field] = getattr(self, field)
        if include_recording:
            rec = self.recording
            data['recordings'] = {
                'file_name': rec.file_name,
                'duration_seconds': rec.duration_seconds,
                'created_at': isoformat(rec.created_at),
            } if rec is not None else None
        return data
