from sqlalchemy import Column, ForeignKey, Integer, Text, UniqueConstraint, text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class AvailabilityRules(Base):
    __tablename__ = 'availability_rules'

    provider_id = Column(Integer, nullable=False, unique=True)
    days_of_week = Column(Text, nullable=False, server_default=text("'[]'"))  # JSON list, 0 = Sunday
    start_time = Column(Text, nullable=False)  # "HH:MM"
    end_time = Column(Text, nullable=False)
    slot_duration = Column(Integer, nullable=False)
    breaks = Column(Text, nullable=False, server_default=text("'[]'"))  # JSON [{"start", "end"}]
    id = Column(Integer, primary_key=True)
    effective_from = Column(Text)  # "YYYY-MM-DD"
    effective_to = Column(Text)
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))

    custom_days = relationship(
        'CustomDays',
        back_populates='rule',
        cascade='all, delete-orphan',
        order_by='CustomDays.date',
    )


class CustomDays(Base):
    __tablename__ = 'custom_days'
    __table_args__ = (
        UniqueConstraint('provider_id', 'date'),
    )

    provider_id = Column(ForeignKey('availability_rules.provider_id', ondelete='CASCADE'), nullable=False)
    date = Column(Text, nullable=False)
    leave_type = Column(Text, nullable=False)  # full / break
    breaks = Column(Text, nullable=False, server_default=text("'[]'"))
    id = Column(Integer, primary_key=True)
    reason = Column(Text)

    rule = relationship('AvailabilityRules', back_populates='custom_days')


class SlotDays(Base):
    """Marker: the ledger holds an authoritative row set for (provider, date)."""
    __tablename__ = 'slot_days'

    provider_id = Column(Integer, primary_key=True)
    date = Column(Text, primary_key=True)
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))


class Slots(Base):
    __tablename__ = 'slots'
    __table_args__ = (
        UniqueConstraint('provider_id', 'date', 'start'),
    )

    provider_id = Column(Integer, nullable=False, index=True)
    date = Column(Text, nullable=False)
    start = Column(Text, nullable=False)  # "HH:MM"
    end = Column(Text, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'available'"))
    ever_booked = Column(Integer, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    custom_duration = Column(Integer)
    appointment_id = Column(Text)
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
