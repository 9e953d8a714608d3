from sqlalchemy import Column, Integer, String, DateTime, Boolean, Date
from precast.db.base import Base


class Project(Base):
    """Customer project with its subscription window"""
    __tablename__ = "project"

    project_id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    abbreviation = Column(String, nullable=True)  # used in invoice names: EC-PRJ-3
    project_status = Column(String, nullable=True)  # Active, Onhold, Completed

    # Subscription
    subscription_start_date = Column(Date, nullable=True)
    subscription_end_date = Column(Date, nullable=True)
    redemption_end_date = Column(Date, nullable=True)  # grace window after subscription end
    suspend = Column(Boolean, default=False, nullable=False)

    # Workflow capabilities
    work_order = Column(Boolean, default=False, nullable=False)
    invoice = Column(Boolean, default=False, nullable=False)


class UserSession(Base):
    """Login session row written by the auth layer"""
    __tablename__ = "session"

    session_id = Column(String, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    host_name = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    expires_at = Column(DateTime, nullable=False, index=True)
