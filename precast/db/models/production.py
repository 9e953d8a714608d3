from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey, Float
from sqlalchemy.orm import relationship
from precast.db.base import Base
from precast.db.types import IntArray


class Precast(Base):
    """Location hierarchy node: a tower, or a floor whose parent is its tower"""
    __tablename__ = "precast"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    parent_id = Column(Integer, ForeignKey("precast.id"), nullable=True)


class ElementType(Base):
    """Design template for elements"""
    __tablename__ = "element_type"

    element_type_id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False, index=True)
    element_type = Column(String, nullable=False)  # code, e.g. B1; matched against work order item names
    element_type_name = Column(String, nullable=True)

    # Dimensions in millimetres
    thickness = Column(Float, nullable=False, default=0)
    length = Column(Float, nullable=False, default=0)
    height = Column(Float, nullable=False, default=0)
    volume = Column(Float, nullable=False, default=0)  # m3
    mass = Column(Float, nullable=True)
    density = Column(Float, nullable=False, default=0)


class ElementTypePath(Base):
    """Ordered production stages an element type goes through"""
    __tablename__ = "element_type_path"

    id = Column(Integer, primary_key=True, index=True)
    element_type_id = Column(Integer, ForeignKey("element_type.element_type_id"), nullable=False, index=True)
    stage_path = Column(IntArray, nullable=True)  # project_stages ids, first entry is the entry stage


class ProjectStage(Base):
    """Production stage of a project with its default assignment"""
    __tablename__ = "project_stages"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    order = Column(Integer, nullable=True)
    assigned_to = Column(Integer, nullable=False)
    qc_id = Column(Integer, nullable=True)
    paper_id = Column(Integer, nullable=True)


class Element(Base):
    """A single precast piece"""
    __tablename__ = "element"

    id = Column(Integer, primary_key=True, index=True)
    element_type_id = Column(Integer, ForeignKey("element_type.element_type_id"), nullable=False, index=True)
    element_id = Column(String, nullable=True)  # B1-001
    element_name = Column(String, nullable=True)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False, index=True)
    target_location = Column(Integer, ForeignKey("precast.id"), nullable=True, index=True)  # floor id
    status = Column(String, nullable=True)  # Planned, Inprogress, Erected
    instage = Column(Boolean, default=False, nullable=False)  # true once an activity covers the element
    billable = Column(Boolean, default=True, nullable=False)
    disable = Column(Boolean, default=False, nullable=False)

    element_type_ref = relationship("ElementType")


class Task(Base):
    """Production work covering elements of one type on one floor at one stage"""
    __tablename__ = "task"

    task_id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False, index=True)
    task_type_id = Column(Integer, nullable=True)
    name = Column(String, nullable=False)
    stage_id = Column(Integer, ForeignKey("project_stages.id"), nullable=True)
    description = Column(Text, nullable=True)
    priority = Column(String, nullable=True)
    assigned_to = Column(Integer, nullable=True)
    estimated_effort_in_hrs = Column(Integer, nullable=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    status = Column(String, nullable=True)
    color_code = Column(String, nullable=True)
    element_type_id = Column(Integer, ForeignKey("element_type.element_type_id"), nullable=True)
    floor_id = Column(Integer, ForeignKey("precast.id"), nullable=True)

    activities = relationship("Activity", back_populates="task")


class Activity(Base):
    """Per-element execution record within a task"""
    __tablename__ = "activity"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("task.task_id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False, index=True)
    name = Column(String, nullable=True)
    stage_id = Column(Integer, ForeignKey("project_stages.id"), nullable=True)
    element_id = Column(Integer, ForeignKey("element.id"), nullable=False, index=True)
    assigned_to = Column(Integer, nullable=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    priority = Column(String, nullable=True)
    qc_id = Column(Integer, nullable=True)
    paper_id = Column(Integer, nullable=True)
    stockyard_id = Column(Integer, nullable=True)

    # Status
    status = Column(String, nullable=True)  # Inprogress, completed
    qc_status = Column(String, nullable=True)
    mesh_mold_status = Column(String, nullable=True)
    meshmold_qc_status = Column(String, nullable=True)
    reinforcement_status = Column(String, nullable=True)
    reinforcement_qc_status = Column(String, nullable=True)
    completed = Column(Boolean, default=False, nullable=False)

    task = relationship("Task", back_populates="activities")


class CompleteProduction(Base):
    """Production history row, appended when an activity starts and when it completes"""
    __tablename__ = "complete_production"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("task.task_id"), nullable=True, index=True)
    activity_id = Column(Integer, ForeignKey("activity.id"), nullable=True, index=True)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False, index=True)
    element_id = Column(Integer, ForeignKey("element.id"), nullable=False, index=True)
    element_type_id = Column(Integer, nullable=True)
    floor_id = Column(Integer, nullable=True)
    stage_id = Column(Integer, nullable=True)
    user_id = Column(Integer, nullable=True)
    started_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)
    status = Column(String, nullable=True)
