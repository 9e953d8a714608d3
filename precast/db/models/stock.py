from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Float
from sqlalchemy.orm import relationship
from precast.db.base import Base


class PrecastStock(Base):
    """
    Stockyard entry for one produced element.

    The four flags stockyard -> dispatch_status -> erected -> recieve_in_erection only
    ever move forward; writes go through precast.services.stock_state.promote().
    """
    __tablename__ = "precast_stock"

    id = Column(Integer, primary_key=True, index=True)
    element_id = Column(Integer, ForeignKey("element.id"), nullable=False, index=True)
    element_type = Column(String, nullable=True)  # element type code at production time
    element_type_id = Column(Integer, ForeignKey("element_type.element_type_id"), nullable=True)
    stockyard_id = Column(Integer, nullable=True)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False, index=True)
    target_location = Column(Integer, nullable=True)  # floor id

    # Physical attributes
    dimensions = Column(String, nullable=True)
    weight = Column(Float, nullable=True)
    storage_location = Column(String, nullable=True)

    # Progression flags
    stockyard = Column(Boolean, default=False, nullable=False)
    dispatch_status = Column(Boolean, default=False, nullable=False)
    erected = Column(Boolean, default=False, nullable=False)
    recieve_in_erection = Column(Boolean, default=False, nullable=False)
    order_by_erection = Column(Boolean, default=False, nullable=False)

    # Timestamps
    production_date = Column(DateTime, nullable=True)
    dispatch_end = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    element = relationship("Element")
