from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Float, Date, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from precast.db.base import Base
from precast.db.types import IntArray, JSONDocument


class EndClient(Base):
    """Customer billed through work orders"""
    __tablename__ = "end_client"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=True)
    abbreviation = Column(String, nullable=False)


class WorkOrder(Base):
    """Billing contract between the precaster and an end client, scoped to a project"""
    __tablename__ = "work_order"

    id = Column(Integer, primary_key=True, index=True)
    wo_number = Column(String, nullable=True, index=True)
    endclient_id = Column(Integer, ForeignKey("end_client.id"), nullable=False)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False, index=True)
    created_by = Column(Integer, nullable=True)

    # Addresses
    billed_address = Column(Text, nullable=True)
    shipped_address = Column(Text, nullable=True)

    # Billing rules (JSON)
    payment_term = Column(JSONDocument, nullable=True)  # {"casted": 50, "dispatch": 15, "erection": 25, "handover": 10}
    recurrence_patterns = Column(JSONDocument, nullable=True)  # [{"pattern_type": "date", "date_value": "1"}, ...]
    wo_validate = Column(Date, nullable=True)  # last day the work order can be billed

    # Last generated invoice
    last_invoice_id = Column(Integer, nullable=True)
    last_invoice_generated_at = Column(DateTime, nullable=True)

    materials = relationship("WorkOrderMaterial", back_populates="work_order")


class WorkOrderMaterial(Base):
    """Line item of a work order, billed per m3"""
    __tablename__ = "work_order_material"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_order.id"), nullable=False, index=True)
    item_name = Column(String, nullable=False)  # compared case-insensitively with element_type.element_type
    unit_rate = Column(Float, nullable=False, default=0)
    tax = Column(Float, nullable=True, default=0)  # percent
    hsn_code = Column(Integer, nullable=True)
    floor_id = Column(IntArray, nullable=True)  # empty or NULL means every floor
    volume = Column(Float, nullable=True)
    volume_used = Column(Float, nullable=True, default=0)

    work_order = relationship("WorkOrder", back_populates="materials")


class Invoice(Base):
    """Invoice header"""
    __tablename__ = "invoice"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_order.id"), nullable=False, index=True)
    created_by = Column(Integer, nullable=True)
    revision_no = Column(Integer, nullable=False, default=0)
    billing_address = Column(Text, nullable=True)
    shipping_address = Column(Text, nullable=True)
    name = Column(String, nullable=True)  # {end_client}-{project}-{revision}
    total_amount = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())

    items = relationship("InvoiceItem", back_populates="invoice")


class InvoiceItem(Base):
    """Billed volume of one work order material"""
    __tablename__ = "invoice_item"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoice.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("work_order_material.id"), nullable=False)
    volume = Column(Float, nullable=False, default=0)

    invoice = relationship("Invoice", back_populates="items")


class ElementInvoiceHistory(Base):
    """Append-only ledger: an element is billed at most once per stage per work order"""
    __tablename__ = "element_invoice_history"
    __table_args__ = (
        UniqueConstraint("work_order_id", "element_id", "stage", name="uq_element_invoice_history"),
    )

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, nullable=False, index=True)
    element_id = Column(Integer, nullable=False)
    stage = Column(String, nullable=False)  # casted, dispatched, erection, handover
    volume = Column(Float, nullable=False)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    invoice_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
