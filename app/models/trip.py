from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class Trip(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(String(64), nullable=False, index=True)
    truck_id = Column(Integer, ForeignKey("trucks.id"), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    origin_city = Column(String(100), nullable=False)
    origin_address = Column(String(255), nullable=True)
    destination_city = Column(String(100), nullable=False)
    destination_address = Column(String(255), nullable=True)
    load_description = Column(Text, nullable=True)
    load_weight = Column(Float, nullable=True)
    load_units = Column(Integer, nullable=True)
    estimated_mileage = Column(Integer, nullable=False, default=0)
    actual_mileage = Column(Integer, nullable=True)
    revenue = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="scheduled", index=True)
    scheduled_date = Column(DateTime(timezone=True), nullable=False, index=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True, index=True)
    driver_notified = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    truck = relationship("Truck", back_populates="trips")
    driver = relationship("Driver", back_populates="trips")
    customer = relationship("Customer", back_populates="trips")
    expenses = relationship("Expense", back_populates="trip")
