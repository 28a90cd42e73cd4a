from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class Truck(Base):
    __tablename__ = "trucks"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(String(64), nullable=False, index=True)
    registration_no = Column(String(30), nullable=False, index=True)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="active", index=True)
    current_mileage = Column(Integer, nullable=False, default=0)
    fuel_type = Column(String(20), nullable=True)
    tank_capacity = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    assigned_driver = relationship("Driver", back_populates="assigned_truck", uselist=False)
    trips = relationship("Trip", back_populates="truck")
    expenses = relationship("Expense", back_populates="truck")
