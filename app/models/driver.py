from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(String(64), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=False)
    whatsapp_number = Column(String(30), nullable=True)
    license_number = Column(String(50), nullable=False)
    passport_number = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="active", index=True)
    assigned_truck_id = Column(Integer, ForeignKey("trucks.id", ondelete="SET NULL"), nullable=True, unique=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True, index=True)  # contract end
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    assigned_truck = relationship("Truck", back_populates="assigned_driver")
    trips = relationship("Trip", back_populates="driver")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
