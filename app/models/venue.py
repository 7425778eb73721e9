from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship
from app.db.session import Base


class Venue(Base):
    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, nullable=False, index=True)

    name = Column(String, nullable=False)
    location = Column(String, nullable=True)

    halls = relationship("Hall", back_populates="venue")
