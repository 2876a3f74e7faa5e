from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from .db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, nullable=False, unique=True, index=True)
    # pbkdf2/bcrypt hash, never the plain password
    password = Column(String, nullable=False)
    is_seller = Column(Boolean, nullable=False, default=False)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String, nullable=False, unique=True, index=True)
    # All three stay NULL until the single upload transition sets them together
    video_url = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    song_request = Column(Text, nullable=True)
    has_uploaded = Column(Boolean, nullable=False, default=False)


class SessionRecord(Base):
    __tablename__ = "sessions"

    id = Column(String, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
