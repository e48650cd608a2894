"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

from sqlalchemy import BigInteger, Column, ForeignKey, Integer, String

from app.storage import Base


class Account(Base):
    """
    SQLAlchemy model for registered accounts.

    Table: account
    Primary Key: account_id (generated by the store, never reused)
    """
    __tablename__ = "account"
    __table_args__ = {"sqlite_autoincrement": True}

    account_id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, nullable=False, unique=True)
    password = Column(String, nullable=False)  # stored verbatim


class Message(Base):
    """
    SQLAlchemy model for posted messages.

    Table: message
    Primary Key: message_id (generated by the store, never reused)
    """
    __tablename__ = "message"
    __table_args__ = {"sqlite_autoincrement": True}

    message_id = Column(Integer, primary_key=True, autoincrement=True)
    posted_by = Column(Integer, ForeignKey("account.account_id"), nullable=False, index=True)
    message_text = Column(String(255), nullable=False)
    time_posted_epoch = Column(BigInteger, nullable=False)
