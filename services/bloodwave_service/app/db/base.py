from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Root declarative base for Bloodwave models."""
    pass
