from sqlalchemy import Column, Integer
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class BaseModel(Base):
    __abstract__ = True
    id = Column(Integer, primary_key=True, autoincrement=True)

# Note: Models will import this Base. Do not import models here to avoid circular imports.
# Import models in alembic migrations and tests instead.
