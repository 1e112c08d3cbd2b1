from sqlalchemy.orm import declarative_base
from sqlalchemy import (
    Column,
    Integer,
    String,
)


Base = declarative_base()


# ----------------------------
# ORM models
# ----------------------------
class EmailOpen(Base):
    __tablename__ = "email_opens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=True)
    domain = Column(String, nullable=True)
    subject = Column(String, nullable=True)
    ip = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    # ISO-8601 UTC, e.g. 2023-11-14T22:13:20.000Z; sorts chronologically
    timestamp = Column(String, nullable=True)


class EmailClick(Base):
    __tablename__ = "email_clicks"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=True)
    domain = Column(String, nullable=True)
    subject = Column(String, nullable=True)
    url = Column(String, nullable=True)
    ip = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    timestamp = Column(String, nullable=True)
