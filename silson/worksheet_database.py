from sqlalchemy import (create_engine, BigInteger, Column, Integer, String, Boolean, ForeignKey)
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import DateTime
from datetime import datetime
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from silson.config import get_database_url, get_sql_echo

Base = declarative_base()


class Worksheet(Base):
    __tablename__ = "worksheets"

    id = Column(String(32), primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    receipts = relationship(
        "ReceiptEntry",
        cascade="all, delete-orphan",
        order_by="ReceiptEntry.position",
        back_populates="worksheet",
    )


class ReceiptEntry(Base):
    __tablename__ = "receipt_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    worksheet_id = Column(String(32), ForeignKey("worksheets.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    receipt_date = Column(String(10), nullable=False, default="-")
    treatment_type = Column(String(20), nullable=False)
    facility = Column(String(20), nullable=False)
    disease_code = Column(String(20), default="")
    pay_self = Column(BigInteger, nullable=False, default=0)
    pay_nhis = Column(BigInteger, nullable=False, default=0)
    pay_full = Column(BigInteger, nullable=False, default=0)
    non_pay_select = Column(BigInteger, nullable=False, default=0)
    non_pay_other = Column(BigInteger, nullable=False, default=0)
    is_valid = Column(Boolean, nullable=False, default=True)

    worksheet = relationship("Worksheet", back_populates="receipts")


def make_engine(url: str):
    kwargs = {"echo": get_sql_echo()}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


#engine and sessions
engine = make_engine(get_database_url())
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


#to create tables
Base.metadata.create_all(engine)
