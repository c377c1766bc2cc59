# app/models/sequence.py - Per prefix/year counters for human-readable ids
from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base


class IdSequence(Base):
    __tablename__ = "id_sequences"

    prefix: Mapped[str] = mapped_column(String(32), primary_key=True)  # e.g. GRS/2026
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
