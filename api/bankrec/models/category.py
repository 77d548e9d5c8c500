import uuid
from sqlalchemy import String, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from .base import Base


class Category(Base):
    """Income/expenditure category. Owned by the finance module; read-only here."""

    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)  # 'income'|'expenditure'
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
