"""Modèle Prestation / Sales item model."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from capacity_ledger.database import Base

# Compétences requises par prestation / Capabilities required by a sales item
sales_item_capabilities = Table(
    "sales_item_capabilities",
    Base.metadata,
    Column("sales_item_id", ForeignKey("sales_items.id", ondelete="CASCADE"), primary_key=True),
    Column("capability_id", ForeignKey("capabilities.id", ondelete="CASCADE"), primary_key=True),
)


class SalesItem(Base):
    __tablename__ = "sales_items"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    service_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, default=0)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Relations
    capabilities: Mapped[list["Capability"]] = relationship(secondary=sales_item_capabilities, lazy="selectin")

    def __repr__(self) -> str:
        return f"<SalesItem {self.name} ({self.service_time_seconds}s)>"
