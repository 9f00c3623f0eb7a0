"""
SQLAlchemy ORM models for the meter billing database.

Defines MeterReading for electrical meter telemetry and Notification for the
history of emitted peak and daily summary events. Only
``active_power_total`` feeds energy calculations; the other electrical
columns are informational. Sensor fields without a column are kept in the
``extra`` JSON column.

CHANGELOG:
- 2026-10-17: Add average current and per-phase reactive/apparent power and
  power factor columns
- 2026-10-16: Add Notification model
- 2026-10-15: Initial creation

TODO:
- None
"""

import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Double, Text, func, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

MEASUREMENT_COLUMNS: tuple[str, ...] = (
    "voltage",
    "current",
    "power",
    "voltage_an",
    "voltage_bn",
    "voltage_cn",
    "voltage_ab",
    "voltage_bc",
    "voltage_ca",
    "current_a",
    "current_b",
    "current_c",
    "active_power_a",
    "active_power_b",
    "active_power_c",
    "active_power_total",
    "reactive_power_total",
    "apparent_power_total",
    "power_factor_total",
    "frequency",
    "current_avg",
    "reactive_power_a",
    "reactive_power_b",
    "reactive_power_c",
    "apparent_power_a",
    "apparent_power_b",
    "apparent_power_c",
    "power_factor_a",
    "power_factor_b",
    "power_factor_c",
)
"""Nullable double columns of MeterReading, in declaration order."""

PHASE_POWER_COLUMNS: tuple[str, ...] = MEASUREMENT_COLUMNS[-10:]
"""Columns added by revision 002 (average current and per-phase power)."""


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all ORM models."""

    pass


class MeterReading(Base):
    """Timestamped snapshot of electrical measurements from a power meter.

    Attributes:
        id: Surrogate key used by the update-by-id correction path.
        ts: Measurement instant in UTC.
        active_power_total: Total active power in kW; None counts as 0 kW.
        mac_address: Reporting device address, if sent.
        extra: Unknown sensor fields preserved as sent.
    """

    __tablename__ = "meter_readings"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    ts: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    voltage: Mapped[float | None] = mapped_column(Double, nullable=True)
    current: Mapped[float | None] = mapped_column(Double, nullable=True)
    power: Mapped[float | None] = mapped_column(Double, nullable=True)
    voltage_an: Mapped[float | None] = mapped_column(Double, nullable=True)
    voltage_bn: Mapped[float | None] = mapped_column(Double, nullable=True)
    voltage_cn: Mapped[float | None] = mapped_column(Double, nullable=True)
    voltage_ab: Mapped[float | None] = mapped_column(Double, nullable=True)
    voltage_bc: Mapped[float | None] = mapped_column(Double, nullable=True)
    voltage_ca: Mapped[float | None] = mapped_column(Double, nullable=True)
    current_a: Mapped[float | None] = mapped_column(Double, nullable=True)
    current_b: Mapped[float | None] = mapped_column(Double, nullable=True)
    current_c: Mapped[float | None] = mapped_column(Double, nullable=True)
    active_power_a: Mapped[float | None] = mapped_column(Double, nullable=True)
    active_power_b: Mapped[float | None] = mapped_column(Double, nullable=True)
    active_power_c: Mapped[float | None] = mapped_column(Double, nullable=True)
    active_power_total: Mapped[float | None] = mapped_column(Double, nullable=True)
    reactive_power_total: Mapped[float | None] = mapped_column(Double, nullable=True)
    apparent_power_total: Mapped[float | None] = mapped_column(Double, nullable=True)
    power_factor_total: Mapped[float | None] = mapped_column(Double, nullable=True)
    frequency: Mapped[float | None] = mapped_column(Double, nullable=True)
    current_avg: Mapped[float | None] = mapped_column(Double, nullable=True)
    reactive_power_a: Mapped[float | None] = mapped_column(Double, nullable=True)
    reactive_power_b: Mapped[float | None] = mapped_column(Double, nullable=True)
    reactive_power_c: Mapped[float | None] = mapped_column(Double, nullable=True)
    apparent_power_a: Mapped[float | None] = mapped_column(Double, nullable=True)
    apparent_power_b: Mapped[float | None] = mapped_column(Double, nullable=True)
    apparent_power_c: Mapped[float | None] = mapped_column(Double, nullable=True)
    power_factor_a: Mapped[float | None] = mapped_column(Double, nullable=True)
    power_factor_b: Mapped[float | None] = mapped_column(Double, nullable=True)
    power_factor_c: Mapped[float | None] = mapped_column(Double, nullable=True)
    mac_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    extra: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        server_default=text("'{}'"),
    )

    def __repr__(self) -> str:
        """Return string representation of the MeterReading."""
        return (
            f"MeterReading(id={self.id!r}, ts={self.ts!r}, "
            f"active_power_total={self.active_power_total!r})"
        )


class Notification(Base):
    """A peak or daily summary event emitted by the scheduler.

    Attributes:
        kind: ``peak`` or ``daily_summary``.
        payload: Event data (peak power, or date/energy/bill figures).
        read: Whether a dashboard user has acknowledged the event.
    """

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    read: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    def __repr__(self) -> str:
        """Return string representation of the Notification."""
        return f"Notification(id={self.id!r}, kind={self.kind!r}, read={self.read!r})"
