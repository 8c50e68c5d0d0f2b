"""Client company master data: companies, sites, employees and admins."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uniflow.db.base import Base, TimestampMixin


class Company(Base, TimestampMixin):
    """A client company and its order approval policy."""

    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Approval policy flags
    multi_stage_approval_enabled: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="0", nullable=False
    )
    site_approval_required: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="1", nullable=False
    )
    company_approval_required: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="1", nullable=False
    )

    # Relationships
    locations: Mapped[list["Location"]] = relationship("Location", back_populates="company")
    employees: Mapped[list["Employee"]] = relationship("Employee", back_populates="company")


class Location(Base, TimestampMixin):
    """A company site (branch) employees are registered at."""

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    company: Mapped["Company"] = relationship("Company", back_populates="locations")
    admins: Mapped[list["LocationAdmin"]] = relationship("LocationAdmin", back_populates="location")


class Employee(Base, TimestampMixin):
    """An employee of a client company."""

    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    location_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("locations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    employee_code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    designation: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    company: Mapped["Company"] = relationship("Company", back_populates="employees")
    location: Mapped[Optional["Location"]] = relationship("Location")


class LocationAdmin(Base, TimestampMixin):
    """Assigns an employee as the site admin of a location."""

    __tablename__ = "location_admins"
    __table_args__ = (
        UniqueConstraint("location_id", "employee_id", name="uq_location_admin"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    location_id: Mapped[int] = mapped_column(
        ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )

    location: Mapped["Location"] = relationship("Location", back_populates="admins")


class CompanyAdmin(Base, TimestampMixin):
    """Company-level administrator, optionally privileged to approve orders."""

    __tablename__ = "company_admins"
    __table_args__ = (
        UniqueConstraint("company_id", "employee_id", name="uq_company_admin"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    can_approve_orders: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="0", nullable=False
    )
