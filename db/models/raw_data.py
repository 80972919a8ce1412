"""
db/models/raw_data.py

Read models for the raw ESG data tables.

These tables are filled by the data collection side (forms, CSV imports) and
are only aggregated here. Two keying styles exist: tables with a ``period``
column (``2024``, ``2024-Q1``, ``2024-05``) and tables keyed by an ISO
``YYYY-MM-DD`` text date. Only the columns the calculation engine or its
filters may touch are mapped.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, IdMixin


# ---------------------------------------------------------------------------
# Workforce
# ---------------------------------------------------------------------------


class Employee(IdMixin, Base):
    __tablename__ = "employees"

    employee_no: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    gender: Mapped[str | None] = mapped_column(String(16), comment="male | female | other")
    department: Mapped[str | None] = mapped_column(String(128))
    level: Mapped[str | None] = mapped_column(String(32))
    employee_type: Mapped[str | None] = mapped_column(String(32))
    education: Mapped[str | None] = mapped_column(String(32))
    is_party_member: Mapped[bool] = mapped_column(Boolean, default=False)
    is_union_member: Mapped[bool] = mapped_column(Boolean, default=False)
    is_disabled: Mapped[bool] = mapped_column(Boolean, default=False)
    is_minority: Mapped[bool] = mapped_column(Boolean, default=False)
    hire_date: Mapped[str | None] = mapped_column(String(10))
    leave_date: Mapped[str | None] = mapped_column(String(10))
    status: Mapped[str] = mapped_column(String(16), default="active", comment="active | resigned | retired")


class TrainingRecord(IdMixin, Base):
    __tablename__ = "training_records"

    employee_id: Mapped[int | None] = mapped_column(Integer)
    training_type: Mapped[str] = mapped_column(String(32), nullable=False)
    training_name: Mapped[str] = mapped_column(String(255), nullable=False)
    training_date: Mapped[str] = mapped_column(String(10), nullable=False)
    duration: Mapped[float] = mapped_column(Float, nullable=False, comment="hours")
    cost: Mapped[float | None] = mapped_column(Float)
    is_online: Mapped[bool] = mapped_column(Boolean, default=False)
    is_passed: Mapped[bool] = mapped_column(Boolean, default=True)


class SafetyIncident(IdMixin, Base):
    __tablename__ = "safety_incidents"

    incident_no: Mapped[str] = mapped_column(String(64), nullable=False)
    incident_date: Mapped[str] = mapped_column(String(10), nullable=False)
    incident_type: Mapped[str] = mapped_column(String(32), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False, comment="minor | serious | fatal")
    injured_count: Mapped[int] = mapped_column(Integer, default=0)
    fatal_count: Mapped[int] = mapped_column(Integer, default=0)
    lost_days: Mapped[float] = mapped_column(Float, default=0)
    direct_cost: Mapped[float | None] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String(16), default="open")


class EmployeeWorkTime(IdMixin, Base):
    __tablename__ = "employee_work_time"

    employee_id: Mapped[int | None] = mapped_column(Integer)
    period: Mapped[str] = mapped_column(String(10), nullable=False)
    regular_hours: Mapped[float] = mapped_column(Float, nullable=False)
    overtime_hours: Mapped[float] = mapped_column(Float, default=0)
    paid_leave_days: Mapped[float] = mapped_column(Float, default=0)
    sick_leave_days: Mapped[float] = mapped_column(Float, default=0)
    annual_leave_days: Mapped[float] = mapped_column(Float, default=0)


class SalaryRecord(IdMixin, Base):
    __tablename__ = "salary_records"

    employee_id: Mapped[int | None] = mapped_column(Integer)
    period: Mapped[str] = mapped_column(String(10), nullable=False)
    base_salary: Mapped[float] = mapped_column(Float, nullable=False)
    bonus: Mapped[float] = mapped_column(Float, default=0)
    allowance: Mapped[float] = mapped_column(Float, default=0)
    overtime_pay: Mapped[float] = mapped_column(Float, default=0)
    total_compensation: Mapped[float | None] = mapped_column(Float)
    social_insurance: Mapped[float] = mapped_column(Float, default=0)
    housing_fund: Mapped[float] = mapped_column(Float, default=0)
    gender: Mapped[str | None] = mapped_column(String(16))
    department: Mapped[str | None] = mapped_column(String(128))


class Supplier(IdMixin, Base):
    __tablename__ = "suppliers"

    code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(32))
    region: Mapped[str | None] = mapped_column(String(64))
    is_local: Mapped[bool] = mapped_column(Boolean, default=False)
    contract_amount: Mapped[float | None] = mapped_column(Float)
    esg_rating: Mapped[str | None] = mapped_column(String(4))
    has_certification: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(16), default="active")


class Donation(IdMixin, Base):
    __tablename__ = "donations"

    donation_date: Mapped[str] = mapped_column(String(10), nullable=False)
    donation_type: Mapped[str] = mapped_column(String(32), nullable=False)
    category: Mapped[str | None] = mapped_column(String(32))
    recipient: Mapped[str | None] = mapped_column(String(255))
    amount: Mapped[float | None] = mapped_column(Float)
    volunteer_hours: Mapped[float | None] = mapped_column(Float)
    volunteer_count: Mapped[int | None] = mapped_column(Integer)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


class EnergyConsumption(IdMixin, Base):
    __tablename__ = "energy_consumption"

    period: Mapped[str] = mapped_column(String(10), nullable=False)
    energy_type: Mapped[str] = mapped_column(String(32), nullable=False)
    consumption: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(16))
    cost: Mapped[float | None] = mapped_column(Float)
    facility: Mapped[str | None] = mapped_column(String(128))
    is_renewable: Mapped[bool] = mapped_column(Boolean, default=False)


class CarbonEmission(IdMixin, Base):
    __tablename__ = "carbon_emissions"

    period: Mapped[str] = mapped_column(String(10), nullable=False)
    scope: Mapped[int] = mapped_column(Integer, nullable=False, comment="1 | 2 | 3")
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    source: Mapped[str | None] = mapped_column(String(128))
    activity_data: Mapped[float | None] = mapped_column(Float)
    emission_factor: Mapped[float | None] = mapped_column(Float)
    emission: Mapped[float] = mapped_column(Float, nullable=False, comment="tCO2e")


class WasteData(IdMixin, Base):
    __tablename__ = "waste_data"

    period: Mapped[str] = mapped_column(String(10), nullable=False)
    waste_type: Mapped[str] = mapped_column(String(32), nullable=False, comment="hazardous | general | ...")
    waste_name: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(16))
    disposal_method: Mapped[str | None] = mapped_column(String(32), comment="landfill | incineration | recycling")
    is_compliant: Mapped[bool] = mapped_column(Boolean, default=True)


class EnvironmentalCompliance(IdMixin, Base):
    __tablename__ = "environmental_compliance"

    record_date: Mapped[str] = mapped_column(String(10), nullable=False)
    record_type: Mapped[str] = mapped_column(String(32), nullable=False)
    authority: Mapped[str | None] = mapped_column(String(128))
    penalty_amount: Mapped[float | None] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String(16), default="open")


class WaterConsumption(IdMixin, Base):
    __tablename__ = "water_consumption"

    period: Mapped[str] = mapped_column(String(10), nullable=False)
    water_type: Mapped[str] = mapped_column(String(32), nullable=False, comment="fresh | recycled | ...")
    source: Mapped[str | None] = mapped_column(String(32))
    volume: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(16))
    cost: Mapped[float | None] = mapped_column(Float)
    facility: Mapped[str | None] = mapped_column(String(128))


class WasteWaterRecord(IdMixin, Base):
    __tablename__ = "waste_water_records"

    period: Mapped[str] = mapped_column(String(10), nullable=False)
    discharge_type: Mapped[str] = mapped_column(String(32), nullable=False)
    pollutant_type: Mapped[str | None] = mapped_column(String(32), comment="COD | BOD | ammonia_nitrogen | ...")
    concentration: Mapped[float | None] = mapped_column(Float, comment="mg/L")
    volume: Mapped[float] = mapped_column(Float, nullable=False)
    standard_limit: Mapped[float | None] = mapped_column(Float)
    is_compliant: Mapped[bool] = mapped_column(Boolean, default=True)


class AirEmissionRecord(IdMixin, Base):
    __tablename__ = "air_emission_records"

    period: Mapped[str] = mapped_column(String(10), nullable=False)
    emission_source: Mapped[str] = mapped_column(String(128), nullable=False)
    pollutant_type: Mapped[str] = mapped_column(String(32), nullable=False, comment="SO2 | NOx | PM | VOCs")
    concentration: Mapped[float | None] = mapped_column(Float)
    emission_rate: Mapped[float | None] = mapped_column(Float)
    total_emission: Mapped[float | None] = mapped_column(Float)
    standard_limit: Mapped[float | None] = mapped_column(Float)
    is_compliant: Mapped[bool] = mapped_column(Boolean, default=True)


class MaterialConsumption(IdMixin, Base):
    __tablename__ = "material_consumption"

    period: Mapped[str] = mapped_column(String(10), nullable=False)
    material_category: Mapped[str] = mapped_column(String(32), nullable=False)
    material_name: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(16))
    cost: Mapped[float | None] = mapped_column(Float)
    is_renewable: Mapped[bool] = mapped_column(Boolean, default=False)
    is_recycled: Mapped[bool] = mapped_column(Boolean, default=False)
    recycled_ratio: Mapped[float | None] = mapped_column(Float)


class NoiseRecord(IdMixin, Base):
    __tablename__ = "noise_records"

    record_date: Mapped[str] = mapped_column(String(10), nullable=False)
    location: Mapped[str] = mapped_column(String(128), nullable=False)
    location_type: Mapped[str | None] = mapped_column(String(32))
    monitoring_time: Mapped[str | None] = mapped_column(String(8), comment="day | night")
    decibel_level: Mapped[float] = mapped_column(Float, nullable=False)
    standard_limit: Mapped[float | None] = mapped_column(Float)
    is_compliant: Mapped[bool] = mapped_column(Boolean, default=True)


class EnvironmentInvestment(IdMixin, Base):
    __tablename__ = "environment_investments"

    period: Mapped[str] = mapped_column(String(10), nullable=False)
    investment_category: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="emission_reduction | energy_saving | ...",
    )
    project_name: Mapped[str | None] = mapped_column(String(255))
    investment_amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="planned")


class Certification(IdMixin, Base):
    __tablename__ = "certifications"

    cert_type: Mapped[str] = mapped_column(String(32), nullable=False)
    cert_name: Mapped[str] = mapped_column(String(255), nullable=False)
    cert_no: Mapped[str | None] = mapped_column(String(64))
    issuer: Mapped[str | None] = mapped_column(String(128))
    issue_date: Mapped[str | None] = mapped_column(String(10))
    expiry_date: Mapped[str | None] = mapped_column(String(10))
    status: Mapped[str] = mapped_column(String(16), default="valid", comment="valid | expired | suspended | revoked")


# ---------------------------------------------------------------------------
# Governance and business
# ---------------------------------------------------------------------------


class BoardMember(IdMixin, Base):
    __tablename__ = "board_members"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    gender: Mapped[str | None] = mapped_column(String(16))
    birth_year: Mapped[int | None] = mapped_column(Integer)
    position: Mapped[str] = mapped_column(String(64), nullable=False)
    is_independent: Mapped[bool] = mapped_column(Boolean, default=False)
    is_executive: Mapped[bool] = mapped_column(Boolean, default=False)
    tenure: Mapped[float | None] = mapped_column(Float)
    attendance_rate: Mapped[float | None] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String(16), default="active")


class Supervisor(IdMixin, Base):
    __tablename__ = "supervisors"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    gender: Mapped[str | None] = mapped_column(String(16))
    birth_year: Mapped[int | None] = mapped_column(Integer)
    position: Mapped[str] = mapped_column(String(64), nullable=False)
    is_external: Mapped[bool] = mapped_column(Boolean, default=False)
    is_employee_rep: Mapped[bool] = mapped_column(Boolean, default=False)
    attendance_rate: Mapped[float | None] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String(16), default="active")


class Executive(IdMixin, Base):
    __tablename__ = "executives"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    gender: Mapped[str | None] = mapped_column(String(16))
    birth_year: Mapped[int | None] = mapped_column(Integer)
    position: Mapped[str] = mapped_column(String(64), nullable=False)
    annual_salary: Mapped[float | None] = mapped_column(Float)
    bonus: Mapped[float | None] = mapped_column(Float)
    shareholding_ratio: Mapped[float | None] = mapped_column(Float)
    training_hours: Mapped[float | None] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String(16), default="active")


class Shareholder(IdMixin, Base):
    __tablename__ = "shareholders"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    shareholder_type: Mapped[str | None] = mapped_column(String(32), comment="individual | institution | state")
    share_count: Mapped[float | None] = mapped_column(Float)
    share_ratio: Mapped[float | None] = mapped_column(Float, comment="percent of total shares")
    is_pledged: Mapped[bool] = mapped_column(Boolean, default=False)
    is_related_party: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(16), default="active")


class RdInvestment(IdMixin, Base):
    __tablename__ = "rd_investment"

    period: Mapped[str] = mapped_column(String(10), nullable=False)
    project_name: Mapped[str | None] = mapped_column(String(255))
    project_category: Mapped[str | None] = mapped_column(String(32))
    investment_amount: Mapped[float] = mapped_column(Float, nullable=False)
    is_green: Mapped[bool] = mapped_column(Boolean, default=False)
    personnel_count: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(16), default="active")


class Patent(IdMixin, Base):
    __tablename__ = "patents"

    patent_no: Mapped[str] = mapped_column(String(64), nullable=False)
    patent_name: Mapped[str] = mapped_column(String(255), nullable=False)
    patent_type: Mapped[str] = mapped_column(String(32), nullable=False, comment="invention | utility_model | design")
    application_date: Mapped[str | None] = mapped_column(String(10))
    grant_date: Mapped[str | None] = mapped_column(String(10))
    is_green: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(16), default="pending", comment="pending | granted | expired")


class ProductIncident(IdMixin, Base):
    __tablename__ = "product_incidents"

    incident_no: Mapped[str] = mapped_column(String(64), nullable=False)
    incident_date: Mapped[str] = mapped_column(String(10), nullable=False)
    incident_type: Mapped[str] = mapped_column(String(32), nullable=False, comment="recall | complaint | quality")
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    affected_quantity: Mapped[int | None] = mapped_column(Integer)
    compensation_amount: Mapped[float | None] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String(16), default="open")


class CompanyFinancials(IdMixin, Base):
    __tablename__ = "company_financials"

    period: Mapped[str] = mapped_column(String(10), nullable=False)
    revenue: Mapped[float | None] = mapped_column(Float)
    net_profit: Mapped[float | None] = mapped_column(Float)
    total_assets: Mapped[float | None] = mapped_column(Float)
    operating_cost: Mapped[float | None] = mapped_column(Float)
    production_output: Mapped[float | None] = mapped_column(Float)
    employee_count: Mapped[int | None] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(8), default="CNY")


class MeetingRecord(IdMixin, Base):
    __tablename__ = "meeting_records"

    meeting_type: Mapped[str] = mapped_column(String(32), nullable=False, comment="board | supervisor | shareholder")
    meeting_no: Mapped[str | None] = mapped_column(String(64))
    meeting_date: Mapped[str] = mapped_column(String(10), nullable=False)
    attendees_count: Mapped[int | None] = mapped_column(Integer)
    total_members: Mapped[int | None] = mapped_column(Integer)
    resolutions_count: Mapped[int | None] = mapped_column(Integer)
    minutes: Mapped[str | None] = mapped_column(Text)
