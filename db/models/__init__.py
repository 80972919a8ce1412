"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.esg_metric import CalculationLog, EsgMetric, EsgRecord, MetricFormula
from db.models.raw_data import (
    AirEmissionRecord,
    BoardMember,
    CarbonEmission,
    Certification,
    CompanyFinancials,
    Donation,
    Employee,
    EmployeeWorkTime,
    EnergyConsumption,
    EnvironmentalCompliance,
    EnvironmentInvestment,
    Executive,
    MaterialConsumption,
    MeetingRecord,
    NoiseRecord,
    Patent,
    ProductIncident,
    RdInvestment,
    SafetyIncident,
    SalaryRecord,
    Shareholder,
    Supervisor,
    Supplier,
    TrainingRecord,
    WasteData,
    WasteWaterRecord,
    WaterConsumption,
)

__all__ = [
    "EsgMetric",
    "MetricFormula",
    "CalculationLog",
    "EsgRecord",
    "AirEmissionRecord",
    "BoardMember",
    "CarbonEmission",
    "Certification",
    "CompanyFinancials",
    "Donation",
    "Employee",
    "EmployeeWorkTime",
    "EnergyConsumption",
    "EnvironmentalCompliance",
    "EnvironmentInvestment",
    "Executive",
    "MaterialConsumption",
    "MeetingRecord",
    "NoiseRecord",
    "Patent",
    "ProductIncident",
    "RdInvestment",
    "SafetyIncident",
    "SalaryRecord",
    "Shareholder",
    "Supervisor",
    "Supplier",
    "TrainingRecord",
    "WasteData",
    "WasteWaterRecord",
    "WaterConsumption",
]
