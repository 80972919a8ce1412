"""
app/services/data_sources.py

Registry of logical data source names.

Formulas address raw data by logical names (``carbon_emissions``) and
camelCase field names (``isRenewable``). This module maps both onto the ORM
read models. Snake_case attribute names are accepted as well, and a few
legacy field names found in stored formulas are kept as aliases.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import InstrumentedAttribute

from calculation.errors import UnknownFieldError
from db.base import Base
from db.models import (
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


class StartsWith(str):
    """Filter value matching column values that begin with the given text."""


class Contains(str):
    """Filter value matching column values that contain the given text."""


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass(frozen=True)
class DataSourceSpec:
    """
    One logical data source.

    ``period_column`` names the column holding a period string; aggregates
    are scoped to it automatically. ``date_column`` names the ISO date column
    of tables keyed by date instead; those are scoped only where an accessor
    asks for it.
    """

    name: str
    model: type[Base]
    period_column: str | None = None
    date_column: str | None = None
    aliases: Mapping[str, str] = field(default_factory=dict)

    def column(self, logical_name: str) -> InstrumentedAttribute:
        attribute = self.aliases.get(logical_name, logical_name)
        columns = _column_index(self.model)
        key = columns.get(attribute)
        if key is None:
            raise UnknownFieldError(self.name, logical_name)
        return getattr(self.model, key)


_COLUMN_INDEX: dict[type, dict[str, str]] = {}


def _column_index(model: type[Base]) -> dict[str, str]:
    index = _COLUMN_INDEX.get(model)
    if index is None:
        index = {}
        for attr in sa_inspect(model).column_attrs:
            index[attr.key] = attr.key
            index[_camel(attr.key)] = attr.key
        _COLUMN_INDEX[model] = index
    return index


DATA_SOURCES: dict[str, DataSourceSpec] = {
    spec.name: spec
    for spec in (
        DataSourceSpec("employees", Employee),
        DataSourceSpec("energy_consumption", EnergyConsumption, period_column="period"),
        DataSourceSpec("carbon_emissions", CarbonEmission, period_column="period"),
        DataSourceSpec("waste_data", WasteData, period_column="period"),
        DataSourceSpec("suppliers", Supplier),
        DataSourceSpec("training_records", TrainingRecord, date_column="trainingDate"),
        DataSourceSpec("safety_incidents", SafetyIncident, date_column="incidentDate"),
        DataSourceSpec("donations", Donation, date_column="donationDate"),
        DataSourceSpec("environmental_compliance", EnvironmentalCompliance, date_column="recordDate"),
        DataSourceSpec(
            "water_consumption",
            WaterConsumption,
            period_column="period",
            aliases={"consumption": "volume"},
        ),
        DataSourceSpec(
            "waste_water_records",
            WasteWaterRecord,
            period_column="period",
            aliases={"dischargeAmount": "volume"},
        ),
        DataSourceSpec(
            "air_emission_records",
            AirEmissionRecord,
            period_column="period",
            aliases={"emissionAmount": "total_emission"},
        ),
        DataSourceSpec(
            "material_consumption",
            MaterialConsumption,
            period_column="period",
            aliases={"consumption": "quantity"},
        ),
        DataSourceSpec(
            "noise_records",
            NoiseRecord,
            date_column="recordDate",
            aliases={"noiseLevel": "decibel_level"},
        ),
        DataSourceSpec("employee_work_time", EmployeeWorkTime, period_column="period"),
        DataSourceSpec("salary_records", SalaryRecord, period_column="period"),
        DataSourceSpec("board_members", BoardMember),
        DataSourceSpec(
            "supervisors",
            Supervisor,
            aliases={"isEmployeeRepresentative": "is_employee_rep"},
        ),
        DataSourceSpec("executives", Executive),
        DataSourceSpec(
            "shareholders",
            Shareholder,
            aliases={"shareholdingRatio": "share_ratio"},
        ),
        DataSourceSpec(
            "rd_investment",
            RdInvestment,
            period_column="period",
            aliases={"amount": "investment_amount"},
        ),
        DataSourceSpec("patents", Patent, date_column="applicationDate"),
        DataSourceSpec("product_incidents", ProductIncident, date_column="incidentDate"),
        DataSourceSpec(
            "environment_investments",
            EnvironmentInvestment,
            period_column="period",
            aliases={"amount": "investment_amount", "investmentType": "investment_category"},
        ),
        DataSourceSpec("company_financials", CompanyFinancials, period_column="period"),
        DataSourceSpec("meeting_records", MeetingRecord, date_column="meetingDate"),
        DataSourceSpec(
            "certifications",
            Certification,
            aliases={"certificationName": "cert_name"},
        ),
    )
}
