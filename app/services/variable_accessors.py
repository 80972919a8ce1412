"""
app/services/variable_accessors.py

Named variables available to ``custom`` formula expressions.

An expression such as ``"{carbon.scope1} + {carbon.scope2}"`` resolves each
placeholder through :data:`ACCESSORS`: a fixed table of functions
``(service, period) -> float``. Most entries are plain aggregates declared
with :class:`AggregateAccessor`; the few that need a bespoke query are
registered with :func:`accessor`.

Scoping follows the shape of the underlying table:

``period``  equality on the table's period column
``date``    ISO date prefix match on the table's date column (the period's
            year, month, or the three months of a quarter)
``none``    headcount-style tables with no time dimension
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from app.services.data_sources import Contains, StartsWith
from calculation.period import date_prefixes, parse_period

if TYPE_CHECKING:
    from app.services.aggregation_service import AggregationService

Accessor = Callable[["AggregationService", str], float]

ACCESSORS: dict[str, Accessor] = {}


@dataclass(frozen=True)
class AggregateAccessor:
    """Declarative accessor: one aggregate over one source."""

    aggregate: str
    source: str
    column: str | None = None
    filters: Mapping[str, Any] = field(default_factory=dict)
    scope: str = "period"

    def __call__(self, service: AggregationService, period: str) -> float:
        filters = dict(self.filters)
        scoped_period: str | None = None
        if self.scope == "period":
            scoped_period = period
        elif self.scope == "date":
            filters.update(date_filter(service, self.source, period))

        if self.aggregate == "count":
            return service.count(self.source, filters, scoped_period)
        method = getattr(service, self.aggregate)
        return method(self.source, self.column, filters, scoped_period)


def date_filter(service: AggregationService, source: str, period: str) -> dict[str, Any]:
    """Filter restricting a date-keyed source to the rows inside *period*."""

    spec = service.source(source)
    prefixes = tuple(StartsWith(prefix) for prefix in date_prefixes(period))
    return {spec.date_column: prefixes if len(prefixes) > 1 else prefixes[0]}


def accessor(name: str) -> Callable[[Accessor], Accessor]:
    """Register a hand-written accessor under *name*."""

    def _register(fn: Accessor) -> Accessor:
        ACCESSORS[name] = fn
        return fn

    return _register


def _count(source: str, filters: Mapping[str, Any] | None = None, scope: str = "period") -> AggregateAccessor:
    return AggregateAccessor("count", source, None, filters or {}, scope)


def _sum(source: str, column: str, filters: Mapping[str, Any] | None = None, scope: str = "period") -> AggregateAccessor:
    return AggregateAccessor("sum", source, column, filters or {}, scope)


def _avg(source: str, column: str, filters: Mapping[str, Any] | None = None, scope: str = "period") -> AggregateAccessor:
    return AggregateAccessor("avg", source, column, filters or {}, scope)


_ACTIVE = {"status": "active"}

ACCESSORS.update(
    {
        # Workforce (current headcount, no time dimension)
        "employees.total": _count("employees", _ACTIVE, "none"),
        "employees.female": _count("employees", {**_ACTIVE, "gender": "female"}, "none"),
        "employees.male": _count("employees", {**_ACTIVE, "gender": "male"}, "none"),
        "employees.partyMembers": _count("employees", {**_ACTIVE, "isPartyMember": True}, "none"),
        "employees.unionMembers": _count("employees", {**_ACTIVE, "isUnionMember": True}, "none"),
        "employees.disabled": _count("employees", {**_ACTIVE, "isDisabled": True}, "none"),
        "employees.minority": _count("employees", {**_ACTIVE, "isMinority": True}, "none"),
        "employees.resigned": _count("employees", {"status": "resigned"}, "none"),
        # Energy
        "energy.totalConsumption": _sum("energy_consumption", "consumption"),
        "energy.electricityConsumption": _sum("energy_consumption", "consumption", {"energyType": "electricity"}),
        "energy.renewableConsumption": _sum("energy_consumption", "consumption", {"isRenewable": True}),
        "energy.totalCost": _sum("energy_consumption", "cost"),
        # Carbon
        "carbon.totalEmission": _sum("carbon_emissions", "emission"),
        "carbon.scope1": _sum("carbon_emissions", "emission", {"scope": 1}),
        "carbon.scope2": _sum("carbon_emissions", "emission", {"scope": 2}),
        "carbon.scope3": _sum("carbon_emissions", "emission", {"scope": 3}),
        # Waste
        "waste.totalWaste": _sum("waste_data", "quantity"),
        "waste.hazardousWaste": _sum("waste_data", "quantity", {"wasteType": "hazardous"}),
        "waste.recycledWaste": _sum("waste_data", "quantity", {"disposalMethod": "recycling"}),
        # Suppliers
        "suppliers.total": _count("suppliers", _ACTIVE, "none"),
        "suppliers.local": _count("suppliers", {**_ACTIVE, "isLocal": True}, "none"),
        "suppliers.certified": _count("suppliers", {**_ACTIVE, "hasCertification": True}, "none"),
        "suppliers.totalContractAmount": _sum("suppliers", "contractAmount", _ACTIVE, "none"),
        # Training
        "training.totalHours": _sum("training_records", "duration", scope="date"),
        "training.totalSessions": _count("training_records", scope="date"),
        "training.totalCost": _sum("training_records", "cost", scope="date"),
        "training.safetyTrainingHours": _sum("training_records", "duration", {"trainingType": "safety"}, "date"),
        # Occupational safety
        "safety.totalIncidents": _count("safety_incidents", scope="date"),
        "safety.fatalIncidents": _count("safety_incidents", {"severity": "fatal"}, "date"),
        "safety.lostDays": _sum("safety_incidents", "lostDays", scope="date"),
        "safety.totalInjured": _sum("safety_incidents", "injuredCount", scope="date"),
        "safety.totalFatalities": _sum("safety_incidents", "fatalCount", scope="date"),
        # Community
        "donations.totalAmount": _sum("donations", "amount", scope="date"),
        "donations.volunteerHours": _sum("donations", "volunteerHours", scope="date"),
        "donations.volunteerCount": _sum("donations", "volunteerCount", scope="date"),
        # Water
        "water.totalConsumption": _sum("water_consumption", "volume"),
        "water.recycledWater": _sum("water_consumption", "volume", {"waterType": "recycled"}),
        "water.totalCost": _sum("water_consumption", "cost"),
        # Waste water
        "wasteWater.totalDischarge": _sum("waste_water_records", "volume"),
        # Air emissions
        "airEmission.totalEmission": _sum("air_emission_records", "totalEmission"),
        "airEmission.so2Amount": _sum("air_emission_records", "totalEmission", {"pollutantType": "SO2"}),
        "airEmission.noxAmount": _sum("air_emission_records", "totalEmission", {"pollutantType": "NOx"}),
        "airEmission.particulateAmount": _sum(
            "air_emission_records", "totalEmission", {"pollutantType": Contains("PM")}
        ),
        # Materials
        "material.totalConsumption": _sum("material_consumption", "quantity"),
        "material.recycledMaterial": _sum("material_consumption", "quantity", {"isRecycled": True}),
        "material.totalCost": _sum("material_consumption", "cost"),
        # Noise
        "noise.avgLevel": _avg("noise_records", "decibelLevel", scope="date"),
        "noise.maxLevel": AggregateAccessor("maximum", "noise_records", "decibelLevel", {}, "date"),
        "noise.exceedCount": _count("noise_records", {"isCompliant": False}, "date"),
        # Working time
        "workTime.totalRegularHours": _sum("employee_work_time", "regularHours"),
        "workTime.totalOvertimeHours": _sum("employee_work_time", "overtimeHours"),
        # Compensation
        "salary.totalSalary": _sum("salary_records", "baseSalary"),
        "salary.totalBonus": _sum("salary_records", "bonus"),
        "salary.totalSocialInsurance": _sum("salary_records", "socialInsurance"),
        "salary.avgSalary": _avg("salary_records", "baseSalary"),
        # Board of directors
        "board.total": _count("board_members", _ACTIVE, "none"),
        "board.independent": _count("board_members", {**_ACTIVE, "isIndependent": True}, "none"),
        "board.female": _count("board_members", {**_ACTIVE, "gender": "female"}, "none"),
        # Supervisory board
        "supervisors.total": _count("supervisors", _ACTIVE, "none"),
        "supervisors.employeeRepresentative": _count("supervisors", {**_ACTIVE, "isEmployeeRep": True}, "none"),
        "supervisors.female": _count("supervisors", {**_ACTIVE, "gender": "female"}, "none"),
        # Executives
        "executives.total": _count("executives", _ACTIVE, "none"),
        "executives.female": _count("executives", {**_ACTIVE, "gender": "female"}, "none"),
        "executives.totalSalary": _sum("executives", "annualSalary", _ACTIVE, "none"),
        # Shareholders
        "shareholders.total": _count("shareholders", _ACTIVE, "none"),
        "shareholders.institutional": _count(
            "shareholders", {**_ACTIVE, "shareholderType": "institution"}, "none"
        ),
        # R&D
        "rd.totalInvestment": _sum("rd_investment", "investmentAmount"),
        "rd.personnelCount": _sum("rd_investment", "personnelCount"),
        # Patents
        "patents.total": _count("patents", {"status": "granted"}, "none"),
        "patents.newApplications": _count("patents", scope="date"),
        "patents.invention": _count("patents", {"patentType": "invention", "status": "granted"}, "none"),
        "patents.utility": _count("patents", {"patentType": "utility_model", "status": "granted"}, "none"),
        # Product responsibility
        "productIncidents.total": _count("product_incidents", scope="date"),
        "productIncidents.recalls": _count("product_incidents", {"incidentType": "recall"}, "date"),
        "productIncidents.complaints": _count("product_incidents", {"incidentType": "complaint"}, "date"),
        # Environmental investment
        "environmentInvestments.totalAmount": _sum("environment_investments", "investmentAmount"),
        "environmentInvestments.emissionReduction": _sum(
            "environment_investments", "investmentAmount", {"investmentCategory": "emission_reduction"}
        ),
        "environmentInvestments.energySaving": _sum(
            "environment_investments", "investmentAmount", {"investmentCategory": "energy_saving"}
        ),
        # Financials
        "financials.revenue": _sum("company_financials", "revenue"),
        "financials.totalAssets": _sum("company_financials", "totalAssets"),
        "financials.netProfit": _sum("company_financials", "netProfit"),
        "financials.operatingCost": _sum("company_financials", "operatingCost"),
        # Meetings
        "meetings.total": _count("meeting_records", scope="date"),
        "meetings.boardMeetings": _count("meeting_records", {"meetingType": "board"}, "date"),
        "meetings.supervisorMeetings": _count("meeting_records", {"meetingType": "supervisor"}, "date"),
        "meetings.shareholderMeetings": _count("meeting_records", {"meetingType": "shareholder"}, "date"),
        # Certifications
        "certifications.total": _count("certifications", {"status": "valid"}, "none"),
        "certifications.iso14001": _count(
            "certifications", {"status": "valid", "certName": Contains("ISO 14001")}, "none"
        ),
        "certifications.iso45001": _count(
            "certifications", {"status": "valid", "certName": Contains("ISO 45001")}, "none"
        ),
    }
)


# ---------------------------------------------------------------------------
# Hand-written accessors
# ---------------------------------------------------------------------------


def _pollutant_load(service: AggregationService, period: str, pollutant: str) -> float:
    """Sum of concentration x volume for one waste water pollutant."""

    spec = service.source("waste_water_records")
    load = spec.column("concentration") * spec.column("volume")
    stmt = select(func.coalesce(func.sum(load), 0)).where(
        *service.conditions(spec, {"pollutantType": pollutant}, period)
    )
    return float(service.scalar(stmt, source=spec.name) or 0)


@accessor("wasteWater.codAmount")
def _waste_water_cod(service: AggregationService, period: str) -> float:
    return _pollutant_load(service, period, "COD")


@accessor("wasteWater.ammoniaAmount")
def _waste_water_ammonia(service: AggregationService, period: str) -> float:
    return _pollutant_load(service, period, "ammonia_nitrogen")


@accessor("workTime.avgWorkHoursPerEmployee")
def _avg_work_hours(service: AggregationService, period: str) -> float:
    spec = service.source("employee_work_time")
    hours = spec.column("regularHours") + func.coalesce(spec.column("overtimeHours"), 0)
    stmt = select(func.coalesce(func.avg(hours), 0)).where(*service.conditions(spec, None, period))
    return float(service.scalar(stmt, source=spec.name) or 0)


def _average_age(service: AggregationService, source: str, period: str) -> float:
    avg_birth_year = service.avg(source, "birthYear", _ACTIVE)
    if not avg_birth_year:
        return 0.0
    return parse_period(period).year - avg_birth_year


@accessor("board.avgAge")
def _board_avg_age(service: AggregationService, period: str) -> float:
    return _average_age(service, "board_members", period)


@accessor("executives.avgAge")
def _executives_avg_age(service: AggregationService, period: str) -> float:
    return _average_age(service, "executives", period)


@accessor("shareholders.topTenSharesRatio")
def _top_ten_share_ratio(service: AggregationService, period: str) -> float:
    """Combined share ratio of the ten largest active shareholders."""

    spec = service.source("shareholders")
    ratio = spec.column("shareRatio")
    top_ten = (
        select(ratio.label("ratio"))
        .where(*service.conditions(spec, _ACTIVE, None))
        .order_by(ratio.desc())
        .limit(10)
        .subquery()
    )
    stmt = select(func.coalesce(func.sum(top_ten.c.ratio), 0))
    return float(service.scalar(stmt, source=spec.name) or 0)
