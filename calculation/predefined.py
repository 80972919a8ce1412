"""
calculation/predefined.py

Catalogue of ready-made formulas.

Administrators copy these into ``metric_formulas`` when wiring a metric;
the engine itself never evaluates the catalogue implicitly. Definitions are
kept in their stored JSON shape and validated once at import.
"""

from __future__ import annotations

from typing import Any

from calculation.formula import FormulaConfig, parse_formula

_ACTIVE = {"status": "active"}


def _sum(source: str, field: str, **filters: Any) -> dict[str, Any]:
    node: dict[str, Any] = {"type": "sum", "dataSource": source, "field": field}
    if filters:
        node["filter"] = filters
    return node


def _count(source: str, **filters: Any) -> dict[str, Any]:
    node: dict[str, Any] = {"type": "count", "dataSource": source}
    if filters:
        node["filter"] = filters
    return node


def _share(numerator: dict[str, Any], denominator: dict[str, Any]) -> dict[str, Any]:
    return {"type": "percentage", "numerator": numerator, "denominator": denominator}


def _active_share(source: str, **filters: Any) -> dict[str, Any]:
    return _share(_count(source, **filters, **_ACTIVE), _count(source, **_ACTIVE))


_RAW_CATALOGUE: dict[str, dict[str, Any]] = {
    # Environment
    "totalGhgEmission": _sum("carbon_emissions", "emission"),
    "scope1Emission": _sum("carbon_emissions", "emission", scope=1),
    "scope2Emission": _sum("carbon_emissions", "emission", scope=2),
    "scope3Emission": _sum("carbon_emissions", "emission", scope=3),
    # tCO2e per 10k of revenue
    "carbonIntensityPerRevenue": {
        "type": "ratio",
        "numerator": {**_sum("carbon_emissions", "emission"), "multiply": 10000},
        "denominator": _sum("company_financials", "revenue"),
    },
    "totalWasteWater": _sum("waste_water_records", "volume"),
    "totalAirEmission": _sum("air_emission_records", "totalEmission"),
    "totalSolidWaste": _sum("waste_data", "quantity"),
    "hazardousWasteRatio": _share(
        _sum("waste_data", "quantity", wasteType="hazardous"),
        _sum("waste_data", "quantity"),
    ),
    "wasteRecyclingRate": _share(
        _sum("waste_data", "quantity", disposalMethod="recycling"),
        _sum("waste_data", "quantity"),
    ),
    "totalWaterConsumption": _sum("water_consumption", "volume"),
    "waterRecyclingRate": _share(
        _sum("water_consumption", "volume", waterType="recycled"),
        _sum("water_consumption", "volume"),
    ),
    "totalEnergyConsumption": _sum("energy_consumption", "consumption"),
    "renewableEnergyRatio": _share(
        _sum("energy_consumption", "consumption", isRenewable=True),
        _sum("energy_consumption", "consumption"),
    ),
    "totalEnvironmentInvestment": _sum("environment_investments", "investmentAmount"),
    "environmentInvestmentRatio": _share(
        _sum("environment_investments", "investmentAmount"),
        _sum("company_financials", "revenue"),
    ),
    # Social
    "totalEmployees": _count("employees", **_ACTIVE),
    "femaleRatio": _active_share("employees", gender="female"),
    "minorityRatio": _active_share("employees", isMinority=True),
    "disabledRatio": _active_share("employees", isDisabled=True),
    "partyMemberRatio": _active_share("employees", isPartyMember=True),
    "trainingHoursPerEmployee": {
        "type": "ratio",
        "numerator": _sum("training_records", "duration"),
        "denominator": _count("employees", **_ACTIVE),
    },
    "totalSafetyIncidents": _count("safety_incidents"),
    "totalFatalities": _sum("safety_incidents", "fatalCount"),
    "totalLostDays": _sum("safety_incidents", "lostDays"),
    "totalSuppliers": _count("suppliers", **_ACTIVE),
    "localSupplierRatio": _active_share("suppliers", isLocal=True),
    "totalRdInvestment": _sum("rd_investment", "investmentAmount"),
    "rdInvestmentRatio": _share(
        _sum("rd_investment", "investmentAmount"),
        _sum("company_financials", "revenue"),
    ),
    "totalPatents": _count("patents", status="granted"),
    "totalDonations": _sum("donations", "amount"),
    "totalVolunteerHours": _sum("donations", "volunteerHours"),
    # Governance
    "totalBoardMembers": _count("board_members", **_ACTIVE),
    "independentDirectorRatio": _active_share("board_members", isIndependent=True),
    "femaleBoardRatio": _active_share("board_members", gender="female"),
    "totalSupervisors": _count("supervisors", **_ACTIVE),
    "employeeSupervisorRatio": _active_share("supervisors", isEmployeeRep=True),
    "totalExecutives": _count("executives", **_ACTIVE),
    "femaleExecutiveRatio": _active_share("executives", gender="female"),
    "boardMeetingCount": _count("meeting_records", meetingType="board"),
    "supervisorMeetingCount": _count("meeting_records", meetingType="supervisor"),
    "shareholderMeetingCount": _count("meeting_records", meetingType="shareholder"),
}

PREDEFINED_FORMULAS: dict[str, FormulaConfig] = {
    name: parse_formula(raw) for name, raw in _RAW_CATALOGUE.items()
}


def list_predefined() -> list[dict[str, Any]]:
    """Catalogue entries as ``{"name", "type", "formula"}`` dicts, in catalogue order."""

    return [
        {"name": name, "type": config.type, "formula": raw}
        for (name, config), raw in zip(PREDEFINED_FORMULAS.items(), _RAW_CATALOGUE.values())
    ]
