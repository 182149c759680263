"""
Plausibility checks over a structured extraction result.

Pure functions: the input result is read, never modified. Missing make or
model are errors; out-of-range values are warnings. Zero and absent values
are not range-checked.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from offer_pipeline.core.config import (
    ANNUAL_MILEAGE_RANGE,
    DURATION_MONTHS_RANGE,
    KW_PS_TOLERANCE,
    KW_TO_PS_FACTOR,
    LOW_CONFIDENCE_THRESHOLD,
    MAX_PLAUSIBLE_MILEAGE_KM,
    MAX_PLAUSIBLE_POWER_KW,
    MAX_PLAUSIBLE_POWER_PS,
    MIN_PLAUSIBLE_YEAR,
    MONTHLY_RATE_RANGE,
    PURCHASE_PRICE_RANGE,
)
from offer_pipeline.models.dto import (
    LeasingTerms,
    StructuredResult,
    ValidationReport,
    VehicleData,
)


def _outside(value, bounds: tuple[float, float]) -> bool:
    low, high = bounds
    return bool(value) and (value < low or value > high)


def _fmt(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def check_vehicle(vehicle: VehicleData, current_year: int) -> list[str]:
    warnings: list[str] = []

    if _outside(vehicle.year, (MIN_PLAUSIBLE_YEAR, current_year + 1)):
        warnings.append(f"Unplausibles Baujahr: {vehicle.year}")

    if vehicle.mileage and vehicle.mileage > MAX_PLAUSIBLE_MILEAGE_KM:
        warnings.append(f"Sehr hoher Kilometerstand: {vehicle.mileage} km")

    if vehicle.power_ps and vehicle.power_ps > MAX_PLAUSIBLE_POWER_PS:
        warnings.append(f"Unplausible PS-Zahl: {_fmt(vehicle.power_ps)}")

    if vehicle.power_kw and vehicle.power_kw > MAX_PLAUSIBLE_POWER_KW:
        warnings.append(f"Unplausible kW-Zahl: {_fmt(vehicle.power_kw)}")

    if vehicle.power_kw and vehicle.power_ps:
        calculated_ps = round(vehicle.power_kw * KW_TO_PS_FACTOR)
        if abs(calculated_ps - vehicle.power_ps) > KW_PS_TOLERANCE:
            warnings.append(
                "kW/PS-Werte stimmen nicht überein: "
                f"{_fmt(vehicle.power_kw)}kW ≠ {_fmt(vehicle.power_ps)}PS"
            )

    return warnings


def check_leasing(leasing: LeasingTerms) -> list[str]:
    warnings: list[str] = []

    if _outside(leasing.monthly_rate, MONTHLY_RATE_RANGE):
        warnings.append(f"Unplausible Monatsrate: {_fmt(leasing.monthly_rate)}€")

    if _outside(leasing.duration_months, DURATION_MONTHS_RANGE):
        warnings.append(f"Unplausible Laufzeit: {leasing.duration_months} Monate")

    if _outside(leasing.annual_mileage, ANNUAL_MILEAGE_RANGE):
        warnings.append(f"Unplausible Jahreskilometer: {leasing.annual_mileage} km")

    if _outside(leasing.purchase_price, PURCHASE_PRICE_RANGE):
        warnings.append(f"Unplausibler Kaufpreis: {_fmt(leasing.purchase_price)}€")

    return warnings


def validate(
    result: StructuredResult,
    *,
    low_confidence_threshold: int = LOW_CONFIDENCE_THRESHOLD,
    current_year: Optional[int] = None,
) -> ValidationReport:
    """
    Classify implausible or inconsistent values of an extraction result.

    Args:
      result: Extraction result to check (not modified)
      low_confidence_threshold: Scores below this add a manual-review warning
      current_year: Reference year for the build-year check; defaults to now

    Returns:
      ValidationReport with ``is_valid`` true iff there are no errors.
    """
    year = current_year if current_year is not None else datetime.now().year

    errors: list[str] = []
    if not result.vehicle.make:
        errors.append("Marke fehlt")
    if not result.vehicle.model:
        errors.append("Modell fehlt")

    warnings = check_vehicle(result.vehicle, year) + check_leasing(result.leasing)

    if result.metadata.confidence_score < low_confidence_threshold:
        warnings.append("Niedrige Extraktionsqualität - manuelle Überprüfung empfohlen")

    return ValidationReport(is_valid=not errors, warnings=warnings, errors=errors)
