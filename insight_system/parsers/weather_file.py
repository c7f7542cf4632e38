"""Hourly weather file parsing into monthly and annual irradiance aggregates.

Supported inputs:
- PVGIS TMY CSV: "Latitude (decimal degrees): ..." header block, then a
  table with time(UTC), T2m, G(h), Gb(n), Gd(h) columns
- EPW: LOCATION header line followed by 7 more header lines and
  comma-separated hourly records (GHI/DNI/DHI in fields 13-15)
- Generic hourly CSV: a header row naming ghi/dni/dhi/temperature columns,
  optional "# latitude: ..." comment lines, and a timestamp or month column

Hourly values are irradiance in W/m2 (equivalently Wh/m2 per hour);
aggregates are reported in kWh/m2.
"""

import csv
import io
import re
from datetime import datetime
from typing import Iterable, Optional

from insight_system.data_management.schemas.project_schema import (
    MonthlyIrradiance,
    ParsedWeatherData,
    WeatherLocation,
    WeatherSummary,
)

HOURS_PER_YEAR = 8760
_MONTH_START_HOURS = [0, 744, 1416, 2160, 2880, 3624, 4344, 5088, 5832, 6552, 7296, 8016]

_GHI_COLUMNS = ("ghi", "g(h)", "ghi_wm2", "global_horizontal", "ghi (w/m2)")
_DNI_COLUMNS = ("dni", "gb(n)", "dni_wm2", "direct_normal", "dni (w/m2)")
_DHI_COLUMNS = ("dhi", "gd(h)", "dhi_wm2", "diffuse_horizontal", "dhi (w/m2)")
_TEMP_COLUMNS = ("t2m", "temperature", "temp", "temp_air", "air_temperature", "dry_bulb", "tamb")
_TIME_COLUMNS = ("time(utc)", "time", "timestamp", "datetime", "date")

_META_LINE = re.compile(r"^\s*#?\s*([A-Za-z][A-Za-z _()]*?)\s*(?:\([^)]*\))?\s*[:=]\s*(-?\d+(?:\.\d+)?)")


class WeatherParseError(ValueError):
    """The file is not a recognisable hourly weather file."""


class _MonthlyAccumulator:
    def __init__(self):
        self.ghi = [0.0] * 12
        self.dni = [0.0] * 12
        self.dhi = [0.0] * 12
        self.temp_sum = [0.0] * 12
        self.temp_count = [0] * 12
        self.hours = 0

    def add(
        self,
        month: int,
        ghi: Optional[float],
        dni: Optional[float],
        dhi: Optional[float],
        temperature: Optional[float],
    ) -> None:
        i = month - 1
        self.ghi[i] += max(ghi or 0.0, 0.0)
        self.dni[i] += max(dni or 0.0, 0.0)
        self.dhi[i] += max(dhi or 0.0, 0.0)
        if temperature is not None:
            self.temp_sum[i] += temperature
            self.temp_count[i] += 1
        self.hours += 1

    def result(self) -> tuple[list[MonthlyIrradiance], WeatherSummary]:
        if self.hours == 0:
            raise WeatherParseError("no hourly records found")

        monthly = []
        for i in range(12):
            monthly.append(
                MonthlyIrradiance(
                    month=i + 1,
                    ghi_kwh_m2=round(self.ghi[i] / 1000.0, 1),
                    dni_kwh_m2=round(self.dni[i] / 1000.0, 1),
                    dhi_kwh_m2=round(self.dhi[i] / 1000.0, 1),
                    temperature_avg_c=(
                        round(self.temp_sum[i] / self.temp_count[i], 2) if self.temp_count[i] else None
                    ),
                )
            )

        temp_count = sum(self.temp_count)
        annual = WeatherSummary(
            ghi_total_kwh_m2=round(sum(self.ghi) / 1000.0, 1),
            dni_total_kwh_m2=round(sum(self.dni) / 1000.0, 1),
            dhi_total_kwh_m2=round(sum(self.dhi) / 1000.0, 1),
            temperature_avg_c=round(sum(self.temp_sum) / temp_count, 2) if temp_count else None,
            hours=self.hours,
        )
        return monthly, annual


def _to_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _find_column(header: list[str], candidates: Iterable[str]) -> Optional[int]:
    lowered = [h.strip().lower() for h in header]
    for candidate in candidates:
        if candidate in lowered:
            return lowered.index(candidate)
    return None


def _month_from_hour_index(index: int) -> int:
    hour = index % HOURS_PER_YEAR
    month = 1
    for i, start in enumerate(_MONTH_START_HOURS):
        if hour >= start:
            month = i + 1
    return month


def _month_from_timestamp(value: str) -> Optional[int]:
    value = value.strip()
    pvgis = re.match(r"^\d{4}(\d{2})\d{2}:\d{4}$", value)
    if pvgis:
        return int(pvgis.group(1))
    iso = re.match(r"^\d{4}[-/](\d{1,2})[-/]\d{1,2}", value)
    if iso:
        return int(iso.group(1))
    try:
        return datetime.fromisoformat(value).month
    except ValueError:
        return None


def detect_format(content: str, file_name: str = "") -> str:
    """Return "epw", "pvgis" or "csv"."""
    first_line = content.lstrip().split("\n", 1)[0]
    if file_name.lower().endswith(".epw") or first_line.upper().startswith("LOCATION,"):
        return "epw"
    if "G(h)" in content and "time(UTC)" in content:
        return "pvgis"
    return "csv"


def _parse_epw(content: str) -> ParsedWeatherData:
    lines = content.splitlines()
    header = next(csv.reader([lines[0]])) if lines else []
    if len(header) < 10 or header[0].strip().upper() != "LOCATION":
        raise WeatherParseError("EPW file missing LOCATION header")

    location = WeatherLocation(
        name=", ".join(part.strip() for part in header[1:4] if part.strip()) or None,
        latitude=_to_float(header[6]),
        longitude=_to_float(header[7]),
        elevation_m=_to_float(header[9]),
    )

    acc = _MonthlyAccumulator()
    for row in csv.reader(lines[8:]):
        if len(row) < 16:
            continue
        try:
            month = int(row[1])
        except ValueError:
            continue
        if not 1 <= month <= 12:
            continue
        acc.add(month, _to_float(row[13]), _to_float(row[14]), _to_float(row[15]), _to_float(row[6]))

    monthly, annual = acc.result()
    return ParsedWeatherData(format="epw", location=location, monthly=monthly, annual=annual)


def _read_metadata(lines: list[str]) -> WeatherLocation:
    values: dict[str, float] = {}
    for line in lines:
        match = _META_LINE.match(line)
        if match:
            values[match.group(1).strip().lower()] = float(match.group(2))
    return WeatherLocation(
        latitude=values.get("latitude") if "latitude" in values else values.get("lat"),
        longitude=values.get("longitude") if "longitude" in values else values.get("lon"),
        elevation_m=values.get("elevation") if "elevation" in values else values.get("altitude"),
    )


def _parse_table(content: str, fmt: str) -> ParsedWeatherData:
    lines = content.splitlines()

    header_index = None
    for i, line in enumerate(lines):
        cells = [c.strip().lower() for c in line.split(",")]
        if any(c in _GHI_COLUMNS for c in cells):
            header_index = i
            break
    if header_index is None:
        raise WeatherParseError("no GHI column found")

    location = _read_metadata(lines[:header_index])
    header = next(csv.reader([lines[header_index]]))
    ghi_col = _find_column(header, _GHI_COLUMNS)
    dni_col = _find_column(header, _DNI_COLUMNS)
    dhi_col = _find_column(header, _DHI_COLUMNS)
    temp_col = _find_column(header, _TEMP_COLUMNS)
    time_col = _find_column(header, _TIME_COLUMNS)
    month_col = _find_column(header, ("month",))

    def cell(row: list[str], col: Optional[int]) -> Optional[str]:
        return row[col] if col is not None and col < len(row) else None

    acc = _MonthlyAccumulator()
    record_index = 0
    for row in csv.reader(lines[header_index + 1:]):
        if not row or ghi_col >= len(row):
            continue
        ghi = _to_float(row[ghi_col])
        if ghi is None:
            # footer text (PVGIS appends notes after the table)
            continue

        month = None
        if month_col is not None:
            month_value = _to_float(cell(row, month_col))
            month = int(month_value) if month_value is not None else None
        if month is None and time_col is not None:
            month = _month_from_timestamp(cell(row, time_col) or "")
        if month is None:
            month = _month_from_hour_index(record_index)
        record_index += 1
        if not 1 <= month <= 12:
            continue

        acc.add(
            month,
            ghi,
            _to_float(cell(row, dni_col)),
            _to_float(cell(row, dhi_col)),
            _to_float(cell(row, temp_col)),
        )

    monthly, annual = acc.result()
    return ParsedWeatherData(format=fmt, location=location, monthly=monthly, annual=annual)


def parse_weather_file(content: str, file_name: str = "") -> ParsedWeatherData:
    """
    Parse an hourly weather file into monthly and annual aggregates.

    Args:
        content: File text
        file_name: Original file name, used for format detection

    Returns:
        ParsedWeatherData with location metadata when the header carries it

    Raises:
        WeatherParseError: If the content is not a recognisable weather file
    """
    if not content or not content.strip():
        raise WeatherParseError("empty weather file")

    # Strip a UTF-8 BOM left by spreadsheet exports
    content = content.lstrip("\ufeff")
    fmt = detect_format(content, file_name)
    if fmt == "epw":
        return _parse_epw(content)
    return _parse_table(content, fmt)


def read_weather_text(raw: bytes) -> str:
    """Decode uploaded weather bytes, falling back to latin-1 for legacy exports."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return io.TextIOWrapper(io.BytesIO(raw), encoding="latin-1").read()
