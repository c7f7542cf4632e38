"""Per-project structured records produced during consolidation.

PerformanceParameters and FinancialData are single current records per
project, updated field-by-field as new extractions arrive. Their data
fields double as the model's JSON response contract: field_spec() renders
them into the extraction prompt, and decode validates against them.
"""

import uuid
from datetime import datetime
from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from insight_system.data_management.schemas.fact_schema import utc_now


class _ExtractedRecord(BaseModel):
    """Loose record of optional fields extracted by the model.

    Models often return numbers where strings are expected (and the other
    way round); values are coerced instead of rejected.
    """

    _INT_FIELDS: ClassVar[frozenset[str]] = frozenset()
    _META_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"id", "project_id", "confidence", "extraction_method", "source_document_id", "updated_at"}
    )

    model_config = {"extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def coerce_scalars(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        coerced = dict(data)
        for name, value in data.items():
            if name in cls._META_FIELDS or value is None:
                continue
            if name in cls._INT_FIELDS:
                try:
                    coerced[name] = int(float(str(value).replace(",", "")))
                except ValueError:
                    coerced[name] = None
            elif isinstance(value, (int, float)) and not isinstance(value, bool):
                coerced[name] = str(value)
            elif isinstance(value, str) and (not value.strip() or value.strip().lower() == "null"):
                coerced[name] = None
        return coerced

    @classmethod
    def data_fields(cls) -> list[str]:
        return [name for name in cls.model_fields if name not in cls._META_FIELDS]

    @classmethod
    def field_spec(cls) -> str:
        """Render data fields as prompt lines: '- name: description'."""
        return "\n".join(
            f"- {name}: {cls.model_fields[name].description or name}"
            for name in cls.data_fields()
        )

    def populated_ratio(self) -> float:
        """Share of data fields holding a value; used as extraction confidence."""
        fields = self.data_fields()
        if not fields:
            return 0.0
        populated = sum(1 for name in fields if getattr(self, name) is not None)
        return populated / len(fields)

    def merged_with(self, newer: "_ExtractedRecord") -> "_ExtractedRecord":
        """Overlay newer's populated fields onto this record."""
        updates = {
            name: getattr(newer, name)
            for name in self.data_fields()
            if getattr(newer, name) is not None
        }
        updates["updated_at"] = utc_now()
        return self.model_copy(update=updates)


class PerformanceParameters(_ExtractedRecord):
    """Technical parameters needed for a performance simulation."""

    _INT_FIELDS: ClassVar[frozenset[str]] = frozenset({"module_count", "inverter_count"})

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str = ""
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    extraction_method: str = "llm"
    source_document_id: Optional[str] = None
    updated_at: datetime = Field(default_factory=utc_now)

    # System design
    dc_capacity_mw: Optional[str] = Field(None, description="DC capacity in MW (e.g. '100.5')")
    ac_capacity_mw: Optional[str] = Field(None, description="AC capacity in MW (e.g. '80.0')")
    module_model: Optional[str] = Field(None, description="Solar module model name")
    module_power_watts: Optional[str] = Field(None, description="Module power rating in watts (e.g. '550')")
    module_count: Optional[int] = Field(None, description="Total number of modules (integer)")
    inverter_model: Optional[str] = Field(None, description="Inverter model name")
    inverter_power_kw: Optional[str] = Field(None, description="Inverter power rating in kW (e.g. '3125')")
    inverter_count: Optional[int] = Field(None, description="Total number of inverters (integer)")
    tracking_type: Optional[str] = Field(None, description="'fixed_tilt', 'single_axis' or 'dual_axis'")
    tilt_angle_degrees: Optional[str] = Field(None, description="Module tilt angle in degrees")
    azimuth_degrees: Optional[str] = Field(None, description="Module azimuth in degrees ('180' is south-facing)")

    # Location
    latitude: Optional[str] = Field(None, description="Site latitude in decimal degrees")
    longitude: Optional[str] = Field(None, description="Site longitude in decimal degrees")
    site_name: Optional[str] = Field(None, description="Project site name or location")
    elevation_m: Optional[str] = Field(None, description="Site elevation in meters")
    timezone: Optional[str] = Field(None, description="Site timezone (e.g. 'Europe/Malta')")

    # Performance assumptions
    system_losses_percent: Optional[str] = Field(None, description="Total system losses percentage")
    degradation_rate_percent: Optional[str] = Field(None, description="Annual degradation rate percentage")
    availability_percent: Optional[str] = Field(None, description="System availability percentage")
    soiling_loss_percent: Optional[str] = Field(None, description="Soiling losses percentage")

    # Weather data
    weather_file_url: Optional[str] = Field(None, description="URL or reference to a TMY/weather file")
    ghi_annual_kwh_m2: Optional[str] = Field(None, description="Annual global horizontal irradiation in kWh/m2")
    dni_annual_kwh_m2: Optional[str] = Field(None, description="Annual direct normal irradiation in kWh/m2")
    temperature_ambient_c: Optional[str] = Field(None, description="Average ambient temperature in C")

    # Contractor claims
    p50_generation_gwh: Optional[str] = Field(None, description="P50 annual generation estimate in GWh")
    p90_generation_gwh: Optional[str] = Field(None, description="P90 annual generation estimate in GWh")
    capacity_factor_percent: Optional[str] = Field(None, description="Expected capacity factor percentage")
    specific_yield_kwh_kwp: Optional[str] = Field(None, description="Specific yield in kWh/kWp")

    notes: Optional[str] = Field(None, description="Any additional relevant notes or assumptions")

    def coordinates(self) -> Optional[tuple[float, float]]:
        """Parsed (latitude, longitude), or None when absent or unparseable."""
        try:
            if self.latitude is None or self.longitude is None:
                return None
            return float(self.latitude), float(self.longitude)
        except ValueError:
            return None


class FinancialData(_ExtractedRecord):
    """CapEx/OpEx breakdown and normalized cost metrics (USD)."""

    _INT_FIELDS: ClassVar[frozenset[str]] = frozenset({"cost_year"})

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str = ""
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    extraction_method: str = "llm"
    source_document_id: Optional[str] = None
    updated_at: datetime = Field(default_factory=utc_now)

    total_capex_usd: Optional[str] = Field(None, description="Total capital expenditure in USD")
    modules_usd: Optional[str] = Field(None, description="Cost of solar modules in USD")
    inverters_usd: Optional[str] = Field(None, description="Cost of inverters in USD")
    trackers_usd: Optional[str] = Field(None, description="Cost of tracking systems in USD")
    civil_works_usd: Optional[str] = Field(None, description="Cost of civil works in USD")
    grid_connection_usd: Optional[str] = Field(None, description="Cost of grid connection in USD")
    development_costs_usd: Optional[str] = Field(None, description="Development costs in USD")
    other_capex_usd: Optional[str] = Field(None, description="Other CapEx costs in USD")
    total_opex_annual_usd: Optional[str] = Field(None, description="Total annual OpEx in USD")
    om_usd: Optional[str] = Field(None, description="Annual O&M costs in USD")
    insurance_usd: Optional[str] = Field(None, description="Annual insurance costs in USD")
    land_lease_usd: Optional[str] = Field(None, description="Annual land lease costs in USD")
    asset_management_usd: Optional[str] = Field(None, description="Annual asset management costs in USD")
    other_opex_usd: Optional[str] = Field(None, description="Other annual OpEx in USD")
    capex_per_watt_usd: Optional[str] = Field(None, description="CapEx per watt in USD")
    opex_per_mwh_usd: Optional[str] = Field(None, description="OpEx per MWh in USD")
    original_currency: Optional[str] = Field(None, description="Original currency code if not USD")
    exchange_rate_to_usd: Optional[str] = Field(None, description="Exchange rate to USD if applicable")
    cost_year: Optional[int] = Field(None, description="Year of cost estimates (integer)")
    escalation_rate_percent: Optional[str] = Field(None, description="Annual cost escalation rate percentage")
    notes: Optional[str] = Field(None, description="Any additional relevant notes about costs")


# ============================================================================
# Weather data
# ============================================================================


class MonthlyIrradiance(BaseModel):
    month: int = Field(..., ge=1, le=12)
    ghi_kwh_m2: float = 0.0
    dni_kwh_m2: float = 0.0
    dhi_kwh_m2: float = 0.0
    temperature_avg_c: Optional[float] = None


class WeatherSummary(BaseModel):
    ghi_total_kwh_m2: float = 0.0
    dni_total_kwh_m2: float = 0.0
    dhi_total_kwh_m2: float = 0.0
    temperature_avg_c: Optional[float] = None
    hours: int = 0


class WeatherLocation(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    elevation_m: Optional[float] = None
    name: Optional[str] = None


class ParsedWeatherData(BaseModel):
    """Aggregates computed from an hourly weather file."""

    format: Literal["pvgis", "epw", "csv"]
    location: WeatherLocation = Field(default_factory=WeatherLocation)
    monthly: list[MonthlyIrradiance] = Field(default_factory=list)
    annual: WeatherSummary = Field(default_factory=WeatherSummary)


class WeatherFile(BaseModel):
    """An uploaded weather/time-series file and its parsed aggregates."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str
    file_name: str
    content: str = ""
    status: Literal["uploaded", "parsed", "failed"] = "uploaded"
    original_format: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    elevation_m: Optional[float] = None
    location_name: Optional[str] = None
    monthly: list[MonthlyIrradiance] = Field(default_factory=list)
    annual: Optional[WeatherSummary] = None
    error: Optional[str] = None
    is_active: bool = True
    used_in_validation_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# ============================================================================
# Location
# ============================================================================

LocationSourceKind = Literal["document", "weather_file", "geocoded"]

# Higher wins; confidence breaks ties within a kind
LOCATION_PRIORITY: dict[str, int] = {"document": 3, "weather_file": 2, "geocoded": 1}


class LocationSource(BaseModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    source: LocationSourceKind
    confidence: float = Field(..., ge=0.0, le=1.0)
    details: Optional[str] = None

    @property
    def rank(self) -> tuple[int, float]:
        return LOCATION_PRIORITY[self.source], self.confidence


class ConsolidatedLocation(BaseModel):
    """The single recorded project location."""

    project_id: str
    latitude: float
    longitude: float
    source: str
    confidence: float
    city: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None
    recorded_at: datetime = Field(default_factory=utc_now)


# ============================================================================
# Documents, validation jobs and progress
# ============================================================================


class DocumentRecord(BaseModel):
    """Plain text of a document handed over by the document collaborator."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str
    text: str
    document_type: str = "GENERAL"
    file_name: Optional[str] = None
    fact_count: int = 0
    created_at: datetime = Field(default_factory=utc_now)


class ValidationJob(BaseModel):
    """Downstream performance-validation job; created at most once per project."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str
    calculation_id: str = Field(default_factory=lambda: f"calc_{uuid.uuid4().hex[:12]}")
    status: Literal["pending", "running", "complete", "failed"] = "pending"
    performance_parameters_id: Optional[str] = None
    weather_file_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ReadinessReport(BaseModel):
    """Outcome of the minimum-field readiness check."""

    ready: bool
    missing: list[str] = Field(default_factory=list)
    performance_parameters_id: Optional[str] = None
    weather_file_id: Optional[str] = None

    @property
    def reason(self) -> str:
        if self.ready:
            return "All required data available"
        return "Missing: " + ", ".join(self.missing)


class ProgressEvent(BaseModel):
    """One (stage, percent, message) consolidation checkpoint."""

    stage: str
    percent: int = Field(..., ge=0, le=100)
    message: str
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.stage in ("complete", "failed")
