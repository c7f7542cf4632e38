"""Readiness check and one-shot creation of the downstream validation job.

A project is ready for performance simulation once it has:
- a capacity (DC or AC)
- coordinates (from performance parameters, or the consolidated location)
- a configuration (tracking type)
- an active weather file that did not fail to parse

The job is created at most once per project; once any validation job exists
the trigger never fires again.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger

from insight_system.data_management.repository import ProjectRepository
from insight_system.data_management.schemas.project_schema import (
    ReadinessReport,
    ValidationJob,
)

MISSING_LOCATION = "Location (latitude/longitude)"
MISSING_CAPACITY = "Capacity (DC or AC MW)"
MISSING_CONFIGURATION = "Configuration (tracking type: fixed/SAT)"
MISSING_WEATHER = "Weather file (TMY data)"


@dataclass
class TriggerOutcome:
    """Result of auto_trigger_if_ready."""

    triggered: bool
    reason: str
    job: Optional[ValidationJob] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "triggered": self.triggered,
            "reason": self.reason,
            "validation_id": self.job.id if self.job else None,
        }


class ValidationTrigger:
    """Checks downstream readiness for one project and creates the job once."""

    def __init__(self, repository: ProjectRepository):
        self.repository = repository
        self.logger = logger.bind(component="ValidationTrigger", project_id=repository.project_id)

    async def check_readiness(self) -> ReadinessReport:
        """
        Report which minimum simulation inputs are present.

        Returns:
            ReadinessReport naming every missing input
        """
        missing = []
        params = await self.repository.get_performance_parameters()

        coordinates = params.coordinates() if params else None
        if coordinates is None:
            location = await self.repository.get_location()
            if location is not None:
                coordinates = (location.latitude, location.longitude)
        if coordinates is None:
            missing.append(MISSING_LOCATION)

        if params is None or not (params.dc_capacity_mw or params.ac_capacity_mw):
            missing.append(MISSING_CAPACITY)
        if params is None or not params.tracking_type:
            missing.append(MISSING_CONFIGURATION)

        weather_files = [
            f for f in await self.repository.weather_files(active_only=True) if f.status != "failed"
        ]
        weather_files.sort(key=lambda f: f.created_at, reverse=True)
        if not weather_files:
            missing.append(MISSING_WEATHER)

        return ReadinessReport(
            ready=not missing,
            missing=missing,
            performance_parameters_id=params.id if params else None,
            weather_file_id=weather_files[0].id if weather_files else None,
        )

    async def auto_trigger_if_ready(self) -> TriggerOutcome:
        """
        Create one pending validation job when the project is ready.

        Nothing is written when a job already exists or an input is missing.
        The weather file the job uses is marked with the job id.
        """
        if await self.repository.validation_jobs():
            self.logger.info("Validation already exists, not triggering")
            return TriggerOutcome(triggered=False, reason="Validation already exists")

        report = await self.check_readiness()
        if not report.ready:
            self.logger.info(f"Not ready for validation: {report.reason}")
            return TriggerOutcome(triggered=False, reason=report.reason)

        job = await self.repository.add_validation_job(
            ValidationJob(
                project_id=self.repository.project_id,
                performance_parameters_id=report.performance_parameters_id,
                weather_file_id=report.weather_file_id,
            )
        )

        for weather_file in await self.repository.weather_files(active_only=False):
            if weather_file.id == report.weather_file_id:
                await self.repository.update_weather_file(
                    weather_file.model_copy(update={"used_in_validation_id": job.id})
                )
                break

        self.logger.info(f"Created validation job {job.id}", calculation_id=job.calculation_id)
        return TriggerOutcome(triggered=True, reason="Validation triggered successfully", job=job)
