"""Per-project repository: the only storage interface components see.

Components never reach for a global store. They receive a ProjectRepository
bound to one project id and read/write typed models through it.

Usage:
    storage = Storage.open(settings.data_dir)
    repo = storage.repository("proj-7")
    await repo.add_fact(fact)
"""

from pathlib import Path
from typing import List, Optional

from insight_system.data_management.conflict_store import ConflictStore
from insight_system.data_management.fact_store import FactStore
from insight_system.data_management.record_store import RecordStore
from insight_system.data_management.schemas.conflict_schema import Conflict, ResolutionStatus
from insight_system.data_management.schemas.fact_schema import Fact
from insight_system.data_management.schemas.narrative_schema import Narrative
from insight_system.data_management.schemas.project_schema import (
    ConsolidatedLocation,
    DocumentRecord,
    FinancialData,
    PerformanceParameters,
    ValidationJob,
    WeatherFile,
)

DOCUMENTS = "documents"
NARRATIVES = "narratives"
STRUCTURED = "structured"
WEATHER_FILES = "weather_files"
VALIDATIONS = "validations"

PERFORMANCE_RECORD = "performance_parameters"
FINANCIAL_RECORD = "financial_data"
LOCATION_RECORD = "location"


class ProjectRepository:
    """Typed storage operations scoped to one project."""

    def __init__(
        self,
        project_id: str,
        fact_store: FactStore,
        conflict_store: ConflictStore,
        record_store: RecordStore,
    ):
        self.project_id = project_id
        self.fact_store = fact_store
        self.conflict_store = conflict_store
        self.record_store = record_store

    # ---------------------------------------------------------------- facts

    async def add_fact(self, fact: Fact) -> Fact:
        return await self.fact_store.add_fact(fact)

    async def add_facts(self, facts: List[Fact]) -> int:
        stats = await self.fact_store.add_facts(facts)
        return stats["saved"]

    async def get_fact(self, fact_id: str) -> Optional[Fact]:
        return await self.fact_store.get_fact(self.project_id, fact_id)

    async def update_fact(self, fact: Fact) -> Fact:
        return await self.fact_store.update_fact(fact)

    async def soft_delete_fact(self, fact_id: str) -> Fact:
        return await self.fact_store.soft_delete(self.project_id, fact_id)

    async def live_facts(self) -> List[Fact]:
        return await self.fact_store.list_facts(self.project_id)

    async def all_facts(self) -> List[Fact]:
        return await self.fact_store.list_facts(self.project_id, include_deleted=True)

    async def live_facts_by_key(self, canonical_key: str) -> List[Fact]:
        return await self.fact_store.live_facts_by_key(self.project_id, canonical_key)

    # ------------------------------------------------------------ conflicts

    async def add_conflict(self, conflict: Conflict) -> Conflict:
        return await self.conflict_store.add_conflict(conflict)

    async def get_conflict(self, conflict_id: str) -> Optional[Conflict]:
        return await self.conflict_store.get_conflict(self.project_id, conflict_id)

    async def update_conflict(self, conflict: Conflict) -> Conflict:
        return await self.conflict_store.update_conflict(conflict)

    async def conflicts(self, status: Optional[ResolutionStatus] = None) -> List[Conflict]:
        return await self.conflict_store.list_conflicts(self.project_id, status)

    async def pending_conflicts(self) -> List[Conflict]:
        return await self.conflicts(ResolutionStatus.PENDING)

    async def pending_conflicts_for(self, fact_id: str) -> List[Conflict]:
        return await self.conflict_store.pending_for_fact(self.project_id, fact_id)

    async def find_conflict_between(self, fact_a_id: str, fact_b_id: str) -> Optional[Conflict]:
        return await self.conflict_store.find_between(self.project_id, fact_a_id, fact_b_id)

    # ------------------------------------------------------------ documents

    async def add_document(self, document: DocumentRecord) -> DocumentRecord:
        await self.record_store.put(self.project_id, DOCUMENTS, document.id, document)
        return document

    async def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        return await self.record_store.get(self.project_id, DOCUMENTS, document_id, DocumentRecord)

    async def documents(self) -> List[DocumentRecord]:
        return await self.record_store.list(self.project_id, DOCUMENTS, DocumentRecord)

    # ----------------------------------------------------------- narratives

    async def get_narrative(self, section_key: str) -> Optional[Narrative]:
        return await self.record_store.get(self.project_id, NARRATIVES, section_key, Narrative)

    async def upsert_narrative(self, section_key: str, text: str, fact_count: int = 0) -> Narrative:
        """Create or overwrite the narrative of one section."""
        existing = await self.get_narrative(section_key)
        if existing is None:
            narrative = Narrative(
                project_id=self.project_id,
                section_key=section_key,
                text=text,
                fact_count=fact_count,
            )
        else:
            narrative = existing.revise(text, fact_count)
        await self.record_store.put(self.project_id, NARRATIVES, section_key, narrative)
        return narrative

    async def narratives(self) -> List[Narrative]:
        return await self.record_store.list(self.project_id, NARRATIVES, Narrative)

    # --------------------------------------------------- structured records

    async def get_performance_parameters(self) -> Optional[PerformanceParameters]:
        return await self.record_store.get(
            self.project_id, STRUCTURED, PERFORMANCE_RECORD, PerformanceParameters
        )

    async def save_performance_parameters(self, params: PerformanceParameters) -> PerformanceParameters:
        params = params.model_copy(update={"project_id": self.project_id})
        await self.record_store.put(self.project_id, STRUCTURED, PERFORMANCE_RECORD, params)
        return params

    async def get_financial_data(self) -> Optional[FinancialData]:
        return await self.record_store.get(self.project_id, STRUCTURED, FINANCIAL_RECORD, FinancialData)

    async def save_financial_data(self, data: FinancialData) -> FinancialData:
        data = data.model_copy(update={"project_id": self.project_id})
        await self.record_store.put(self.project_id, STRUCTURED, FINANCIAL_RECORD, data)
        return data

    async def get_location(self) -> Optional[ConsolidatedLocation]:
        return await self.record_store.get(self.project_id, STRUCTURED, LOCATION_RECORD, ConsolidatedLocation)

    async def save_location(self, location: ConsolidatedLocation) -> ConsolidatedLocation:
        await self.record_store.put(self.project_id, STRUCTURED, LOCATION_RECORD, location)
        return location

    # --------------------------------------------------------- weather data

    async def add_weather_file(self, weather_file: WeatherFile) -> WeatherFile:
        await self.record_store.put(self.project_id, WEATHER_FILES, weather_file.id, weather_file)
        return weather_file

    async def update_weather_file(self, weather_file: WeatherFile) -> WeatherFile:
        await self.record_store.put(self.project_id, WEATHER_FILES, weather_file.id, weather_file)
        return weather_file

    async def weather_files(self, active_only: bool = True) -> List[WeatherFile]:
        files = await self.record_store.list(self.project_id, WEATHER_FILES, WeatherFile)
        if active_only:
            files = [f for f in files if f.is_active]
        return files

    # ------------------------------------------------------ validation jobs

    async def add_validation_job(self, job: ValidationJob) -> ValidationJob:
        await self.record_store.put(self.project_id, VALIDATIONS, job.id, job)
        return job

    async def validation_jobs(self) -> List[ValidationJob]:
        return await self.record_store.list(self.project_id, VALIDATIONS, ValidationJob)


class Storage:
    """The three backing stores, shared by every project repository."""

    def __init__(
        self,
        fact_store: Optional[FactStore] = None,
        conflict_store: Optional[ConflictStore] = None,
        record_store: Optional[RecordStore] = None,
    ):
        self.fact_store = fact_store or FactStore()
        self.conflict_store = conflict_store or ConflictStore()
        self.record_store = record_store or RecordStore()

    @classmethod
    def open(cls, data_dir: Optional[str] = None) -> "Storage":
        """Stores persisted under data_dir, or memory-only when data_dir is None."""
        if data_dir is None:
            return cls()
        root = Path(data_dir)
        return cls(
            fact_store=FactStore(str(root / "facts.json")),
            conflict_store=ConflictStore(str(root / "conflicts.json")),
            record_store=RecordStore(str(root / "records.json")),
        )

    def repository(self, project_id: str) -> ProjectRepository:
        return ProjectRepository(project_id, self.fact_store, self.conflict_store, self.record_store)
