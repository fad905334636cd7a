from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict

from vet_agent_loop.tool import ToolContext, ToolPolicy, ToolResult, parse_args
from vet_agent_loop.tools.pets.list_consultations_tool import filter_pets_by_name
from vet_agent_loop.tools.pets.pet_directory import ConsultationRecord, PetDirectory


class GetConsultationArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int | None = None
    petName: str | None = None
    chiefComplaint: str | None = None
    diagnosis: str | None = None
    date: str | None = None


def _contains(value: str | None, term: str) -> bool:
    return value is not None and term.lower() in value.lower()


def _matches(consultation: ConsultationRecord, args: GetConsultationArgs) -> bool:
    if args.chiefComplaint and not _contains(consultation.chief_complaint, args.chiefComplaint):
        return False
    if args.diagnosis and not _contains(consultation.diagnosis, args.diagnosis):
        return False
    # Dates compare on the YYYY-MM-DD part, so "2024-03" matches a whole month.
    if args.date and args.date not in consultation.date[:10]:
        return False
    return True


class GetConsultationTool:
    """Detailed consultation lookup, by id or by search criteria.

    Only consultations of the caller's own pets are ever returned.
    """

    def __init__(self, directory: PetDirectory) -> None:
        self._directory = directory

    @property
    def name(self) -> str:
        return "get_consultation"

    @property
    def description(self) -> str:
        return (
            "Get detailed consultation information. Can search by ID, pet name, "
            "chief complaint, diagnosis, or date."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "id": {"type": "number", "description": "Specific consultation ID"},
                "petName": {"type": "string", "description": "Pet name to filter consultations (case insensitive)"},
                "chiefComplaint": {"type": "string", "description": "Search consultations by chief complaint keywords"},
                "diagnosis": {"type": "string", "description": "Search consultations by diagnosis keywords"},
                "date": {"type": "string", "description": "Search by date (YYYY-MM-DD or partial date)"},
            },
            "additionalProperties": False,
        }

    @property
    def policy(self) -> ToolPolicy:
        return ToolPolicy(timeout=10.0, retries=2, retry_delay=2.0)

    def validate(self, tool_input: Any) -> GetConsultationArgs:
        return parse_args(self.name, GetConsultationArgs, tool_input)

    async def execute(self, args: GetConsultationArgs, context: ToolContext) -> ToolResult:
        if args.id is not None:
            return await self._by_id(args.id, context)

        pets = await self._directory.list_pets(context.identity)
        if not pets:
            return ToolResult.failure("No se encontraron mascotas registradas")

        targets = filter_pets_by_name(pets, args.petName)
        if not targets:
            return ToolResult.failure(f'No se encontró ninguna mascota con el nombre "{args.petName}"')

        found = []
        for pet in targets:
            for consultation in await self._directory.list_consultations(pet.id):
                if _matches(consultation, args):
                    found.append({**consultation.to_dict(), "petName": pet.name, "petSpecies": pet.species})

        if not found:
            return ToolResult.failure("No se encontraron consultas que coincidan con los criterios de búsqueda")

        found.sort(key=lambda c: c["date"], reverse=True)
        logger.info(f"[{context.request_id}] Found {len(found)} consultations matching search criteria")
        if len(found) == 1:
            return ToolResult.success(found[0])
        return ToolResult.success(
            {"consultations": found, "totalCount": len(found), "message": f"Se encontraron {len(found)} consultas"}
        )

    async def _by_id(self, consultation_id: int, context: ToolContext) -> ToolResult:
        consultation = await self._directory.get_consultation(consultation_id)
        if consultation is None:
            return ToolResult.failure("Consulta no encontrada")

        pets = await self._directory.list_pets(context.identity)
        if not pets:
            return ToolResult.failure("No se encontraron mascotas registradas")

        pet = next((p for p in pets if p.id == consultation.pet_id), None)
        if pet is None:
            logger.warning(
                f"[{context.request_id}] Consultation {consultation_id} requested by a user who does not own it"
            )
            return ToolResult.failure("La consulta no pertenece a tus mascotas")

        logger.info(f"[{context.request_id}] Retrieved consultation {consultation_id} for user")
        return ToolResult.success({**consultation.to_dict(), "petName": pet.name, "petSpecies": pet.species})
