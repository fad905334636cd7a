from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict

from vet_agent_loop.tool import ToolContext, ToolPolicy, ToolResult, parse_args
from vet_agent_loop.tools.pets.pet_directory import PetDirectory, PetRecord


class ListConsultationsArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    petName: str | None = None


def filter_pets_by_name(pets: list[PetRecord], pet_name: str | None) -> list[PetRecord]:
    """Case-insensitive substring match; no filter when ``pet_name`` is empty."""
    if not pet_name:
        return list(pets)
    needle = pet_name.lower()
    return [p for p in pets if needle in p.name.lower()]


class ListConsultationsTool:
    def __init__(self, directory: PetDirectory) -> None:
        self._directory = directory

    @property
    def name(self) -> str:
        return "list_consultations"

    @property
    def description(self) -> str:
        return "List consultations for user pets, optionally filtered by pet name."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "petName": {
                    "type": "string",
                    "description": "Optional pet name to filter consultations (case insensitive)",
                },
            },
            "additionalProperties": False,
        }

    @property
    def policy(self) -> ToolPolicy:
        return ToolPolicy(timeout=8.0, retries=2, retry_delay=1.5)

    def validate(self, tool_input: Any) -> ListConsultationsArgs:
        return parse_args(self.name, ListConsultationsArgs, tool_input)

    async def execute(self, args: ListConsultationsArgs, context: ToolContext) -> ToolResult:
        pets = await self._directory.list_pets(context.identity)
        if not pets:
            return ToolResult.failure("No se encontraron mascotas registradas para este usuario")

        targets = filter_pets_by_name(pets, args.petName)
        if not targets:
            return ToolResult.failure(f'No se encontró ninguna mascota con el nombre "{args.petName}"')

        consultations = []
        for pet in targets:
            for consultation in await self._directory.list_consultations(pet.id):
                consultations.append({**consultation.to_dict(), "petName": pet.name, "petSpecies": pet.species})
        consultations.sort(key=lambda c: c["date"], reverse=True)

        logger.info(
            f"[{context.request_id}] Listed {len(consultations)} consultations for {len(targets)} pets"
        )
        return ToolResult.success(
            {
                "consultations": consultations,
                "totalCount": len(consultations),
                "petsIncluded": [{"id": p.id, "name": p.name, "species": p.species} for p in targets],
            }
        )
