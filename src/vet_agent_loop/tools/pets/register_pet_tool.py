from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from vet_agent_loop.tool import ToolContext, ToolPolicy, ToolResult, parse_args
from vet_agent_loop.tools.input_normalizer import normalize_date, normalize_name, normalize_species
from vet_agent_loop.tools.pets.pet_directory import PetDirectory


class RegisterPetArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    dateOfBirth: str = Field(min_length=1)
    species: str = Field(min_length=1)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return normalize_name(value)

    @field_validator("species")
    @classmethod
    def _species(cls, value: str) -> str:
        try:
            return normalize_species(value)
        except ValueError:
            raise ValueError('Especie de mascota no reconocida. Debe ser "perro" o "gato".') from None

    @field_validator("dateOfBirth")
    @classmethod
    def _date_of_birth(cls, value: str) -> str:
        try:
            return normalize_date(value)
        except ValueError:
            raise ValueError(
                'Fecha no válida. Proporciona una fecha específica como "15 de enero de 2022".'
            ) from None


class RegisterPetTool:
    def __init__(self, directory: PetDirectory) -> None:
        self._directory = directory

    @property
    def name(self) -> str:
        return "register_pet"

    @property
    def description(self) -> str:
        return "Register a new pet. Only call if you have clear name and species."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Pet name"},
                "dateOfBirth": {"type": "string", "description": "Pet birth date in any clear format"},
                "species": {"type": "string", "enum": ["CAT", "DOG"], "description": "Must be exactly CAT or DOG"},
            },
            "required": ["name", "dateOfBirth", "species"],
            "additionalProperties": False,
        }

    @property
    def policy(self) -> ToolPolicy:
        return ToolPolicy(timeout=8.0, retries=2, retry_delay=1.5)

    def validate(self, tool_input: Any) -> RegisterPetArgs:
        return parse_args(self.name, RegisterPetArgs, tool_input)

    async def execute(self, args: RegisterPetArgs, context: ToolContext) -> ToolResult:
        existing = await self._directory.list_pets(context.identity)
        if existing is None:
            return ToolResult.failure("Usuario no registrado. Pide su nombre y usa register_user primero.")

        for pet in existing:
            if pet.name.lower() == args.name.lower() and pet.species == args.species:
                logger.info(f"[{context.request_id}] Pet already exists: {pet.id}")
                return ToolResult.success({**pet.to_dict(), "message": "Esta mascota ya estaba registrada"})

        pet = await self._directory.create_pet(context.identity, args.name, args.species, args.dateOfBirth)
        logger.info(f"[{context.request_id}] Pet registered: {pet.id}")
        return ToolResult.success(pet.to_dict())
