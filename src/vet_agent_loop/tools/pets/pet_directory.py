from dataclasses import asdict, dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class OwnerRecord:
    id: str
    name: str
    phone: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PetRecord:
    id: str
    name: str
    species: str
    date_of_birth: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ConsultationRecord:
    id: int
    pet_id: str
    date: str
    consultation_type: str | None = None
    chief_complaint: str | None = None
    findings: str | None = None
    diagnosis: str | None = None
    next_steps: str | None = None
    additional_notes: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@runtime_checkable
class PetDirectory(Protocol):
    """Owner, pet and consultation records, keyed by the owner's normalized phone.

    Implementations talk to the clinic database; raising signals a transient
    failure the runner may retry.
    """

    async def upsert_owner(self, name: str, phone: str) -> OwnerRecord: ...

    async def get_owner(self, phone: str) -> OwnerRecord | None: ...

    async def list_pets(self, phone: str) -> list[PetRecord] | None:
        """Return the owner's pets, or None when the phone is not registered."""
        ...

    async def create_pet(self, phone: str, name: str, species: str, date_of_birth: str) -> PetRecord: ...

    async def list_consultations(self, pet_id: str) -> list[ConsultationRecord]: ...

    async def get_consultation(self, consultation_id: int) -> ConsultationRecord | None: ...
