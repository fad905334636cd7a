from dataclasses import dataclass, field

DEFAULT_TERMINATION_KEYWORDS = ("FIN", "SALIR", "ADIOS", "CHAU", "TERMINAR")


@dataclass(frozen=True)
class CannedReplies:
    already_processed: str = "Mensaje ya procesado."
    farewell: str = "👋 Sesión terminada. ¡Hasta luego!"
    empty_reply: str = "Lo siento, no pude generar una respuesta."
    clarification: str = "He procesado tu solicitud, pero necesito más claridad. ¿Puedes reformular tu pregunta?"
    technical_error: str = "Lo siento, ocurrió un error técnico. Por favor intenta de nuevo."


@dataclass
class AgentConfig:
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 1500
    temperature: float = 0.3
    system_prompt: str = ""
    max_rounds: int = 3
    termination_keywords: tuple[str, ...] = DEFAULT_TERMINATION_KEYWORDS
    serialize_per_identity: bool = False
    replies: CannedReplies = field(default_factory=CannedReplies)
