"""Lenient parsing of names, species and birth dates typed by WhatsApp users."""

from __future__ import annotations

import re
from datetime import date, datetime

_CAT_WORDS = ("GATA", "GATITO", "GATITA", "FELINO", "MICHI", "MIAU")
_DOG_WORDS = ("PERRA", "PERRITO", "PERRITA", "CANINO", "CACHORRO", "CACHORRA", "GUAU")

_SPANISH_MONTHS = {
    "enero": 1,
    "febrero": 2,
    "marzo": 3,
    "abril": 4,
    "mayo": 5,
    "junio": 6,
    "julio": 7,
    "agosto": 8,
    "septiembre": 9,
    "setiembre": 9,
    "octubre": 10,
    "noviembre": 11,
    "diciembre": 12,
}

_SPANISH_DATE = re.compile(r"(\d{1,2})\s+de\s+([a-záéíóú]+|\d{1,2})\s+(?:de|del)\s+(\d{4})")
_NUMERIC_DMY = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})$")
_AGE_YEARS = re.compile(r"(\d+)\s*(?:año|años|anos|year|years)", re.IGNORECASE)
_AGE_MONTHS = re.compile(r"(\d+)\s*(?:mes|meses|month|months)", re.IGNORECASE)


def normalize_name(value: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in value.strip().lower().split())


def normalize_species(value: str) -> str:
    normalized = value.strip().upper()
    if normalized in {"CAT", "GATO"}:
        return "CAT"
    if normalized in {"DOG", "PERRO"}:
        return "DOG"
    if any(word in normalized for word in _CAT_WORDS):
        return "CAT"
    if any(word in normalized for word in _DOG_WORDS):
        return "DOG"
    raise ValueError(f"Invalid species: {value}. Must be CAT/GATO or DOG/PERRO")


def normalize_date(value: str, *, today: date | None = None) -> str:
    """Return an ISO ``YYYY-MM-DD`` birth date.

    Relative ages ("2 años", "3 meses") are resolved against ``today``; an age
    in years maps to January 1st of the birth year.
    """
    today = today or date.today()
    text = value.strip().lower()

    try:
        return datetime.fromisoformat(text).date().isoformat()
    except ValueError:
        pass

    match = _NUMERIC_DMY.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        return _checked(year, month, day, value)

    match = _SPANISH_DATE.search(text)
    if match:
        day_s, month_s, year_s = match.groups()
        month = int(month_s) if month_s.isdigit() else _SPANISH_MONTHS.get(month_s)
        if month is not None:
            return _checked(int(year_s), month, int(day_s), value)

    match = _AGE_YEARS.search(text)
    if match:
        return date(today.year - int(match.group(1)), 1, 1).isoformat()

    match = _AGE_MONTHS.search(text)
    if match:
        total = today.year * 12 + (today.month - 1) - int(match.group(1))
        year, month = divmod(total, 12)
        return date(year, month + 1, min(today.day, 28)).isoformat()

    raise ValueError(
        f'Invalid date format: {value}. Please provide a specific date like "2022-01-15" or "15 de enero de 2022"'
    )


def _checked(year: int, month: int, day: int, original: str) -> str:
    try:
        return date(year, month, day).isoformat()
    except ValueError as ex:
        raise ValueError(f"Invalid date format: {original}") from ex
