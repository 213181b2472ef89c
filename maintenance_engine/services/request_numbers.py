"""
Human-readable request numbers: MR-{abbrev}-{YYYYMMDD}-{seq}.

The daily sequence is derived by scanning existing numbers for the same
abbreviation and date. That read-then-insert is not atomic, so two
concurrent same-day creations for one client can get the same number.
Request numbers are advisory (the primary key is the integer id), so the
collision is tolerated rather than serialised with a lock. Anything that
needs a hard guarantee should run generate() and the insert in one
serializable transaction.
"""
import logging
import string
from datetime import timezone
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from maintenance_engine.clock import Clock, utcnow
from maintenance_engine.config import REQUEST_NUMBER_PREFIX, REQUEST_NUMBER_FALLBACK_TAG
from maintenance_engine.core.exceptions import GenerationError
from maintenance_engine.models.domain import MaintenanceRequest

logger = logging.getLogger(__name__)

ABBREVIATION_LENGTH = 3
SEQUENCE_WIDTH = 3
FALLBACK_DIGITS = 6


def client_abbreviation(client_name: str) -> str:
    """
    First letter of each whitespace-separated word, uppercased, cut to three
    characters and right-padded with X.

        "Acme Corp"          -> "ACX"
        "Initech"            -> "IXX"
        "Big Blue Box Corp"  -> "BBB"

    Tokens with no ASCII letter are skipped. Raises ValueError when no letter
    is left at all.
    """
    if not isinstance(client_name, str):
        raise ValueError(f"client name must be a string, got {type(client_name).__name__}")

    initials = []
    for word in client_name.split():
        letter = next((ch for ch in word if ch in string.ascii_letters), None)
        if letter:
            initials.append(letter.upper())

    if not initials:
        raise ValueError(f"client name {client_name!r} has no usable initials")

    return "".join(initials)[:ABBREVIATION_LENGTH].ljust(ABBREVIATION_LENGTH, "X")


def next_sequence(existing_numbers: Iterable[str]) -> int:
    """max(trailing digits) + 1 across existing numbers, or 1 when there are none."""
    highest = 0
    for number in existing_numbers:
        suffix = number.rsplit("-", 1)[-1]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest + 1


class RequestNumberGenerator:
    """Produces request numbers; never blocks request creation on failure."""

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    def generate(self, client_name: Optional[str]) -> str:
        """
        Build MR-{abbrev}-{date}-{seq} for the client.

        Falls back to MR-GEN-{last 6 digits of epoch millis} when the name is
        unusable or the sequence lookup fails.
        """
        try:
            abbreviation = client_abbreviation(client_name)
            date_string = self.clock().strftime("%Y%m%d")
            # A failed lookup rolls back only this savepoint, not the caller's transaction
            with self.db.begin_nested():
                existing = self._numbers_for(abbreviation, date_string)
            sequence = next_sequence(existing)
        except (ValueError, SQLAlchemyError) as exc:
            logger.warning(
                "Request number generation failed, using fallback: %s", exc,
                extra={"client_name": client_name},
            )
            return self.fallback()

        return f"{REQUEST_NUMBER_PREFIX}-{abbreviation}-{date_string}-{sequence:0{SEQUENCE_WIDTH}d}"

    def fallback(self) -> str:
        """Timestamp-based number: readable order is sacrificed for availability."""
        try:
            millis = int(self.clock().replace(tzinfo=timezone.utc).timestamp() * 1000)
        except (TypeError, ValueError, OverflowError, OSError) as exc:
            raise GenerationError("Unable to build a fallback request number") from exc
        digits = str(millis)[-FALLBACK_DIGITS:].zfill(FALLBACK_DIGITS)
        return f"{REQUEST_NUMBER_PREFIX}-{REQUEST_NUMBER_FALLBACK_TAG}-{digits}"

    def _numbers_for(self, abbreviation: str, date_string: str) -> list:
        pattern = f"{REQUEST_NUMBER_PREFIX}-{abbreviation}-{date_string}-%"
        rows = self.db.execute(
            select(MaintenanceRequest.request_number).where(
                MaintenanceRequest.request_number.like(pattern)
            )
        )
        return [number for (number,) in rows]
