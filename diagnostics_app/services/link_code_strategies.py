"""
Tracking link code generation strategies.
Uses Strategy Pattern so the code format can change without touching the service.
"""

import secrets
from abc import ABC, abstractmethod

from sqlalchemy.orm import Session

from diagnostics_app.exceptions import LinkCodeGenerationError
from diagnostics_app.models.tracking import TrackingLink


def _code_taken(db_session: Session, code: str) -> bool:
    return db_session.query(TrackingLink.id).filter(TrackingLink.link_code == code).first() is not None


class LinkCodeStrategy(ABC):
    """Abstract base class for link code generation strategies"""

    @abstractmethod
    def generate(self, sequence: int, db_session: Session) -> str:
        """
        Generate a link code that no stored link uses yet.

        Args:
            sequence: Position of the new link (number of stored links + 1)
            db_session: Database session used to check uniqueness

        Returns:
            A unique link code string
        """
        pass


class RandomHexLinkCodeStrategy(LinkCodeStrategy):
    """
    Random bytes rendered as hex (8 bytes -> 16 characters by default).

    Unguessable, which matters because the code is the only thing protecting
    the public visit endpoint. Collisions are checked against the database.
    """

    def __init__(self, num_bytes: int = 8, max_retries: int = 5):
        self.num_bytes = num_bytes
        self.max_retries = max_retries

    def generate(self, sequence: int, db_session: Session) -> str:
        for _ in range(self.max_retries):
            code = secrets.token_hex(self.num_bytes)
            if not _code_taken(db_session, code):
                return code

        raise LinkCodeGenerationError(
            f"Could not generate unique link code after {self.max_retries} attempts"
        )


class Base62LinkCodeStrategy(LinkCodeStrategy):
    """
    Base62 encoding of the salted link sequence.

    Short and deterministic. Deleting links shrinks the sequence, so the
    next free sequence value is probed when a code is already taken.
    """

    BASE62_CHARS = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"

    def __init__(self, salt: int = 1000, max_length: int = 16, max_retries: int = 5):
        self.salt = salt
        self.max_length = max_length
        self.max_retries = max_retries

    def generate(self, sequence: int, db_session: Session) -> str:
        for offset in range(self.max_retries):
            code = self.encode(sequence + offset)
            if not _code_taken(db_session, code):
                return code

        raise LinkCodeGenerationError(
            f"Could not find a free Base62 code starting at sequence {sequence}"
        )

    def encode(self, sequence: int) -> str:
        """
        Salted Base62 code for a sequence value.

        Raises ValueError when the code outgrows max_length; truncating
        would produce duplicates.
        """
        encoded = self._base62_encode(sequence + self.salt)
        if len(encoded) > self.max_length:
            raise ValueError(
                f"Generated code '{encoded}' exceeds max length {self.max_length}. "
                f"Consider increasing link_code_max_length."
            )
        return encoded

    def _base62_encode(self, number: int) -> str:
        if number == 0:
            return self.BASE62_CHARS[0]

        result = ""
        while number > 0:
            result = self.BASE62_CHARS[number % 62] + result
            number //= 62

        return result
