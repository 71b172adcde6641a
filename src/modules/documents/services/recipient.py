import base64
import binascii
from dataclasses import dataclass
from typing import Optional

from config import settings
from modules.documents.errors import InvalidInput


@dataclass(frozen=True)
class Recipient:
    """
    Who an operation acts for: one recipient e-mail, or the aggregate identity
    used by single-operator fast signing (every recipient of the document).
    """
    email: Optional[str] = None
    is_aggregate: bool = False

    @classmethod
    def specific(cls, email: str) -> "Recipient":
        return cls(email=email)

    @classmethod
    def aggregate(cls) -> "Recipient":
        return cls(is_aggregate=True)

    @property
    def storage_email(self) -> str:
        """E-mail under which rows written for this recipient are stored."""
        if self.is_aggregate:
            return settings.aggregate_recipient_email
        return self.email

    @property
    def filter_email(self) -> Optional[str]:
        """E-mail to filter reads by; None means every recipient."""
        return None if self.is_aggregate else self.email


def encode_token(email: str) -> str:
    return base64.b64encode(email.encode("utf-8")).decode("ascii")


def _normalize_token(token: str) -> str:
    """Accepts the URL-safe alphabet and missing padding."""
    token = token.strip().replace("-", "+").replace("_", "/").rstrip("=")
    return token + "=" * (-len(token) % 4)


def decode_token(token: Optional[str]) -> Recipient:
    """Decodes a recipient token (base64 of the e-mail, not signed)."""
    if not token:
        raise InvalidInput("Missing token")
    try:
        email = base64.b64decode(_normalize_token(token), validate=True).decode("utf-8").strip()
    except (binascii.Error, UnicodeDecodeError):
        raise InvalidInput("Invalid token")
    if not email:
        raise InvalidInput("Invalid token")

    if email in (settings.aggregate_view_token, settings.aggregate_recipient_email):
        return Recipient.aggregate()
    return Recipient.specific(email)
