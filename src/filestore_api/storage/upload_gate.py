"""Upload policy: media-type allow-list and size ceiling, checked before any byte is stored."""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from filestore_api.errors import TooLarge, UnsupportedType


class RejectionReason(str, Enum):
    """Enumeration of the reasons an upload can be refused"""
    TOO_LARGE = "TooLarge"
    UNSUPPORTED_TYPE = "UnsupportedType"


@dataclass(frozen=True)
class GateDecision:
    reason: Optional[RejectionReason] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.reason is None


ACCEPTED = GateDecision()


def normalize_media_type(media_type: Optional[str]) -> str:
    """``"Image/JPEG; charset=binary"`` -> ``"image/jpeg"``."""
    return (media_type or "").split(";", 1)[0].strip().lower()


class UploadGate:
    """Validates an upload's declared media type and size against policy."""

    def __init__(self, allowed_media_types: Mapping[str, str], max_size_bytes: int):
        self.allowed_media_types = {
            normalize_media_type(media_type): extension
            for media_type, extension in allowed_media_types.items()
        }
        self.max_size_bytes = max_size_bytes

    def validate(self, media_type: Optional[str], size_bytes: int) -> GateDecision:
        normalized = normalize_media_type(media_type)
        if normalized not in self.allowed_media_types:
            return GateDecision(
                RejectionReason.UNSUPPORTED_TYPE,
                UnsupportedType(normalized or "unknown").message,
            )
        if size_bytes > self.max_size_bytes:
            return GateDecision(
                RejectionReason.TOO_LARGE,
                TooLarge(size_bytes, self.max_size_bytes).message,
            )
        return ACCEPTED

    def check(self, media_type: Optional[str], size_bytes: int) -> str:
        """
        Raise on rejection, otherwise return the normalized media type.

        Raises:
            UnsupportedType: media type not on the allow-list
            TooLarge: ``size_bytes`` above the configured ceiling
        """
        decision = self.validate(media_type, size_bytes)
        if decision.reason is RejectionReason.UNSUPPORTED_TYPE:
            raise UnsupportedType(normalize_media_type(media_type) or "unknown")
        if decision.reason is RejectionReason.TOO_LARGE:
            raise TooLarge(size_bytes, self.max_size_bytes)
        return normalize_media_type(media_type)
