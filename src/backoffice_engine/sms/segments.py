"""SMS segment counting and cost estimation.

Carriers bill per segment. A message that fits the GSM 03.38 7-bit
alphabet is sent as GSM-7 (160 characters, or 153 per segment once it
is split); any other character switches the whole message to UCS-2
(70 characters, or 67 per segment). Characters from the GSM extension
table take two septets.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from backoffice_engine.exceptions import ValidationError

GSM_BASIC_CHARS = frozenset(
    "@£$¥èéùìòÇ\nØø\rÅåΔ_ΦΓΛΩΠΨΣΘΞÆæßÉ !\"#¤%&'()*+,-./0123456789:;<=>?"
    "¡ABCDEFGHIJKLMNOPQRSTUVWXYZÄÖÑÜ§¿abcdefghijklmnopqrstuvwxyzäöñüà"
)
GSM_EXTENDED_CHARS = frozenset("|^€{}[]~\\")

GSM_SINGLE_LIMIT = 160
GSM_SEGMENT_LENGTH = 153
UNICODE_SINGLE_LIMIT = 70
UNICODE_SEGMENT_LENGTH = 67

# Per segment (SMS) and per message (MMS), USD
SMS_RATE = Decimal("0.0079")
MMS_RATE = Decimal("0.02")


class Encoding(str, Enum):
    GSM7 = "gsm7"
    UNICODE = "unicode"


@dataclass(frozen=True)
class MessageAnalysis:
    """Encoding and billing facts about one message body."""

    encoding: Encoding
    length: int
    effective_length: int
    segments: int

    @property
    def is_unicode(self) -> bool:
        return self.encoding == Encoding.UNICODE


@dataclass(frozen=True)
class CostEstimate:
    recipient_count: int
    segments_per_message: int
    has_media: bool
    total_segments: int
    estimated_cost: Decimal


def is_gsm_character(char: str) -> bool:
    return char in GSM_BASIC_CHARS or char in GSM_EXTENDED_CHARS


def is_gsm_message(message: str) -> bool:
    return all(is_gsm_character(char) for char in message)


def utf16_length(message: str) -> int:
    """Length in UTF-16 code units (astral characters such as emoji count 2)."""
    return len(message.encode("utf-16-le")) // 2


def analyze_message(message: str) -> MessageAnalysis:
    if not message:
        return MessageAnalysis(Encoding.GSM7, 0, 0, 0)

    if is_gsm_message(message):
        effective = sum(2 if char in GSM_EXTENDED_CHARS else 1 for char in message)
        if effective <= GSM_SINGLE_LIMIT:
            segments = 1
        else:
            segments = math.ceil(effective / GSM_SEGMENT_LENGTH)
        return MessageAnalysis(Encoding.GSM7, len(message), effective, segments)

    length = utf16_length(message)
    if length <= UNICODE_SINGLE_LIMIT:
        segments = 1
    else:
        segments = math.ceil(length / UNICODE_SEGMENT_LENGTH)
    return MessageAnalysis(Encoding.UNICODE, len(message), length, segments)


def calculate_segments(message: str) -> int:
    """Number of billable segments for ``message`` (0 for an empty body)."""
    return analyze_message(message).segments


def estimate_cost(
    recipient_count: int,
    segments_per_message: int = 1,
    has_media: bool = False,
) -> CostEstimate:
    """Estimated cost of sending one message to ``recipient_count`` numbers.

    MMS is billed per message regardless of length. The amount is exact;
    round it for display only.
    """
    if recipient_count < 0 or segments_per_message < 0:
        raise ValidationError("Counts cannot be negative")

    total_segments = recipient_count * segments_per_message
    if has_media:
        cost = MMS_RATE * recipient_count
    else:
        cost = SMS_RATE * total_segments

    return CostEstimate(
        recipient_count=recipient_count,
        segments_per_message=segments_per_message,
        has_media=has_media,
        total_segments=total_segments,
        estimated_cost=cost,
    )
