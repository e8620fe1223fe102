from typing import Optional
from .constants import AppConstants


class ValidationHelpers:
    @staticmethod
    def is_blank(text: Optional[str]) -> bool:
        return text is None or not text.strip()

    @staticmethod
    def sanitize_text(
        text: Optional[str], max_length: int = AppConstants.MAX_REASON_LENGTH
    ) -> str:
        """Strip whitespace and truncate text input"""
        if not text:
            return ""

        return text.strip()[:max_length]
