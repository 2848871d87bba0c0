"""The fixed set of CLI providers an account can belong to."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ProviderKind(Enum):
    """Supported CLI provider families."""

    CODEX = "codex"
    CLAUDE = "claude"
    GEMINI = "gemini"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def provider_id(self) -> str:
        """Identifier used in normalized error codes (e.g. ``claude-cli``)."""
        return f"{self.value}-cli"

    @classmethod
    def from_provider_id(cls, provider_id: str) -> Optional[ProviderKind]:
        for kind in cls:
            if kind.provider_id == provider_id:
                return kind
        return None

    @classmethod
    def parse(cls, raw: str | ProviderKind) -> ProviderKind:
        """Accept an enum member, its value (``codex``) or its provider id."""
        if isinstance(raw, ProviderKind):
            return raw
        text = str(raw).strip().lower()
        for kind in cls:
            if text in (kind.value, kind.provider_id):
                return kind
        raise ValueError(
            f"Unknown provider: '{raw}'. "
            f"Available: {', '.join(k.value for k in cls)}"
        )


_DISPLAY_NAMES: dict[ProviderKind, str] = {
    ProviderKind.CODEX: "Codex CLI",
    ProviderKind.CLAUDE: "Claude CLI",
    ProviderKind.GEMINI: "Gemini CLI",
}
