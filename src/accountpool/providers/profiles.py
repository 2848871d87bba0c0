"""Per-account profile directories and the environment that points each CLI at them."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from accountpool.providers.kinds import ProviderKind

# (profile-home variable, api-key variable) per provider
PROFILE_ENV_VARS: dict[ProviderKind, tuple[str, str]] = {
    ProviderKind.CODEX: ("CODEX_HOME", "OPENAI_API_KEY"),
    ProviderKind.CLAUDE: ("CLAUDE_CONFIG_DIR", "ANTHROPIC_API_KEY"),
    ProviderKind.GEMINI: ("GEMINI_CONFIG_DIR", "GOOGLE_API_KEY"),
}


def ensure_profile(profiles_dir: Path, provider: ProviderKind, account_id: str) -> str:
    """Create ``<profiles_dir>/<provider>/<account_id>`` and return its path."""
    profile = Path(profiles_dir) / provider.value / account_id
    profile.mkdir(parents=True, exist_ok=True)
    return str(profile)


def environment_overrides(
    provider: ProviderKind, profile_path: str, secret: Optional[str] = None
) -> dict[str, str]:
    """Environment variables that isolate one account's CLI state."""
    home_var, key_var = PROFILE_ENV_VARS[provider]
    env = {home_var: profile_path}
    if secret:
        env[key_var] = secret
    return env
