"""Argument vectors for the provider CLIs' status and login commands."""

from __future__ import annotations

from enum import Enum

from accountpool.providers.kinds import ProviderKind


class LoginMethod(Enum):
    BROWSER_OAUTH = "browser_oauth"
    DEVICE_CODE = "device_code"
    API_KEY = "api_key"

    @property
    def title(self) -> str:
        return {
            LoginMethod.BROWSER_OAUTH: "Browser OAuth",
            LoginMethod.DEVICE_CODE: "Device code",
            LoginMethod.API_KEY: "API key",
        }[self]


# Exit status 0 means "logged in". Gemini has no status command, so a
# working binary is the best signal available.
STATUS_ARGS: dict[ProviderKind, list[str]] = {
    ProviderKind.CODEX: ["login", "status"],
    ProviderKind.CLAUDE: ["auth", "status"],
    ProviderKind.GEMINI: ["--version"],
}

LOGIN_ARGS: dict[ProviderKind, dict[LoginMethod, list[str]]] = {
    ProviderKind.CODEX: {
        LoginMethod.BROWSER_OAUTH: ["login"],
        LoginMethod.DEVICE_CODE: ["login", "--device-auth"],
        LoginMethod.API_KEY: ["login", "--with-api-key"],
    },
    ProviderKind.CLAUDE: {
        LoginMethod.BROWSER_OAUTH: ["login"],
        LoginMethod.DEVICE_CODE: ["login", "--device-code"],
        LoginMethod.API_KEY: ["login", "--api-key"],
    },
    ProviderKind.GEMINI: {
        LoginMethod.BROWSER_OAUTH: ["auth", "login"],
        LoginMethod.DEVICE_CODE: ["auth", "login", "--device-code"],
        LoginMethod.API_KEY: ["auth", "login", "--api-key"],
    },
}


def status_args(provider: ProviderKind) -> list[str]:
    return list(STATUS_ARGS[provider])


def login_args(provider: ProviderKind, method: LoginMethod) -> list[str]:
    return list(LOGIN_ARGS[provider][method])
