"""
API key management for the external collaborators.

Reads keys exclusively from environment variables (a project-level .env is
loaded once). Keys are never exposed in full; only masked versions are
returned by the diagnostics endpoint.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env"))


PROVIDERS = {
    "anthropic": {"env_var": "ANTHROPIC_API_KEY", "label": "Anthropic"},
    "openai": {"env_var": "OPENAI_API_KEY", "label": "OpenAI"},
    "gemini": {"env_var": "GEMINI_API_KEY", "label": "Google Gemini"},
    "pinecone": {"env_var": "PINECONE_API_KEY", "label": "Pinecone"},
}


class ApiKeyStatus(BaseModel):
    provider: str
    label: str
    env_var: str
    configured: bool
    masked_key: Optional[str] = None


def mask_key(key: Optional[str]) -> Optional[str]:
    if key and len(key) > 8:
        return f"{key[:4]}...{key[-4:]}"
    if key:
        return "***"
    return None


class ApiKeysManager:

    def get_key(self, provider: str) -> Optional[str]:
        """Get API key for a provider from environment variables."""
        env_var = PROVIDERS.get(provider, {}).get("env_var")
        if env_var:
            value = os.getenv(env_var)
            return value.strip() if value and value.strip() else None
        return None

    def env_var_for(self, provider: str) -> str:
        return PROVIDERS.get(provider, {}).get("env_var", provider.upper())

    def get_status(self) -> list[ApiKeyStatus]:
        """Get masked status for all providers."""
        result = []
        for provider, meta in PROVIDERS.items():
            key = self.get_key(provider)
            result.append(ApiKeyStatus(
                provider=provider,
                label=meta["label"],
                env_var=meta["env_var"],
                configured=key is not None,
                masked_key=mask_key(key),
            ))
        return result


api_keys_manager = ApiKeysManager()
