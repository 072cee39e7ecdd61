from __future__ import annotations

import os
from dataclasses import dataclass


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _env_int(name: str, default: int, *, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        value = default
    else:
        try:
            value = int(raw)
        except Exception as e:
            raise ValueError(f"Invalid integer value for {name}: {raw!r}") from e
    if min_value is not None and value < min_value:
        raise ValueError(f"{name} must be >= {min_value} (got {value})")
    if max_value is not None and value > max_value:
        raise ValueError(f"{name} must be <= {max_value} (got {value})")
    return value


def _env_float(name: str, default: float, *, min_value: float | None = None, max_value: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        value = float(default)
    else:
        try:
            value = float(raw)
        except Exception as e:
            raise ValueError(f"Invalid float value for {name}: {raw!r}") from e
    if min_value is not None and value < min_value:
        raise ValueError(f"{name} must be >= {min_value} (got {value})")
    if max_value is not None and value > max_value:
        raise ValueError(f"{name} must be <= {max_value} (got {value})")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "y", "on"}:
        return True
    if value in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {raw!r}")


@dataclass(frozen=True)
class Settings:
    log_level: str

    openai_api_key: str
    openai_base_url: str
    llm_model: str
    llm_temperature: float
    llm_max_tokens: int
    llm_timeout_seconds: float
    llm_max_retries: int

    max_body_kb: int
    trust_proxy: bool

    rate_limit_enabled: bool
    rate_limit_window_seconds: int
    rate_limit_format: int

    @property
    def llm_configured(self) -> bool:
        return bool(self.openai_api_key and self.openai_base_url.strip())

    @classmethod
    def from_env(cls) -> "Settings":
        log_level = _env_str("GBCITE_LOG_LEVEL", "INFO")

        # Blank values collapse to "" so a whitespace-only base URL counts as missing.
        openai_api_key = _env_str("OPENAI_API_KEY", "")
        openai_base_url = _env_str("OPENAI_BASE_URL", "")
        llm_model = _env_str("GBCITE_LLM_MODEL", "deepseek-chat")
        llm_temperature = _env_float("GBCITE_LLM_TEMPERATURE", 0.3, min_value=0.0, max_value=2.0)
        llm_max_tokens = _env_int("GBCITE_LLM_MAX_TOKENS", 4000, min_value=64, max_value=65_536)
        llm_timeout_seconds = _env_float("GBCITE_LLM_TIMEOUT_SECONDS", 60.0, min_value=2.0, max_value=600.0)
        llm_max_retries = _env_int("GBCITE_LLM_MAX_RETRIES", 0, min_value=0, max_value=5)

        max_body_kb = _env_int("GBCITE_MAX_BODY_KB", 256, min_value=1, max_value=10_240)
        trust_proxy = _env_bool("GBCITE_TRUST_PROXY", False)

        rate_limit_enabled = _env_bool("GBCITE_RATE_LIMIT_ENABLED", True)
        rate_limit_window_seconds = _env_int("GBCITE_RATE_LIMIT_WINDOW_SECONDS", 60, min_value=1, max_value=3600)
        rate_limit_format = _env_int("GBCITE_RATE_LIMIT_FORMAT", 20, min_value=1, max_value=5000)

        return cls(
            log_level=log_level,
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url,
            llm_model=llm_model,
            llm_temperature=llm_temperature,
            llm_max_tokens=llm_max_tokens,
            llm_timeout_seconds=llm_timeout_seconds,
            llm_max_retries=llm_max_retries,
            max_body_kb=max_body_kb,
            trust_proxy=trust_proxy,
            rate_limit_enabled=rate_limit_enabled,
            rate_limit_window_seconds=rate_limit_window_seconds,
            rate_limit_format=rate_limit_format,
        )
