from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Tuple


PROVIDER_SETTINGS_KEYS: Tuple[str, ...] = (
    "api_provider",
    "api_model_id",
    "api_key",
    "openai_base_url",
    "openai_model_id",
    "openai_api_key",
    "openai_headers",
    "openrouter_api_key",
    "anthropic_base_url",
    "gemini_api_key",
    "ollama_base_url",
    "ollama_model_id",
    "model_temperature",
    "model_max_tokens",
    "include_max_tokens",
)

SECRET_STATE_KEYS: Tuple[str, ...] = (
    "api_key",
    "openai_api_key",
    "openrouter_api_key",
    "gemini_api_key",
)

GLOBAL_SETTINGS_KEYS: Tuple[str, ...] = (
    "current_api_config_name",
    "list_api_config_meta",
    "task_history",
    "custom_modes",
    "mode",
    "language",
    "custom_instructions",
    "auto_approval_enabled",
    "always_allow_read_only",
    "always_allow_write",
    "allowed_commands",
    "request_delay_seconds",
    "enable_checkpoints",
    "telemetry_setting",
    "last_shown_announcement_id",
)

LARGE_STATE_KEYS: Tuple[str, ...] = ("task_history",)

# Host already optimizes these; reads and writes go straight to the backing store.
PASS_THROUGH_STATE_KEYS: Tuple[str, ...] = ("prompt_history",)


def _dedupe(keys: Iterable[str]) -> Tuple[str, ...]:
    seen = set()
    out = []
    for k in keys:
        if k in seen:
            continue
        seen.add(k)
        out.append(k)
    return tuple(out)


@dataclass(frozen=True)
class KeyRegistry:
    """
    Static namespace membership. Every key is exactly one of: global state,
    secret, pass-through. Large keys are a subset of global state keys.
    """

    global_state_keys: Tuple[str, ...]
    secret_keys: Tuple[str, ...]
    pass_through_keys: Tuple[str, ...] = ()
    large_keys: Tuple[str, ...] = ()
    _global: FrozenSet[str] = field(init=False, repr=False, compare=False)
    _secret: FrozenSet[str] = field(init=False, repr=False, compare=False)
    _pass_through: FrozenSet[str] = field(init=False, repr=False, compare=False)
    _large: FrozenSet[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        g, s, p, big = (frozenset(self.global_state_keys), frozenset(self.secret_keys), frozenset(self.pass_through_keys), frozenset(self.large_keys))
        overlap = (g & s) | (g & p) | (s & p)
        if overlap:
            raise ValueError(f"Keys registered in more than one namespace: {sorted(overlap)}")
        if not big <= g:
            raise ValueError(f"Large keys must be global state keys: {sorted(big - g)}")
        object.__setattr__(self, "_global", g)
        object.__setattr__(self, "_secret", s)
        object.__setattr__(self, "_pass_through", p)
        object.__setattr__(self, "_large", big)

    def is_global(self, key: str) -> bool:
        return key in self._global

    def is_secret(self, key: str) -> bool:
        return key in self._secret

    def is_pass_through(self, key: str) -> bool:
        return key in self._pass_through

    def is_large(self, key: str) -> bool:
        return key in self._large

    def namespace(self, key: str) -> str:
        if key in self._secret:
            return "secret"
        if key in self._pass_through:
            return "pass_through"
        if key in self._global:
            return "global"
        return "unknown"

    @property
    def small_global_keys(self) -> Tuple[str, ...]:
        return tuple(k for k in self.global_state_keys if k not in self._large)


def default_registry() -> KeyRegistry:
    global_keys = _dedupe(k for k in GLOBAL_SETTINGS_KEYS + PROVIDER_SETTINGS_KEYS if k not in SECRET_STATE_KEYS)
    return KeyRegistry(
        global_state_keys=global_keys,
        secret_keys=SECRET_STATE_KEYS,
        pass_through_keys=PASS_THROUGH_STATE_KEYS,
        large_keys=LARGE_STATE_KEYS,
    )


DEFAULT_KEYS = default_registry()
