from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Type, Union

from pydantic import BaseModel, ValidationError

from statecache.core.state.keys import GLOBAL_SETTINGS_KEYS, PROVIDER_SETTINGS_KEYS
from statecache.core.state.models import EXPORT_EXCLUDED_KEYS, GlobalSettings, GlobalSettingsExport, ProviderSettings


HEADERS_KEY = "openai_headers"


@dataclass(frozen=True)
class SettingsView:
    name: str
    keys: Tuple[str, ...]
    schema: Type[BaseModel]


GLOBAL_SETTINGS_VIEW = SettingsView("GlobalSettings", GLOBAL_SETTINGS_KEYS, GlobalSettings)
PROVIDER_SETTINGS_VIEW = SettingsView("ProviderSettings", PROVIDER_SETTINGS_KEYS, ProviderSettings)
EXPORT_VIEW = SettingsView(
    "GlobalSettings",
    tuple(k for k in GLOBAL_SETTINGS_KEYS if k not in EXPORT_EXCLUDED_KEYS),
    GlobalSettingsExport,
)


class SettingsViews:
    """
    Schema-checked projections of the cache. Validation failures are reported
    to telemetry and degrade to the raw values; they never raise to the caller.

    ``source`` provides get_value(key), set_values(mapping) and keys (KeyRegistry).
    """

    def __init__(self, source: Any, *, telemetry: Any = None, logger=None):
        self.source = source
        self.telemetry = telemetry
        self.logger = logger or logging.getLogger("statecache")

    def raw_values(self, view: SettingsView) -> Dict[str, Any]:
        return {key: self.source.get_value(key) for key in view.keys}

    def project(self, view: SettingsView) -> BaseModel:
        model, _ = self._project(view)
        return model

    def project_dict(self, view: SettingsView) -> Dict[str, Any]:
        _, values = self._project(view)
        return values

    def set_provider_settings(self, values: Union[ProviderSettings, Mapping[str, Any]]) -> None:
        if isinstance(values, BaseModel):
            incoming = values.model_dump(exclude_unset=True)
        else:
            incoming = dict(values)

        unknown = sorted(k for k in incoming if k not in PROVIDER_SETTINGS_VIEW.keys)
        if unknown:
            self.logger.warning(f"Ignoring unknown provider settings keys: {unknown}")
            for k in unknown:
                incoming.pop(k)

        # must stay a concrete object across the process boundary
        if HEADERS_KEY in incoming and not incoming[HEADERS_KEY]:
            incoming[HEADERS_KEY] = {}

        # clear-before-apply: stale fields from the previous configuration go away
        cleared = {
            key: None
            for key in PROVIDER_SETTINGS_VIEW.keys
            if not self.source.keys.is_secret(key) and key not in incoming and self.source.get_value(key) is not None
        }
        self.source.set_values({**cleared, **incoming})

    def export(self) -> Optional[Dict[str, Any]]:
        raw = self.raw_values(EXPORT_VIEW)
        try:
            settings = GlobalSettingsExport.model_validate(raw)
        except ValidationError as e:
            self._report(EXPORT_VIEW.name, e)
            return None
        if settings.custom_modes is not None:
            # project-scoped modes live with the project, never in an export
            settings.custom_modes = [m for m in settings.custom_modes if m.source == "global"]
        return {k: v for k, v in settings.model_dump().items() if v is not None}

    def import_settings(self, values: Mapping[str, Any]) -> bool:
        try:
            settings = GlobalSettingsExport.model_validate(dict(values))
        except ValidationError as e:
            self._report(EXPORT_VIEW.name, e)
            return False
        # only keys the import names; nested models keep their defaults
        dumped = settings.model_dump()
        self.source.set_values({k: dumped[k] for k in settings.model_fields_set})
        return True

    # ---- internals ----
    def _project(self, view: SettingsView) -> Tuple[BaseModel, Dict[str, Any]]:
        raw = self.raw_values(view)
        try:
            model = view.schema.model_validate(raw)
        except ValidationError as e:
            self._report(view.name, e)
            return view.schema.model_construct(**raw), raw
        return model, model.model_dump()

    def _report(self, schema_name: str, error: ValidationError) -> None:
        self.logger.warning(f"{schema_name} failed validation ({error.error_count()} errors)")
        if self.telemetry is None:
            return
        try:
            self.telemetry.capture_schema_validation_error(schema_name, error)
        except Exception as e:  # noqa: BLE001
            self.logger.warning(f"Telemetry sink failed: {e}")
