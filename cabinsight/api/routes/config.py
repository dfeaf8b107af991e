"""Configuration endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from cabinsight.api.schemas.models import ConfigSchema
from cabinsight.api.services.state import get_settings, reload_settings
from cabinsight.core.config.settings import CabinSettings, settings_to_dict

router = APIRouter()


def _to_schema(settings: CabinSettings) -> ConfigSchema:
    data = settings_to_dict(settings)
    fields = set(ConfigSchema.model_fields) - {"summary_configured"}
    return ConfigSchema(
        **{k: v for k, v in data.items() if k in fields},
        summary_configured=bool(settings.summary_api_key),
    )


@router.get("/config", response_model=ConfigSchema)
def get_config() -> ConfigSchema:
    """Return the current effective configuration."""

    return _to_schema(get_settings())


@router.post("/config", response_model=ConfigSchema)
def update_config(cfg: ConfigSchema) -> ConfigSchema:
    """Update in-memory settings and recreate the engine.

    This endpoint updates runtime configuration only. Persist configuration via
    environment variables or the YAML config file.
    """

    data = cfg.model_dump(exclude_unset=True, exclude={"summary_configured"})
    settings = reload_settings(data)
    return _to_schema(settings)
