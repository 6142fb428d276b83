from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource, YamlConfigSettingsSource

from adapters.layout.serpentine import LayoutConfig
from domain.models import Size

DEFAULT_CONFIG_PATH = Path("config/flowmap.yaml")


class LayoutSettings(BaseModel):
    node_width: float = Field(default=180.0, gt=0)
    node_height: float = Field(default=72.0, gt=0)
    terminal_width: float = Field(default=150.0, gt=0)
    terminal_height: float = Field(default=44.0, gt=0)
    padding: float = Field(default=40.0, ge=0)
    gap_x: float = Field(default=64.0, ge=0)
    gap_y: float = Field(default=64.0, ge=0)
    line_gap: float = Field(default=32.0, gt=0)
    lane_padding: float = Field(default=16.0, ge=0)
    port_spacing: float = Field(default=18.0, gt=0)
    columns: int | None = Field(default=None, ge=1)
    column_factor: float = Field(default=1.4, gt=0)
    min_columns: int = Field(default=3, ge=1)
    max_columns: int = Field(default=8, ge=1)
    max_text_lines: int = Field(default=3, ge=1)
    max_font_size: float = Field(default=14.0, gt=0)
    min_font_size: float = Field(default=9.0, gt=0)
    font_size_step: float = Field(default=1.0, gt=0)
    text_padding: float = Field(default=10.0, ge=0)
    label_font_size: float = Field(default=11.0, gt=0)
    label_nudge: float = Field(default=12.0, gt=0)
    label_max_nudges: int = Field(default=6, ge=0)

    @field_validator("columns", mode="before")
    @classmethod
    def empty_columns_means_auto(cls, value: object) -> object:
        if isinstance(value, str) and value.strip().lower() in {"", "auto", "none"}:
            return None
        return value

    @model_validator(mode="after")
    def ensure_ranges(self) -> LayoutSettings:
        if self.min_columns > self.max_columns:
            msg = "layout.min_columns must not exceed layout.max_columns"
            raise ValueError(msg)
        if self.min_font_size > self.max_font_size:
            msg = "layout.min_font_size must not exceed layout.max_font_size"
            raise ValueError(msg)
        return self

    def to_layout_config(self) -> LayoutConfig:
        return LayoutConfig(
            node_size=Size(self.node_width, self.node_height),
            terminal_size=Size(self.terminal_width, self.terminal_height),
            padding=self.padding,
            gap_x=self.gap_x,
            gap_y=self.gap_y,
            line_gap=self.line_gap,
            lane_padding=self.lane_padding,
            port_spacing=self.port_spacing,
            columns=self.columns,
            column_factor=self.column_factor,
            min_columns=self.min_columns,
            max_columns=self.max_columns,
            max_text_lines=self.max_text_lines,
            max_font_size=self.max_font_size,
            min_font_size=self.min_font_size,
            font_size_step=self.font_size_step,
            text_padding=self.text_padding,
            label_font_size=self.label_font_size,
            label_nudge=self.label_nudge,
            label_max_nudges=self.label_max_nudges,
        )


class ApiSettings(BaseModel):
    title: str = "Process Flow Layout"
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> str:
        return str(value).upper() if value else "INFO"


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FLOWMAP_", env_nested_delimiter="__")

    layout: LayoutSettings = LayoutSettings()
    api: ApiSettings = ApiSettings()

    _yaml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ]
        if cls._yaml_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=cls._yaml_path))
        return tuple(sources)


def load_settings(config_path: Path | None = None) -> AppSettings:
    env_path = os.getenv("FLOWMAP_CONFIG_PATH")
    resolved_path: Path | None = None

    if config_path is not None:
        resolved_path = config_path
    elif env_path:
        resolved_path = Path(env_path)
    elif DEFAULT_CONFIG_PATH.exists():
        resolved_path = DEFAULT_CONFIG_PATH

    previous = AppSettings._yaml_path
    try:
        if resolved_path is not None:
            if not resolved_path.exists():
                msg = f"Config file not found: {resolved_path}"
                raise FileNotFoundError(msg)
            AppSettings._yaml_path = resolved_path
        return AppSettings()
    finally:
        AppSettings._yaml_path = previous
