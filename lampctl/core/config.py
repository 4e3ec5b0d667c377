"""Configuration loading and validation for lampctl."""

from __future__ import annotations

import json
import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from lampctl.core.errors import ConfigError
from lampctl.core.model import PlatformSettings, QueueSettings, Settings

LOGGER = logging.getLogger(__name__)

CONFIG_ENV = "LAMPCTL_CONFIG"

# (section, key) overridden by each environment variable
ENV_OVERRIDES = {
    "THINGSBOARD_URL": ("thingsboard", "url"),
    "THINGSBOARD_USERNAME": ("thingsboard", "username"),
    "THINGSBOARD_PASSWORD": ("thingsboard", "password"),
    "CHIRPSTACK_URL": ("chirpstack", "url"),
    "ACCESS_TOKEN_CHIRPSTACK": ("chirpstack", "token"),
}


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _load_schema_validator() -> Any:
    schema_text = resources.files("lampctl.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "lampctl" / "config.yaml"


def _locate(path: str | Path | None) -> Path | None:
    if path is not None:
        return Path(path)
    from_env = os.environ.get(CONFIG_ENV)
    if from_env:
        return Path(from_env)
    candidate = default_config_path()
    return candidate if candidate.is_file() else None


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at root")
    return loaded


def _apply_env(doc: dict[str, Any]) -> dict[str, Any]:
    merged = {section: dict(values) if isinstance(values, dict) else values for section, values in doc.items()}
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if not value:
            continue
        target = merged.setdefault(section, {})
        if not isinstance(target, dict):
            continue
        if key in target:
            LOGGER.info("%s overrides %s.%s from config file", env_name, section, key)
        target[key] = value
    return merged


def build_settings(doc: dict[str, Any], source: str = "<config>") -> Settings:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigError(f"Config validation failed for {source}{where}: {exc.message}") from exc

    tb = doc["thingsboard"]
    cs = doc["chirpstack"]
    dispatch = doc.get("dispatch", {})
    return Settings(
        platform=PlatformSettings(
            url=tb["url"].rstrip("/"),
            username=tb["username"],
            password=tb["password"],
            timeout_s=float(tb.get("timeout_s", 10.0)),
            max_level=int(tb.get("max_level", 1)),
            fetch_last_level_only=bool(tb.get("fetch_last_level_only", False)),
            uid_key=tb.get("uid_key", "data_UID"),
            eui_key=tb.get("eui_key", "dev_eui"),
        ),
        queue=QueueSettings(
            url=cs["url"].rstrip("/"),
            token=cs["token"],
            timeout_s=float(cs.get("timeout_s", 10.0)),
            f_port=int(cs.get("f_port", 10)),
            confirmed=bool(cs.get("confirmed", False)),
        ),
        pacing_s=float(dispatch.get("pacing_s", 6.0)),
    )


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from YAML, apply environment overrides, and validate."""
    located = _locate(path)
    doc = _read_yaml(located) if located is not None else {}
    source = str(located) if located is not None else "<environment>"
    return build_settings(_apply_env(doc), source)
