"""Configuration management for ffv-gen."""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any
from urllib.parse import quote, urlencode

import yaml
from faker.config import AVAILABLE_LOCALES

from ffv_gen.exceptions import ConfigurationError

IDENTITY_MODES = ("placeholder", "faker")
LOG_FORMATS = ("standard", "json")


@dataclass
class ClickHouseConfig:
    """ClickHouse connection configuration (the ``storage`` section)."""

    addr: str = "localhost"
    port: int = 9000
    user: str = "default"
    passwd: str = ""
    default_db: str = "default"
    max_pings: int = 3
    write_timeout_ms: int = 10000
    read_timeout_ms: int = 10000
    debug: bool = False

    @property
    def read_timeout(self) -> int:
        """Read timeout in whole seconds (fractions are truncated)."""
        return self.read_timeout_ms // 1000

    @property
    def write_timeout(self) -> int:
        """Write timeout in whole seconds (fractions are truncated)."""
        return self.write_timeout_ms // 1000

    @property
    def connection_string(self) -> str:
        """Get the native protocol connection URL.

        A timeout that truncates to zero seconds is left out so the driver
        default applies.
        """
        params: dict[str, int] = {}
        if self.read_timeout:
            params["send_receive_timeout"] = self.read_timeout
            params["receive_timeout"] = self.read_timeout
        if self.write_timeout:
            params["send_timeout"] = self.write_timeout

        url = (
            f"clickhouse://{quote(self.user, safe='')}:{quote(self.passwd, safe='')}"
            f"@{self.addr}:{self.port}/{self.default_db}"
        )
        if params:
            url = f"{url}?{urlencode(params)}"
        return url

    def validate(self) -> None:
        """Raise ConfigurationError if the storage section is unusable."""
        if not self.addr:
            raise ConfigurationError("storage.addr must not be empty")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"storage.port out of range: {self.port}")
        if self.max_pings < 1:
            raise ConfigurationError(f"storage.max_pings must be >= 1, got {self.max_pings}")
        if self.read_timeout_ms < 0 or self.write_timeout_ms < 0:
            raise ConfigurationError("storage timeouts must not be negative")
        # The driver takes the database from the URL path without unquoting it
        if not self.default_db or any(c in self.default_db for c in "/?#"):
            raise ConfigurationError(
                f"storage.default_db must be non-empty without /, ? or #, got {self.default_db!r}"
            )


@dataclass
class GeneratorConfig:
    """Record generation configuration (the ``generator`` section)."""

    n: int = 1000
    in_iter: int = 100  # records per batch
    seed: int | None = None
    identity_mode: str = "placeholder"
    locale: str = "ru_RU"

    def validate(self) -> None:
        """Raise ConfigurationError if the generator section is unusable."""
        if self.n < 0:
            raise ConfigurationError(f"generator.n must be >= 0, got {self.n}")
        if self.in_iter <= 0:
            raise ConfigurationError(f"generator.in_iter must be > 0, got {self.in_iter}")
        if self.identity_mode not in IDENTITY_MODES:
            raise ConfigurationError(
                f"generator.identity_mode must be one of {IDENTITY_MODES}, "
                f"got {self.identity_mode!r}"
            )
        if self.locale not in AVAILABLE_LOCALES:
            raise ConfigurationError(f"generator.locale is not a known Faker locale: {self.locale!r}")


@dataclass
class FFVGenConfig:
    """Main configuration for ffv-gen."""

    storage: ClickHouseConfig = field(default_factory=ClickHouseConfig)
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    log_level: str = "INFO"
    log_format: str = "standard"

    def validate(self) -> "FFVGenConfig":
        """Validate every section and return self."""
        self.storage.validate()
        self.generator.validate()
        if self.log_format not in LOG_FORMATS:
            raise ConfigurationError(
                f"log_format must be one of {LOG_FORMATS}, got {self.log_format!r}"
            )
        return self

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "FFVGenConfig":
        """Build config from a parsed mapping, e.g. the YAML document."""
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigurationError("configuration root must be a mapping")

        try:
            storage = _section(ClickHouseConfig, data.get("storage"), "storage")
            generator = _section(GeneratorConfig, data.get("generator"), "generator")
            return cls(
                storage=storage,
                generator=generator,
                log_level=str(data.get("log_level", "INFO")),
                log_format=str(data.get("log_format", "standard")),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"unable to parse configuration: {exc}") from exc

    @classmethod
    def from_yaml(cls, path: str | Path) -> "FFVGenConfig":
        """Load config from a YAML file."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"unable to read configuration file {path}") from exc

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"unable to parse configuration file {path}") from exc

        return cls.from_dict(data)

    @classmethod
    def from_env(cls, base: "FFVGenConfig | None" = None) -> "FFVGenConfig":
        """Create config from environment variables, on top of ``base``."""
        import os

        config = base or cls()
        storage = config.storage
        generator = config.generator

        try:
            storage.addr = os.getenv("CLICKHOUSE_HOST", storage.addr)
            storage.port = int(os.getenv("CLICKHOUSE_PORT", str(storage.port)))
            storage.user = os.getenv("CLICKHOUSE_USER", storage.user)
            storage.passwd = os.getenv("CLICKHOUSE_PASSWORD", storage.passwd)
            storage.default_db = os.getenv("CLICKHOUSE_DB", storage.default_db)

            generator.n = int(os.getenv("FFV_N", str(generator.n)))
            generator.in_iter = int(os.getenv("FFV_BATCH_SIZE", str(generator.in_iter)))
            if os.getenv("SEED"):
                generator.seed = int(os.environ["SEED"])
        except ValueError as exc:
            raise ConfigurationError(f"invalid environment override: {exc}") from exc

        config.log_level = os.getenv("LOG_LEVEL", config.log_level)
        return config


def _section(section_cls: type, raw: Any, name: str) -> Any:
    """Build a section dataclass, coercing values to the declared field types."""
    if raw is None:
        return section_cls()
    if not isinstance(raw, dict):
        raise ConfigurationError(f"'{name}' section must be a mapping")

    known = {f.name: f for f in fields(section_cls)}
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise ConfigurationError(f"unknown keys in '{name}' section: {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    for key, value in raw.items():
        default = getattr(section_cls(), key)
        if value is None:
            continue
        if default is None:
            # Only the optional seed defaults to None
            kwargs[key] = int(value)
        elif isinstance(default, bool):
            if not isinstance(value, bool):
                raise ConfigurationError(f"'{name}.{key}' must be a boolean")
            kwargs[key] = value
        else:
            kwargs[key] = type(default)(value)
    return section_cls(**kwargs)
