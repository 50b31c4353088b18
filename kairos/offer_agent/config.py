import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, runtime_checkable

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings

from kairos.offer_agent.constants import TARGET_PACKAGE as DEFAULT_TARGET_PACKAGE
from kairos.offer_agent.utils.errors import ConfigurationError
from kairos.offer_agent.utils.logger import get_logger

load_dotenv(verbose=True)
logger = get_logger(__name__)


### Process settings ###


class Settings(BaseSettings):
    ADB_HOST: str | None = None
    ADB_PORT: int | None = None
    ADB_SERIAL: str | None = None
    TARGET_PACKAGE: str = DEFAULT_TARGET_PACKAGE

    GOOGLE_MAPS_API_KEY: SecretStr | None = None
    ROUTE_TIMEOUT_SECONDS: float = 10.0
    ADDRESS_REGION_SUFFIX: str = "Bogota, Colombia"

    POLL_INTERVAL_SECONDS: float = 0.5
    DIALOG_SETTLE_DELAY_SECONDS: float = 0.5
    REVEAL_SETTLE_DELAY_SECONDS: float = 0.4
    AWAIT_TIMEOUT_SECONDS: float = 8.0

    AGENT_CONFIG_PATH: Path | None = None
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()


### Decision configuration ###


class AgentConfiguration(BaseModel):
    """
    Trip filters and pricing rules. Frozen, read once at the start of each decision cycle.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_pickup_distance_km: float = Field(default=5.0, ge=0)
    max_trip_distance_km: float = Field(default=15.0, ge=0)
    price_per_km: float = Field(default=2500.0, ge=0)
    minimum_profit: float = Field(default=10000.0, ge=0)
    rating_filter_enabled: bool = False
    min_rating: float = Field(default=4.5, ge=0, le=5)
    trip_count_filter_enabled: bool = False
    min_trip_count: int = Field(default=100, ge=0)
    automatic_actions_enabled: bool = True

    def describe(self) -> str:
        return (
            f"Pickup < {self.max_pickup_distance_km} km, Trip A-B < {self.max_trip_distance_km} km, "
            f"Rate: {self.price_per_km}/km, Minimum profit: {self.minimum_profit}, "
            f"Rating filter: {'>= ' + str(self.min_rating) if self.rating_filter_enabled else 'off'}, "
            f"Trips filter: {'>= ' + str(self.min_trip_count) if self.trip_count_filter_enabled else 'off'}, "
            f"Automatic actions: {'on' if self.automatic_actions_enabled else 'off'}"
        )


ConfigListener = Callable[[AgentConfiguration], None]


@runtime_checkable
class ConfigProvider(Protocol):
    def current(self) -> AgentConfiguration: ...

    def subscribe(self, listener: ConfigListener) -> None: ...


class StaticConfigProvider:
    """In-memory provider. `update` swaps the configuration and notifies listeners."""

    def __init__(self, configuration: AgentConfiguration | None = None):
        self._configuration = configuration or AgentConfiguration()
        self._listeners: list[ConfigListener] = []

    def current(self) -> AgentConfiguration:
        return self._configuration

    def subscribe(self, listener: ConfigListener) -> None:
        self._listeners.append(listener)

    def update(self, configuration: AgentConfiguration) -> None:
        self._configuration = configuration
        logger.info(f"Configuration (re)loaded: {configuration.describe()}")
        for listener in self._listeners:
            listener(configuration)


def load_configuration_file(path: Path) -> AgentConfiguration:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    try:
        return AgentConfiguration(**raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e


class YamlConfigProvider(StaticConfigProvider):
    """
    Configuration backed by a YAML file, hot-reloaded when the file changes.

    An invalid file never replaces the last valid configuration.
    """

    def __init__(self, path: Path):
        self._path = path
        self._last_mtime: float | None = None
        super().__init__(load_configuration_file(path))
        self._last_mtime = self._mtime()

    def _mtime(self) -> float | None:
        try:
            return self._path.stat().st_mtime
        except OSError:
            return None

    def reload(self) -> bool:
        """Re-reads the file. Returns whether a new configuration was applied."""
        try:
            configuration = load_configuration_file(self._path)
        except ConfigurationError as e:
            logger.error(f"Keeping previous configuration: {e.message}")
            return False
        self.update(configuration)
        return True

    async def watch(self, interval_seconds: float = 1.0) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            mtime = self._mtime()
            if mtime is not None and mtime != self._last_mtime:
                self._last_mtime = mtime
                logger.debug(f"Configuration file changed: {self._path}")
                self.reload()


class ShadowConfigProvider:
    """Forwards another provider with automatic actions always disabled."""

    def __init__(self, inner: ConfigProvider):
        self._inner = inner

    def current(self) -> AgentConfiguration:
        return self._inner.current().model_copy(update={"automatic_actions_enabled": False})

    def subscribe(self, listener: ConfigListener) -> None:
        self._inner.subscribe(listener)
