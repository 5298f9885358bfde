import tomllib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, Type, Optional, IO, List, Tuple

from mcpy.compare import ComparePolicy
from mcpy.copy import CopyOptions, OverlapPolicy
from mcpy.exceptions import ConfigError, ValidationError

__all__ = [
    "ConfigError",
    "ValidationError",
    "BaseRemoteConfig",
    "Settings",
    "Config",
]

SETTINGS_TABLE = "settings"


@dataclass
class BaseRemoteConfig(ABC):
    name: str
    type: str

    @classmethod
    @abstractmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "BaseRemoteConfig":
        """Create a remote configuration from a dictionary.

        Args:
            name: The alias of the remote
            data: Dictionary containing configuration data

        Returns:
            Instance of the remote configuration class

        Raises:
            ValidationError: If configuration data is invalid
        """

    @abstractmethod
    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ValidationError: If configuration is invalid
        """

    @abstractmethod
    def base_url(self) -> str:
        """URL the alias expands to."""


@dataclass
class Settings:
    workers: int = 4
    retries: int = 2
    retry_delay: float = 0.5
    part_size: int = 16 * 1024 * 1024
    mirror_compare: ComparePolicy = ComparePolicy.SIZE_AND_MTIME
    diff_compare: ComparePolicy = ComparePolicy.SIZE
    overlap: OverlapPolicy = OverlapPolicy.FIRST_WINS
    share_history: str = "~/.mcpy/share/history.json"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        defaults = cls()
        try:
            settings = cls(
                workers=data.get("workers", defaults.workers),
                retries=data.get("retries", defaults.retries),
                retry_delay=data.get("retry_delay", defaults.retry_delay),
                part_size=data.get("part_size", defaults.part_size),
                mirror_compare=ComparePolicy.parse(
                    data.get("mirror_compare", defaults.mirror_compare.value)
                ),
                diff_compare=ComparePolicy.parse(
                    data.get("diff_compare", defaults.diff_compare.value)
                ),
                overlap=OverlapPolicy.parse(data.get("overlap", defaults.overlap.value)),
                share_history=data.get("share_history", defaults.share_history),
            )
        except ValueError as e:
            raise ValidationError(f"Invalid settings: {e}")
        settings.validate()
        return settings

    def validate(self) -> None:
        if not isinstance(self.workers, int) or self.workers < 1:
            raise ValidationError("workers must be a positive integer")

        if not isinstance(self.retries, int) or self.retries < 0:
            raise ValidationError("retries must be a non-negative integer")

        if not isinstance(self.retry_delay, (int, float)) or self.retry_delay < 0:
            raise ValidationError("retry_delay must be a non-negative number")

        if not isinstance(self.part_size, int) or self.part_size < 1:
            raise ValidationError("part_size must be a positive integer")

    def copy_options(self, mirror: bool = False) -> CopyOptions:
        return CopyOptions(
            workers=self.workers,
            retries=self.retries,
            retry_delay=self.retry_delay,
            part_size=self.part_size,
            mirror=mirror,
            compare=self.mirror_compare,
            overlap=self.overlap,
        )


@dataclass
class Config:
    remotes: Dict[str, BaseRemoteConfig] = field(default_factory=dict)
    settings: Settings = field(default_factory=Settings)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_file(cls, config_file: Optional[IO[bytes]]) -> "Config":
        """Load configuration from a TOML file.

        Args:
            config_file: Open file handle to TOML configuration file

        Returns:
            Config instance with settings and every valid alias loaded

        Raises:
            ConfigError: If configuration file cannot be loaded or parsed
            ValidationError: If the settings table is invalid
        """
        if config_file is None:
            raise ConfigError("Configuration file not provided")

        try:
            config_data = tomllib.load(config_file)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Failed to parse TOML configuration: {e}")

        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any]) -> "Config":
        settings_data = config_data.get(SETTINGS_TABLE, {})
        if not isinstance(settings_data, dict):
            raise ValidationError("'settings' must be a table")
        settings = Settings.from_dict(settings_data)

        remotes = {}
        warnings = []

        for remote_name, remote_data in config_data.items():
            if remote_name == SETTINGS_TABLE:
                continue
            try:
                if not isinstance(remote_data, dict):
                    warnings.append(
                        f"Remote '{remote_name}' configuration must be a dictionary - skipping"
                    )
                    continue

                if "type" not in remote_data:
                    warnings.append(
                        f"Remote '{remote_name}' missing required 'type' field - skipping"
                    )
                    continue

                remote_type = remote_data["type"]
                config_class = cls._get_config_class(remote_type)

                if config_class is None:
                    warnings.append(
                        f"Unknown remote type '{remote_type}' for remote '{remote_name}' - skipping"
                    )
                    continue

                remote_config = config_class.from_dict(remote_name, remote_data)
                remote_config.validate()
                remotes[remote_name] = remote_config
            except ValidationError as e:
                warnings.append(
                    f"Invalid configuration for remote '{remote_name}': {e} - skipping"
                )

        return cls(remotes=remotes, settings=settings, warnings=warnings)

    @staticmethod
    def _get_config_class(remote_type: str) -> Optional[Type[BaseRemoteConfig]]:
        """Get the configuration class for a given remote type.

        Args:
            remote_type: The type of remote ('local' or 's3')

        Returns:
            Configuration class for the remote type, or None if unknown
        """
        from .remotes import LocalConfig, S3Config

        type_mapping = {
            "local": LocalConfig,
            "s3": S3Config,
        }

        return type_mapping.get(remote_type)  # type: ignore

    def expand(self, url: str) -> str:
        """Rewrite ``alias/rest`` to the alias's base URL followed by ``rest``.

        URLs with a scheme, absolute paths and unknown aliases are returned
        unchanged.
        """
        stripped = url.strip()
        if "://" in stripped or stripped.startswith("/"):
            return url
        alias, sep, rest = stripped.partition("/")
        remote = self.remotes.get(alias)
        if remote is None:
            return url
        base = remote.base_url()
        if base.endswith("://") or base.endswith("/"):
            return base + rest
        return f"{base}/{rest}" if sep else base

    def remote_for(self, url: str) -> Optional[BaseRemoteConfig]:
        """The S3 remote whose base URL is the longest prefix of ``url``."""
        best: Optional[BaseRemoteConfig] = None
        best_len = -1
        for remote in self.remotes.values():
            if remote.type != "s3":
                continue
            base = remote.base_url()
            prefix = base if base.endswith("/") else base + "/"
            if (url == base or url.startswith(prefix)) and len(base) > best_len:
                best, best_len = remote, len(base)
        return best

    def resolve(self, url: str) -> Tuple[str, Optional[BaseRemoteConfig]]:
        """Expand an alias and return the URL with the remote that serves it."""
        expanded = self.expand(url)
        return expanded, self.remote_for(expanded)

    def get_warnings(self) -> List[str]:
        """Get list of configuration warnings."""
        return self.warnings.copy()
