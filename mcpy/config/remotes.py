from dataclasses import dataclass
from typing import Dict, Any, Optional

from .base import BaseRemoteConfig, ValidationError


@dataclass
class ProxyConfig:
    """SOCKS5 proxy configuration."""

    host: str
    port: int = 1080
    username: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProxyConfig":
        if "host" not in data:
            raise ValidationError("Proxy configuration requires 'host' field")

        return cls(
            host=data["host"],
            port=data.get("port", 1080),
            username=data.get("username"),
            password=data.get("password"),
        )

    def validate(self) -> None:
        if not self.host:
            raise ValidationError("Proxy host cannot be empty")

        if not isinstance(self.port, int) or self.port < 1 or self.port > 65535:
            raise ValidationError("Proxy port must be an integer between 1 and 65535")


@dataclass
class LocalConfig(BaseRemoteConfig):
    path: str = "/"

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "LocalConfig":
        if "path" not in data:
            raise ValidationError("Local configuration requires 'path' field")
        return cls(name=name, type="local", path=data["path"])

    def validate(self) -> None:
        if self.type != "local":
            raise ValidationError(f"Expected type 'local', got '{self.type}'")

        if not self.path:
            raise ValidationError("Local path cannot be empty")

    def base_url(self) -> str:
        return self.path


@dataclass
class S3Config(BaseRemoteConfig):
    url: str = "s3://"
    region_name: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    proxy: Optional[ProxyConfig] = None

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "S3Config":
        proxy = None
        if "proxy" in data and isinstance(data["proxy"], dict):
            proxy = ProxyConfig.from_dict(data["proxy"])

        return cls(
            name=name,
            type="s3",
            url=data.get("url", "s3://"),
            region_name=data.get("region_name"),
            aws_access_key_id=data.get("aws_access_key_id"),
            aws_secret_access_key=data.get("aws_secret_access_key"),
            proxy=proxy,
        )

    def validate(self) -> None:
        if self.type != "s3":
            raise ValidationError(f"Expected type 's3', got '{self.type}'")

        if not self.url.startswith(("s3://", "http://", "https://")):
            raise ValidationError(
                "S3 url must start with 's3://', 'http://' or 'https://'"
            )

        if bool(self.aws_access_key_id) != bool(self.aws_secret_access_key):
            raise ValidationError(
                "S3 configuration requires both 'aws_access_key_id' and "
                "'aws_secret_access_key', or neither"
            )

        if self.proxy:
            self.proxy.validate()

    def base_url(self) -> str:
        return self.url
