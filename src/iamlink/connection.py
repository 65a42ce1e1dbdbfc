import pathlib
import typing
from abc import ABC, abstractmethod

import deepmerge  # type: ignore
import pulumi
import yaml

import iamlink
import iamlink.paths


def read_connection_yaml(path: pathlib.Path) -> dict[str, typing.Any]:
    if not path.exists():
        msg = f"no connection config found at {path}"
        raise iamlink.ValidationError(msg)

    cfg_dict = yaml.safe_load(path.read_text()) or {}
    if not isinstance(cfg_dict, dict) or not isinstance(cfg_dict.get("spec"), dict):
        msg = f"{path} must be a mapping with a 'spec' mapping"
        raise iamlink.ValidationError(msg)

    return cfg_dict


class AbstractConnection(ABC):
    name: str
    paths: iamlink.paths.Paths
    spec: dict[str, typing.Any]

    def __init__(self, name: str, paths: iamlink.paths.Paths | None = None, *, load_yaml=True):
        self.name = name
        self.paths = paths or iamlink.paths.Paths()

        if not load_yaml:
            return

        self._load_common_config()
        self.load_unique_config()

    @classmethod
    def from_pulumi_config(cls, name: str, config: pulumi.Config) -> typing.Self:
        conn = cls(name, load_yaml=False)
        conn.load_pulumi_config(config)
        return conn

    @property
    @abstractmethod
    def cloud_provider(self) -> iamlink.CloudProvider:
        pass

    @property
    @abstractmethod
    def kind(self) -> iamlink.ConnectionKinds:
        pass

    @abstractmethod
    def defaults(self) -> dict[str, typing.Any]:
        pass

    @abstractmethod
    def load_unique_config(self) -> None:
        pass

    @abstractmethod
    def load_pulumi_config(self, config: pulumi.Config) -> None:
        pass

    @abstractmethod
    def pulumi_config(self) -> dict[str, str]:
        """Flatten the config into the scalar ``key=value`` pairs Pulumi stack config accepts."""

    @abstractmethod
    def secret_config_keys(self) -> frozenset[str]:
        pass

    @property
    def d(self) -> pathlib.Path:
        return self.paths.connections / self.name

    @property
    def connection_yaml(self) -> pathlib.Path:
        return self.d / "connection.yaml"

    @property
    def required_tags(self) -> dict[str, str]:
        return {str(iamlink.TagKeys.IAMLINK_CONNECTION): self.name}

    def _load_common_config(self) -> None:
        cfg_dict = read_connection_yaml(self.connection_yaml)

        kind = cfg_dict.get("kind", str(self.kind))
        if kind != self.kind:
            msg = f"{self.connection_yaml} has kind {kind!r}, expected {str(self.kind)!r}"
            raise iamlink.ValidationError(msg)

        cfg_spec = cfg_dict["spec"]
        for key in list(cfg_spec.keys()):
            cfg_spec[str(key).replace("-", "_")] = cfg_spec.pop(key)

        spec = self.defaults()
        deepmerge.always_merger.merge(spec, cfg_spec)

        self.spec = spec

    def _coerce_list(self, field: str) -> None:
        """Normalize a list field: empty becomes ``[]``, a string is comma-split."""
        value = self.spec.get(field)

        if value is None:
            self.spec[field] = []
        elif isinstance(value, str):
            self.spec[field] = iamlink.split_csv(value)
        elif isinstance(value, list):
            self.spec[field] = [str(v) for v in value]
        else:
            msg = f"{field} in {self.connection_yaml} must be a list, not {type(value).__name__}"
            raise iamlink.ValidationError(msg)

    def _coerce_int(self, field: str) -> None:
        value = self.spec.get(field)
        if value is None:
            # an empty key falls back to the dataclass default
            self.spec.pop(field, None)
            return

        if isinstance(value, int) and not isinstance(value, bool):
            return

        if isinstance(value, str) and value.strip().isdigit():
            self.spec[field] = int(value)
            return

        msg = f"{field} in {self.connection_yaml} must be an integer number of seconds, not {value!r}"
        raise iamlink.ValidationError(msg)

    def _config_from_spec(self, cfg_cls: type) -> typing.Any:
        known = set(cfg_cls.__dataclass_fields__)
        unknown = sorted(set(self.spec) - known)
        if unknown:
            msg = f"unknown keys in {self.connection_yaml}: {unknown}"
            raise iamlink.ValidationError(msg)

        return cfg_cls(**self.spec)
