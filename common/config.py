"""Per-environment configuration model and resolver.

The configuration document lives in ``cdk.json`` under ``context.environments``
and is keyed by environment name::

    {"dev": {"network": {...}, "db": {...}, "api": {...}}}

Every field is required. Nothing is merged or defaulted: a missing key or a
value of the wrong type raises :class:`InvalidConfiguration` naming the dotted
path of the offending field.
"""
import os
from collections.abc import Mapping
from typing import Any, Optional, Union

from attrs import define, field
from attrs.validators import deep_iterable, ge, gt, instance_of, min_len
from aws_lambda_powertools import Logger

import common.constants as constants
from common import instance_types
from common.errors import InvalidConfiguration, UnknownEnvironment

logger = Logger(service="deploy-config", level=os.getenv("LOG_LEVEL", constants.LOG_LEVEL).upper())

Number = Union[int, float]


def _require(data: Mapping[str, Any], key: str, path: str, expected_type: Any) -> Any:
    if not isinstance(data, Mapping):
        raise InvalidConfiguration(path, "expected a mapping")
    field_path = f"{path}.{key}" if path else key
    if key not in data:
        raise InvalidConfiguration(field_path, "field is required")
    value = data[key]
    # bool is an int subclass; a flag is never a valid count or size
    if isinstance(value, bool) and expected_type is not bool:
        raise InvalidConfiguration(field_path, f"expected {_type_name(expected_type)}, got bool")
    if not isinstance(value, expected_type):
        raise InvalidConfiguration(
            field_path,
            f"expected {_type_name(expected_type)}, got {type(value).__name__}",
        )
    return value


def _type_name(expected_type: Any) -> str:
    if isinstance(expected_type, tuple):
        return " or ".join(t.__name__ for t in expected_type)
    return expected_type.__name__


def _build(cls, config_path: str, /, **kwargs):
    try:
        return cls(**kwargs)
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(config_path, str(e)) from e


def _known_subnet_type(instance, attribute, value: str) -> None:
    instance_types.subnet_type(value, path=attribute.name)


def _known_instance_size(instance, attribute, value: str) -> None:
    instance_types.instance_size(value)


def _known_instance_class(instance, attribute, value: str) -> None:
    instance_types.instance_class(value)


# ---------- network ----------
@define(slots=True, frozen=True)
class SubnetConfig:
    cidr_mask: int = field(validator=[instance_of(int), ge(16)])
    name: str = field(validator=[instance_of(str), min_len(1)])
    subnet_type: str = field(validator=[instance_of(str), _known_subnet_type])

    @classmethod
    def from_document(cls, data: Mapping[str, Any], path: str) -> "SubnetConfig":
        subnet_type = _require(data, "subnetType", path, str)
        instance_types.subnet_type(subnet_type, path=f"{path}.subnetType")
        return _build(
            cls,
            path,
            cidr_mask=_require(data, "cidrMask", path, int),
            name=_require(data, "name", path, str),
            subnet_type=subnet_type,
        )


@define(slots=True, frozen=True)
class VpcConfig:
    cidr: str = field(validator=[instance_of(str), min_len(1)])
    max_azs: int = field(validator=[instance_of(int), gt(0)])
    subnet_configuration: tuple = field(
        converter=tuple,
        validator=[deep_iterable(instance_of(SubnetConfig)), min_len(1)],
    )
    nat_gateways_count: int = field(validator=[instance_of(int), ge(0)])

    @nat_gateways_count.validator
    def _check_nat_gateways(self, attribute, value: int) -> None:
        # private subnets route egress through a NAT gateway
        if value == 0 and any(
            subnet.subnet_type == "private" for subnet in self.subnet_configuration
        ):
            raise ValueError("natGatewaysCount must be at least 1 when a private subnet is configured")

    @classmethod
    def from_document(cls, data: Mapping[str, Any], path: str) -> "VpcConfig":
        subnets = _require(data, "subnetConfiguration", path, list)
        return _build(
            cls,
            path,
            cidr=_require(data, "cidr", path, str),
            max_azs=_require(data, "maxAzs", path, int),
            subnet_configuration=[
                SubnetConfig.from_document(subnet, f"{path}.subnetConfiguration[{i}]")
                for i, subnet in enumerate(subnets)
            ],
            nat_gateways_count=_require(data, "natGatewaysCount", path, int),
        )


@define(slots=True, frozen=True)
class NetworkConfig:
    vpc: VpcConfig

    @classmethod
    def from_document(cls, data: Mapping[str, Any], path: str) -> "NetworkConfig":
        vpc = _require(data, "vpc", path, Mapping)
        return cls(vpc=VpcConfig.from_document(vpc, f"{path}.vpc"))


# ---------- db ----------
@define(slots=True, frozen=True)
class InstanceSpec:
    instance_size: str = field(validator=[instance_of(str), _known_instance_size])
    instance_class: str = field(validator=[instance_of(str), _known_instance_class])

    @classmethod
    def from_document(cls, data: Mapping[str, Any], path: str) -> "InstanceSpec":
        return _build(
            cls,
            path,
            instance_size=_require(data, "instanceSize", path, str),
            instance_class=_require(data, "instanceClass", path, str),
        )


@define(slots=True, frozen=True)
class BackupConfig:
    retention: int = field(validator=[instance_of(int), gt(0)])
    preferred_window: str = field(validator=instance_of(str))

    @classmethod
    def from_document(cls, data: Mapping[str, Any], path: str) -> "BackupConfig":
        return _build(
            cls,
            path,
            retention=_require(data, "retention", path, int),
            preferred_window=_require(data, "preferredWindow", path, str),
        )


@define(slots=True, frozen=True)
class ScalableTargetConfig:
    min_capacity: int = field(validator=[instance_of(int), ge(0)])
    max_capacity: int = field(validator=[instance_of(int), ge(0)])
    target_value: Number = field(validator=instance_of((int, float)))
    scale_in_cooldown: int = field(validator=[instance_of(int), ge(0)])
    scale_out_cooldown: int = field(validator=[instance_of(int), ge(0)])

    @max_capacity.validator
    def _check_max_capacity(self, attribute, value: int) -> None:
        if value < self.min_capacity:
            raise ValueError(
                f"maxCapacity ({value}) must not be lower than minCapacity ({self.min_capacity})"
            )

    @classmethod
    def from_document(cls, data: Mapping[str, Any], path: str) -> "ScalableTargetConfig":
        return _build(
            cls,
            path,
            min_capacity=_require(data, "minCapacity", path, int),
            max_capacity=_require(data, "maxCapacity", path, int),
            target_value=_require(data, "targetValue", path, (int, float)),
            scale_in_cooldown=_require(data, "scaleInCooldown", path, int),
            scale_out_cooldown=_require(data, "scaleOutCooldown", path, int),
        )


@define(slots=True, frozen=True)
class ClusterConfig:
    preferred_maintenance_window: str = field(validator=instance_of(str))
    backtrack_window: int = field(validator=[instance_of(int), ge(0)])
    writer: InstanceSpec
    reader: InstanceSpec
    backup: BackupConfig
    scalable_target: ScalableTargetConfig

    @classmethod
    def from_document(cls, data: Mapping[str, Any], path: str) -> "ClusterConfig":
        instance = _require(data, "instance", path, Mapping)
        instance_path = f"{path}.instance"
        return _build(
            cls,
            path,
            preferred_maintenance_window=_require(data, "preferredMaintenanceWindow", path, str),
            backtrack_window=_require(data, "backtrackWindow", path, int),
            writer=InstanceSpec.from_document(
                _require(instance, "writer", instance_path, Mapping), f"{instance_path}.writer"
            ),
            reader=InstanceSpec.from_document(
                _require(instance, "reader", instance_path, Mapping), f"{instance_path}.reader"
            ),
            backup=BackupConfig.from_document(
                _require(data, "backup", path, Mapping), f"{path}.backup"
            ),
            scalable_target=ScalableTargetConfig.from_document(
                _require(data, "scalableTarget", path, Mapping), f"{path}.scalableTarget"
            ),
        )


@define(slots=True, frozen=True)
class DatabaseConfig:
    cluster: ClusterConfig

    @classmethod
    def from_document(cls, data: Mapping[str, Any], path: str) -> "DatabaseConfig":
        cluster = _require(data, "cluster", path, Mapping)
        return cls(cluster=ClusterConfig.from_document(cluster, f"{path}.cluster"))


# ---------- api ----------
@define(slots=True, frozen=True)
class HealthCheckConfig:
    interval: int = field(validator=[instance_of(int), gt(0)])
    path: str = field(validator=instance_of(str))
    timeout: int = field(validator=[instance_of(int), gt(0)])
    healthy_threshold: int = field(validator=[instance_of(int), gt(0)])
    unhealthy_threshold: int = field(validator=[instance_of(int), gt(0)])
    protocol: str = field(validator=instance_of(str))

    @classmethod
    def from_document(cls, data: Mapping[str, Any], path: str) -> "HealthCheckConfig":
        return _build(
            cls,
            path,
            interval=_require(data, "interval", path, int),
            path=_require(data, "path", path, str),
            timeout=_require(data, "timeout", path, int),
            healthy_threshold=_require(data, "healthyThreshold", path, int),
            unhealthy_threshold=_require(data, "unhealthyThreshold", path, int),
            protocol=_require(data, "protocol", path, str),
        )


@define(slots=True, frozen=True)
class AppRunnerConfig:
    cpu: int = field(validator=[instance_of(int), gt(0)])
    memory: int = field(validator=[instance_of(int), gt(0)])
    health_check: HealthCheckConfig

    @classmethod
    def from_document(cls, data: Mapping[str, Any], path: str) -> "AppRunnerConfig":
        return _build(
            cls,
            path,
            cpu=_require(data, "cpu", path, int),
            memory=_require(data, "memory", path, int),
            health_check=HealthCheckConfig.from_document(
                _require(data, "healthCheck", path, Mapping), f"{path}.healthCheck"
            ),
        )


@define(slots=True, frozen=True)
class ApiConfig:
    app_runner: AppRunnerConfig

    @classmethod
    def from_document(cls, data: Mapping[str, Any], path: str) -> "ApiConfig":
        app_runner = _require(data, "appRunner", path, Mapping)
        return cls(app_runner=AppRunnerConfig.from_document(app_runner, f"{path}.appRunner"))


# ---------- environment ----------
@define(slots=True, frozen=True)
class EnvironmentConfig:
    name: str
    network: NetworkConfig
    db: DatabaseConfig
    api: ApiConfig

    @property
    def is_production(self) -> bool:
        return self.name == "prod"


def resolve_environment(
    document: Optional[Mapping[str, Any]], environment: str
) -> EnvironmentConfig:
    """Return the typed configuration for ``environment``.

    Raises:
        UnknownEnvironment: ``environment`` is not a key of ``document``.
        InvalidConfiguration: a required field is missing or mistyped.
        UnknownInstanceClassOrSize: an instance size or class is not recognised.
    """
    document = document or {}
    subtree = document.get(environment)
    if not isinstance(subtree, Mapping):
        available = [key for key, value in document.items() if isinstance(value, Mapping)]
        raise UnknownEnvironment(environment, available)

    config = EnvironmentConfig(
        name=environment,
        network=NetworkConfig.from_document(
            _require(subtree, "network", environment, Mapping), f"{environment}.network"
        ),
        db=DatabaseConfig.from_document(
            _require(subtree, "db", environment, Mapping), f"{environment}.db"
        ),
        api=ApiConfig.from_document(
            _require(subtree, "api", environment, Mapping), f"{environment}.api"
        ),
    )
    logger.info("Resolved environment configuration", environment=environment)
    return config
