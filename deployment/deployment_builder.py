"""Assemble the deployment: read deploy parameters, validate, declare stacks.

All validation (configuration, dependency graph, published exports) happens
before the first stack is instantiated, so a bad run never declares a
partial set of resources.
"""
import os
from collections.abc import Mapping
from typing import Any, Callable, Optional

from attrs import define, field
from aws_cdk import App, Environment, Stack, Tags
from aws_lambda_powertools import Logger

import common.constants as constants
from api_service.api_service_stack import ApiImports, ApiServiceStack
from common.config import EnvironmentConfig, resolve_environment
from common.dependency_graph import (
    StackSpec,
    dependencies_of,
    resolve_apply_order,
)
from common.errors import MissingDeployParameter, UnknownStack
from common.published_exports import fetch_published_exports, verify_published_exports
from common.stack_plan import build_stack_specs
from database.bastion_stack import DatabaseBastionStack
from database.database_stack import DatabaseStack
from networking.networking_stack import NetworkingStack
from static_site.static_site_stack import StaticSiteStack

logger = Logger(service="deploy", level=os.getenv("LOG_LEVEL", constants.LOG_LEVEL).upper())

CONFIG_CONTEXT_KEY = "environments"
TRUTHY = {"1", "true", "yes", "on"}


def _is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY


def _stack_names(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(name.strip() for name in value.split(",") if name.strip())
    return tuple(value)


@define(slots=True, frozen=True)
class DeployParameters:
    environment: str
    release: str
    include_bastion: bool = False
    verify_exports: tuple = field(factory=tuple, converter=tuple)

    @classmethod
    def from_app(cls, app: App) -> "DeployParameters":
        environment = app.node.try_get_context(constants.CONTEXT_ENV)
        if not environment:
            raise MissingDeployParameter(constants.CONTEXT_ENV)
        release = app.node.try_get_context(constants.CONTEXT_COMMIT)
        if not release:
            raise MissingDeployParameter(constants.CONTEXT_COMMIT)
        return cls(
            environment=str(environment),
            release=str(release),
            include_bastion=_is_truthy(
                app.node.try_get_context(constants.CONTEXT_BASTION) or False
            ),
            verify_exports=_stack_names(
                app.node.try_get_context(constants.CONTEXT_VERIFY_EXPORTS)
            ),
        )


@define(slots=True)
class DeploymentBuilder:
    app: App
    config: EnvironmentConfig
    release: str
    env: Optional[Environment] = None
    api_source_dir: str = constants.API_SOURCE_DIR
    front_asset_dir: str = constants.FRONT_ASSET_DIR
    stacks: dict = field(factory=dict, init=False)

    # ---------- stacks ----------
    def _network(self) -> Stack:
        return NetworkingStack(
            self.app,
            constants.NETWORK_STACK,
            config=self.config.network,
            env_name=self.config.name,
            env=self.env,
        )

    def _database(self) -> Stack:
        return DatabaseStack(
            self.app,
            constants.DB_STACK,
            config=self.config.db,
            vpc=self.stacks[constants.NETWORK_STACK].vpc,
            env_name=self.config.name,
            env=self.env,
        )

    def _api(self) -> Stack:
        network = self.stacks[constants.NETWORK_STACK].outputs
        database = self.stacks[constants.DB_STACK].outputs
        return ApiServiceStack(
            self.app,
            constants.API_STACK,
            config=self.config.api,
            imports=ApiImports(
                connector_sg_id=network.connector_sg_id,
                connector_arn=network.connector_arn,
                db_sg_id=database.db_sg_id,
            ),
            release=self.release,
            env_name=self.config.name,
            source_dir=self.api_source_dir,
            env=self.env,
        )

    def _front(self) -> Stack:
        return StaticSiteStack(
            self.app,
            constants.FRONT_STACK,
            env_name=self.config.name,
            asset_dir=self.front_asset_dir,
            env=self.env,
        )

    def _db_bastion(self) -> Stack:
        return DatabaseBastionStack(
            self.app,
            constants.DB_BASTION_STACK,
            vpc=self.stacks[constants.NETWORK_STACK].vpc,
            db_sg_id=self.stacks[constants.DB_STACK].outputs.db_sg_id,
            env_name=self.config.name,
            env=self.env,
        )

    def _factories(self) -> Mapping[str, Callable[[], Stack]]:
        return {
            constants.NETWORK_STACK: self._network,
            constants.DB_STACK: self._database,
            constants.API_STACK: self._api,
            constants.FRONT_STACK: self._front,
            constants.DB_BASTION_STACK: self._db_bastion,
        }

    # ---------- assembly ----------
    def build(self, specs: list[StackSpec]) -> dict[str, Stack]:
        """Declare ``specs`` in apply order and wire their hard dependencies."""
        order = resolve_apply_order(specs)
        factories = self._factories()
        for name in order:
            stack = factories[name]()
            Tags.of(stack).add("Project", constants.SERVICE_NAME)
            Tags.of(stack).add("Environment", self.config.name)
            self.stacks[name] = stack

        for spec in specs:
            for dependency in dependencies_of(spec, specs):
                self.stacks[spec.name].add_dependency(self.stacks[dependency])

        logger.info(
            "Declared stacks", environment=self.config.name, order=order
        )
        return self.stacks


def build_deployment(
    app: App,
    env: Optional[Environment] = None,
    published_exports: Optional[Callable[[], Mapping[str, str]]] = None,
    **builder_kwargs,
) -> dict[str, Stack]:
    """Validate deploy parameters and configuration, then declare every stack."""
    parameters = DeployParameters.from_app(app)
    config = resolve_environment(
        app.node.try_get_context(CONFIG_CONTEXT_KEY), parameters.environment
    )
    specs = build_stack_specs(include_bastion=parameters.include_bastion)
    order = resolve_apply_order(specs)
    logger.info(
        "Resolved deployment plan",
        environment=parameters.environment,
        release=parameters.release,
        order=order,
    )

    if parameters.verify_exports:
        known = [spec.name for spec in specs]
        for name in parameters.verify_exports:
            if name not in known:
                raise UnknownStack(name, known)
        published = (published_exports or fetch_published_exports)()
        verify_published_exports(
            [spec for spec in specs if spec.name in parameters.verify_exports],
            published,
        )

    builder = DeploymentBuilder(
        app=app,
        config=config,
        release=parameters.release,
        env=env,
        **builder_kwargs,
    )
    return builder.build(specs)
