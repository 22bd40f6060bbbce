from attrs import define
from aws_cdk import (
    Stack,
    aws_apprunner as apprunner,
    aws_ec2 as ec2,
    aws_ecr as ecr,
    aws_ecr_assets as ecr_assets,
    aws_iam as iam,
    aws_ssm as ssm,
    aws_wafv2 as wafv2,
)
import cdk_ecr_deployment as ecrdeploy
from constructs import Construct

import common.constants as constants
from common.config import AppRunnerConfig, ApiConfig
from common.exports import ExportHandle
from common.stack_context import StackContext


@define(slots=True, frozen=True)
class ApiImports:
    """Exports the API stack imports from the network and database stacks."""

    connector_sg_id: ExportHandle
    connector_arn: ExportHandle
    db_sg_id: ExportHandle


@define(slots=True, frozen=True)
class ApiServiceOutputs:
    repository: ecr.Repository
    image_identifier: str
    service: apprunner.CfnService
    web_acl: wafv2.CfnWebACL


def build_and_push_image(
    scope: Construct,
    context: StackContext,
    release: str,
    source_dir: str,
) -> tuple[ecr.Repository, str, ecrdeploy.ECRDeployment]:
    """Build the API image and copy it into ECR tagged with ``release``."""
    repository = ecr.Repository(
        scope,
        "APIRepository",
        repository_name=context.build_resource_name("api"),
        image_scan_on_push=True,
    )
    image = ecr_assets.DockerImageAsset(
        scope,
        "DockerImageAsset",
        directory=source_dir,
        file=constants.API_DOCKERFILE.format(env=context.env),
    )
    image_identifier = f"{repository.repository_uri}:{release}"
    deployment = ecrdeploy.ECRDeployment(
        scope,
        "DeployDockerImage",
        src=ecrdeploy.DockerImageName(image.image_uri),
        dest=ecrdeploy.DockerImageName(image_identifier),
    )
    return repository, image_identifier, deployment


def allow_connector_to_database(scope: Construct, imports: ApiImports) -> None:
    vpc_connector_sg = ec2.SecurityGroup.from_security_group_id(
        scope, "APIVPCConnectorSecurityGroup", imports.connector_sg_id.import_value()
    )
    db_sg = ec2.SecurityGroup.from_security_group_id(
        scope, "DBSecurityGroup", imports.db_sg_id.import_value()
    )
    db_sg.add_ingress_rule(
        vpc_connector_sg, ec2.Port.tcp(constants.MYSQL_PORT), "Allow API"
    )


def _runtime_secrets(scope: Construct) -> list[apprunner.CfnService.KeyValuePairProperty]:
    secrets = []
    for env_var, parameter_name in constants.API_RUNTIME_SECRETS.items():
        parameter = ssm.StringParameter.from_secure_string_parameter_attributes(
            scope,
            f"{env_var.title().replace('_', '')}Parameter",
            parameter_name=parameter_name,
            version=constants.API_RUNTIME_SECRET_VERSION,
        )
        secrets.append(
            apprunner.CfnService.KeyValuePairProperty(
                name=env_var, value=parameter.parameter_arn
            )
        )
    return secrets


def _access_role(scope: Construct, context: StackContext) -> iam.Role:
    return iam.Role(
        scope,
        "ECRAccessRole",
        role_name=context.build_resource_name("access-role", component="api"),
        assumed_by=iam.ServicePrincipal("build.apprunner.amazonaws.com"),
        managed_policies=[
            iam.ManagedPolicy.from_aws_managed_policy_name(
                constants.APP_RUNNER_ECR_ACCESS_POLICY
            )
        ],
    )


def _instance_role(scope: Construct, context: StackContext) -> iam.Role:
    """Instance role allowed to read the runtime parameters."""
    return iam.Role(
        scope,
        "APIInstanceRole",
        role_name=context.build_resource_name("instance-role", component="api"),
        assumed_by=iam.ServicePrincipal("tasks.apprunner.amazonaws.com"),
        inline_policies={
            "SystemsManagerParametersPolicy": iam.PolicyDocument(
                statements=[
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=["ssm:GetParameters", "ssm:DescribeParameters"],
                        resources=[
                            context.build_parameter_arn(path)
                            for path in constants.API_PARAMETER_PATHS
                        ],
                    )
                ]
            )
        },
    )


def create_app_runner_service(
    scope: Construct,
    context: StackContext,
    config: AppRunnerConfig,
    *,
    image_identifier: str,
    imports: ApiImports,
) -> apprunner.CfnService:
    health_check = config.health_check
    return apprunner.CfnService(
        scope,
        "APIAppRunner",
        service_name=context.build_resource_name("api"),
        source_configuration=apprunner.CfnService.SourceConfigurationProperty(
            authentication_configuration=apprunner.CfnService.AuthenticationConfigurationProperty(
                access_role_arn=_access_role(scope, context).role_arn,
            ),
            auto_deployments_enabled=True,
            image_repository=apprunner.CfnService.ImageRepositoryProperty(
                image_identifier=image_identifier,
                image_repository_type="ECR",
                image_configuration=apprunner.CfnService.ImageConfigurationProperty(
                    port=str(constants.API_PORT),
                    runtime_environment_secrets=_runtime_secrets(scope),
                ),
            ),
        ),
        health_check_configuration=apprunner.CfnService.HealthCheckConfigurationProperty(
            interval=health_check.interval,
            path=health_check.path,
            timeout=health_check.timeout,
            healthy_threshold=health_check.healthy_threshold,
            unhealthy_threshold=health_check.unhealthy_threshold,
            protocol=health_check.protocol,
        ),
        instance_configuration=apprunner.CfnService.InstanceConfigurationProperty(
            instance_role_arn=_instance_role(scope, context).role_arn,
            cpu=str(config.cpu),
            memory=str(config.memory),
        ),
        network_configuration=apprunner.CfnService.NetworkConfigurationProperty(
            egress_configuration=apprunner.CfnService.EgressConfigurationProperty(
                egress_type="VPC",
                vpc_connector_arn=imports.connector_arn.import_value(),
            ),
            ingress_configuration=apprunner.CfnService.IngressConfigurationProperty(
                is_publicly_accessible=True,
            ),
        ),
    )


def _visibility_config(metric_name: str) -> wafv2.CfnWebACL.VisibilityConfigProperty:
    return wafv2.CfnWebACL.VisibilityConfigProperty(
        metric_name=metric_name,
        cloud_watch_metrics_enabled=True,
        sampled_requests_enabled=True,
    )


def _managed_rule(
    priority: int, rule_group: str, excluded_rules: list[str]
) -> wafv2.CfnWebACL.RuleProperty:
    return wafv2.CfnWebACL.RuleProperty(
        name=rule_group,
        priority=priority,
        override_action=wafv2.CfnWebACL.OverrideActionProperty(none={}),
        visibility_config=_visibility_config(rule_group),
        statement=wafv2.CfnWebACL.StatementProperty(
            managed_rule_group_statement=wafv2.CfnWebACL.ManagedRuleGroupStatementProperty(
                vendor_name=constants.WAF_VENDOR,
                name=rule_group,
                excluded_rules=[
                    wafv2.CfnWebACL.ExcludedRuleProperty(name=rule)
                    for rule in excluded_rules
                ]
                or None,
            )
        ),
    )


def create_web_acl(
    scope: Construct, context: StackContext, service: apprunner.CfnService
) -> wafv2.CfnWebACL:
    """Attach the AWS managed rule groups to the App Runner service."""
    web_acl_name = context.build_resource_name("waf", component="api")
    web_acl = wafv2.CfnWebACL(
        scope,
        "WebACL",
        name=web_acl_name,
        default_action=wafv2.CfnWebACL.DefaultActionProperty(
            allow=wafv2.CfnWebACL.AllowActionProperty()
        ),
        scope="REGIONAL",
        rules=[
            _managed_rule(priority, rule_group, excluded_rules)
            for priority, (rule_group, excluded_rules) in enumerate(
                constants.WAF_MANAGED_RULE_GROUPS
            )
        ],
        visibility_config=_visibility_config(web_acl_name),
    )
    wafv2.CfnWebACLAssociation(
        scope,
        "APIWebACLAssociation",
        resource_arn=service.attr_service_arn,
        web_acl_arn=web_acl.attr_arn,
    )
    return web_acl


def provision_api_service(
    scope: Construct,
    context: StackContext,
    config: ApiConfig,
    *,
    release: str,
    imports: ApiImports,
    source_dir: str,
) -> ApiServiceOutputs:
    repository, image_identifier, image_deployment = build_and_push_image(
        scope, context, release, source_dir
    )
    allow_connector_to_database(scope, imports)
    service = create_app_runner_service(
        scope,
        context,
        config.app_runner,
        image_identifier=image_identifier,
        imports=imports,
    )
    # the release tag only exists once the image copy has run
    service.node.add_dependency(image_deployment)
    web_acl = create_web_acl(scope, context, service)
    return ApiServiceOutputs(
        repository=repository,
        image_identifier=image_identifier,
        service=service,
        web_acl=web_acl,
    )


class ApiServiceStack(Stack):

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: ApiConfig,
        imports: ApiImports,
        release: str,
        env_name: str,
        source_dir: str = constants.API_SOURCE_DIR,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, env=env_name)
        self.outputs = provision_api_service(
            self,
            self.context,
            config,
            release=release,
            imports=imports,
            source_dir=source_dir,
        )
