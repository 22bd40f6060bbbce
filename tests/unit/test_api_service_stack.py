import json
from typing import Any, Mapping

import pytest
from aws_cdk import App
from aws_cdk.assertions import Match, Template

from api_service.api_service_stack import ApiImports, ApiServiceStack
from common.config import EnvironmentConfig, resolve_environment
from common.exports import DB_SG_ID, VPC_CONNECTOR_ARN, VPC_CONNECTOR_SG_ID
from governance_checks import assert_ecr_compliance
from stack_test_helpers import (
    TEST_ENV,
    TEST_RELEASE,
    ResourceNameTestCase,
    api_source_dir,
    config_document,
    dev_config,
    get_single_resource_props,
)

IMPORTS = ApiImports(
    connector_sg_id=VPC_CONNECTOR_SG_ID,
    connector_arn=VPC_CONNECTOR_ARN,
    db_sg_id=DB_SG_ID,
)


@pytest.fixture
def stack(dev_config: EnvironmentConfig, api_source_dir: str) -> ApiServiceStack:
    return ApiServiceStack(
        App(),
        "TestApiStack",
        config=dev_config.api,
        imports=IMPORTS,
        release=TEST_RELEASE,
        env_name=dev_config.name,
        source_dir=api_source_dir,
        env=TEST_ENV,
    )


@pytest.fixture
def template(stack: ApiServiceStack) -> Template:
    return Template.from_stack(stack)


@pytest.fixture
def service_props(template: Template) -> Mapping[str, Any]:
    return get_single_resource_props(template, "AWS::AppRunner::Service")


# ----------------------------- Resource count smoke test ------------------------

RESOURCES = [
    ("AWS::ECR::Repository", 1),
    ("AWS::AppRunner::Service", 1),
    ("AWS::EC2::SecurityGroupIngress", 1),
    ("AWS::WAFv2::WebACL", 1),
    ("AWS::WAFv2::WebACLAssociation", 1),
]


@pytest.mark.parametrize("resource_type,expected", RESOURCES)
def test_resource_count(template: Template, resource_type: str, expected: int):
    template.resource_count_is(resource_type, expected)


# ------------------- Image tests -------------------


def test_repository_scans_on_push(template: Template):
    template.has_resource_properties(
        "AWS::ECR::Repository",
        {
            "RepositoryName": "platform-api-dev",
            "ImageScanningConfiguration": {"ScanOnPush": True},
        },
    )
    assert_ecr_compliance(template)


def test_service_pulls_release_tag(stack: ApiServiceStack, service_props: Mapping[str, Any]):
    image_repository = service_props["SourceConfiguration"]["ImageRepository"]

    assert image_repository["ImageRepositoryType"] == "ECR"
    assert f":{TEST_RELEASE}" in json.dumps(image_repository["ImageIdentifier"])
    assert stack.outputs.image_identifier.endswith(f":{TEST_RELEASE}")


def test_service_waits_for_release_image_copy(template: Template):
    resources = template.to_json()["Resources"]
    service = next(
        resource
        for resource in resources.values()
        if resource["Type"] == "AWS::AppRunner::Service"
    )
    image_copies = [
        logical_id
        for logical_id in service.get("DependsOn", [])
        if logical_id.startswith("DeployDockerImage")
    ]

    assert image_copies
    for logical_id in image_copies:
        assert logical_id in resources


def test_release_tag_changes_image_identifier(dev_config: EnvironmentConfig, api_source_dir: str):
    stack = ApiServiceStack(
        App(),
        "TestApiStack",
        config=dev_config.api,
        imports=IMPORTS,
        release="def456",
        env_name=dev_config.name,
        source_dir=api_source_dir,
        env=TEST_ENV,
    )
    props = get_single_resource_props(Template.from_stack(stack), "AWS::AppRunner::Service")

    assert ":def456" in json.dumps(props["SourceConfiguration"]["ImageRepository"])


# ------------------- App Runner tests -------------------


def test_service_configuration(template: Template):
    template.has_resource_properties(
        "AWS::AppRunner::Service",
        {
            "ServiceName": "platform-api-dev",
            "HealthCheckConfiguration": {
                "Interval": 10,
                "Path": "/health",
                "Timeout": 5,
                "HealthyThreshold": 1,
                "UnhealthyThreshold": 5,
                "Protocol": "HTTP",
            },
            "InstanceConfiguration": Match.object_like({"Cpu": "1024", "Memory": "2048"}),
            "NetworkConfiguration": {
                "EgressConfiguration": {
                    "EgressType": "VPC",
                    "VpcConnectorArn": {"Fn::ImportValue": "vpc-connector-arn"},
                },
                "IngressConfiguration": {"IsPubliclyAccessible": True},
            },
        },
    )


def test_service_listens_on_api_port(service_props: Mapping[str, Any]):
    image_configuration = service_props["SourceConfiguration"]["ImageRepository"][
        "ImageConfiguration"
    ]

    assert image_configuration["Port"] == "4000"


def test_runtime_secrets_come_from_parameter_store(service_props: Mapping[str, Any]):
    secrets = service_props["SourceConfiguration"]["ImageRepository"][
        "ImageConfiguration"
    ]["RuntimeEnvironmentSecrets"]

    assert [secret["Name"] for secret in secrets] == [
        "MYSQL_HOST",
        "MYSQL_READ_HOST",
        "MYSQL_PORT",
        "MYSQL_USER",
        "MYSQL_PASSWORD",
        "MYSQL_DATABASE",
        "TZ",
    ]
    assert ":parameter/db/read-host" in json.dumps(secrets[1]["Value"])


def test_instance_role_reads_runtime_parameters(template: Template):
    template.has_resource_properties(
        "AWS::IAM::Role",
        {
            "RoleName": "platform-api-instance-role-dev",
            "AssumeRolePolicyDocument": Match.object_like(
                {
                    "Statement": [
                        Match.object_like(
                            {"Principal": {"Service": "tasks.apprunner.amazonaws.com"}}
                        )
                    ]
                }
            ),
            "Policies": [
                {
                    "PolicyName": "SystemsManagerParametersPolicy",
                    "PolicyDocument": Match.object_like(
                        {
                            "Statement": [
                                Match.object_like(
                                    {
                                        "Action": ["ssm:GetParameters", "ssm:DescribeParameters"],
                                        "Effect": "Allow",
                                        "Resource": [
                                            "arn:aws:ssm:ap-northeast-1:123456789012:parameter/db/*",
                                            "arn:aws:ssm:ap-northeast-1:123456789012:parameter/api/*",
                                        ],
                                    }
                                )
                            ]
                        }
                    ),
                }
            ],
        },
    )


NAME_CASES = [
    ResourceNameTestCase(
        id="access_role",
        resource_type="AWS::IAM::Role",
        property_name="RoleName",
        expected="platform-api-access-role-dev",
    ),
    ResourceNameTestCase(
        id="web_acl",
        resource_type="AWS::WAFv2::WebACL",
        property_name="Name",
        expected="platform-api-waf-dev",
    ),
]


@pytest.mark.parametrize("case", NAME_CASES, ids=lambda case: case.id)
def test_resource_names(template: Template, case: ResourceNameTestCase):
    template.has_resource_properties(case.resource_type, {case.property_name: case.expected})


# ------------------- Database ingress tests -------------------


def test_connector_may_reach_database(template: Template):
    template.has_resource_properties(
        "AWS::EC2::SecurityGroupIngress",
        {
            "IpProtocol": "tcp",
            "FromPort": 3306,
            "ToPort": 3306,
            "GroupId": {"Fn::ImportValue": "db-sg-id"},
            "SourceSecurityGroupId": {"Fn::ImportValue": "vpc-connector-sg-id"},
            "Description": "Allow API",
        },
    )


# ------------------- WAF tests -------------------


def test_web_acl_rules(template: Template):
    props = get_single_resource_props(template, "AWS::WAFv2::WebACL")

    assert props["Scope"] == "REGIONAL"
    assert props["DefaultAction"] == {"Allow": {}}
    assert [(rule["Priority"], rule["Name"]) for rule in props["Rules"]] == [
        (0, "AWSManagedRulesSQLiRuleSet"),
        (1, "AWSManagedRulesCommonRuleSet"),
        (2, "AWSManagedRulesKnownBadInputsRuleSet"),
        (3, "AWSManagedRulesAmazonIpReputationList"),
    ]


@pytest.mark.parametrize(
    "rule_group,excluded",
    [
        ("AWSManagedRulesSQLiRuleSet", ["SQLi_QUERYARGUMENTS"]),
        (
            "AWSManagedRulesCommonRuleSet",
            ["CrossSiteScripting_BODY", "SizeRestrictions_BODY", "SizeRestrictions_QUERYSTRING"],
        ),
        ("AWSManagedRulesKnownBadInputsRuleSet", []),
        ("AWSManagedRulesAmazonIpReputationList", ["AWSManagedIPReputationList"]),
    ],
)
def test_web_acl_excluded_rules(template: Template, rule_group: str, excluded: list[str]):
    props = get_single_resource_props(template, "AWS::WAFv2::WebACL")
    rule = next(rule for rule in props["Rules"] if rule["Name"] == rule_group)
    statement = rule["Statement"]["ManagedRuleGroupStatement"]

    assert rule["OverrideAction"] == {"None": {}}
    assert statement["VendorName"] == "AWS"
    assert [item["Name"] for item in statement.get("ExcludedRules", [])] == excluded


def test_web_acl_is_associated_with_service(template: Template):
    template.has_resource_properties(
        "AWS::WAFv2::WebACLAssociation",
        {
            "ResourceArn": {"Fn::GetAtt": [Match.string_like_regexp("APIAppRunner"), "ServiceArn"]},
            "WebACLArn": {"Fn::GetAtt": [Match.string_like_regexp("WebACL"), "Arn"]},
        },
    )


def test_prod_image_builds_from_prod_dockerfile(config_document, api_source_dir: str):
    prod_config = resolve_environment(config_document, "prod")
    stack = ApiServiceStack(
        App(),
        "TestApiStack",
        config=prod_config.api,
        imports=IMPORTS,
        release=TEST_RELEASE,
        env_name=prod_config.name,
        source_dir=api_source_dir,
        env=TEST_ENV,
    )

    Template.from_stack(stack).has_resource_properties(
        "AWS::AppRunner::Service", {"ServiceName": "platform-api-prod"}
    )
