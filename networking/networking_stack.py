from attrs import define
from aws_cdk import (
    CfnOutput,
    Stack,
    aws_apprunner as apprunner,
    aws_ec2 as ec2,
)
from constructs import Construct

from common import instance_types
from common.config import NetworkConfig
from common.exports import VPC_CONNECTOR_ARN, VPC_CONNECTOR_SG_ID, ExportHandle
from common.stack_context import StackContext


@define(slots=True, frozen=True)
class NetworkOutputs:
    vpc: ec2.Vpc
    connector_security_group: ec2.SecurityGroup
    vpc_connector: apprunner.CfnVpcConnector
    connector_sg_id: ExportHandle
    connector_arn: ExportHandle


def create_vpc(scope: Construct, context: StackContext, config: NetworkConfig) -> ec2.Vpc:
    vpc_config = config.vpc
    return ec2.Vpc(
        scope,
        "VPC",
        vpc_name=context.build_resource_name("vpc"),
        ip_addresses=ec2.IpAddresses.cidr(vpc_config.cidr),
        max_azs=vpc_config.max_azs,
        subnet_configuration=[
            ec2.SubnetConfiguration(
                name=subnet.name,
                subnet_type=instance_types.subnet_type(subnet.subnet_type),
                cidr_mask=subnet.cidr_mask,
            )
            for subnet in vpc_config.subnet_configuration
        ],
        nat_gateways=vpc_config.nat_gateways_count,
    )


def create_vpc_connector(
    scope: Construct, context: StackContext, vpc: ec2.IVpc
) -> tuple[ec2.SecurityGroup, apprunner.CfnVpcConnector]:
    """Create the App Runner VPC connector in the private subnets."""
    connector_sg = ec2.SecurityGroup(
        scope,
        "VPCConnectorSecurityGroup",
        security_group_name=context.build_resource_name("sg", component="vpc-connector"),
        description="Security group for the App Runner VPC connector",
        vpc=vpc,
    )
    private_subnets = vpc.select_subnets(
        subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS
    )
    vpc_connector = apprunner.CfnVpcConnector(
        scope,
        "VPCConnector",
        vpc_connector_name=context.build_resource_name("vpc-connector"),
        subnets=private_subnets.subnet_ids,
        security_groups=[connector_sg.security_group_id],
    )
    return connector_sg, vpc_connector


def provision_network(
    scope: Construct, context: StackContext, config: NetworkConfig
) -> NetworkOutputs:
    vpc = create_vpc(scope, context, config)
    connector_sg, vpc_connector = create_vpc_connector(scope, context, vpc)
    VPC_CONNECTOR_SG_ID.publish(
        scope, "VPCConnectorSgIdOutput", connector_sg.security_group_id
    )
    VPC_CONNECTOR_ARN.publish(
        scope, "VPCConnectorArnOutput", vpc_connector.attr_vpc_connector_arn
    )

    return NetworkOutputs(
        vpc=vpc,
        connector_security_group=connector_sg,
        vpc_connector=vpc_connector,
        connector_sg_id=VPC_CONNECTOR_SG_ID,
        connector_arn=VPC_CONNECTOR_ARN,
    )


class NetworkingStack(Stack):

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: NetworkConfig,
        env_name: str,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, env=env_name)
        self.outputs = provision_network(self, self.context, config)

        CfnOutput(self, "VpcId", value=self.outputs.vpc.vpc_id)

    @property
    def vpc(self) -> ec2.Vpc:
        return self.outputs.vpc
