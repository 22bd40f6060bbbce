from aws_cdk import Stack, aws_ec2 as ec2
from constructs import Construct

import common.constants as constants
from common.exports import ExportHandle
from common.stack_context import StackContext


def create_bastion_sg(
    scope: Construct, context: StackContext, vpc: ec2.IVpc
) -> ec2.SecurityGroup:
    bastion_sg = ec2.SecurityGroup(
        scope,
        "DBBastionSecurityGroup",
        security_group_name=context.build_resource_name("sg", component="db-bastion"),
        description="Security group for the database bastion host",
        vpc=vpc,
        allow_all_outbound=True,
    )
    bastion_sg.add_ingress_rule(
        peer=ec2.Peer.ipv4(constants.ANY_IPV4_CIDR),
        connection=ec2.Port.tcp(constants.SSH_PORT),
        description="Allow SSH",
    )
    return bastion_sg


def create_bastion_instance(
    scope: Construct,
    context: StackContext,
    vpc: ec2.IVpc,
    security_group: ec2.ISecurityGroup,
) -> ec2.Instance:
    user_data = ec2.UserData.for_linux()
    user_data.add_commands("dnf install -y mariadb105")
    return ec2.Instance(
        scope,
        "DBBastion",
        instance_name=context.build_resource_name("db-bastion"),
        vpc=vpc,
        security_group=security_group,
        instance_type=ec2.InstanceType.of(ec2.InstanceClass.T3, ec2.InstanceSize.MICRO),
        machine_image=ec2.MachineImage.latest_amazon_linux2023(),
        user_data=user_data,
        vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
        ssm_session_permissions=True,
        key_pair=ec2.KeyPair.from_key_pair_name(
            scope, "DBBastionKeyPair", context.build_resource_name("key", component="db-bastion")
        ),
    )


class DatabaseBastionStack(Stack):
    """Bastion host for operators to reach the database from outside the VPC."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        vpc: ec2.IVpc,
        db_sg_id: ExportHandle,
        env_name: str,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, env=env_name)

        bastion_sg = create_bastion_sg(self, self.context, vpc)
        db_sg = ec2.SecurityGroup.from_security_group_id(
            self, "DBSecurityGroup", db_sg_id.import_value()
        )
        db_sg.add_ingress_rule(
            bastion_sg, ec2.Port.tcp(constants.MYSQL_PORT), "Allow Bastion"
        )
        self.instance = create_bastion_instance(self, self.context, vpc, bastion_sg)
