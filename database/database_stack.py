from attrs import define
from aws_cdk import (
    Duration,
    SecretValue,
    Stack,
    aws_applicationautoscaling as appscaling,
    aws_ec2 as ec2,
    aws_iam as iam,
    aws_kms as kms,
    aws_rds as rds,
    aws_secretsmanager as sm,
)
from constructs import Construct

import common.constants as constants
from common import instance_types
from common.config import ClusterConfig, DatabaseConfig
from common.exports import DB_SG_ID, ExportHandle
from common.stack_context import StackContext


@define(slots=True, frozen=True)
class DatabaseOutputs:
    cluster: rds.DatabaseCluster
    security_group: ec2.SecurityGroup
    secret: sm.Secret
    scalable_target: appscaling.ScalableTarget
    db_sg_id: ExportHandle


@define(slots=True, frozen=True)
class ParameterGroups:
    cluster: rds.ParameterGroup
    instance: rds.ParameterGroup


def _engine() -> rds.IClusterEngine:
    return rds.DatabaseClusterEngine.aurora_mysql(version=constants.DB_ENGINE_VERSION)


def create_role(scope: Construct, context: StackContext) -> iam.Role:
    return iam.Role(
        scope,
        "DBRole",
        role_name=context.build_resource_name("role", component="db"),
        assumed_by=iam.ServicePrincipal("rds.amazonaws.com"),
    )


def create_security_group(
    scope: Construct, context: StackContext, vpc: ec2.IVpc
) -> ec2.SecurityGroup:
    return ec2.SecurityGroup(
        scope,
        "DBSecurityGroup",
        security_group_name=context.build_resource_name("sg", component="db"),
        description="Security group for the Aurora MySQL cluster",
        vpc=vpc,
        allow_all_outbound=True,
    )


def create_parameter_groups(scope: Construct, role: iam.IRole) -> ParameterGroups:
    cluster = rds.ParameterGroup(scope, "ClusterParameterGroup", engine=_engine())
    cluster.add_parameter("aws_default_s3_role", role.role_arn)
    instance = rds.ParameterGroup(scope, "InstanceParameterGroup", engine=_engine())
    return ParameterGroups(cluster=cluster, instance=instance)


def create_subnet_group(
    scope: Construct, context: StackContext, vpc: ec2.IVpc
) -> rds.SubnetGroup:
    return rds.SubnetGroup(
        scope,
        "SubnetGroup",
        vpc=vpc,
        subnet_group_name=context.build_resource_name("subnet-group", component="db"),
        vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
        description="Subnet group for rds",
    )


def create_secret(scope: Construct, context: StackContext) -> sm.Secret:
    """Copy the operator-provided init credentials into the cluster secret."""
    init_secret = sm.Secret.from_secret_name_v2(
        scope, "DBInitSecret", constants.DB_INIT_SECRET_NAME
    )
    return sm.Secret(
        scope,
        "DBSecret",
        secret_name=context.build_resource_name("secret", component="db"),
        secret_object_value={
            "username": SecretValue.unsafe_plain_text(
                init_secret.secret_value_from_json("username").unsafe_unwrap()
            ),
            "password": SecretValue.unsafe_plain_text(
                init_secret.secret_value_from_json("password").unsafe_unwrap()
            ),
        },
    )


def create_cluster(
    scope: Construct,
    context: StackContext,
    config: ClusterConfig,
    *,
    vpc: ec2.IVpc,
    security_group: ec2.ISecurityGroup,
    parameter_groups: ParameterGroups,
    subnet_group: rds.ISubnetGroup,
    secret: sm.ISecret,
) -> rds.DatabaseCluster:
    return rds.DatabaseCluster(
        scope,
        "DatabaseCluster",
        default_database_name=constants.DB_DEFAULT_DATABASE_NAME,
        cluster_identifier=context.build_resource_name("cluster", component="db"),
        parameter_group=parameter_groups.cluster,
        security_groups=[security_group],
        subnet_group=subnet_group,
        engine=_engine(),
        credentials=rds.Credentials.from_secret(secret),
        preferred_maintenance_window=config.preferred_maintenance_window,
        storage_encrypted=True,
        storage_encryption_key=kms.Key.from_lookup(
            scope, "StorageEncryptionKey", alias_name=constants.DB_STORAGE_KMS_ALIAS
        ),
        backtrack_window=Duration.seconds(config.backtrack_window),
        cloudwatch_logs_exports=constants.DB_LOG_EXPORTS,
        writer=rds.ClusterInstance.provisioned(
            "writer",
            instance_identifier=context.build_resource_name("writer", component="db"),
            instance_type=instance_types.instance_type(
                config.writer.instance_class, config.writer.instance_size
            ),
            parameter_group=parameter_groups.instance,
        ),
        readers=[
            rds.ClusterInstance.provisioned(
                "reader1",
                instance_identifier=context.build_resource_name("reader1", component="db"),
                instance_type=instance_types.instance_type(
                    config.reader.instance_class, config.reader.instance_size
                ),
                parameter_group=parameter_groups.instance,
            )
        ],
        storage_type=rds.DBClusterStorageType.AURORA,
        vpc=vpc,
        backup=rds.BackupProps(
            retention=Duration.days(config.backup.retention),
            preferred_window=config.backup.preferred_window,
        ),
        deletion_protection=True,
    )


def create_reader_scaling(
    scope: Construct,
    context: StackContext,
    config: ClusterConfig,
    cluster: rds.DatabaseCluster,
) -> appscaling.ScalableTarget:
    """Scale the reader count on average reader CPU utilization."""
    scaling = config.scalable_target
    scalable_target = appscaling.ScalableTarget(
        scope,
        "ScalableTarget",
        service_namespace=appscaling.ServiceNamespace.RDS,
        min_capacity=scaling.min_capacity,
        max_capacity=scaling.max_capacity,
        resource_id=f"cluster:{cluster.cluster_identifier}",
        scalable_dimension=constants.DB_READ_REPLICA_DIMENSION,
    )
    scalable_target.scale_to_track_metric(
        "Tracking",
        policy_name=context.build_resource_name("scale-policy", component="db"),
        target_value=scaling.target_value,
        predefined_metric=appscaling.PredefinedMetric.RDS_READER_AVERAGE_CPU_UTILIZATION,
        scale_in_cooldown=Duration.seconds(scaling.scale_in_cooldown),
        scale_out_cooldown=Duration.seconds(scaling.scale_out_cooldown),
    )
    return scalable_target


def provision_database(
    scope: Construct, context: StackContext, config: DatabaseConfig, vpc: ec2.IVpc
) -> DatabaseOutputs:
    role = create_role(scope, context)
    security_group = create_security_group(scope, context, vpc)
    parameter_groups = create_parameter_groups(scope, role)
    subnet_group = create_subnet_group(scope, context, vpc)
    secret = create_secret(scope, context)
    cluster = create_cluster(
        scope,
        context,
        config.cluster,
        vpc=vpc,
        security_group=security_group,
        parameter_groups=parameter_groups,
        subnet_group=subnet_group,
        secret=secret,
    )
    scalable_target = create_reader_scaling(scope, context, config.cluster, cluster)
    DB_SG_ID.publish(scope, "DBSecurityGroupIdOutput", security_group.security_group_id)

    return DatabaseOutputs(
        cluster=cluster,
        security_group=security_group,
        secret=secret,
        scalable_target=scalable_target,
        db_sg_id=DB_SG_ID,
    )


class DatabaseStack(Stack):

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: DatabaseConfig,
        vpc: ec2.IVpc,
        env_name: str,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, env=env_name)
        self.outputs = provision_database(self, self.context, config, vpc)
