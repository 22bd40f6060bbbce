from attrs import define
from aws_cdk import (
    RemovalPolicy,
    Stack,
    aws_certificatemanager as acm,
    aws_cloudfront as cloudfront,
    aws_cloudfront_origins as origins,
    aws_route53 as route53,
    aws_route53_targets as targets,
    aws_s3 as s3,
    aws_s3_deployment as s3deploy,
    aws_ssm as ssm,
)
from constructs import Construct

import common.constants as constants
from common.stack_context import StackContext


@define(slots=True, frozen=True)
class StaticSiteOutputs:
    origin_bucket: s3.Bucket
    distribution: cloudfront.Distribution
    record: route53.ARecord


def create_origin_bucket(scope: Construct, context: StackContext) -> s3.Bucket:
    return s3.Bucket(
        scope,
        "OriginFrontBucket",
        bucket_name=context.build_resource_name("hosting", component="front"),
        block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
        encryption=s3.BucketEncryption.S3_MANAGED,
        enforce_ssl=True,
        removal_policy=RemovalPolicy.RETAIN,
    )


def create_logs_bucket(scope: Construct, context: StackContext) -> s3.Bucket:
    return s3.Bucket(
        scope,
        "CloudFrontLogsBucket",
        bucket_name=context.build_resource_name("cloudfront-logs", component="front"),
        block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
        encryption=s3.BucketEncryption.S3_MANAGED,
        object_ownership=s3.ObjectOwnership.BUCKET_OWNER_PREFERRED,
        removal_policy=RemovalPolicy.RETAIN,
    )


def create_distribution(
    scope: Construct,
    context: StackContext,
    origin_bucket: s3.IBucket,
    logs_bucket: s3.IBucket,
    domain_name: str,
) -> cloudfront.Distribution:
    """Serve the origin bucket through CloudFront using origin access control."""
    origin_access_control = cloudfront.S3OriginAccessControl(
        scope,
        "OriginAccessControl",
        origin_access_control_name=context.build_resource_name("oac", component="front"),
        signing=cloudfront.Signing.SIGV4_ALWAYS,
    )
    certificate = acm.Certificate.from_certificate_arn(
        scope,
        "ACMCertificate",
        ssm.StringParameter.value_for_string_parameter(
            scope, constants.FRONT_CERTIFICATE_ARN_PARAMETER
        ),
    )
    return cloudfront.Distribution(
        scope,
        "CloudFrontDistribution",
        default_behavior=cloudfront.BehaviorOptions(
            origin=origins.S3BucketOrigin.with_origin_access_control(
                origin_bucket, origin_access_control=origin_access_control
            ),
            viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
            origin_request_policy=cloudfront.OriginRequestPolicy.CORS_S3_ORIGIN,
            allowed_methods=cloudfront.AllowedMethods.ALLOW_GET_HEAD_OPTIONS,
            response_headers_policy=cloudfront.ResponseHeadersPolicy.SECURITY_HEADERS,
        ),
        default_root_object=constants.FRONT_INDEX_DOCUMENT,
        certificate=certificate,
        domain_names=[domain_name],
        # single page app: unknown paths fall back to the index document
        error_responses=[
            cloudfront.ErrorResponse(
                http_status=status,
                response_http_status=200,
                response_page_path=f"/{constants.FRONT_INDEX_DOCUMENT}",
            )
            for status in constants.FRONT_SPA_ERROR_STATUSES
        ],
        enable_logging=True,
        log_bucket=logs_bucket,
    )


def create_alias_record(
    scope: Construct, distribution: cloudfront.IDistribution
) -> route53.ARecord:
    hosted_zone = route53.HostedZone.from_hosted_zone_attributes(
        scope,
        "HostedZone",
        hosted_zone_id=ssm.StringParameter.value_for_string_parameter(
            scope, constants.FRONT_HOSTED_ZONE_ID_PARAMETER
        ),
        zone_name=ssm.StringParameter.value_for_string_parameter(
            scope, constants.FRONT_HOSTED_ZONE_NAME_PARAMETER
        ),
    )
    return route53.ARecord(
        scope,
        "FrontARecord",
        zone=hosted_zone,
        record_name=constants.FRONT_SUBDOMAIN,
        target=route53.RecordTarget.from_alias(targets.CloudFrontTarget(distribution)),
    )


def deploy_assets(
    scope: Construct,
    bucket: s3.IBucket,
    distribution: cloudfront.IDistribution,
    asset_dir: str,
) -> s3deploy.BucketDeployment:
    """Upload the built bundle and invalidate every cached path."""
    return s3deploy.BucketDeployment(
        scope,
        "FrontBucketDeployment",
        sources=[s3deploy.Source.asset(asset_dir)],
        destination_bucket=bucket,
        distribution=distribution,
        distribution_paths=["/*"],
    )


def provision_static_site(
    scope: Construct, context: StackContext, asset_dir: str
) -> StaticSiteOutputs:
    origin_bucket = create_origin_bucket(scope, context)
    logs_bucket = create_logs_bucket(scope, context)
    zone_name = ssm.StringParameter.value_for_string_parameter(
        scope, constants.FRONT_HOSTED_ZONE_NAME_PARAMETER
    )
    distribution = create_distribution(
        scope,
        context,
        origin_bucket,
        logs_bucket,
        domain_name=f"{constants.FRONT_SUBDOMAIN}.{zone_name}",
    )
    record = create_alias_record(scope, distribution)
    deploy_assets(scope, origin_bucket, distribution, asset_dir)
    return StaticSiteOutputs(
        origin_bucket=origin_bucket, distribution=distribution, record=record
    )


class StaticSiteStack(Stack):

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        env_name: str,
        asset_dir: str = constants.FRONT_ASSET_DIR,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, env=env_name)
        self.outputs = provision_static_site(self, self.context, asset_dir)
