from aws_cdk import aws_rds as rds

DEFAULT_ENV = "dev"
LOG_LEVEL = "INFO"

# Naming convention components
SERVICE_NAME = "platform"  # The application name

# Stack identifiers (also used as CloudFormation stack names)
NETWORK_STACK = "network-stack"
DB_STACK = "db-stack"
API_STACK = "api-stack"
FRONT_STACK = "front-stack"
DB_BASTION_STACK = "db-bastion-stack"

# Cross-stack export names, unique per account/region
VPC_CONNECTOR_SG_ID_EXPORT = "vpc-connector-sg-id"
VPC_CONNECTOR_ARN_EXPORT = "vpc-connector-arn"
DB_SG_ID_EXPORT = "db-sg-id"
# VPC handle passed in-process between stacks; CDK synthesizes its own export
VPC_REFERENCE = "vpc"

# Deploy-time context keys
CONTEXT_ENV = "env"
CONTEXT_COMMIT = "commit"
CONTEXT_BASTION = "bastion"
CONTEXT_VERIFY_EXPORTS = "verifyExports"

ANY_IPV4_CIDR = "0.0.0.0/0"
SSH_PORT = 22
MYSQL_PORT = 3306
API_PORT = 4000

# Database
DB_ENGINE_VERSION = rds.AuroraMysqlEngineVersion.VER_3_04_0
DB_INIT_SECRET_NAME = "db-init-secret"
DB_DEFAULT_DATABASE_NAME = "db"
DB_LOG_EXPORTS = ["error", "slowquery"]
DB_STORAGE_KMS_ALIAS = "alias/aws/rds"
DB_READ_REPLICA_DIMENSION = "rds:cluster:ReadReplicaCount"

# App Runner runtime secrets: environment variable -> SSM parameter name
API_RUNTIME_SECRETS = {
    "MYSQL_HOST": "/db/host",
    "MYSQL_READ_HOST": "/db/read-host",
    "MYSQL_PORT": "/db/port",
    "MYSQL_USER": "/db/username",
    "MYSQL_PASSWORD": "/db/password",
    "MYSQL_DATABASE": "/db/dbname",
    "TZ": "/db/tz",
}
API_RUNTIME_SECRET_VERSION = 1
API_PARAMETER_PATHS = ["db/*", "api/*"]
API_SOURCE_DIR = "../api"
API_DOCKERFILE = "build/{env}/Dockerfile"
APP_RUNNER_ECR_ACCESS_POLICY = "service-role/AWSAppRunnerServicePolicyForECRAccess"

# WAF managed rule groups in priority order: (rule group name, excluded rules)
WAF_MANAGED_RULE_GROUPS = [
    ("AWSManagedRulesSQLiRuleSet", ["SQLi_QUERYARGUMENTS"]),
    (
        "AWSManagedRulesCommonRuleSet",
        [
            "CrossSiteScripting_BODY",
            "SizeRestrictions_BODY",
            "SizeRestrictions_QUERYSTRING",
        ],
    ),
    ("AWSManagedRulesKnownBadInputsRuleSet", []),
    ("AWSManagedRulesAmazonIpReputationList", ["AWSManagedIPReputationList"]),
]
WAF_VENDOR = "AWS"

# Static site
FRONT_SUBDOMAIN = "app"
FRONT_ASSET_DIR = "../front/dist"
FRONT_INDEX_DOCUMENT = "index.html"
FRONT_HOSTED_ZONE_ID_PARAMETER = "/front/hosted-zone-id"
FRONT_HOSTED_ZONE_NAME_PARAMETER = "/front/hosted-zone-name"
FRONT_CERTIFICATE_ARN_PARAMETER = "/front/certificate-arn"
FRONT_SPA_ERROR_STATUSES = [403, 404]
