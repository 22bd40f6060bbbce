from enum import Enum

from stack_test_helpers import find_resources_by_type, get_single_resource_id


class AWSService(str, Enum):
    S3 = "s3"
    RDS = "rds"
    ECR = "ecr"


def resource_governance_doc_url(service: AWSService) -> str:
    return f"https://platform-internal-docs/{service.value}-governance"


def assert_s3_compliance(template):
    governance_doc = resource_governance_doc_url(AWSService.S3)
    resources = find_resources_by_type(template, "AWS::S3::Bucket")
    assert resources, "expected at least one S3 bucket"
    for logical_id, resource in resources.items():
        pab = resource["Properties"]["PublicAccessBlockConfiguration"]
        assert all(
            value is True for value in pab.values()
        ), (f"S3 bucket {logical_id} PublicAccessBlockConfiguration must have all "
            f"flags set to True according to platform security standards. see {governance_doc}")


def assert_rds_compliance(template):
    governance_doc = resource_governance_doc_url(AWSService.RDS)
    resources = find_resources_by_type(template, "AWS::RDS::DBCluster")
    logical_id = get_single_resource_id(resources, "AWS::RDS::DBCluster")
    props = resources[logical_id]["Properties"]
    assert props["StorageEncrypted"] is True, (
        f"RDS clusters must encrypt storage. see {governance_doc}"
    )
    assert props["DeletionProtection"] is True, (
        f"RDS clusters must enable deletion protection. see {governance_doc}"
    )


def assert_ecr_compliance(template):
    governance_doc = resource_governance_doc_url(AWSService.ECR)
    resources = find_resources_by_type(template, "AWS::ECR::Repository")
    for logical_id, resource in resources.items():
        scanning = resource["Properties"].get("ImageScanningConfiguration", {})
        assert scanning.get("ScanOnPush") is True, (
            f"ECR repository {logical_id} must scan images on push. see {governance_doc}"
        )
