from attrs import define, field
from attrs.validators import instance_of, matches_re
from aws_cdk import CfnOutput, Fn
from constructs import Construct

import common.constants as constants


@define(slots=True, frozen=True)
class ExportHandle:
    """Typed reference to a CloudFormation export.

    The export name only leaves this object at the CloudFormation boundary:
    :meth:`publish` on the producing stack and :meth:`import_value` on the
    consuming one.
    """

    name: str = field(validator=[instance_of(str), matches_re(r"^[A-Za-z0-9:-]+$")])

    def publish(self, scope: Construct, construct_id: str, value: str) -> CfnOutput:
        return CfnOutput(scope, construct_id, export_name=self.name, value=value)

    def import_value(self) -> str:
        return Fn.import_value(self.name)

    def __str__(self) -> str:
        return self.name


VPC_CONNECTOR_SG_ID = ExportHandle(constants.VPC_CONNECTOR_SG_ID_EXPORT)
VPC_CONNECTOR_ARN = ExportHandle(constants.VPC_CONNECTOR_ARN_EXPORT)
DB_SG_ID = ExportHandle(constants.DB_SG_ID_EXPORT)

# Exports published through CloudFormation, as opposed to in-process references
CLOUDFORMATION_EXPORTS = (VPC_CONNECTOR_SG_ID, VPC_CONNECTOR_ARN, DB_SG_ID)
