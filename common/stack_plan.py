import common.constants as constants
from common.dependency_graph import StackSpec
from common.exports import DB_SG_ID, VPC_CONNECTOR_ARN, VPC_CONNECTOR_SG_ID

NETWORK = StackSpec(
    name=constants.NETWORK_STACK,
    produces=[constants.VPC_REFERENCE, VPC_CONNECTOR_SG_ID, VPC_CONNECTOR_ARN],
)
DATABASE = StackSpec(
    name=constants.DB_STACK,
    requires=[constants.VPC_REFERENCE],
    produces=[DB_SG_ID],
)
API = StackSpec(
    name=constants.API_STACK,
    requires=[VPC_CONNECTOR_SG_ID, VPC_CONNECTOR_ARN, DB_SG_ID],
)
FRONT = StackSpec(name=constants.FRONT_STACK)
DB_BASTION = StackSpec(
    name=constants.DB_BASTION_STACK,
    requires=[constants.VPC_REFERENCE, DB_SG_ID],
)


def build_stack_specs(include_bastion: bool = False) -> list[StackSpec]:
    specs = [NETWORK, DATABASE, API, FRONT]
    if include_bastion:
        specs.append(DB_BASTION)
    return specs
