import pytest
from aws_cdk import App, Stack
from aws_cdk.assertions import Template

from common.exports import CLOUDFORMATION_EXPORTS, DB_SG_ID, ExportHandle
from stack_test_helpers import find_exports


def test_export_names():
    assert [handle.name for handle in CLOUDFORMATION_EXPORTS] == [
        "vpc-connector-sg-id",
        "vpc-connector-arn",
        "db-sg-id",
    ]
    assert str(DB_SG_ID) == "db-sg-id"


@pytest.mark.parametrize("name", ["", "db sg id", "db_sg_id"])
def test_invalid_export_name(name: str):
    with pytest.raises(ValueError):
        ExportHandle(name)


def test_publish_and_import():
    app = App()
    producer = Stack(app, "Producer")
    consumer = Stack(app, "Consumer")

    DB_SG_ID.publish(producer, "DBSecurityGroupIdOutput", "sg-0123456789abcdef0")

    outputs = find_exports(Template.from_stack(producer), "db-sg-id")
    assert len(outputs) == 1
    assert next(iter(outputs.values()))["Value"] == "sg-0123456789abcdef0"
    assert consumer.resolve(DB_SG_ID.import_value()) == {"Fn::ImportValue": "db-sg-id"}
