import pytest
from aws_cdk import aws_ec2 as ec2

from common import instance_types
from common.errors import InvalidConfiguration, UnknownInstanceClassOrSize, UnknownSubnetType

SIZES = [
    ("small", ec2.InstanceSize.SMALL),
    ("medium", ec2.InstanceSize.MEDIUM),
    ("large", ec2.InstanceSize.LARGE),
]

CLASSES = [
    ("t3", ec2.InstanceClass.T3),
    ("t3a", ec2.InstanceClass.T3A),
    ("t4g", ec2.InstanceClass.T4G),
]

SUBNET_TYPES = [
    ("public", ec2.SubnetType.PUBLIC),
    ("private", ec2.SubnetType.PRIVATE_WITH_EGRESS),
    ("isolated", ec2.SubnetType.PRIVATE_ISOLATED),
]


@pytest.mark.parametrize("value,expected", SIZES)
def test_instance_size(value: str, expected: ec2.InstanceSize):
    assert instance_types.instance_size(value) == expected


@pytest.mark.parametrize("value", ["xlarge", "Small", "", "micro"])
def test_unknown_instance_size(value: str):
    with pytest.raises(UnknownInstanceClassOrSize) as excinfo:
        instance_types.instance_size(value)

    assert excinfo.value.kind == "size"
    assert excinfo.value.allowed == ["large", "medium", "small"]


@pytest.mark.parametrize("value,expected", CLASSES)
def test_instance_class(value: str, expected: ec2.InstanceClass):
    assert instance_types.instance_class(value) == expected


@pytest.mark.parametrize("value", ["m5", "T3", "r6g"])
def test_unknown_instance_class(value: str):
    with pytest.raises(UnknownInstanceClassOrSize) as excinfo:
        instance_types.instance_class(value)

    assert excinfo.value.kind == "class"


def test_instance_type_string():
    assert instance_types.instance_type("t4g", "medium").to_string() == "t4g.medium"


@pytest.mark.parametrize("value,expected", SUBNET_TYPES)
def test_subnet_type(value: str, expected: ec2.SubnetType):
    assert instance_types.subnet_type(value) == expected


def test_unknown_subnet_type_is_a_configuration_error():
    with pytest.raises(InvalidConfiguration) as excinfo:
        instance_types.subnet_type("dmz", path="dev.network.vpc.subnetConfiguration[0].subnetType")

    assert isinstance(excinfo.value, UnknownSubnetType)
    assert excinfo.value.path.endswith("subnetType")
