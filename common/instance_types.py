"""Translate configuration strings into EC2 enum members.

Configuration documents carry plain strings (``"medium"``, ``"t4g"``,
``"private"``). These lookups are total over the documented values and reject
anything else before a single construct is declared.
"""
from typing import Mapping

from aws_cdk import aws_ec2 as ec2

from common.errors import UnknownInstanceClassOrSize, UnknownSubnetType

INSTANCE_SIZES: Mapping[str, ec2.InstanceSize] = {
    "small": ec2.InstanceSize.SMALL,
    "medium": ec2.InstanceSize.MEDIUM,
    "large": ec2.InstanceSize.LARGE,
}

INSTANCE_CLASSES: Mapping[str, ec2.InstanceClass] = {
    "t3": ec2.InstanceClass.T3,
    "t3a": ec2.InstanceClass.T3A,
    "t4g": ec2.InstanceClass.T4G,
}

SUBNET_TYPES: Mapping[str, ec2.SubnetType] = {
    "public": ec2.SubnetType.PUBLIC,
    "private": ec2.SubnetType.PRIVATE_WITH_EGRESS,
    "isolated": ec2.SubnetType.PRIVATE_ISOLATED,
}


def instance_size(size: str) -> ec2.InstanceSize:
    try:
        return INSTANCE_SIZES[size]
    except KeyError:
        raise UnknownInstanceClassOrSize("size", size, INSTANCE_SIZES) from None


def instance_class(name: str) -> ec2.InstanceClass:
    try:
        return INSTANCE_CLASSES[name]
    except KeyError:
        raise UnknownInstanceClassOrSize("class", name, INSTANCE_CLASSES) from None


def instance_type(class_name: str, size: str) -> ec2.InstanceType:
    return ec2.InstanceType.of(instance_class(class_name), instance_size(size))


def subnet_type(name: str, path: str = "subnetType") -> ec2.SubnetType:
    try:
        return SUBNET_TYPES[name]
    except KeyError:
        raise UnknownSubnetType(path, name) from None
