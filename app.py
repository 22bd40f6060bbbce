#!/usr/bin/env python3
"""AWS CDK entrypoint for the network, database, API and front-end stacks.

Deploy with the environment and release identifier passed as context::

    cdk deploy --all -c env=dev -c commit=$(git rev-parse --short HEAD)

The account and region come from the CDK CLI defaults.
"""
import os

import aws_cdk as cdk
from aws_cdk import Environment

from deployment.deployment_builder import build_deployment

app = cdk.App()

env = Environment(
    account=os.getenv("CDK_DEFAULT_ACCOUNT"),
    region=os.getenv("CDK_DEFAULT_REGION"),
)

build_deployment(app, env=env)

app.synth()
