from attrs import define, field
from aws_cdk import Stack
from typing import Optional

import common.constants as constants


@define(slots=True, frozen=True)
class StackContext:
    scope: Stack
    env: str = field(
        default=constants.DEFAULT_ENV,
        metadata={"description": "Deployment environment (dev, prod)"},
    )
    service: str = field(default=constants.SERVICE_NAME, init=False)

    @property
    def aws_account_id(self) -> str:
        return Stack.of(self.scope).account

    @property
    def aws_region(self) -> str:
        return Stack.of(self.scope).region

    # ---------- arns ----------
    def build_parameter_arn(self, parameter_path: str) -> str:
        """Build an SSM parameter ARN, e.g. for ``db/*``."""
        region = self.aws_region
        if not region:
            raise ValueError(
                "AWS region is not set, unable to resolve SSM parameter ARN"
            )
        return f"arn:aws:ssm:{region}:{self.aws_account_id}:parameter/{parameter_path.lstrip('/')}"

    # ---------- naming ----------
    def build_resource_name(
        self, resource_type: str, component: Optional[str] = None
    ) -> str:
        """Build resource name with optional component.

        Examples:
            - Without component: platform-vpc-dev
            - With component: platform-db-cluster-dev
        """
        if component:
            return f"{self.service}-{component}-{resource_type}-{self.env}".lower()
        return f"{self.service}-{resource_type}-{self.env}".lower()

    def build_resource_id(
        self, resource_type: str, component: Optional[str] = None
    ) -> str:
        """Build resource ID with optional component.

        Examples:
            - Without component: PlatformVpc
            - With component: PlatformDbCluster
        """
        if component:
            return (
                f"{self.service.capitalize()}"
                f"{component.capitalize()}"
                f"{resource_type.capitalize()}"
            )
        return f"{self.service.capitalize()}{resource_type.capitalize()}"
