"""Check CloudFormation's export table before deploying dependent stacks.

``cdk deploy api-stack`` on its own would only fail deep inside CloudFormation
when ``Fn::ImportValue`` cannot be resolved. Running this check at synth time
refuses the deploy up front when a producer stack has not been applied yet.
"""
import os
from typing import Any, Iterable, Optional, Sequence

import boto3
from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError

import common.constants as constants
from common.dependency_graph import StackSpec
from common.errors import ProviderApplyFailure, UnresolvedExport
from common.exports import CLOUDFORMATION_EXPORTS

logger = Logger(service="deploy-exports", level=os.getenv("LOG_LEVEL", constants.LOG_LEVEL).upper())


def _provider_failure(operation: str, e: ClientError) -> ProviderApplyFailure:
    response = e.response or {}
    error_info = response.get("Error", {})
    meta_data = response.get("ResponseMetadata", {})
    return ProviderApplyFailure(
        operation=operation,
        code=error_info.get("Code", "Unknown"),
        message=error_info.get("Message", "Unknown"),
        status_code=meta_data.get("HTTPStatusCode"),
    )


def fetch_published_exports(client: Optional[Any] = None) -> dict[str, str]:
    """Return every export in the account/region as ``{name: exporting stack id}``."""
    client = client or boto3.client("cloudformation")
    exports: dict[str, str] = {}
    try:
        for page in client.get_paginator("list_exports").paginate():
            for export in page.get("Exports", []):
                exports[export["Name"]] = export.get("ExportingStackId", "")
    except ClientError as e:
        logger.exception("Listing CloudFormation exports failed")
        raise _provider_failure("ListExports", e) from e
    logger.info("Fetched published exports", count=len(exports))
    return exports


def verify_published_exports(
    specs: Sequence[StackSpec],
    published: Iterable[str],
    exported_names: Optional[Iterable[str]] = None,
) -> None:
    """Raise :class:`UnresolvedExport` for the first stack importing a missing export.

    Only names in ``exported_names`` are checked; other requirements are
    in-process references that CDK wires itself.
    """
    published = set(published)
    if exported_names is None:
        exported_names = [handle.name for handle in CLOUDFORMATION_EXPORTS]
    exported_names = set(exported_names)
    for spec in specs:
        for export_name in sorted(spec.requires & exported_names):
            if export_name not in published:
                logger.error(
                    "Required export is not published yet",
                    stack=spec.name,
                    export_name=export_name,
                )
                raise UnresolvedExport(
                    spec.name,
                    export_name,
                    reason="which has not been published; deploy its producer first",
                )
