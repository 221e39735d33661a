# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

from knack.log import get_logger
from knack.util import CLIError

from azext_aks_egress_check.egress_checker import DEFAULT_CONNECT_TIMEOUT, DEFAULT_MAX_TIME
from azext_aks_egress_check.exceptions import AKSEgressCheckError
from azext_aks_egress_check.orchestrator import run_egress_check
from azext_aks_egress_check.payload_builder import DEFAULT_IMAGE, DEFAULT_READY_TIMEOUT
from azext_aks_egress_check.validators import InputValidator

logger = get_logger(__name__)

# AKS managed AAD server application, identical in every cloud
AKS_AAD_SERVER_APP_ID = "6dae42f8-4368-4678-94ff-3960e28e3630"

MAX_PROBE_TIMEOUT = 300
MAX_READY_TIMEOUT = 3600
MAX_CHECK_DEADLINE = 3600


def _get_dataplane_aad_token(cli_ctx, server_id):
    from azure.cli.core._profile import Profile
    profile = Profile(cli_ctx=cli_ctx)
    raw_token = profile.get_raw_token(resource=server_id)[0]
    return raw_token[1]


def aks_egress_check(cmd, client, resource_group_name, name,  # pylint: disable=too-many-locals
                     endpoints=None, image=None, connect_timeout=None, max_time=None,
                     ready_timeout=None, max_parallel=None, check_deadline=None,
                     json_report=None, details=False):
    """
    Check reachability of AKS required endpoints from inside an AKS cluster.

    Args:
        cmd: Command context
        client: ManagedClustersOperations client
        resource_group_name: Resource group name
        name: AKS cluster name
        endpoints: Hostname patterns to check
        image: Diagnostic pod image
        connect_timeout: HTTPS connect timeout in seconds
        max_time: HTTPS overall timeout in seconds
        ready_timeout: Pod start timeout in seconds
        max_parallel: Endpoints checked concurrently
        check_deadline: Overall deadline for all checks in seconds
        json_report: Path to save JSON report
        details: Show raw pod output

    Returns:
        List of {host, dns_ok, https_ok} dictionaries
    """
    from azure.cli.core._profile import Profile

    try:
        resource_group_name = InputValidator.validate_resource_name(resource_group_name, "resource group")
        name = InputValidator.validate_resource_name(name, "cluster name")
        endpoints = InputValidator.validate_endpoints(endpoints)
        image = InputValidator.validate_image(image or DEFAULT_IMAGE)
        connect_timeout = InputValidator.validate_timeout(
            DEFAULT_CONNECT_TIMEOUT if connect_timeout is None else connect_timeout,
            "Connect timeout", MAX_PROBE_TIMEOUT)
        max_time = InputValidator.validate_timeout(
            DEFAULT_MAX_TIME if max_time is None else max_time, "Max time", MAX_PROBE_TIMEOUT)
        ready_timeout = int(InputValidator.validate_timeout(
            DEFAULT_READY_TIMEOUT if ready_timeout is None else ready_timeout,
            "Ready timeout", MAX_READY_TIMEOUT))
        max_parallel = InputValidator.validate_max_parallel(1 if max_parallel is None else max_parallel)
        if check_deadline is not None:
            check_deadline = InputValidator.validate_timeout(check_deadline, "Check deadline", MAX_CHECK_DEADLINE)
        if json_report:
            json_report = InputValidator.validate_output_path(json_report)
    except AKSEgressCheckError as exc:
        raise CLIError(str(exc)) from exc

    profile = Profile(cli_ctx=cmd.cli_ctx)
    subscription_id = profile.get_subscription_id()

    def cluster_token_provider():
        return _get_dataplane_aad_token(cmd.cli_ctx, AKS_AAD_SERVER_APP_ID)

    try:
        return run_egress_check(
            aks_client=client,
            resource_group_name=resource_group_name,
            cluster_name=name,
            subscription_id=subscription_id,
            endpoints=endpoints,
            image=image,
            connect_timeout=connect_timeout,
            max_time=max_time,
            ready_timeout=ready_timeout,
            max_parallel=max_parallel,
            check_deadline=check_deadline,
            json_report_path=json_report,
            details=details,
            cluster_token_provider=cluster_token_provider,
            logger=logger
        )
    except AKSEgressCheckError as exc:
        raise CLIError(str(exc)) from exc
