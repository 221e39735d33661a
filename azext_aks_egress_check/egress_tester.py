# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

"""
Egress Tester for AKS clusters

Runs the endpoint checker inside the cluster through the managed cluster
run command API and turns the outcome into typed results:
- Cluster readiness checks (power state, provisioning state)
- Run command execution with the zipped payload context
- Exit code mapping (provisioning, environment, deadline failures)
- Report extraction from the pod logs
"""

import json
import logging
from typing import Any, Dict, List, Optional

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from azure.mgmt.containerservice.models import RunCommandRequest

from .cluster_data_collector import ClusterDataCollector
from .egress_checker import (
    EXIT_CONFIG_ERROR,
    EXIT_DEADLINE_EXCEEDED,
    EXIT_OK,
    EXIT_PROVISIONING_FAILED,
    REPORT_BEGIN_MARKER,
    REPORT_END_MARKER,
    CheckResult,
)
from .exceptions import (
    CheckDeadlineError,
    EnvironmentNotReadyError,
    ProvisioningError,
    ReportParseError,
    RunCommandError,
)
from .models import EgressCheckRun
from .payload_builder import ENVIRONMENT_FAILED_EXIT_CODE, EgressPayload


def parse_report(logs: str) -> List[CheckResult]:
    """
    Extract the report document from combined run command logs

    The last complete marker block wins, so progress output before or after
    it is ignored.

    Raises:
        ReportParseError: If no well-formed report is present
    """
    lines = (logs or "").replace("\r\n", "\n").split("\n")
    begin = end = None
    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped == REPORT_BEGIN_MARKER:
            begin = index
            end = None
        elif stripped == REPORT_END_MARKER and begin is not None:
            end = index

    if begin is None or end is None:
        raise ReportParseError("Egress check report not found in pod logs", exit_code=EXIT_OK, logs=logs)

    try:
        document = json.loads("\n".join(lines[begin + 1:end]))
    except ValueError as exc:
        raise ReportParseError(f"Egress check report is not valid JSON: {exc}", exit_code=EXIT_OK,
                               logs=logs) from exc

    if not isinstance(document, list):
        raise ReportParseError("Egress check report must be a list", exit_code=EXIT_OK, logs=logs)

    results = []
    for entry in document:
        if (not isinstance(entry, dict) or not isinstance(entry.get("host"), str)
                or not isinstance(entry.get("dns_ok"), bool) or not isinstance(entry.get("https_ok"), bool)):
            raise ReportParseError(f"Malformed report entry: {entry!r}", exit_code=EXIT_OK, logs=logs)
        results.append(CheckResult(host=entry["host"], dns_ok=entry["dns_ok"], https_ok=entry["https_ok"]))
    return results


class EgressTester:
    """Runs the endpoint checker from inside an AKS cluster"""

    def __init__(
        self,
        aks_client,
        resource_group: str,
        cluster_name: str,
        cluster_info: Dict[str, Any],
        cluster_token: Optional[str] = None,
        show_details: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize Egress Tester

        Args:
            aks_client: ManagedClustersOperations client
            resource_group: Resource group of the cluster
            cluster_name: AKS cluster name
            cluster_info: AKS cluster information dictionary
            cluster_token: AAD token for clusters with managed Azure AD integration
            show_details: Whether to replay the raw pod logs
            logger: Optional logger instance
        """
        self.aks_client = aks_client
        self.resource_group = resource_group
        self.cluster_name = cluster_name
        self.cluster_info = cluster_info
        self.cluster_token = cluster_token
        self.show_details = show_details
        self.logger = logger or logging.getLogger("aks_egress_check.egress_tester")

    def check_cluster_ready(self):
        """
        Make sure the cluster can run the diagnostic pod

        Raises:
            EnvironmentNotReadyError: If the cluster is stopped
        """
        power_code = ClusterDataCollector.get_power_state(self.cluster_info)
        if power_code.lower() == "stopped":
            raise EnvironmentNotReadyError(
                f"Cluster '{self.cluster_name}' is stopped. "
                "Start the cluster with 'az aks start' to run egress checks."
            )

        provisioning_state = self.cluster_info.get("provisioning_state") or ""
        if provisioning_state.lower() == "failed":
            self.logger.warning("  Cluster is in failed state. Egress check results may not be reliable.")

    def run(self, payload: EgressPayload, timeout: int) -> EgressCheckRun:
        """
        Execute the payload on the cluster and wait for its result

        Args:
            payload: Built payload (command and zipped context)
            timeout: Seconds to wait for the run command to finish

        Returns:
            EgressCheckRun with parsed results

        Raises:
            RunCommandError: Or one of its subclasses, depending on how the run ended
        """
        request = RunCommandRequest(
            command=payload.command,
            context=payload.context,
            cluster_token=self.cluster_token,
        )

        try:
            poller = self.aks_client.begin_run_command(self.resource_group, self.cluster_name, request)
            response = poller.result(timeout=timeout)
        except (ResourceNotFoundError, HttpResponseError) as exc:
            error_str = str(exc)
            if "AuthorizationFailed" in error_str:
                message = (
                    "Unable to run egress check: Insufficient permissions. The "
                    "'Microsoft.ContainerService/managedClusters/runCommand/action' permission "
                    "(for example through the 'Azure Kubernetes Service Cluster User Role') "
                    "is required on the cluster."
                )
            else:
                message = f"Error executing run command: {error_str}"
            self.logger.debug("Run command SDK error: %s", exc)
            raise RunCommandError(message) from exc

        if response is None:
            raise RunCommandError(
                f"Run command did not finish within {timeout}s. "
                f"Namespace '{payload.namespace}' may need manual cleanup."
            )

        return self._analyze_run_result(payload, response)

    def _analyze_run_result(self, payload: EgressPayload, response: Any) -> EgressCheckRun:
        """Map a RunCommandResult to results or a typed error"""
        logs = response.logs or ""
        exit_code = response.exit_code
        provisioning_state = response.provisioning_state or ""

        if self.show_details:
            for line in logs.splitlines():
                self.logger.warning("    | %s", line)

        if provisioning_state and provisioning_state.lower() != "succeeded":
            reason = response.reason or "no reason given"
            raise RunCommandError(f"Run command ended in state {provisioning_state}: {reason}",
                                  exit_code=exit_code, logs=logs)

        self.logger.info("Run command finished with exit code %s", exit_code)

        if exit_code == EXIT_PROVISIONING_FAILED:
            raise ProvisioningError(
                "Required probing tools could not be installed in the diagnostic pod. "
                "Check that the node can reach the package repositories of the image.",
                exit_code=exit_code, logs=logs)
        if exit_code == ENVIRONMENT_FAILED_EXIT_CODE:
            raise EnvironmentNotReadyError(
                f"Diagnostic pod in namespace '{payload.namespace}' did not become ready. "
                "This is an infrastructure problem, not an egress result.",
                exit_code=exit_code, logs=logs)
        if exit_code == EXIT_DEADLINE_EXCEEDED:
            raise CheckDeadlineError("Endpoint checks did not finish within the configured deadline",
                                     exit_code=exit_code, logs=logs)
        if exit_code == EXIT_CONFIG_ERROR:
            raise RunCommandError("Egress checker rejected its configuration", exit_code=exit_code, logs=logs)
        if exit_code != EXIT_OK:
            raise RunCommandError(f"Egress check ended with unexpected exit code {exit_code}",
                                  exit_code=exit_code, logs=logs)

        results = parse_report(logs)
        return EgressCheckRun(
            namespace=payload.namespace,
            exit_code=exit_code,
            results=results,
            logs=logs,
            run_command_id=response.id,
        )
