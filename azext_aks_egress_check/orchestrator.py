# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

"""
AKS Egress Check Orchestrator
"""

import logging
import sys
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from azext_aks_egress_check._version import __version__
from azext_aks_egress_check.cluster_data_collector import ClusterDataCollector
from azext_aks_egress_check.egress_checker import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_ENDPOINTS,
    DEFAULT_MAX_TIME,
    CheckerConfig,
    CheckResult,
)
from azext_aks_egress_check.egress_tester import EgressTester
from azext_aks_egress_check.exceptions import (
    InvalidConfigurationError,
    ReportParseError,
)
from azext_aks_egress_check.payload_builder import (
    DEFAULT_IMAGE,
    DEFAULT_READY_TIMEOUT,
    build_payload,
    estimate_run_timeout,
)
from azext_aks_egress_check.report_generator import ReportGenerator


def _verify_report(config: CheckerConfig, results: List[CheckResult]):
    """Report must hold exactly one entry per configured endpoint, in order"""
    hosts = [r.host for r in results]
    if hosts != list(config.endpoints):
        raise ReportParseError(
            f"Egress check report does not match the configured endpoints "
            f"(expected {len(config.endpoints)}, got {len(hosts)})"
        )


def run_egress_check(  # pylint: disable=too-many-locals
    aks_client,
    resource_group_name: str,
    cluster_name: str,
    subscription_id: str,
    endpoints: Optional[List[str]] = None,
    image: str = DEFAULT_IMAGE,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    max_time: float = DEFAULT_MAX_TIME,
    ready_timeout: int = DEFAULT_READY_TIMEOUT,
    max_parallel: int = 1,
    check_deadline: Optional[float] = None,
    json_report_path: Optional[str] = None,
    details: bool = False,
    cluster_token_provider: Optional[Callable[[], str]] = None,
    logger: Optional[logging.Logger] = None,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Run the egress check on an AKS cluster.

    Args:
        aks_client: ManagedClustersOperations client
        resource_group_name: Resource group name
        cluster_name: AKS cluster name
        subscription_id: Azure subscription ID
        endpoints: Hostname patterns to check (defaults to the AKS required endpoints)
        image: Container image for the diagnostic pod
        connect_timeout: HTTPS connect timeout per attempt, in seconds
        max_time: HTTPS overall timeout per attempt, in seconds
        ready_timeout: Seconds to wait for the diagnostic pod to start
        max_parallel: Number of endpoints checked concurrently
        check_deadline: Optional overall deadline for all checks, in seconds
        json_report_path: Path to save JSON report (if provided)
        details: Replay the raw pod output
        cluster_token_provider: Returns an AAD token for clusters with managed AAD
        logger: Optional logger instance
        now: Timestamp used for the namespace name

    Returns:
        The report: one {host, dns_ok, https_ok} entry per endpoint

    Raises:
        AKSEgressCheckError: If the check could not produce a report
    """
    if logger is None:
        logger = _setup_logging()

    logger.warning("Starting AKS egress check for cluster: %s", cluster_name)

    try:
        config = CheckerConfig(
            endpoints=list(DEFAULT_ENDPOINTS) if endpoints is None else list(endpoints),
            connect_timeout=connect_timeout,
            max_time=max_time,
            max_workers=max_parallel,
            deadline=check_deadline,
        )
    except ValueError as exc:
        raise InvalidConfigurationError(str(exc)) from exc

    # Phase 1: Collect cluster information
    logger.warning("[1/4] Collecting cluster information...")
    collector = ClusterDataCollector(aks_client=aks_client, logger=logger)
    cluster_info = collector.collect_cluster_info(cluster_name, resource_group_name)

    cluster_token = None
    if cluster_token_provider is not None and collector.is_aad_managed(cluster_info):
        logger.info("Cluster uses managed Azure AD, acquiring user token for run command")
        cluster_token = cluster_token_provider()

    tester = EgressTester(
        aks_client=aks_client,
        resource_group=resource_group_name,
        cluster_name=cluster_name,
        cluster_info=cluster_info,
        cluster_token=cluster_token,
        show_details=details,
        logger=logger,
    )
    tester.check_cluster_ready()

    # Phase 2: Build payload
    logger.warning("[2/4] Preparing diagnostic pod for %d endpoint(s)...", len(config.endpoints))
    payload = build_payload(config, image=image, ready_timeout=ready_timeout, now=now)
    run_timeout = estimate_run_timeout(config, ready_timeout)
    logger.info("  Namespace: %s, image: %s", payload.namespace, image)

    # Phase 3: Run checks inside the cluster
    logger.warning("[3/4] Running endpoint checks from inside the cluster (up to %ss)...", run_timeout)
    run = tester.run(payload, timeout=run_timeout)
    _verify_report(config, run.results)

    # Phase 4: Report
    logger.warning("[4/4] Generating report...")
    report_generator = ReportGenerator(
        cluster_name=cluster_name,
        resource_group=resource_group_name,
        subscription=subscription_id,
        run=run,
        script_version=__version__,
        logger=logger,
    )

    if json_report_path:
        try:
            report_generator.save_json_report(json_report_path)
        except OSError as e:
            logger.error("Failed to save JSON report: %s", e)
            json_report_path = None

    report_generator.print_console_report(json_report_path=json_report_path)
    logger.info("Egress check complete")

    return [r.to_dict() for r in run.results]


def _setup_logging() -> logging.Logger:
    """
    Configure logging with appropriate handlers and formatters.

    Returns:
        Configured logger instance
    """
    formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    logger = logging.getLogger("aks_egress_check")
    logger.propagate = False

    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    logger.setLevel(logging.INFO)

    return logger
