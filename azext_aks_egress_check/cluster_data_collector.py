# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

"""
Cluster Data Collector for AKS Egress Check

Fetches the managed cluster and exposes the properties that decide whether
and how the diagnostic pod can be run (power state, Azure AD integration).
"""

import logging
from typing import Any, Dict, Optional

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

from .exceptions import ClusterNotFoundError


def _to_dict(obj: Any) -> Any:
    """
    Convert Azure SDK object to dictionary recursively.

    Args:
        obj: Azure SDK object or primitive type

    Returns:
        Dictionary representation or primitive value
    """
    if hasattr(obj, 'as_dict'):
        return obj.as_dict()
    if isinstance(obj, dict):
        return {k: _to_dict(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_dict(item) for item in obj]
    return obj


class ClusterDataCollector:
    """Collects managed cluster information using the Azure SDK."""

    def __init__(self, aks_client, logger: Optional[logging.Logger] = None):
        """
        Initialize ClusterDataCollector.

        Args:
            aks_client: Authenticated ManagedClustersOperations client
            logger: Optional logger instance. If not provided, creates a default logger.
        """
        self.aks_client = aks_client
        self.logger = logger or logging.getLogger("aks_egress_check.cluster_data_collector")

    def collect_cluster_info(self, cluster_name: str, resource_group: str) -> Dict[str, Any]:
        """
        Fetch cluster information.

        Raises:
            ClusterNotFoundError: If cluster information cannot be retrieved
        """
        self.logger.info("Fetching cluster information...")

        try:
            cluster = self.aks_client.get(resource_group, cluster_name)
        except ResourceNotFoundError as exc:
            raise ClusterNotFoundError(
                f"Cluster '{cluster_name}' not found in resource group '{resource_group}'. "
                f"Please check the cluster name and resource group."
            ) from exc
        except HttpResponseError as e:
            raise ClusterNotFoundError(
                f"Failed to get cluster information for {cluster_name}: {e.message}"
            ) from e

        cluster_result = _to_dict(cluster)
        if not cluster_result or not isinstance(cluster_result, dict):
            raise ClusterNotFoundError(
                f"Failed to get cluster information for '{cluster_name}'. "
                f"Please check the cluster name and resource group."
            )

        return cluster_result

    @staticmethod
    def get_power_state(cluster_info: Dict[str, Any]) -> str:
        power_state = cluster_info.get("power_state") or {}
        if isinstance(power_state, dict):
            return power_state.get("code") or "Unknown"
        return str(power_state)

    @staticmethod
    def is_aad_managed(cluster_info: Dict[str, Any]) -> bool:
        """Whether run command must carry a user token for the AKS AAD server app"""
        aad_profile = cluster_info.get("aad_profile") or {}
        return bool(aad_profile.get("managed"))
