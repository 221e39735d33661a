# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

from knack.help_files import helps


helps['aks egress-check'] = """
    type: command
    short-summary: Check DNS and HTTPS reachability of AKS required endpoints from inside a cluster.
    long-summary: |
        Creates a short-lived namespace with a diagnostic pod in the cluster, using the
        managed cluster run command API (the same mechanism as `az aks command invoke`).
        The pod resolves and connects over HTTPS to each endpoint, then the namespace is deleted.

        Default endpoints:
        - mcr.microsoft.com
        - *.data.mcr.microsoft.com
        - management.azure.com
        - login.microsoftonline.com
        - packages.microsoft.com
        - acs-mirror.azureedge.net
        - packages.aks.azure.com

        Any HTTP response, including error statuses, counts as HTTPS reachable: this is a
        reachability check, not an availability check.

        The output is a list of {host, dns_ok, https_ok} entries, one per endpoint, in the
        order given. A pod that never starts is reported as an error, never as failed endpoints.

        This command is currently in preview and may change in future releases.
    examples:
        - name: Check the AKS required endpoints from a cluster
          text: az aks egress-check --resource-group MyResourceGroup --name MyAKSCluster
        - name: Check custom endpoints, four at a time
          text: az aks egress-check -g MyResourceGroup -n MyAKSCluster --endpoints myregistry.azurecr.io "*.blob.core.windows.net" --max-parallel 4
        - name: Check and save results as JSON
          text: az aks egress-check -g MyResourceGroup -n MyAKSCluster --json-report egress-report.json
        - name: Show the raw pod output and use a different image
          text: |
            az aks egress-check -g MyResourceGroup -n MyAKSCluster \\
                --details --image mcr.microsoft.com/azurelinux/base/python:3
"""
