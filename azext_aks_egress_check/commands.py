# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

from azure.cli.core.commands import CliCommandType
from azext_aks_egress_check._client_factory import cf_managed_clusters


def load_command_table(self, _):
    managed_clusters_sdk = CliCommandType(
        operations_tmpl='azure.mgmt.containerservice.operations#ManagedClustersOperations.{}',
        client_factory=cf_managed_clusters
    )

    with self.command_group('aks egress-check', managed_clusters_sdk,
                            client_factory=cf_managed_clusters, is_preview=True) as g:
        g.custom_command('', 'aks_egress_check')
