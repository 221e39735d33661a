# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

from azext_aks_egress_check.egress_checker import DEFAULT_CONNECT_TIMEOUT, DEFAULT_MAX_TIME
from azext_aks_egress_check.payload_builder import DEFAULT_IMAGE, DEFAULT_READY_TIMEOUT


def load_arguments(self, _):
    with self.argument_context('aks egress-check') as c:
        c.argument('resource_group_name', options_list=['--resource-group', '-g'],
                   help='Name of resource group. You can configure the default group using '
                        '`az configure --defaults group=<name>`')
        c.argument('name', options_list=['--name', '-n'],
                   help='Name of the managed cluster.')
        c.argument('endpoints', options_list=['--endpoints'], nargs='+',
                   help='Space-separated hostnames to check instead of the AKS required endpoints. '
                        'Wildcards of the form "*.<domain>" are tried as www.<domain>, api.<domain> '
                        'and <domain>.')
        c.argument('image', options_list=['--image'],
                   help=f'Container image for the diagnostic pod. Default: {DEFAULT_IMAGE}.')
        c.argument('connect_timeout', options_list=['--connect-timeout'], type=float,
                   help=f'HTTPS connect timeout per attempt in seconds. Default: {DEFAULT_CONNECT_TIMEOUT:g}.')
        c.argument('max_time', options_list=['--max-time'], type=float,
                   help=f'HTTPS overall timeout per attempt in seconds. Default: {DEFAULT_MAX_TIME:g}.')
        c.argument('ready_timeout', options_list=['--ready-timeout'], type=int,
                   help=f'Seconds to wait for the diagnostic pod to start. Default: {DEFAULT_READY_TIMEOUT}.')
        c.argument('max_parallel', options_list=['--max-parallel'], type=int,
                   help='Number of endpoints to check concurrently. Default: 1 (sequential).')
        c.argument('check_deadline', options_list=['--check-deadline'], type=float,
                   help='Overall deadline in seconds for all endpoint checks. No report is produced '
                        'if it expires.')
        c.argument('json_report', options_list=['--json-report'],
                   help='Path to save JSON egress check report.')
        c.argument('details', options_list=['--details'],
                   action='store_true',
                   help='Show the raw output of the diagnostic pod.')
