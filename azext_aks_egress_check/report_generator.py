# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

"""
Report Generator for AKS Egress Check
Handles console summary output and JSON report generation
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .models import EgressCheckRun, EndpointStatus

STATUS_LABELS = {
    EndpointStatus.REACHABLE: "[OK]",
    EndpointStatus.DNS_ONLY: "[FAILED]",
    EndpointStatus.HTTPS_ONLY: "[WARNING]",
    EndpointStatus.UNREACHABLE: "[FAILED]",
}


class ReportGenerator:
    """Generates console and JSON reports for an egress check run"""

    def __init__(
        self,
        cluster_name: str,
        resource_group: str,
        subscription: str,
        run: EgressCheckRun,
        script_version: str,
        logger: Optional[logging.Logger] = None,
        stream=None,
    ):
        self.cluster_name = cluster_name
        self.resource_group = resource_group
        self.subscription = subscription
        self.run = run
        self.script_version = script_version
        self.logger = logger or logging.getLogger("aks_egress_check.report_generator")
        self.stream = stream or sys.stderr

    def generate_json_report(self) -> Dict[str, Any]:
        """Build the JSON report document"""
        return {
            "metadata": {
                "cluster_name": self.cluster_name,
                "resource_group": self.resource_group,
                "subscription_id": self.subscription,
                "generated_at": datetime.now(timezone.utc).isoformat(),
                "version": self.script_version,
                "namespace": self.run.namespace,
            },
            "results": [r.to_dict() for r in self.run.results],
            "summary": self.run.summary(),
        }

    def save_json_report(self, filepath: str):
        """Write the JSON report, readable only by the current user"""
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(self.generate_json_report(), f, indent=2)
        os.chmod(filepath, 0o600)
        self.logger.info("[DOC] JSON report saved to: %s", filepath)

    def _print(self, text: str = ""):
        print(text, file=self.stream)

    def print_console_report(self, json_report_path: Optional[str] = None):
        """Print a markdown-style summary of the run"""
        summary = self.run.summary()

        self._print()
        self._print("# AKS Egress Check Summary")
        self._print()
        self._print(f"**Cluster:** {self.cluster_name}")
        self._print(f"**Resource Group:** {self.resource_group}")
        self._print(f"**Tested from namespace:** {self.run.namespace}")
        self._print()
        self._print("**Endpoints:**")

        if not self.run.results:
            self._print("- No endpoints configured")

        for result in self.run.results:
            status = EndpointStatus.from_result(result)
            dns = "OK" if result.dns_ok else "FAILED"
            https = "OK" if result.https_ok else "FAILED"
            self._print(f"- {STATUS_LABELS[status]} {result.host} (DNS: {dns}, HTTPS: {https})")

        self._print()
        if summary["failed"]:
            self._print(f"**Result:** {summary['failed']} of {summary['total']} endpoint(s) not reachable")
            self._print("  → Check NSG rules, route tables and firewall egress rules for the failed endpoints")
        else:
            self._print(f"**Result:** all {summary['total']} endpoint(s) reachable")

        if json_report_path:
            self._print()
            self._print(f"[DOC] JSON report saved to: {json_report_path}")
        self._print("Tip: Use --details to show the raw output of the diagnostic pod")
