# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

"""
Data models for AKS egress checks
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .egress_checker import CheckResult


class EndpointStatus(Enum):
    """Combined reachability of one endpoint"""

    REACHABLE = "reachable"
    DNS_ONLY = "dns_only"
    HTTPS_ONLY = "https_only"
    UNREACHABLE = "unreachable"

    @classmethod
    def from_result(cls, result: CheckResult) -> "EndpointStatus":
        if result.dns_ok and result.https_ok:
            return cls.REACHABLE
        if result.dns_ok:
            return cls.DNS_ONLY
        if result.https_ok:
            return cls.HTTPS_ONLY
        return cls.UNREACHABLE


@dataclass
class EgressCheckRun:
    """Outcome of one in-cluster checker run"""

    namespace: str
    exit_code: Optional[int]
    results: List[CheckResult] = field(default_factory=list)
    logs: str = ""
    run_command_id: Optional[str] = None

    @property
    def failed_results(self) -> List[CheckResult]:
        return [r for r in self.results if not (r.dns_ok and r.https_ok)]

    def summary(self) -> Dict[str, int]:
        """Count endpoints by combined status"""
        failed = len(self.failed_results)
        return {
            "total": len(self.results),
            "passed": len(self.results) - failed,
            "failed": failed,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "namespace": self.namespace,
            "exit_code": self.exit_code,
            "run_command_id": self.run_command_id,
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary(),
        }
