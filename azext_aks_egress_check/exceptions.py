# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

"""
Custom exceptions for standardized error handling
"""


class AKSEgressCheckError(Exception):
    """Base exception for AKS egress checks"""


class RunCommandError(AKSEgressCheckError):
    """Cluster run command failed or ended unexpectedly"""

    def __init__(self, message: str, exit_code: int = None, logs: str = ""):
        self.exit_code = exit_code
        self.logs = logs
        super().__init__(message)


class ProvisioningError(RunCommandError):
    """Probing tools could not be installed in the diagnostic pod"""


class EnvironmentNotReadyError(RunCommandError):
    """Diagnostic pod never became ready, or the cluster cannot run it"""


class CheckDeadlineError(RunCommandError):
    """Endpoint checks did not finish within the overall deadline"""


class ReportParseError(RunCommandError):
    """Checker finished but its report could not be read from the logs"""


class ClusterNotFoundError(AKSEgressCheckError):
    """AKS cluster not found"""


class InvalidConfigurationError(AKSEgressCheckError):
    """Invalid configuration provided"""


class ValidationError(AKSEgressCheckError):
    """Input validation failed"""
