# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

"""Version information for AKS Egress Check Extension

Version Format:
- Python package version: "0.1.0" (preview version, PEP 440 compliant)
- Git tags: "v0.1.0" (with "v" prefix, Git convention)
"""

__version__ = "0.1.0"
__author__ = "Azure AKS Egress Check Team"
__description__ = "In-cluster DNS and HTTPS reachability checks for AKS required endpoints (Preview)"
