# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

"""
Input validation utilities for AKS Egress Check

Provides validation for user inputs including:
- Azure resource names (cluster names, resource groups)
- Endpoint hostname patterns
- Probe timeouts and parallelism
- Container image references
- File paths (prevent path traversal attacks)
"""

import re
from pathlib import Path
from typing import List, Optional

from .exceptions import ValidationError

# Configuration constants
MAX_RESOURCE_NAME_LENGTH = 260
MAX_HOSTNAME_LENGTH = 253
MAX_PARALLEL_WORKERS = 16

HOSTNAME_LABEL_PATTERN = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")
IMAGE_PATTERN = re.compile(r"^[a-z0-9]+(?:[._/:@-][A-Za-z0-9_.-]+)*$")


class InputValidator:
    """Validates user inputs for security and correctness"""

    @staticmethod
    def validate_output_path(filepath: str) -> str:
        """
        Validate and sanitize output file path

        Args:
            filepath: User-provided file path

        Returns:
            Validated file path

        Raises:
            ValidationError: If path is invalid or unsafe
        """
        resolved_path = Path(filepath).expanduser().resolve()
        current_dir = Path.cwd().resolve()

        try:
            resolved_path.relative_to(current_dir)
        except ValueError as exc:
            raise ValidationError("Output file path must be within the current directory") from exc

        if not str(resolved_path).lower().endswith(".json"):
            resolved_path = resolved_path.with_suffix(".json")

        return str(resolved_path)

    @staticmethod
    def validate_resource_name(name: str, resource_type: str) -> str:
        """
        Validate Azure resource name

        Raises:
            ValidationError: If name is invalid
        """
        if not name or not isinstance(name, str):
            raise ValidationError(f"{resource_type.capitalize()} cannot be empty")

        name = name.strip()

        if len(name) < 1 or len(name) > MAX_RESOURCE_NAME_LENGTH:
            raise ValidationError(
                f"{resource_type.capitalize()} must be between 1 and 260 characters"
            )

        dangerous_patterns = ["../", "\\", "<script>", "javascript:", "data:"]
        for pattern in dangerous_patterns:
            if pattern.lower() in name.lower():
                raise ValidationError(f"{resource_type.capitalize()} contains invalid characters")

        return name

    @staticmethod
    def validate_endpoint_pattern(pattern: str) -> str:
        """
        Validate a hostname or ``*.<base-domain>`` wildcard pattern

        Returns:
            The pattern, stripped and lower-cased

        Raises:
            ValidationError: If the pattern is not a valid hostname pattern
        """
        if not pattern or not isinstance(pattern, str):
            raise ValidationError("Endpoint cannot be empty")

        pattern = pattern.strip().lower()
        host = pattern[2:] if pattern.startswith("*.") else pattern

        if not host or len(host) > MAX_HOSTNAME_LENGTH:
            raise ValidationError(f"Invalid endpoint: {pattern}")

        for label in host.split("."):
            if not HOSTNAME_LABEL_PATTERN.match(label):
                raise ValidationError(
                    f"Invalid endpoint: {pattern}. Use a hostname such as 'mcr.microsoft.com' "
                    "or a wildcard such as '*.data.mcr.microsoft.com'"
                )

        return pattern

    @classmethod
    def validate_endpoints(cls, endpoints: Optional[List[str]]) -> Optional[List[str]]:
        """
        Validate a list of endpoint patterns, rejecting duplicates

        Returns:
            Normalized patterns, or None when no endpoints were given
        """
        if endpoints is None:
            return None

        validated = []
        for endpoint in endpoints:
            pattern = cls.validate_endpoint_pattern(endpoint)
            if pattern in validated:
                raise ValidationError(f"Endpoint specified more than once: {pattern}")
            validated.append(pattern)
        return validated

    @staticmethod
    def validate_timeout(value, name: str, maximum: float) -> float:
        """
        Validate a timeout in seconds

        Raises:
            ValidationError: If the value is not a number in (0, maximum]
        """
        try:
            seconds = float(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{name} must be a number of seconds") from exc

        if seconds <= 0 or seconds > maximum:
            raise ValidationError(f"{name} must be greater than 0 and at most {maximum:g} seconds")
        return seconds

    @staticmethod
    def validate_max_parallel(value) -> int:
        try:
            workers = int(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Max parallel must be an integer") from exc

        if workers < 1 or workers > MAX_PARALLEL_WORKERS:
            raise ValidationError(f"Max parallel must be between 1 and {MAX_PARALLEL_WORKERS}")
        return workers

    @staticmethod
    def validate_image(image: str) -> str:
        """Validate a container image reference"""
        if not image or not isinstance(image, str):
            raise ValidationError("Image cannot be empty")

        image = image.strip()
        if not IMAGE_PATTERN.match(image):
            raise ValidationError(f"Invalid container image reference: {image}")
        return image
