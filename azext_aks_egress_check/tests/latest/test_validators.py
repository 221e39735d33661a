# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

import unittest
from pathlib import Path

from azext_aks_egress_check.exceptions import ValidationError
from azext_aks_egress_check.validators import InputValidator


class TestInputValidator(unittest.TestCase):

    def test_endpoint_patterns(self):
        self.assertEqual(InputValidator.validate_endpoint_pattern(" MCR.microsoft.com "), "mcr.microsoft.com")
        self.assertEqual(InputValidator.validate_endpoint_pattern("*.data.mcr.microsoft.com"),
                         "*.data.mcr.microsoft.com")

        for pattern in ["", "*.", "https://mcr.microsoft.com", "bad_host.com", "-a.example.com",
                        "*.*.example.com", "a..example.com"]:
            with self.subTest(pattern=pattern):
                with self.assertRaises(ValidationError):
                    InputValidator.validate_endpoint_pattern(pattern)

    def test_duplicate_endpoints_rejected(self):
        with self.assertRaises(ValidationError):
            InputValidator.validate_endpoints(["mcr.microsoft.com", "MCR.microsoft.com"])

    def test_no_endpoints_means_defaults(self):
        self.assertIsNone(InputValidator.validate_endpoints(None))

    def test_timeouts(self):
        self.assertEqual(InputValidator.validate_timeout("5", "Connect timeout", 300), 5.0)

        for value in [0, -1, 301, "soon", None]:
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    InputValidator.validate_timeout(value, "Connect timeout", 300)

    def test_max_parallel(self):
        self.assertEqual(InputValidator.validate_max_parallel(4), 4)
        with self.assertRaises(ValidationError):
            InputValidator.validate_max_parallel(0)
        with self.assertRaises(ValidationError):
            InputValidator.validate_max_parallel(100)

    def test_image(self):
        self.assertEqual(InputValidator.validate_image("mcr.microsoft.com/aks/fundamental/base-ubuntu:v0.0.11"),
                         "mcr.microsoft.com/aks/fundamental/base-ubuntu:v0.0.11")
        with self.assertRaises(ValidationError):
            InputValidator.validate_image("ubuntu; rm -rf /")

    def test_output_path_outside_cwd(self):
        with self.assertRaises(ValidationError):
            InputValidator.validate_output_path("/tmp/../../report.json")

    def test_output_path_gets_json_suffix(self):
        path = InputValidator.validate_output_path("report.txt")

        self.assertEqual(path, str(Path.cwd().resolve() / "report.json"))

    def test_resource_name(self):
        self.assertEqual(InputValidator.validate_resource_name(" my-rg ", "resource group"), "my-rg")
        with self.assertRaises(ValidationError):
            InputValidator.validate_resource_name("../etc", "resource group")


if __name__ == '__main__':
    unittest.main()
