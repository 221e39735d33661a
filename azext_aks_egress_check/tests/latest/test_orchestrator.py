# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

import io
import json
import os
import shutil
import tempfile
import unittest
from datetime import datetime
from unittest import mock

from azure.core.exceptions import ResourceNotFoundError

from azext_aks_egress_check.egress_checker import (
    DEFAULT_ENDPOINTS,
    REPORT_BEGIN_MARKER,
    REPORT_END_MARKER,
    CheckResult,
)
from azext_aks_egress_check.exceptions import (
    ClusterNotFoundError,
    EnvironmentNotReadyError,
    InvalidConfigurationError,
    ReportParseError,
)
from azext_aks_egress_check.models import EgressCheckRun
from azext_aks_egress_check.orchestrator import run_egress_check
from azext_aks_egress_check.report_generator import ReportGenerator

NOW = datetime(2026, 10, 18, 9, 5, 7)


def _cluster(**overrides):
    cluster_info = {
        "name": "my-cluster",
        "power_state": {"code": "Running"},
        "provisioning_state": "Succeeded",
        "aad_profile": None,
    }
    cluster_info.update(overrides)
    cluster = mock.Mock()
    cluster.as_dict.return_value = cluster_info
    return cluster


def _run_result(report, exit_code=0):
    logs = "\n".join(["pod/egress-check created", REPORT_BEGIN_MARKER, json.dumps(report), REPORT_END_MARKER])
    return mock.Mock(id="cmd-1", exit_code=exit_code, logs=logs, provisioning_state="Succeeded", reason=None)


class TestRunEgressCheck(unittest.TestCase):

    def setUp(self):
        self.client = mock.Mock()
        self.client.get.return_value = _cluster()
        self.logger = mock.Mock()
        stderr_patch = mock.patch("sys.stderr", new_callable=io.StringIO)
        self.stderr = stderr_patch.start()
        self.addCleanup(stderr_patch.stop)

    def _set_report(self, report, exit_code=0):
        self.client.begin_run_command.return_value.result.return_value = _run_result(report, exit_code)

    def _run(self, **kwargs):
        return run_egress_check(
            aks_client=self.client,
            resource_group_name="my-rg",
            cluster_name="my-cluster",
            subscription_id="00000000-0000-0000-0000-000000000000",
            logger=self.logger,
            now=NOW,
            **kwargs
        )

    def test_default_endpoints_report(self):
        report = [{"host": host, "dns_ok": True, "https_ok": True} for host in DEFAULT_ENDPOINTS]
        self._set_report(report)

        result = self._run()

        self.assertEqual(result, report)
        self.client.get.assert_called_once_with("my-rg", "my-cluster")
        request = self.client.begin_run_command.call_args.args[2]
        self.assertIn("EGRESS_NAMESPACE=aks-egress-check-20261018-090507", request.command)
        self.assertIsNone(request.cluster_token)
        self.assertIn("all 7 endpoint(s) reachable", self.stderr.getvalue())

    def test_custom_endpoints_failed_summary(self):
        report = [{"host": "*.data.mcr.microsoft.com", "dns_ok": False, "https_ok": False}]
        self._set_report(report)

        result = self._run(endpoints=["*.data.mcr.microsoft.com"])

        self.assertEqual(result, report)
        output = self.stderr.getvalue()
        self.assertIn("[FAILED] *.data.mcr.microsoft.com (DNS: FAILED, HTTPS: FAILED)", output)
        self.assertIn("1 of 1 endpoint(s) not reachable", output)

    def test_empty_endpoint_list(self):
        self._set_report([])

        self.assertEqual(self._run(endpoints=[]), [])

    def test_report_must_match_endpoints(self):
        self._set_report([{"host": "www.data.mcr.microsoft.com", "dns_ok": True, "https_ok": True}])

        with self.assertRaises(ReportParseError):
            self._run(endpoints=["*.data.mcr.microsoft.com"])

    def test_invalid_configuration_rejected_before_cluster_calls(self):
        with self.assertRaises(InvalidConfigurationError):
            self._run(endpoints=["mcr.microsoft.com", "mcr.microsoft.com"])

        self.client.get.assert_not_called()

    def test_cluster_not_found(self):
        self.client.get.side_effect = ResourceNotFoundError(message="not found")

        with self.assertRaises(ClusterNotFoundError):
            self._run()

    def test_stopped_cluster(self):
        self.client.get.return_value = _cluster(power_state={"code": "Stopped"})

        with self.assertRaises(EnvironmentNotReadyError):
            self._run()

        self.client.begin_run_command.assert_not_called()

    def test_aad_token_only_for_managed_aad(self):
        self.client.get.return_value = _cluster(aad_profile={"managed": True})
        self._set_report([{"host": "mcr.microsoft.com", "dns_ok": True, "https_ok": True}])
        provider = mock.Mock(return_value="aad-token")

        self._run(endpoints=["mcr.microsoft.com"], cluster_token_provider=provider)

        provider.assert_called_once_with()
        self.assertEqual(self.client.begin_run_command.call_args.args[2].cluster_token, "aad-token")

    def test_json_report_saved(self):
        report = [{"host": "mcr.microsoft.com", "dns_ok": True, "https_ok": False}]
        self._set_report(report)
        tmp_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, tmp_dir)
        path = os.path.join(tmp_dir, "egress.json")

        self._run(endpoints=["mcr.microsoft.com"], json_report_path=path)

        with open(path, encoding="utf-8") as f:
            document = json.load(f)
        self.assertEqual(document["results"], report)
        self.assertEqual(document["summary"], {"total": 1, "passed": 0, "failed": 1})
        self.assertEqual(document["metadata"]["cluster_name"], "my-cluster")
        self.assertEqual(document["metadata"]["namespace"], "aks-egress-check-20261018-090507")
        if os.name == "posix":
            self.assertEqual(os.stat(path).st_mode & 0o777, 0o600)


class TestReportGenerator(unittest.TestCase):

    def test_https_only_endpoint_is_a_warning(self):
        stream = io.StringIO()
        run = EgressCheckRun(namespace="ns", exit_code=0,
                             results=[CheckResult("packages.aks.azure.com", False, True)])

        ReportGenerator("c", "rg", "sub", run, "0.1.0", logger=mock.Mock(), stream=stream).print_console_report()

        self.assertIn("[WARNING] packages.aks.azure.com (DNS: FAILED, HTTPS: OK)", stream.getvalue())


if __name__ == '__main__':
    unittest.main()
