# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

"""
Payload builder for the in-cluster egress check

Builds everything that is shipped through the managed cluster run command:
- Kubernetes manifest (Namespace, ConfigMap with checker + config, Pod)
- Driver script that applies the manifest, waits, streams logs and cleans up
- Zipped, base64-encoded run command context holding both files
"""

import base64
import io
import json
import shlex
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from . import egress_checker
from .egress_checker import (
    EXIT_PROVISIONING_FAILED,
    CheckerConfig,
    expand_candidates,
)

DEFAULT_IMAGE = "mcr.microsoft.com/aks/fundamental/base-ubuntu:v0.0.11"
DEFAULT_READY_TIMEOUT = 300

NAMESPACE_PREFIX = "aks-egress-check"
POD_NAME = "egress-check"
CONFIGMAP_NAME = "egress-check"
CONTAINER_NAME = "checker"
MOUNT_PATH = "/check"

CHECKER_FILENAME = "egress_checker.py"
CONFIG_FILENAME = "config.json"
MANIFEST_FILENAME = "manifest.json"
DRIVER_SCRIPT_FILENAME = "run-egress-check.sh"

ENVIRONMENT_FAILED_EXIT_CODE = 4
INCOMPLETE_EXIT_CODE = 6
ENVIRONMENT_FAILED_MARKER = "EGRESS_CHECK_ENVIRONMENT_FAILED"

# Resolver timeout (5s) times the usual two attempts
DNS_TIMEOUT_ESTIMATE = 10
RUN_COMMAND_MARGIN = 120

LABELS = {
    "app.kubernetes.io/name": NAMESPACE_PREFIX,
    "app.kubernetes.io/managed-by": "azure-cli",
}

POD_BOOTSTRAP = f"""set -o pipefail
if ! command -v python3 >/dev/null 2>&1; then
  echo "Installing required packages..."
  apt-get update -qq || true
  apt-get install -y -qq python3 ca-certificates >/dev/null || {{ echo "Failed to install packages"; exit {EXIT_PROVISIONING_FAILED}; }}
  echo "Packages installed successfully"
fi
exec python3 {MOUNT_PATH}/{CHECKER_FILENAME} {MOUNT_PATH}/{CONFIG_FILENAME}
"""

DRIVER_SCRIPT = f"""#!/bin/bash
set -uo pipefail

ns="$EGRESS_NAMESPACE"
pod="$EGRESS_POD"
ready_timeout="$EGRESS_READY_TIMEOUT"

cleanup() {{
  kubectl delete namespace "$ns" --ignore-not-found --wait=false >/dev/null 2>&1 || true
}}
trap cleanup EXIT

kubectl apply -f {MANIFEST_FILENAME} || {{
  echo "{ENVIRONMENT_FAILED_MARKER}: unable to create diagnostic resources"
  exit {ENVIRONMENT_FAILED_EXIT_CODE}
}}

echo "Waiting for test pod to start..."
deadline=$((SECONDS + ready_timeout))
phase=""
while [ "$SECONDS" -lt "$deadline" ]; do
  phase=$(kubectl -n "$ns" get pod "$pod" -o jsonpath='{{.status.phase}}' 2>/dev/null || true)
  case "$phase" in
    Running|Succeeded|Failed) break ;;
  esac
  sleep 2
done

case "$phase" in
  Running|Succeeded|Failed) ;;
  *)
    echo "{ENVIRONMENT_FAILED_MARKER}: pod did not start within ${{ready_timeout}}s (phase: ${{phase:-unknown}})"
    kubectl -n "$ns" describe pod "$pod" 2>/dev/null | tail -n 20 || true
    exit {ENVIRONMENT_FAILED_EXIT_CODE}
    ;;
esac

echo "Pod started, running tests..."
kubectl -n "$ns" logs -f "$pod" || true

code=""
for _ in $(seq 1 30); do
  code=$(kubectl -n "$ns" get pod "$pod" \\
    -o jsonpath='{{.status.containerStatuses[0].state.terminated.exitCode}}' 2>/dev/null || true)
  [ -n "$code" ] && break
  sleep 2
done
echo "Test pod exit code: ${{code:-unknown}}"
exit "${{code:-{INCOMPLETE_EXIT_CODE}}}"
"""


@dataclass(frozen=True)
class EgressPayload:
    """Everything needed for one run command invocation"""

    namespace: str
    command: str
    context: str
    manifest: Dict[str, Any]


def make_namespace_name(now: Optional[datetime] = None) -> str:
    """Namespace name with a readable timestamp suffix"""
    now = now or datetime.now(timezone.utc)
    return f"{NAMESPACE_PREFIX}-{now:%Y%m%d-%H%M%S}"


def read_checker_source() -> str:
    """Source of the self-contained checker module shipped into the pod"""
    return Path(egress_checker.__file__).read_text(encoding="utf-8")


def build_manifest(namespace: str, config: CheckerConfig, image: str = DEFAULT_IMAGE,
                   checker_source: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the Kubernetes objects for one check run

    Args:
        namespace: Namespace to create; deleting it removes everything else
        config: Checker configuration, shipped as JSON
        image: Container image for the diagnostic pod
        checker_source: Checker module source (defaults to this package's copy)

    Returns:
        A Kubernetes ``List`` document
    """
    if checker_source is None:
        checker_source = read_checker_source()

    namespace_obj = {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {"name": namespace, "labels": dict(LABELS)},
    }
    configmap = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": CONFIGMAP_NAME, "namespace": namespace, "labels": dict(LABELS)},
        "data": {
            CHECKER_FILENAME: checker_source,
            CONFIG_FILENAME: config.to_json(),
        },
    }
    pod = {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": POD_NAME, "namespace": namespace, "labels": dict(LABELS)},
        "spec": {
            "restartPolicy": "Never",
            "nodeSelector": {"kubernetes.io/os": "linux"},
            "containers": [{
                "name": CONTAINER_NAME,
                "image": image,
                "command": ["/bin/bash", "-c"],
                "args": [POD_BOOTSTRAP],
                "volumeMounts": [{"name": CONFIGMAP_NAME, "mountPath": MOUNT_PATH, "readOnly": True}],
            }],
            "volumes": [{"name": CONFIGMAP_NAME, "configMap": {"name": CONFIGMAP_NAME}}],
        },
    }
    return {"apiVersion": "v1", "kind": "List", "items": [namespace_obj, configmap, pod]}


def build_command(namespace: str, ready_timeout: int = DEFAULT_READY_TIMEOUT) -> str:
    """Run command string; values only reach the script as quoted environment variables"""
    env = {
        "EGRESS_NAMESPACE": namespace,
        "EGRESS_POD": POD_NAME,
        "EGRESS_READY_TIMEOUT": str(int(ready_timeout)),
    }
    assignments = " ".join(f"{key}={shlex.quote(value)}" for key, value in env.items())
    return f"{assignments} bash {DRIVER_SCRIPT_FILENAME}"


def build_context(files: Dict[str, str]) -> str:
    """Zip files in memory and base64-encode them, as the run command context expects"""
    memory = io.BytesIO()
    with zipfile.ZipFile(memory, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return base64.b64encode(memory.getvalue()).decode("ascii")


def build_payload(config: CheckerConfig, image: str = DEFAULT_IMAGE,
                  ready_timeout: int = DEFAULT_READY_TIMEOUT,
                  now: Optional[datetime] = None) -> EgressPayload:
    """Assemble namespace, manifest, command and context for one run"""
    namespace = make_namespace_name(now)
    manifest = build_manifest(namespace, config, image)
    context = build_context({
        MANIFEST_FILENAME: json.dumps(manifest, indent=2),
        DRIVER_SCRIPT_FILENAME: DRIVER_SCRIPT,
    })
    return EgressPayload(
        namespace=namespace,
        command=build_command(namespace, ready_timeout),
        context=context,
        manifest=manifest,
    )


def estimate_run_timeout(config: CheckerConfig, ready_timeout: int = DEFAULT_READY_TIMEOUT) -> int:
    """
    Upper bound in seconds for one run command, including pod startup

    Without a deadline this is the worst case of every candidate failing
    both probes, divided across the worker pool.
    """
    if config.deadline is not None:
        check_time = config.deadline
    else:
        attempts = sum(len(expand_candidates(spec)) for spec in config.endpoint_specs())
        check_time = attempts * (DNS_TIMEOUT_ESTIMATE + config.max_time) / config.max_workers
    return int(ready_timeout + check_time + RUN_COMMAND_MARGIN)
