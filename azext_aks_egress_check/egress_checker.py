# --------------------------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.
# --------------------------------------------------------------------------------------------

"""
Endpoint connectivity checker for AKS egress validation

Runs inside the diagnostic pod and checks each configured endpoint with:
- DNS resolution (first resolving candidate wins)
- HTTPS reachability (any HTTP status line counts as reachable)

This module is shipped into the cluster as a single file and must only
depend on the Python standard library.
"""

import http.client
import json
import logging
import socket
import ssl
import subprocess
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

DEFAULT_ENDPOINTS = [
    "mcr.microsoft.com",
    "*.data.mcr.microsoft.com",
    "management.azure.com",
    "login.microsoftonline.com",
    "packages.microsoft.com",
    "acs-mirror.azureedge.net",
    "packages.aks.azure.com",
]

DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_MAX_TIME = 12.0

WILDCARD_PREFIX = "*."
WILDCARD_SUBDOMAINS = ("www", "api")

REPORT_BEGIN_MARKER = "---BEGIN EGRESS CHECK REPORT---"
REPORT_END_MARKER = "---END EGRESS CHECK REPORT---"

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2
EXIT_PROVISIONING_FAILED = 3
EXIT_DEADLINE_EXCEEDED = 5


class ProvisioningFailure(Exception):
    """Required probing tooling could not be installed"""


class CheckDeadlineExceeded(Exception):
    """The overall check deadline expired before every endpoint was evaluated"""


@dataclass(frozen=True)
class EndpointSpec:
    """One configured hostname pattern, literal or ``*.<base-domain>``"""

    pattern: str

    def __post_init__(self):
        if not self.pattern or not isinstance(self.pattern, str):
            raise ValueError("Endpoint pattern cannot be empty")
        if self.is_wildcard:
            base = self.pattern[len(WILDCARD_PREFIX):]
            if not base or "*" in base:
                raise ValueError(f"Invalid wildcard endpoint pattern: {self.pattern}")
        elif "*" in self.pattern:
            raise ValueError(
                f"Wildcard endpoint patterns must start with '{WILDCARD_PREFIX}': {self.pattern}"
            )

    @property
    def is_wildcard(self) -> bool:
        return self.pattern.startswith(WILDCARD_PREFIX)


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of a single DNS or HTTPS probe against one candidate"""

    candidate: str
    ok: bool
    detail: str = ""


@dataclass(frozen=True)
class CheckResult:
    """Outcome for one EndpointSpec"""

    host: str
    dns_ok: bool
    https_ok: bool

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {"host": self.host, "dns_ok": self.dns_ok, "https_ok": self.https_ok}


@dataclass
class CheckerConfig:
    """Structured input for a checker run"""

    endpoints: List[str] = field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    max_time: float = DEFAULT_MAX_TIME
    max_workers: int = 1
    deadline: Optional[float] = None
    install_packages: List[str] = field(default_factory=lambda: ["ca-certificates"])

    def __post_init__(self):
        seen = set()
        for pattern in self.endpoints:
            EndpointSpec(pattern)
            # Hostnames are case-insensitive
            if pattern.lower() in seen:
                raise ValueError(f"Duplicate endpoint pattern: {pattern}")
            seen.add(pattern.lower())
        if self.connect_timeout <= 0 or self.max_time <= 0:
            raise ValueError("Timeouts must be positive")
        if self.connect_timeout > self.max_time:
            raise ValueError("Connect timeout cannot exceed the maximum request time")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.deadline is not None and self.deadline <= 0:
            raise ValueError("Deadline must be positive")

    def endpoint_specs(self) -> List[EndpointSpec]:
        return [EndpointSpec(pattern) for pattern in self.endpoints]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoints": list(self.endpoints),
            "connect_timeout": self.connect_timeout,
            "max_time": self.max_time,
            "max_workers": self.max_workers,
            "deadline": self.deadline,
            "install_packages": list(self.install_packages),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckerConfig":
        if not isinstance(data, dict):
            raise ValueError("Checker configuration must be a JSON object")
        unknown = set(data) - set(cls().to_dict())
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        kwargs = dict(data)
        if "endpoints" in kwargs and not isinstance(kwargs["endpoints"], list):
            raise ValueError("'endpoints' must be a list of hostname patterns")
        return cls(**kwargs)


def expand_candidates(spec: EndpointSpec) -> List[str]:
    """
    Derive the concrete hostnames to probe for an endpoint

    Wildcards are tried as www.<base>, api.<base>, then <base>; the order
    matters since probing stops at the first success.
    """
    if spec.is_wildcard:
        base = spec.pattern[len(WILDCARD_PREFIX):]
        return [f"{sub}.{base}" for sub in WILDCARD_SUBDOMAINS] + [base]
    return [spec.pattern]


class DnsProbe:
    """Resolves a hostname with the system resolver"""

    def __call__(self, candidate: str) -> ProbeOutcome:
        try:
            infos = socket.getaddrinfo(candidate, None)
        except (OSError, UnicodeError) as exc:
            return ProbeOutcome(candidate, False, str(exc))
        addresses = sorted({info[4][0] for info in infos})
        return ProbeOutcome(candidate, bool(addresses), ", ".join(addresses))


class HttpsProbe:
    """
    Opens an HTTPS connection and sends a HEAD request

    max_time bounds the whole request. Socket timeouts only bound a single
    read, so a watchdog shuts the socket down once max_time has elapsed and
    a response completed past it still counts as a failure.
    """

    def __init__(self, connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
                 max_time: float = DEFAULT_MAX_TIME, context: Optional[ssl.SSLContext] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.connect_timeout = connect_timeout
        self.max_time = max_time
        self.context = context or ssl.create_default_context()
        self.clock = clock

    def __call__(self, candidate: str) -> ProbeOutcome:
        started = self.clock()
        conn = http.client.HTTPSConnection(candidate, 443, timeout=self.connect_timeout, context=self.context)
        watchdog = threading.Timer(self.max_time, self._abort, args=(conn,))
        watchdog.daemon = True
        watchdog.start()
        try:
            conn.connect()
            remaining = self.max_time - (self.clock() - started)
            if remaining <= 0:
                return self._timed_out(candidate)
            conn.sock.settimeout(remaining)
            conn.request("HEAD", "/", headers={"User-Agent": "aks-egress-check"})
            response = conn.getresponse()
            if self.clock() - started > self.max_time:
                return self._timed_out(candidate)
            # Any status counts: this is a reachability check, not an availability check
            return ProbeOutcome(candidate, True, f"HTTP {response.status} {response.reason}")
        except (OSError, UnicodeError, http.client.HTTPException) as exc:
            if self.clock() - started >= self.max_time:
                return self._timed_out(candidate)
            return ProbeOutcome(candidate, False, str(exc) or exc.__class__.__name__)
        finally:
            watchdog.cancel()
            conn.close()

    def _timed_out(self, candidate: str) -> ProbeOutcome:
        return ProbeOutcome(candidate, False, f"Operation timed out after {self.max_time}s")

    @staticmethod
    def _abort(conn: http.client.HTTPSConnection):
        sock = conn.sock
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already closed by the probe itself
            return


class EndpointChecker:
    """Evaluates endpoint specs against independent DNS and HTTPS probes"""

    def __init__(
        self,
        config: CheckerConfig,
        dns_probe: Optional[Callable[[str], ProbeOutcome]] = None,
        https_probe: Optional[Callable[[str], ProbeOutcome]] = None,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.dns_probe = dns_probe or DnsProbe()
        self.https_probe = https_probe or HttpsProbe(config.connect_timeout, config.max_time)
        self.clock = clock
        self.logger = logger or logging.getLogger("aks_egress_check.checker")
        self._deadline_at: Optional[float] = None

    def run(self) -> List[CheckResult]:
        """
        Check every configured endpoint

        Returns:
            One CheckResult per endpoint, in configuration order

        Raises:
            CheckDeadlineExceeded: If the overall deadline expires first
        """
        specs = self.config.endpoint_specs()
        if self.config.deadline is not None:
            self._deadline_at = self.clock() + self.config.deadline

        self.logger.info("Starting endpoint checks for %d endpoint(s)...", len(specs))
        if self.config.max_workers > 1 and len(specs) > 1:
            return self._run_parallel(specs)
        return [self.check_endpoint(spec) for spec in specs]

    def _run_parallel(self, specs: List[EndpointSpec]) -> List[CheckResult]:
        """
        Check endpoints on a thread pool, one result slot per input position

        On deadline expiry queued checks are cancelled, but probes already
        running are not interrupted. The interpreter joins those threads at
        exit, so a process that aborts here outlives the deadline by at most
        one DNS lookup plus one HTTPS probe (bounded by max_time).
        """
        slots: List[Optional[CheckResult]] = [None] * len(specs)

        def evaluate(index: int, spec: EndpointSpec):
            slots[index] = self.check_endpoint(spec)

        executor = ThreadPoolExecutor(max_workers=self.config.max_workers)
        try:
            futures = [executor.submit(evaluate, i, spec) for i, spec in enumerate(specs)]
            timeout = None
            if self._deadline_at is not None:
                timeout = max(self._deadline_at - self.clock(), 0)
            done, not_done = wait(futures, timeout=timeout)
            if not_done:
                raise CheckDeadlineExceeded(
                    f"Deadline of {self.config.deadline}s exceeded with "
                    f"{len(not_done)} endpoint(s) still being checked"
                )
            for future in done:
                future.result()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return [result for result in slots if result is not None]

    def check_endpoint(self, spec: EndpointSpec) -> CheckResult:
        """Run the DNS and HTTPS probes for one endpoint"""
        candidates = expand_candidates(spec)
        if spec.is_wildcard:
            self.logger.info("Processing wildcard endpoint %s: trying %s", spec.pattern, " ".join(candidates))
        else:
            self.logger.info("Processing endpoint %s", spec.pattern)

        dns_ok = self._first_success("DNS", self.dns_probe, candidates)
        # Not gated on DNS: the HTTPS probe always runs
        https_ok = self._first_success("HTTPS", self.https_probe, candidates)

        self.logger.info("Result for %s: DNS=%s, HTTPS=%s", spec.pattern,
                         "OK" if dns_ok else "FAILED", "OK" if https_ok else "FAILED")
        return CheckResult(host=spec.pattern, dns_ok=dns_ok, https_ok=https_ok)

    def _first_success(self, kind: str, probe: Callable[[str], ProbeOutcome], candidates: List[str]) -> bool:
        for candidate in candidates:
            self._check_deadline()
            outcome = probe(candidate)
            if outcome.ok:
                self.logger.info("  [OK] %s for %s: %s", kind, candidate, outcome.detail)
                return True
            self.logger.info("  [FAILED] %s for %s: %s", kind, candidate, outcome.detail)
        return False

    def _check_deadline(self):
        if self._deadline_at is not None and self.clock() >= self._deadline_at:
            raise CheckDeadlineExceeded(f"Deadline of {self.config.deadline}s exceeded")


def trust_store_available() -> bool:
    """Whether the default SSL context can find any CA certificates"""
    context = ssl.create_default_context()
    if context.cert_store_stats().get("x509_ca", 0) > 0:
        return True
    return ssl.get_default_verify_paths().cafile is not None


def ensure_tooling(
    packages: List[str],
    runner: Callable[..., Any] = subprocess.run,
    has_trust_store: Callable[[], bool] = trust_store_available,
    logger: Optional[logging.Logger] = None,
):
    """
    Make sure the CA trust store needed by the HTTPS probe is present

    Raises:
        ProvisioningFailure: If the packages could not be installed
    """
    logger = logger or logging.getLogger("aks_egress_check.checker")
    if has_trust_store():
        logger.info("CA trust store present, no packages to install")
        return
    if not packages:
        raise ProvisioningFailure("CA trust store missing and no packages configured for installation")

    logger.info("Installing required packages: %s", " ".join(packages))
    try:
        # Index refresh failures are tolerated; the install step decides
        runner(["apt-get", "update", "-qq"], check=False, capture_output=True)
        runner(["apt-get", "install", "-y", "-qq"] + list(packages), check=True, capture_output=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise ProvisioningFailure(f"Failed to install packages {', '.join(packages)}: {exc}") from exc

    if not has_trust_store():
        raise ProvisioningFailure("CA trust store still missing after package installation")
    logger.info("Packages installed successfully")


def emit_report(results: List[CheckResult], stream=None):
    """Write the report document between marker lines"""
    stream = stream or sys.stdout
    stream.write(REPORT_BEGIN_MARKER + "\n")
    stream.write(json.dumps([r.to_dict() for r in results], indent=2) + "\n")
    stream.write(REPORT_END_MARKER + "\n")
    stream.flush()


def load_config(path: str) -> CheckerConfig:
    with open(path, "r", encoding="utf-8") as f:
        return CheckerConfig.from_dict(json.load(f))


def _setup_logging() -> logging.Logger:
    formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    logger = logging.getLogger("aks_egress_check")
    logger.propagate = False

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(logging.INFO)
    return logger


def main(argv: Optional[List[str]] = None, tooling: Callable[..., Any] = ensure_tooling,
         checker_cls=EndpointChecker, stream=None) -> int:
    """In-pod entry point; returns the process exit code"""
    argv = sys.argv[1:] if argv is None else argv
    logger = _setup_logging()

    if len(argv) != 1:
        logger.error("Usage: egress_checker.py <config.json>")
        return EXIT_CONFIG_ERROR

    try:
        config = load_config(argv[0])
    except (OSError, ValueError, TypeError) as exc:
        logger.error("Invalid checker configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    try:
        tooling(config.install_packages, logger=logger.getChild("checker"))
    except ProvisioningFailure as exc:
        logger.error("Provisioning failed: %s", exc)
        return EXIT_PROVISIONING_FAILED

    try:
        results = checker_cls(config, logger=logger.getChild("checker")).run()
    except CheckDeadlineExceeded as exc:
        logger.error("%s", exc)
        return EXIT_DEADLINE_EXCEEDED

    logger.info("Collected %d result(s)", len(results))
    emit_report(results, stream)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
