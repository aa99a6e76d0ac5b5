#!/usr/bin/env python3
"""
SafeHands Conformance Test Runner

Replays escrow action vectors against the in-process Python spec and, when
configured, a deployed contract adapter, and reports any divergence.
"""

import asyncio
import glob
import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiohttp
import click
import yaml

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT))

from comparator import ResultComparator, ComparisonResult  # noqa: E402
from config import REFERENCE_CLIENT, HarnessConfig, ClientConfig  # noqa: E402
from reporter import ReportGenerator, SuiteResult, TestResult, ConformanceReport  # noqa: E402

from safehands_spec.contract import EscrowContract  # noqa: E402
from safehands_spec.state_digest import compute_state_digest  # noqa: E402
from tools.fixtures_io import (  # noqa: E402
    action_from_json,
    event_to_json,
    state_from_json,
    state_to_json,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


class SpecClient:
    """Reference client that executes vectors against the Python specs."""

    def __init__(self, config: ClientConfig):
        self.config = config
        self.contract = EscrowContract()

    async def connect(self) -> None:
        self.contract = EscrowContract()

    async def close(self) -> None:
        pass

    async def reset_state(self) -> bool:
        self.contract = EscrowContract()
        return True

    async def load_state(self, state: Dict[str, Any]) -> Optional[str]:
        try:
            self.contract = state_from_json(state)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"[{self.config.name}] Load state failed: {e}")
            return None
        return self._digest()

    async def get_state_digest(self) -> Optional[str]:
        return self._digest()

    async def execute_action(self, action: Dict[str, Any]) -> Dict[str, Any]:
        try:
            parsed = action_from_json(action)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"[{self.config.name}] Bad action: {e}")
            return {"success": False, "error": str(e)}

        events_before = len(self.contract.get_events())
        result = self.contract.execute(parsed)
        return {
            "success": result.ok,
            "error_code": int(result.error.code) if result.error else 0,
            "value": result.value,
            "state_digest": self._digest(),
            "events": [event_to_json(ev) for ev in self.contract.get_events()[events_before:]],
        }

    def _digest(self) -> str:
        return compute_state_digest(state_to_json(self.contract))


class ConformanceClient:
    """HTTP client for a contract adapter."""

    def __init__(self, config: ClientConfig):
        self.config = config
        self.session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        """Initialize HTTP session."""
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        self.session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP session."""
        if self.session:
            await self.session.close()

    async def reset_state(self) -> bool:
        """Reset adapter to an empty contract."""
        try:
            async with self.session.post(
                f"{self.config.endpoint}/state/reset"
            ) as resp:
                data = await resp.json()
                return data.get("success", False)
        except aiohttp.ClientError as e:
            logger.error(f"[{self.config.name}] Reset failed: {e}")
            return False

    async def load_state(self, state: Dict[str, Any]) -> Optional[str]:
        """
        Load state from JSON.

        Returns state digest on success, None on failure.
        """
        try:
            async with self.session.post(
                f"{self.config.endpoint}/state/load",
                json=state,
            ) as resp:
                data = await resp.json()
                if data.get("success"):
                    return data.get("state_digest")
                return None
        except aiohttp.ClientError as e:
            logger.error(f"[{self.config.name}] Load state failed: {e}")
            return None

    async def get_state_digest(self) -> Optional[str]:
        """Get current state digest."""
        try:
            async with self.session.get(
                f"{self.config.endpoint}/state/digest"
            ) as resp:
                data = await resp.json()
                return data.get("state_digest")
        except aiohttp.ClientError as e:
            logger.error(f"[{self.config.name}] Get digest failed: {e}")
            return None

    async def execute_action(self, action: Dict[str, Any]) -> Dict[str, Any]:
        """Execute a single escrow action."""
        try:
            async with self.session.post(
                f"{self.config.endpoint}/action/execute",
                json=action,
            ) as resp:
                return await resp.json()
        except aiohttp.ClientError as e:
            logger.error(f"[{self.config.name}] Execute action failed: {e}")
            return {"success": False, "error": str(e)}


AnyClient = Union[SpecClient, ConformanceClient]


def make_client(config: ClientConfig) -> AnyClient:
    if config.in_process:
        return SpecClient(config)
    return ConformanceClient(config)


class ConformanceHarness:
    """Main test harness for conformance testing."""

    def __init__(self, config: HarnessConfig):
        self.config = config
        self.clients: Dict[str, AnyClient] = {}
        self.comparator = ResultComparator(reference_client=REFERENCE_CLIENT)
        self.reporter = ReportGenerator(config.result_dir)

    async def setup(self) -> None:
        """Initialize all clients."""
        for name, client_config in self.config.get_enabled_clients().items():
            client = make_client(client_config)
            await client.connect()
            self.clients[name] = client
            logger.info(f"Connected to {client_config.name} at {client_config.endpoint}")

    async def teardown(self) -> None:
        """Close all client connections."""
        for client in self.clients.values():
            await client.close()

    async def reset_all(self) -> bool:
        """Reset all clients to an empty contract."""
        results = await asyncio.gather(*[
            client.reset_state()
            for client in self.clients.values()
        ])
        return all(results)

    async def load_state_all(self, state: Dict[str, Any]) -> ComparisonResult:
        """Load identical state into all clients and verify digests match."""
        digests = {}
        for name, client in self.clients.items():
            digest = await client.load_state(state)
            if digest:
                digests[name] = digest
            else:
                logger.error(f"Failed to load state in {name}")

        return self.comparator.compare_state_digests(digests, "state_load")

    async def execute_action_all(self, action: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Execute an action on all clients."""
        names = list(self.clients)
        outcomes = await asyncio.gather(*[
            self.clients[name].execute_action(action)
            for name in names
        ])
        return dict(zip(names, outcomes))

    async def run_vector(self, vector: Dict[str, Any]) -> TestResult:
        """Run a single test vector."""
        vector_name = vector.get("name", "unknown")
        start_time = time.time()

        def elapsed() -> float:
            return (time.time() - start_time) * 1000

        if vector.get("runnable") is False:
            return TestResult(
                vector_name=vector_name,
                suite_name="",
                passed=False,
                execution_time_ms=0.0,
                skipped=True,
            )

        try:
            if not await self.reset_all():
                return TestResult(
                    vector_name=vector_name,
                    suite_name="",
                    passed=False,
                    execution_time_ms=elapsed(),
                    error="Failed to reset clients",
                )

            if vector.get("pre_state"):
                result = await self.load_state_all(vector["pre_state"])
                if result.has_divergences:
                    return TestResult(
                        vector_name=vector_name,
                        suite_name="",
                        passed=False,
                        execution_time_ms=elapsed(),
                        comparison=result,
                        error="State load divergence",
                    )

            action = (vector.get("input") or {}).get("action")
            if not action:
                # No action to execute - just a state load test
                return TestResult(
                    vector_name=vector_name,
                    suite_name="",
                    passed=True,
                    execution_time_ms=elapsed(),
                )

            results = await self.execute_action_all(action)
            comparison = self.comparator.compare_results(
                results, vector_name, expected=vector.get("expected")
            )
            return TestResult(
                vector_name=vector_name,
                suite_name="",
                passed=not comparison.has_divergences,
                execution_time_ms=elapsed(),
                comparison=comparison,
            )

        except Exception as e:
            logger.exception(f"Error running vector {vector_name}")
            return TestResult(
                vector_name=vector_name,
                suite_name="",
                passed=False,
                execution_time_ms=elapsed(),
                error=str(e),
            )

    async def run_suite(self, suite_path: str) -> SuiteResult:
        """Run a test suite from a YAML file."""
        suite_name = Path(suite_path).stem
        logger.info(f"Running suite: {suite_name}")

        start_time = time.time()

        with open(suite_path) as f:
            suite = yaml.safe_load(f) or {}

        vectors = suite.get("test_vectors", [])
        test_results = []

        for vector in vectors:
            result = await self.run_vector(vector)
            result.suite_name = suite_name
            test_results.append(result)

            status = "SKIP" if result.skipped else ("PASS" if result.passed else "FAIL")
            logger.info(f"  [{status}] {result.vector_name}")

            if not result.passed and not result.skipped and self.config.stop_on_first_failure:
                break

        passed = sum(1 for r in test_results if r.passed)
        failed = sum(1 for r in test_results if not r.passed and not r.skipped)

        return SuiteResult(
            suite_name=suite_name,
            total_tests=len(vectors),
            passed_tests=passed,
            failed_tests=failed,
            skipped_tests=len(vectors) - passed - failed,
            execution_time_ms=(time.time() - start_time) * 1000,
            test_results=test_results,
        )

    async def run_all(self, vector_paths: List[str]) -> ConformanceReport:
        """Run all test suites."""
        start_time = time.time()

        suite_results = []
        for path in vector_paths:
            result = await self.run_suite(path)
            suite_results.append(result)
            if result.failed_tests and self.config.stop_on_first_failure:
                break

        return self.reporter.generate_report(
            suite_results=suite_results,
            clients=list(self.clients.keys()),
            reference_client=self.comparator.reference_client,
            execution_time_ms=(time.time() - start_time) * 1000,
        )


def find_vector_files(vector_dir: str) -> List[str]:
    """Find all vector YAML files in directory."""
    patterns = [
        os.path.join(vector_dir, "**", "*.yaml"),
        os.path.join(vector_dir, "**", "*.yml"),
    ]

    files = []
    for pattern in patterns:
        files.extend(glob.glob(pattern, recursive=True))

    return sorted(files)


@click.command()
@click.option(
    "--vectors",
    default=None,
    help="Path to vectors directory or specific YAML file",
)
@click.option(
    "--soroban-endpoint",
    default=None,
    help="SafeHands Soroban adapter endpoint URL",
)
@click.option(
    "--result-dir",
    default=None,
    help="Directory to write results",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--stop-on-failure",
    is_flag=True,
    help="Stop on first test failure",
)
def main(
    vectors: Optional[str],
    soroban_endpoint: Optional[str],
    result_dir: Optional[str],
    verbose: bool,
    stop_on_failure: bool,
) -> None:
    """Run SafeHands conformance tests."""

    # Load config from environment, then override with CLI args
    config = HarnessConfig.from_env()

    if soroban_endpoint:
        config.clients["soroban"].endpoint = soroban_endpoint
        config.clients["soroban"].enabled = True
    if result_dir:
        config.result_dir = result_dir
    if verbose or config.verbose:
        config.verbose = True
        logging.getLogger().setLevel(logging.DEBUG)
    if stop_on_failure:
        config.stop_on_first_failure = True

    vector_dir = vectors or config.vector_dir
    if os.path.isfile(vector_dir):
        vector_files = [vector_dir]
    else:
        vector_files = find_vector_files(vector_dir)

    if not vector_files:
        logger.error(f"No vector files found in {vector_dir}")
        sys.exit(1)

    logger.info(f"Found {len(vector_files)} vector files")

    async def run() -> int:
        harness = ConformanceHarness(config)

        try:
            await harness.setup()
            report = await harness.run_all(vector_files)

            harness.reporter.write_json_report(report)
            harness.reporter.write_summary(report)
            harness.reporter.print_summary(report)

            return 0 if report.total_failed == 0 else 1

        finally:
            await harness.teardown()

    exit_code = asyncio.run(run())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
