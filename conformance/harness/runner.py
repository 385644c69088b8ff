#!/usr/bin/env python3
"""
Vested settlement conformance runner.

Every vector carries a pre-state, a call (or an all-or-nothing batch) and the
outcome the Python model produced for it. The runner loads the pre-state into
each client, executes the input and diffs success flag, error code and state
digest against that recorded outcome.

Client HTTP protocol (JSON bodies, JSON replies):

    POST /state/reset     {}                  -> {"success": bool}
    POST /state/load      <exported state>    -> {"success": bool, "state_digest": str}
    POST /call/execute    {"call": {...}}     -> {"success", "error_code", "state_digest"}
    POST /batch/execute   {"calls": [...]}    -> same as /call/execute
"""

import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp
import click
import yaml

ROOT = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from vested_settlement.errors import ErrorCode  # noqa: E402
from vested_settlement.state_digest import compute_state_digest  # noqa: E402
from vested_settlement.state_transition import TransitionResult, apply_call, apply_calls  # noqa: E402
from vested_settlement.types import ChainState  # noqa: E402
from fixtures_io import call_from_json, state_from_json, state_to_json  # noqa: E402

from comparator import ComparisonResult, ResultComparator  # noqa: E402
from config import EXPECTED_CLIENT, LOCAL_ENDPOINT, ClientConfig, HarnessConfig  # noqa: E402
from reporter import ConformanceReport, ReportGenerator, SuiteResult, TestResult  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


class ConformanceClient:
    """An implementation reached over HTTP."""

    def __init__(self, config: ClientConfig):
        self.config = config
        self.session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.config.timeout)
        )

    async def close(self) -> None:
        if self.session:
            await self.session.close()

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST to the client; transport failures come back as a failed reply."""
        url = f"{self.config.endpoint}{path}"
        try:
            async with self.session.post(url, json=body) as resp:
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[{self.config.name}] POST {path} failed: {e}")
            return {"success": False, "error": str(e)}

    async def reset_state(self) -> bool:
        return bool((await self._post("/state/reset", {})).get("success"))

    async def load_state(self, state: Dict[str, Any]) -> Optional[str]:
        reply = await self._post("/state/load", state)
        return reply.get("state_digest") if reply.get("success") else None

    async def execute_call(self, call: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post("/call/execute", {"call": call})

    async def execute_batch(self, calls: List[Dict[str, Any]]) -> Dict[str, Any]:
        return await self._post("/batch/execute", {"calls": calls})


class LocalModelClient:
    """The Python model run in-process, behind the same interface.

    Replaying freshly generated vectors through it checks the vector pipeline
    before an external implementation is involved.
    """

    def __init__(self, config: ClientConfig):
        self.config = config
        self.state = ChainState()

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def reset_state(self) -> bool:
        self.state = ChainState()
        return True

    async def load_state(self, state: Dict[str, Any]) -> Optional[str]:
        self.state = state_from_json(state)
        return compute_state_digest(state_to_json(self.state))

    def _reply(self, result: TransitionResult) -> Dict[str, Any]:
        code = result.error.code if result.error else ErrorCode.SUCCESS
        return {
            "success": result.ok,
            "error_code": int(code),
            "state_digest": compute_state_digest(state_to_json(self.state)),
        }

    async def execute_call(self, call: Dict[str, Any]) -> Dict[str, Any]:
        self.state, result = apply_call(self.state, call_from_json(call))
        return self._reply(result)

    async def execute_batch(self, calls: List[Dict[str, Any]]) -> Dict[str, Any]:
        self.state, result = apply_calls(self.state, [call_from_json(c) for c in calls])
        return self._reply(result)


def make_client(config: ClientConfig):
    if config.endpoint == LOCAL_ENDPOINT:
        return LocalModelClient(config)
    return ConformanceClient(config)


def expected_outcome(vector: Dict[str, Any]) -> Dict[str, Any]:
    expected = vector.get("expected", {})
    return {
        "success": expected.get("success", False),
        "error_code": expected.get("error_code", int(ErrorCode.SUCCESS)),
        "state_digest": expected.get("state_digest", ""),
    }


class ConformanceHarness:
    def __init__(self, config: HarnessConfig):
        self.config = config
        self.clients: Dict[str, Any] = {}
        self.comparator = ResultComparator(reference_client=config.reference_client)
        self.reporter = ReportGenerator(config.result_dir)

    async def setup(self) -> None:
        for name, client_config in self.config.get_enabled_clients().items():
            client = make_client(client_config)
            await client.connect()
            self.clients[name] = client
            logger.info(f"Using {client_config.name} at {client_config.endpoint}")

    async def teardown(self) -> None:
        await asyncio.gather(*(c.close() for c in self.clients.values()))

    async def _prepare(self, vector: Dict[str, Any]) -> Optional[ComparisonResult]:
        """Reset every client and load the vector's pre-state.

        Returns the digest comparison when a pre-state was loaded.
        """
        resets = await asyncio.gather(*(c.reset_state() for c in self.clients.values()))
        if not all(resets):
            raise RuntimeError("Failed to reset clients")

        pre_state = vector.get("pre_state")
        if not pre_state:
            return None

        digests = {EXPECTED_CLIENT: vector.get("pre_state_digest") or compute_state_digest(pre_state)}
        for name, client in self.clients.items():
            digest = await client.load_state(pre_state)
            if digest is None:
                logger.error(f"{name} refused the pre-state")
                continue
            digests[name] = digest
        return self.comparator.compare_state_digests(digests, "state_load")

    async def _execute(self, vector_input: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        results = {}
        for name, client in self.clients.items():
            if vector_input.get("kind") == "batch":
                results[name] = await client.execute_batch(vector_input.get("calls", []))
            else:
                results[name] = await client.execute_call(vector_input.get("call", {}))
        return results

    async def run_vector(self, vector: Dict[str, Any], suite_name: str) -> TestResult:
        name = vector.get("name", "unknown")
        started = time.monotonic()

        def finish(passed: bool, **kwargs: Any) -> TestResult:
            elapsed = (time.monotonic() - started) * 1000
            return TestResult(name, suite_name, passed, elapsed, **kwargs)

        if vector.get("runnable") is False:
            return finish(True, skipped=True)

        try:
            load = await self._prepare(vector)
            if load is not None and load.has_divergences:
                return finish(False, comparison=load, error="State load divergence")

            results = await self._execute(vector.get("input", {}))
            results[EXPECTED_CLIENT] = expected_outcome(vector)
            comparison = self.comparator.compare_results(results, name)
            return finish(not comparison.has_divergences, comparison=comparison)
        except Exception as e:
            logger.exception(f"Vector {name} crashed")
            return finish(False, error=str(e))

    async def run_suite(self, path: Path) -> SuiteResult:
        logger.info(f"Suite {path.stem}")
        started = time.monotonic()
        vectors = (yaml.safe_load(path.read_text()) or {}).get("test_vectors", [])

        suite = SuiteResult(suite_name=path.stem, execution_time_ms=0.0)
        for vector in vectors:
            result = await self.run_vector(vector, path.stem)
            suite.test_results.append(result)
            logger.info(f"  [{result.status}] {result.vector_name}")
            if not result.passed and self.config.stop_on_first_failure:
                break

        suite.execution_time_ms = (time.monotonic() - started) * 1000
        return suite

    async def run_all(self, paths: List[Path]) -> ConformanceReport:
        started = time.monotonic()
        suites = [await self.run_suite(p) for p in paths]
        return self.reporter.generate_report(
            suite_results=suites,
            clients=list(self.clients),
            reference_client=self.comparator.reference_client,
            execution_time_ms=(time.monotonic() - started) * 1000,
        )


def find_vector_files(target: Path) -> List[Path]:
    if target.is_file():
        return [target]
    return sorted(p for p in target.rglob("*") if p.suffix in (".yaml", ".yml"))


@click.command()
@click.option("--vectors", default=None, help="Vector directory or a single YAML file")
@click.option("--evm-endpoint", default=None, help="EVM contract adapter URL")
@click.option(
    "--local",
    is_flag=True,
    help="Replay through the in-process Python model (EVM only with --evm-endpoint)",
)
@click.option("--no-evm", is_flag=True, help="Skip the EVM contract adapter")
@click.option("--result-dir", default=None, help="Where reports are written")
@click.option("--verbose", is_flag=True, help="Debug logging")
@click.option("--stop-on-failure", is_flag=True, help="Stop a suite at its first failure")
def main(
    vectors: Optional[str],
    evm_endpoint: Optional[str],
    local: bool,
    no_evm: bool,
    result_dir: Optional[str],
    verbose: bool,
    stop_on_failure: bool,
) -> None:
    """Run vested settlement conformance vectors against client implementations."""
    config = HarnessConfig.from_env()

    config.apply_cli(evm_endpoint=evm_endpoint, local=local, no_evm=no_evm)
    if result_dir:
        config.result_dir = result_dir
    config.verbose = config.verbose or verbose
    config.stop_on_first_failure = config.stop_on_first_failure or stop_on_failure
    if config.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    target = Path(vectors or config.vector_dir)
    files = find_vector_files(target)
    if not files:
        logger.error(f"No vector files under {target}")
        sys.exit(1)
    logger.info(f"Found {len(files)} vector files")

    async def run() -> int:
        harness = ConformanceHarness(config)
        try:
            await harness.setup()
            report = await harness.run_all(files)
        finally:
            await harness.teardown()

        harness.reporter.write_json_report(report)
        harness.reporter.write_summary(report)
        harness.reporter.print_summary(report)
        return 0 if report.total_failed == 0 else 1

    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
