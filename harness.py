"""Visual test harness: replay a learner program per test case and grade it.

Each case runs against a freshly reset engine, is snapshotted two frames
after the drawing finishes (fills show up on the following draw), and is
scored by a comparator against the case's reference image. The harness
stops at the first failing case and reports to the completion tracker
exactly once per run.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Protocol

from pydantic import AliasChoices, BaseModel, Field

from capture import capture_commands
from commands import Command
from comparison import DEFAULT_THRESHOLD, ComparisonResult, PixelComparator
from errors import CaptureError, ComparisonError, EngineNotReadyError, TurtleError

logger = logging.getLogger(__name__)

MAIN = "__main__"
SETTLE_FRAMES = 2


# --- Suite definition ---

class TurtleTestCase(BaseModel):
    description: str
    input: list[Any] = Field(default_factory=list)
    expected: Any = None
    reference_image: str | None = Field(
        default=None, validation_alias=AliasChoices("reference_image", "referenceImage"))


class TurtleTestSuite(BaseModel):
    function_to_test: str = Field(
        default=MAIN, validation_alias=AliasChoices("function_to_test", "functionToTest"))
    threshold: float = Field(
        default=DEFAULT_THRESHOLD, ge=0, le=1,
        validation_alias=AliasChoices("threshold", "visualThreshold"))
    test_cases: list[TurtleTestCase] = Field(
        validation_alias=AliasChoices("test_cases", "testCases"))

    @classmethod
    def load(cls, path: str | Path) -> "TurtleTestSuite":
        """Load a suite from JSON; relative reference paths follow the file."""
        path = Path(path)
        with open(path) as f:
            suite = cls(**json.load(f))
        for case in suite.test_cases:
            ref = case.reference_image
            if ref and not ref.startswith("data:") and not Path(ref).is_absolute():
                case.reference_image = str(path.parent / ref)
        return suite


# --- Results ---

@dataclass
class TurtleTestResult:
    description: str
    passed: bool
    similarity: float
    reference_image: str
    actual_snapshot: str | None = None
    diff_image: str | None = None

    def to_dict(self, images: bool = False) -> dict:
        d = {
            "description": self.description,
            "passed": self.passed,
            "similarity": round(self.similarity, 4),
            "reference_image": self.reference_image,
        }
        if images:
            d["actual_snapshot"] = self.actual_snapshot
            d["diff_image"] = self.diff_image
        return d


@dataclass
class HarnessReport:
    results: list[TurtleTestResult] = field(default_factory=list)
    total_cases: int = 0
    error: str | None = None

    @property
    def all_ran(self) -> bool:
        return self.total_cases > 0 and len(self.results) == self.total_cases

    @property
    def passed(self) -> bool:
        return self.error is None and self.all_ran and all(r.passed for r in self.results)


# --- Collaborators ---

class Host(Protocol):
    ready: bool

    def run(self, commands: list[Command]) -> Any: ...

    def wait_frames(self, count: int) -> None: ...

    def snapshot(self) -> str: ...


class Comparator(Protocol):
    def compare(self, snapshot: str, reference: str, threshold: float = ...,
                include_diff: bool = ...) -> ComparisonResult: ...


class CompletionTracker(Protocol):
    def report_success(self, *scope_ids: str, attempts: int | None = None,
                       source: str | None = None) -> None: ...

    def report_attempt(self, *scope_ids: str) -> None: ...


class ProgressLog:
    """In-memory completion tracker; keeps every report for inspection."""

    def __init__(self):
        self.events: list[dict] = []

    def report_success(self, *scope_ids, attempts=None, source=None):
        logger.info("Completed %s", "/".join(scope_ids) or "<unscoped>")
        self.events.append({"kind": "success", "scope": scope_ids,
                            "attempts": attempts, "source": source})

    def report_attempt(self, *scope_ids):
        logger.info("Attempt recorded for %s", "/".join(scope_ids) or "<unscoped>")
        self.events.append({"kind": "attempt", "scope": scope_ids})


# --- Program assembly ---

def strip_trailing_main_code(source: str) -> str:
    """Cut unindented statements that follow the last def/class block.

    Imports and definitions are kept so the function under test exists, but
    example calls at the bottom of the file do not run a second time. Source
    without any def/class is returned unchanged.
    """
    lines = source.split("\n")
    last_def_line = -1
    for i, line in enumerate(lines):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith(("def ", "class ", "async def ", "@")):
            last_def_line = i
        elif last_def_line >= 0 and line.startswith((" ", "\t")):
            last_def_line = i
    if last_def_line < 0:
        return source
    return "\n".join(lines[: last_def_line + 1])


def build_program(source: str, function_to_test: str | None, args: list[Any]) -> str:
    if not function_to_test or function_to_test == MAIN:
        return source
    call_args = ", ".join(repr(a) for a in args)
    return f"{strip_trailing_main_code(source)}\n{function_to_test}({call_args})\n"


# --- Harness ---

class VisualTestHarness:
    def __init__(self, host: Host, comparator: Comparator | None = None,
                 tracker: CompletionTracker | None = None,
                 bridge: Callable[[str], list[Command]] = capture_commands,
                 threshold: float = DEFAULT_THRESHOLD,
                 function_to_test: str | None = None,
                 scope: tuple[str, ...] = ()):
        self.host = host
        self.comparator = comparator if comparator is not None else PixelComparator()
        self.tracker = tracker if tracker is not None else ProgressLog()
        self.bridge = bridge
        self.threshold = threshold
        self.function_to_test = function_to_test
        self.scope = tuple(scope)

    @classmethod
    def for_suite(cls, suite: TurtleTestSuite, host: Host, **kwargs) -> "VisualTestHarness":
        return cls(host, threshold=suite.threshold,
                   function_to_test=suite.function_to_test, **kwargs)

    def run(self, source: str, test_cases: list[TurtleTestCase],
            on_progress: Callable[[list[TurtleTestResult]], None] | None = None) -> HarnessReport:
        cases = [tc for tc in test_cases if tc.reference_image]
        report = HarnessReport(total_cases=len(cases))
        results = report.results

        def publish():
            if on_progress is not None:
                on_progress(list(results))

        try:
            if not self.host.ready:
                raise EngineNotReadyError("Turtle engine not ready")
            if not cases:
                raise TurtleError("No visual test cases found")

            for case in cases:
                publish()
                result = self._run_case(source, case)
                results.append(result)
                publish()
                logger.info("%s: %s (similarity %.4f)", case.description,
                            "passed" if result.passed else "failed", result.similarity)
                if not result.passed:
                    break
        except TurtleError as e:
            report.error = str(e)
            logger.error("Visual test run aborted: %s", e)

        publish()
        if report.passed:
            self.tracker.report_success(*self.scope, source=source)
        else:
            self.tracker.report_attempt(*self.scope)
        return report

    def _run_case(self, source: str, case: TurtleTestCase) -> TurtleTestResult:
        program = build_program(source, self.function_to_test, case.input)
        self.host.run(self.bridge(program))
        self.host.wait_frames(SETTLE_FRAMES)

        try:
            snapshot = self.host.snapshot()
        except CaptureError as e:
            logger.warning("%s: %s", case.description, e)
            return TurtleTestResult(case.description, False, 0.0, case.reference_image)

        try:
            comparison = self.comparator.compare(
                snapshot, case.reference_image, threshold=self.threshold, include_diff=True)
        except ComparisonError:
            raise
        except Exception as e:
            raise ComparisonError(f"Comparison failed: {e}") from e

        return TurtleTestResult(
            description=case.description,
            passed=comparison.passed,
            similarity=comparison.similarity,
            reference_image=case.reference_image,
            actual_snapshot=snapshot,
            diff_image=comparison.diff_image,
        )
