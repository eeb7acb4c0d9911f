"""MCP tool definitions. Forwards turtle work to the pygame thread via a queue."""

import json
import queue
import threading
from concurrent import futures
from concurrent.futures import Future
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from capture import capture_commands
from commands import Command, dump_commands, parse_commands
from comparison import DEFAULT_THRESHOLD, PixelComparator
from errors import ExecutionError
from harness import MAIN, ProgressLog, TurtleTestCase, VisualTestHarness

REQUEST_TIMEOUT = 5.0
RUN_TIMEOUT = 300.0


def request_response(command_queue: queue.Queue, cmd: dict, timeout: float = REQUEST_TIMEOUT):
    """Send a command to the main thread and wait for a response."""
    event = threading.Event()
    result: dict = {}
    cmd["_event"] = event
    cmd["_result"] = result
    command_queue.put(cmd)
    if not event.wait(timeout):
        raise TimeoutError("Main thread did not respond in time")
    if "error" in result:
        raise RuntimeError(result["error"])
    return result["data"]


class QueueHost:
    """Harness host for an engine that lives on another thread.

    Every call becomes a request on the command queue; animation and frame
    waits come back as Futures that the main loop resolves while ticking.
    """

    ready = True

    def __init__(self, command_queue: queue.Queue, run_timeout: float = RUN_TIMEOUT):
        self.command_queue = command_queue
        self.run_timeout = run_timeout

    def _request(self, cmd: dict):
        return request_response(self.command_queue, cmd)

    def run(self, commands: list[Command] | list[dict]):
        if any(isinstance(c, dict) for c in commands):
            commands = parse_commands(commands)
        future: Future = self._request({"action": "execute", "commands": dump_commands(commands)})
        try:
            future.result(timeout=self.run_timeout)
        except futures.TimeoutError as e:
            self._request({"action": "stop"})
            raise ExecutionError(f"Drawing did not finish within {self.run_timeout:.0f}s") from e

    def wait_frames(self, count: int):
        future: Future = self._request({"action": "wait_frames", "count": count})
        future.result(timeout=REQUEST_TIMEOUT)

    def snapshot(self) -> str:
        return self._request({"action": "snapshot"})


def create_mcp_server(command_queue: queue.Queue, width: int = 400, height: int = 300) -> FastMCP:
    mcp = FastMCP("turtle-mcp")
    host = QueueHost(command_queue)

    def _run(commands: list[Command], wait: bool) -> str:
        future: Future = request_response(
            command_queue, {"action": "execute", "commands": dump_commands(commands)})
        if not wait:
            return f"Started {len(commands)} commands"
        future.result(timeout=RUN_TIMEOUT)
        return f"Ran {len(commands)} commands"

    @mcp.tool()
    def get_turtle_state() -> str:
        """Get the turtle's position (logical coordinates, origin at centre, Y up), heading and pen."""
        state = request_response(command_queue, {"action": "state"})
        return json.dumps({"canvas": [width, height], **state})

    @mcp.tool()
    def run_commands(commands: list[dict[str, Any]], wait: bool = True) -> str:
        """Reset the canvas and animate a turtle command stream.

        Each command is an object tagged by "type": forward/backward {distance},
        right/left {angle}, goto {x, y}, penup, pendown, setStrokeColor {color},
        setFillColor {color}, setStrokeWidth {size}, setSpeed {speed 0-10, 0 = instant},
        beginFill, endFill, clear."""
        return _run(parse_commands(commands), wait)

    @mcp.tool()
    def run_program(source: str, wait: bool = True) -> str:
        """Run a Python program that uses the `turtle` module and animate what it draws."""
        return _run(capture_commands(source), wait)

    @mcp.tool()
    def stop_animation() -> str:
        """Stop the running animation, keeping what has been drawn so far."""
        request_response(command_queue, {"action": "stop"})
        return "Animation stopped"

    @mcp.tool()
    def clear_canvas() -> str:
        """Cancel any animation and reset the turtle to the centre of a blank canvas."""
        request_response(command_queue, {"action": "clear"})
        return "Canvas cleared"

    @mcp.tool()
    def save_canvas(file_path: str) -> str:
        """Save the current canvas to a PNG file at the given path."""
        return request_response(command_queue, {"action": "save_file", "path": file_path})

    @mcp.tool()
    def run_visual_tests(source: str, test_cases: list[dict[str, Any]],
                         function_to_test: Optional[str] = None,
                         threshold: float = DEFAULT_THRESHOLD) -> str:
        """Grade a turtle program against reference images.

        test_cases: [{"description", "input": [args...], "reference_image": path}].
        function_to_test: name of the function to call with each case's input,
        or omit to run the whole program. Stops at the first failing case."""
        harness = VisualTestHarness(
            host, comparator=PixelComparator(), tracker=ProgressLog(),
            threshold=threshold, function_to_test=function_to_test or MAIN,
        )
        report = harness.run(source, [TurtleTestCase(**tc) for tc in test_cases])
        return json.dumps({
            "passed": report.passed,
            "error": report.error,
            "cases": report.total_cases,
            "results": [r.to_dict() for r in report.results],
        })

    return mcp
