"""
capture.py
Runs learner Python source against a recording ``turtle`` module.

Every drawing call is appended to a list of command dicts in the wire
schema of ``commands.py``; nothing is drawn here. The learner's
``import turtle`` is intercepted by a per-run ``__import__`` so the real
standard-library module is never touched and runs do not share state.
"""

import builtins
import logging
import math
import random
import sys
import time
import traceback
import types

from commands import Command, parse_commands
from errors import ExecutionError

logger = logging.getLogger(__name__)

LEARNER_FILENAME = "<learner>"
MAX_COMMANDS = 100_000
MAX_STEPS = 5_000_000  # learner source lines executed
TIME_LIMIT = 10.0  # seconds

SPEED_NAMES = {"fastest": 0, "fast": 10, "normal": 6, "slow": 3, "slowest": 1}


class CommandLimitError(RuntimeError):
    pass


class BudgetExceededError(BaseException):
    """Not an Exception, so learner ``except Exception`` blocks let it through."""


# Modules a learner program may not import.
BLOCKED_MODULES = frozenset({
    # process spawning / shell access
    "subprocess", "multiprocessing", "pty", "tty",
    # network
    "socket", "socketserver", "asyncio", "asynchat", "asyncore",
    "http", "urllib", "xmlrpc", "ftplib", "smtplib", "poplib", "imaplib",
    "nntplib", "telnetlib", "ssl", "select", "selectors",
    # low-level OS / system
    "ctypes", "mmap", "signal", "fcntl", "grp", "pwd", "termios", "resource",
    # unsafe serialisation
    "pickle", "pickletools", "shelve", "marshal",
    # import machinery and the real builtins (used to bypass the import hook)
    "importlib", "pkgutil", "zipimport", "builtins",
    # interactive / debugger
    "code", "codeop", "pdb", "bdb", "trace", "tracemalloc",
    # GUI toolkits
    "tkinter", "wx", "PyQt5", "PyQt6", "PySide2", "PySide6", "gi", "webbrowser",
    # Windows-specific
    "winreg", "winsound", "msvcrt",
})

# os functions that spawn or replace processes.
BLOCKED_OS = frozenset({
    "system", "popen",
    "execv", "execve", "execvp", "execvpe", "execl", "execle", "execlp", "execlpe",
    "fork", "forkpty",
    "spawnl", "spawnle", "spawnlp", "spawnlpe", "spawnv", "spawnve", "spawnvp", "spawnvpe",
    "posix_spawn", "posix_spawnp", "_exit", "kill", "killpg", "startfile",
})


class _Recorder:
    def __init__(self, limit: int = MAX_COMMANDS):
        self.commands: list[dict] = []
        self.limit = limit

    def add(self, command: dict):
        if len(self.commands) >= self.limit:
            raise CommandLimitError(f"Too many drawing commands (limit {self.limit})")
        self.commands.append(command)


def _color_arg(args: tuple):
    """``color("red")``, ``color((1, 0, 0))`` and ``color(255, 0, 0)`` forms."""
    if len(args) == 1:
        value = args[0]
        if isinstance(value, str):
            return value
        if isinstance(value, (tuple, list)) and len(value) == 3:
            return [float(v) for v in value]
    elif len(args) == 3:
        return [float(v) for v in args]
    raise TypeError(f"Unsupported colour arguments: {args!r}")


class CaptureTurtle:
    """Records turtle calls. Every instance drives the same single cursor."""

    def __init__(self, recorder: _Recorder):
        self._recorder = recorder
        self._speed = 6
        self._visible = True

    def _add(self, command: dict):
        self._recorder.add(command)

    # movement
    def forward(self, distance):
        self._add({"type": "forward", "distance": float(distance)})

    def backward(self, distance):
        self._add({"type": "backward", "distance": float(distance)})

    def right(self, angle):
        self._add({"type": "right", "angle": float(angle)})

    def left(self, angle):
        self._add({"type": "left", "angle": float(angle)})

    def goto(self, x, y=None):
        if y is None:
            x, y = x
        self._add({"type": "goto", "x": float(x), "y": float(y)})

    def circle(self, radius, extent=None, steps=None):
        """Approximate an arc with a polygon, turning left for positive radii."""
        if extent is None:
            extent = 360
        n = steps if steps else max(8, int(abs(radius) * math.pi * abs(extent) / 180 / 3))
        step_angle = extent / n
        step_length = 2 * abs(radius) * math.sin(math.radians(abs(step_angle) / 2))
        turn = self.left if radius >= 0 else self.right
        turn(step_angle / 2)
        for i in range(n):
            self.forward(step_length)
            turn(step_angle if i < n - 1 else step_angle / 2)

    # pen
    def penup(self):
        self._add({"type": "penup"})

    def pendown(self):
        self._add({"type": "pendown"})

    def pencolor(self, *args):
        self._add({"type": "setStrokeColor", "color": _color_arg(args)})

    def fillcolor(self, *args):
        self._add({"type": "setFillColor", "color": _color_arg(args)})

    def color(self, *args):
        if len(args) == 2:
            self.pencolor(args[0])
            self.fillcolor(args[1])
        else:
            self.pencolor(*args)
            self.fillcolor(*args)

    def random_color(self):
        self.color(random.randint(0, 255), random.randint(0, 255), random.randint(0, 255))

    def width(self, width=None):
        if width is not None:
            self._add({"type": "setStrokeWidth", "size": float(width)})

    def speed(self, speed=None):
        if speed is None:
            return self._speed
        if isinstance(speed, str):
            speed = SPEED_NAMES.get(speed.lower(), 6)
        self._speed = max(0, min(10, int(speed)))
        self._add({"type": "setSpeed", "speed": self._speed})

    # fill
    def begin_fill(self):
        self._add({"type": "beginFill"})

    def end_fill(self):
        self._add({"type": "endFill"})

    def clear(self):
        self._add({"type": "clear"})

    # accepted and ignored
    def hideturtle(self):
        self._visible = False

    def showturtle(self):
        self._visible = True

    def isvisible(self):
        return self._visible

    def shape(self, name=None):
        pass

    fd, bk, back, rt, lt = forward, backward, backward, right, left
    setpos = setposition = goto
    pu, up, pd, down = penup, penup, pendown, pendown
    pensize = width
    ht, st = hideturtle, showturtle


class _Screen:
    def __getattr__(self, name):
        return lambda *args, **kwargs: None


_MODULE_FUNCTIONS = (
    "forward", "fd", "backward", "bk", "back", "right", "rt", "left", "lt",
    "goto", "setpos", "setposition", "circle",
    "penup", "pu", "up", "pendown", "pd", "down",
    "pencolor", "fillcolor", "color", "random_color", "width", "pensize", "speed",
    "begin_fill", "end_fill", "clear",
    "hideturtle", "ht", "showturtle", "st", "isvisible", "shape",
)

_NO_OPS = ("done", "mainloop", "exitonclick", "bye", "tracer", "update", "bgcolor", "title", "setup")


def make_turtle_module(recorder: _Recorder) -> types.ModuleType:
    """Build a fresh ``turtle`` module bound to one recorder."""
    module = types.ModuleType("turtle")
    cursor = CaptureTurtle(recorder)
    for name in _MODULE_FUNCTIONS:
        setattr(module, name, getattr(cursor, name))
    for name in _NO_OPS:
        setattr(module, name, lambda *args, **kwargs: None)
    module.Turtle = lambda *args, **kwargs: CaptureTurtle(recorder)
    module.Pen = module.RawTurtle = module.Turtle
    module.Screen = lambda *args, **kwargs: _Screen()
    module.__all__ = list(_MODULE_FUNCTIONS) + list(_NO_OPS) + ["Turtle", "Screen"]
    return module


def _learner_line(exc: BaseException) -> int | None:
    frames = [f for f in traceback.extract_tb(exc.__traceback__) if f.filename == LEARNER_FILENAME]
    return frames[-1].lineno if frames else None


class _Budget:
    """Line-event tracer bounding how long learner code may run.

    Only frames compiled from learner source are traced. CPython drops a
    tracer that raises, so the budget error is raised once; a bare
    ``except:`` in learner code can still swallow it, and the run is then
    reported as over budget when it ends.
    """

    def __init__(self, max_steps: int, time_limit: float):
        self.max_steps = max_steps
        self.time_limit = time_limit
        self.deadline = time.monotonic() + time_limit
        self.steps = 0
        self.exceeded: str | None = None

    def trace(self, frame, event, arg):
        if frame.f_code.co_filename != LEARNER_FILENAME:
            return None
        return self._line

    def _line(self, frame, event, arg):
        if event == "line":
            self.steps += 1
            if self.steps > self.max_steps:
                self.exceeded = f"Program ran more than {self.max_steps} steps"
            elif self.steps % 1000 == 0 and time.monotonic() > self.deadline:
                self.exceeded = f"Program ran longer than {self.time_limit:g}s"
            if self.exceeded is not None:
                raise BudgetExceededError(self.exceeded)
        return self._line


def _safe_os() -> types.ModuleType:
    import os

    module = types.ModuleType("os")
    module.__dict__.update({k: v for k, v in vars(os).items() if k not in BLOCKED_OS})
    return module


def record_commands(source: str, limit: int = MAX_COMMANDS, max_steps: int = MAX_STEPS,
                    time_limit: float = TIME_LIMIT) -> list[dict]:
    """Execute ``source`` and return the raw command dicts it produced.

    Imports of ``BLOCKED_MODULES`` fail, ``os`` comes without its process
    functions, and the run is cut off after ``max_steps`` learner lines or
    ``time_limit`` seconds.
    """
    recorder = _Recorder(limit)
    turtle_module = make_turtle_module(recorder)
    os_module = _safe_os()
    real_import = builtins.__import__

    def _import(name, globals=None, locals=None, fromlist=(), level=0):
        if level == 0:
            top = name.partition(".")[0]
            if top in BLOCKED_MODULES:
                raise ImportError(f"Module '{name}' is not available to turtle programs")
            if name == "turtle":
                return turtle_module
            if name == "os" or (top == "os" and not fromlist):
                return os_module
        return real_import(name, globals, locals, fromlist, level)

    guest_builtins = dict(vars(builtins))
    guest_builtins["__import__"] = _import
    namespace = {"__name__": "__main__", "__builtins__": guest_builtins}

    try:
        code = compile(source, LEARNER_FILENAME, "exec")
    except SyntaxError as e:
        raise ExecutionError(f"SyntaxError: {e.msg}", line=e.lineno) from e

    budget = _Budget(max_steps, time_limit)
    previous_trace = sys.gettrace()
    sys.settrace(budget.trace)
    try:
        exec(code, namespace)
    except BudgetExceededError as e:
        raise ExecutionError(str(e), line=_learner_line(e)) from e
    except SystemExit:
        pass
    except Exception as e:
        raise ExecutionError(f"{type(e).__name__}: {e}", line=_learner_line(e)) from e
    finally:
        sys.settrace(previous_trace)

    if budget.exceeded is not None:
        raise ExecutionError(budget.exceeded)
    logger.debug("Captured %d commands in %d steps", len(recorder.commands), budget.steps)
    return recorder.commands


def capture_commands(source: str) -> list[Command]:
    """Bridge from learner source to a validated command stream."""
    return parse_commands(record_commands(source))
