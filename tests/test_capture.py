import sys

import pytest

from capture import capture_commands, record_commands
from commands import SetFillColor, SetStrokeColor
from errors import ExecutionError


def _types(source: str) -> list[str]:
    return [c["type"] for c in record_commands(source)]


def test_module_functions() -> None:
    source = """
import turtle
turtle.speed(0)
turtle.pencolor("red")
turtle.width(3)
turtle.forward(100)
turtle.right(90)
turtle.penup()
turtle.goto(10, -20)
turtle.pendown()
turtle.backward(5)
turtle.left(45)
turtle.done()
"""
    assert _types(source) == [
        "setSpeed", "setStrokeColor", "setStrokeWidth", "forward", "right",
        "penup", "goto", "pendown", "backward", "left",
    ]


def test_star_import_and_aliases() -> None:
    source = """
from turtle import *
fd(10)
rt(90)
bk(10)
lt(90)
pu()
setpos((1, 2))
pd()
"""
    commands = record_commands(source)
    assert [c["type"] for c in commands] == [
        "forward", "right", "backward", "left", "penup", "goto", "pendown",
    ]
    assert commands[5] == {"type": "goto", "x": 1.0, "y": 2.0}


def test_turtle_instances_share_the_stream() -> None:
    source = """
import turtle
t = turtle.Turtle()
t.forward(10)
screen = turtle.Screen()
screen.bgcolor("black")
turtle.forward(20)
"""
    commands = record_commands(source)
    assert [c["distance"] for c in commands] == [10.0, 20.0]


def test_color_sets_pen_and_fill() -> None:
    commands = capture_commands('import turtle\nturtle.color("blue")\nturtle.color("red", "green")\n')
    assert [type(c) for c in commands] == [SetStrokeColor, SetFillColor] * 2
    assert commands[2].color == "red"
    assert commands[3].color == "green"


def test_color_triples() -> None:
    commands = record_commands("import turtle\nturtle.pencolor(255, 0, 0)\nturtle.fillcolor((0, 0.5, 1))\n")
    assert commands[0]["color"] == [255.0, 0.0, 0.0]
    assert commands[1]["color"] == [0.0, 0.5, 1.0]


@pytest.mark.parametrize("value, expected", [("fastest", 0), ("slowest", 1), (3, 3), (20, 10)])
def test_speed(value, expected) -> None:
    (command,) = record_commands(f"import turtle\nturtle.speed({value!r})\n")
    assert command == {"type": "setSpeed", "speed": expected}


def test_circle_turns_full_circle() -> None:
    commands = record_commands("import turtle\nturtle.circle(50)\n")
    turns = sum(c["angle"] for c in commands if c["type"] == "left")
    forwards = [c for c in commands if c["type"] == "forward"]
    assert turns == pytest.approx(360)
    assert len(forwards) >= 8
    assert not any(c["type"] == "right" for c in commands)


def test_fill_calls() -> None:
    assert _types("import turtle\nturtle.begin_fill()\nturtle.end_fill()\nturtle.clear()\n") == [
        "beginFill", "endFill", "clear",
    ]


def test_functions_and_main_guard() -> None:
    source = """
import turtle

def square(size):
    for _ in range(4):
        turtle.forward(size)
        turtle.right(90)

if __name__ == "__main__":
    square(30)
"""
    assert _types(source) == ["forward", "right"] * 4


def test_other_imports_still_work() -> None:
    assert _types("import math\nimport turtle\nturtle.forward(math.sqrt(4))\n") == ["forward"]


def test_syntax_error_reports_line() -> None:
    with pytest.raises(ExecutionError) as info:
        record_commands("import turtle\nturtle.forward(10\n")
    assert info.value.line is not None
    assert str(info.value).startswith(f"Error on line {info.value.line}")


def test_runtime_error_reports_line() -> None:
    with pytest.raises(ExecutionError) as info:
        record_commands("import turtle\nturtle.forward(10)\nturtle.jump(5)\n")
    assert info.value.line == 3
    assert "AttributeError" in str(info.value)


def test_command_limit() -> None:
    with pytest.raises(ExecutionError, match="Too many drawing commands"):
        record_commands("import turtle\nwhile True:\n    turtle.forward(1)\n", limit=100)


def test_sys_exit_keeps_commands() -> None:
    assert _types("import sys, turtle\nturtle.forward(1)\nsys.exit()\nturtle.forward(2)\n") == ["forward"]


def test_real_turtle_module_untouched() -> None:
    before = sys.modules.get("turtle")
    record_commands("import turtle\nturtle.forward(1)\n")
    assert sys.modules.get("turtle") is before


def test_runs_do_not_share_state() -> None:
    record_commands("import turtle\nturtle.forward(1)\n")
    assert _types("import turtle\nturtle.left(1)\n") == ["left"]


@pytest.mark.parametrize("statement", [
    "import subprocess",
    "import socket",
    "from urllib import request",
    "import http.client",
    "import builtins",
    "import importlib",
])
def test_blocked_imports(statement) -> None:
    with pytest.raises(ExecutionError, match="not available to turtle programs") as info:
        record_commands(f"import turtle\n{statement}\n")
    assert info.value.line == 2


def test_os_without_process_functions() -> None:
    with pytest.raises(ExecutionError, match="AttributeError") as info:
        record_commands("import os\nos.system('true')\n")
    assert info.value.line == 2
    source = "import os.path\nimport turtle\nturtle.forward(len(os.path.join('a', 'b')))\n"
    assert record_commands(source) == [{"type": "forward", "distance": 3.0}]


def test_os_module_is_per_run() -> None:
    record_commands("import os\nos.marker = 1\n")
    with pytest.raises(ExecutionError, match="AttributeError"):
        record_commands("import os\nos.marker\n")


def test_step_budget() -> None:
    with pytest.raises(ExecutionError, match="more than 1000 steps") as info:
        record_commands("while True:\n    pass\n", max_steps=1000)
    assert info.value.line in (1, 2)


def test_time_budget() -> None:
    with pytest.raises(ExecutionError, match="longer than"):
        record_commands("while True:\n    pass\n", time_limit=0.01)


def test_budget_not_caught_by_except_exception() -> None:
    source = """
while True:
    try:
        pass
    except Exception:
        pass
"""
    with pytest.raises(ExecutionError, match="steps"):
        record_commands(source, max_steps=500)


def test_budget_swallowed_by_bare_except_still_fails() -> None:
    source = """
import turtle
try:
    while True:
        pass
except:
    pass
turtle.forward(1)
"""
    with pytest.raises(ExecutionError, match="steps"):
        record_commands(source, max_steps=500)


def test_budget_counts_learner_functions() -> None:
    source = """
def spin():
    while True:
        pass

spin()
"""
    with pytest.raises(ExecutionError, match="steps"):
        record_commands(source, max_steps=500)


def test_tracer_restored_after_run() -> None:
    before = sys.gettrace()
    record_commands("import turtle\nturtle.forward(1)\n")
    with pytest.raises(ExecutionError):
        record_commands("while True:\n    pass\n", max_steps=100)
    assert sys.gettrace() is before
