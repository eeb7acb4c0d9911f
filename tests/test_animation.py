import math

import pytest

from animation import (
    EPSILON,
    CancellationToken,
    InstantTask,
    MoveTask,
    Scheduler,
    TurnTask,
    approach,
    task_for,
)
from commands import parse_commands
from world import TurtleWorld


def _square(side: float = 100) -> list[dict]:
    return [{"type": "forward", "distance": side}, {"type": "right", "angle": 90}] * 4


class TestApproach:
    def test_infinite_rate_arrives_immediately(self) -> None:
        assert approach(250.0, math.inf) == (250.0, True)

    def test_finite_rate_steps(self) -> None:
        assert approach(10.0, 2.0) == (2.0, False)

    def test_within_epsilon_snaps(self) -> None:
        assert approach(2.0 + EPSILON / 2, 2.0) == (2.0 + EPSILON / 2, True)

    def test_zero_distance(self) -> None:
        assert approach(0.0, 3.0) == (0.0, True)


class TestTaskMapping:
    @pytest.mark.parametrize(
        "command, kind, cls",
        [
            ({"type": "forward", "distance": 10}, "move", MoveTask),
            ({"type": "backward", "distance": 10}, "move", MoveTask),
            ({"type": "goto", "x": 1, "y": 2}, "move", MoveTask),
            ({"type": "right", "angle": 10}, "turn", TurnTask),
            ({"type": "left", "angle": 10}, "turn", TurnTask),
            ({"type": "penup"}, "instant", InstantTask),
            ({"type": "setSpeed", "speed": 3}, "instant", InstantTask),
            ({"type": "endFill"}, "instant", InstantTask),
        ],
    )
    def test_kinds(self, command: dict, kind: str, cls: type) -> None:
        task = task_for(parse_commands([command])[0])
        assert isinstance(task, cls)
        assert task.kind == kind

    def test_mapping_does_not_touch_world(self) -> None:
        world = TurtleWorld()
        for command in parse_commands(_square()):
            task_for(command)
        assert world.segments == []
        assert world.pose.heading == -90


class TestCancellationToken:
    def test_interrupt_runs_callbacks_once(self) -> None:
        calls = []
        token = CancellationToken()
        token.on_interrupt(lambda: calls.append(1))
        token.interrupt()
        token.interrupt()
        assert calls == [1]
        assert token.interrupted

    def test_late_registration_fires_immediately(self) -> None:
        token = CancellationToken()
        token.interrupt()
        calls = []
        token.on_interrupt(lambda: calls.append(1))
        assert calls == [1]


class TestScheduler:
    def _run(self, commands: list[dict], world: TurtleWorld) -> int:
        scheduler = Scheduler()
        future = scheduler.start([task_for(c) for c in parse_commands(commands)])
        steps = 0
        while not future.done():
            scheduler.step(world)
            steps += 1
        return steps

    def test_empty_run_resolves_immediately(self) -> None:
        scheduler = Scheduler()
        assert scheduler.start([]).done()
        assert not scheduler.busy

    def test_speed_zero_is_one_step_per_command(self) -> None:
        world = TurtleWorld()
        commands = [{"type": "setSpeed", "speed": 0}] + _square()
        assert self._run(commands, world) == len(commands)

    def test_closed_square_returns_to_start(self) -> None:
        world = TurtleWorld()
        start = world.position
        self._run([{"type": "setSpeed", "speed": 0}] + _square(), world)
        assert world.pose.heading == pytest.approx(-90)
        assert math.dist(world.position, start) < EPSILON
        assert len(world.segments) == 4

    def test_animated_square_matches_instant(self) -> None:
        instant, animated = TurtleWorld(), TurtleWorld()
        self._run([{"type": "setSpeed", "speed": 0}] + _square(60), instant)
        steps = self._run([{"type": "setSpeed", "speed": 10}] + _square(60), animated)
        assert steps > len(_square()) + 1
        assert animated.position == pytest.approx(instant.position)
        assert animated.pose.heading == pytest.approx(instant.pose.heading)
        assert len(animated.segments) == len(instant.segments)

    def test_turn_stays_normalized_while_animating(self) -> None:
        world = TurtleWorld()
        world.turn_to(170)
        scheduler = Scheduler()
        scheduler.start([task_for(c) for c in parse_commands(
            [{"type": "setSpeed", "speed": 1}, {"type": "left", "angle": -40}])])
        headings = []
        while scheduler.busy:
            scheduler.step(world)
            headings.append(world.pose.heading)
        assert all(-180 < h <= 180 for h in headings)
        assert world.pose.heading == pytest.approx(-150)

    def test_moving_tracks_provisional_segment(self) -> None:
        world = TurtleWorld()
        scheduler = Scheduler()
        scheduler.start([task_for(c) for c in parse_commands(
            [{"type": "setSpeed", "speed": 1}, {"type": "forward", "distance": 50}])])
        for _ in range(5):
            scheduler.step(world)
        assert world.current_line is not None
        assert world.segments == []
        assert 100 < world.pose.y < 150

    def test_interrupt_clears_queue_and_resolves(self) -> None:
        world = TurtleWorld()
        scheduler = Scheduler()
        future = scheduler.start([task_for(c) for c in parse_commands(_square())])
        scheduler.step(world)
        scheduler.interrupt()
        assert future.done()
        assert not scheduler.queue
        assert scheduler.current is None
        assert not scheduler.step(world)

    def test_new_run_interrupts_previous(self) -> None:
        scheduler = Scheduler()
        first = scheduler.start([task_for(c) for c in parse_commands(_square())])
        second = scheduler.start([task_for(c) for c in parse_commands(_square())])
        assert first.done()
        assert not second.done()
        assert len(scheduler.queue) == 8
