"""CLI for turtle-mcp."""

import logging
import sys
from pathlib import Path

import click


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def main(verbose: bool):
    """turtle-mcp - animated turtle canvas and visual grader."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO, stream=sys.stderr,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


@main.command()
def serve():
    """Open the canvas window and serve MCP tools over stdio."""
    from server import main as serve_main

    serve_main()


@main.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", required=True, type=Path)
@click.option("--pixel-ratio", default=1.0, type=float)
def render(source: Path, output: Path, pixel_ratio: float):
    """Run a turtle program headless and save the final frame."""
    from capture import capture_commands
    from engine import TurtleEngine
    from errors import TurtleError
    from harness import SETTLE_FRAMES
    from hosts import HeadlessHost

    host = HeadlessHost(TurtleEngine(pixel_ratio=pixel_ratio))
    try:
        host.run(capture_commands(source.read_text()))
    except TurtleError as e:
        raise click.ClickException(str(e)) from e
    host.wait_frames(SETTLE_FRAMES)
    host.engine.canvas.save_png(str(output))
    click.echo(f"Saved {output}")


@main.command()
@click.argument("suite", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--threshold", "-t", type=float, help="Override the suite's pass threshold")
def grade(suite: Path, source: Path, threshold: float | None):
    """Grade SOURCE against the reference images in SUITE (JSON)."""
    from harness import TurtleTestSuite, VisualTestHarness
    from hosts import HeadlessHost

    test_suite = TurtleTestSuite.load(suite)
    if threshold is not None:
        test_suite.threshold = threshold
    harness = VisualTestHarness.for_suite(test_suite, HeadlessHost())
    report = harness.run(source.read_text(), test_suite.test_cases)

    for result in report.results:
        mark = "PASS" if result.passed else "FAIL"
        click.echo(f"{mark}  {result.description}  (similarity {result.similarity:.4f})")
    if report.error:
        click.echo(f"ERROR  {report.error}", err=True)
    click.echo(f"{sum(r.passed for r in report.results)}/{report.total_cases} passed")
    sys.exit(0 if report.passed else 1)


if __name__ == "__main__":
    main()
