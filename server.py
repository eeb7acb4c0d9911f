"""Entry point: starts MCP server thread + pygame main loop."""

import os
# Suppress pygame welcome message before importing; it prints to stdout
# which would corrupt the MCP stdio JSON-RPC stream.
os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "1"

import logging
import queue
import sys
import threading

import pygame

from engine import TurtleEngine
from tools import create_mcp_server
from world import HEIGHT, WIDTH

logger = logging.getLogger(__name__)

TOOLBAR_H = 40
WINDOW_H = HEIGHT + TOOLBAR_H
FPS = 60

# Toolbar colours
TB_BG = (220, 220, 220)
TB_BTN = (180, 180, 180)
TB_BTN_HOVER = (160, 160, 160)
TB_TEXT = (30, 30, 30)


def run_mcp_server(mcp_server):
    """Target for the daemon thread: runs the MCP stdio server."""
    mcp_server.run(transport="stdio")


def _save_dialog_and_write(engine: TurtleEngine):
    """Open a Tk file-save dialog (runs on main thread) and write the PNG."""
    import tkinter as tk
    from tkinter import filedialog
    root = tk.Tk()
    root.withdraw()
    path = filedialog.asksaveasfilename(
        defaultextension=".png",
        filetypes=[("PNG image", "*.png"), ("All files", "*.*")],
        title="Save drawing as…",
    )
    root.destroy()
    if path:
        engine.canvas.save_png(path)


def _handle_request(cmd: dict, engine: TurtleEngine):
    """Process a request/response command from an MCP tool thread."""
    event: threading.Event = cmd["_event"]
    result: dict = cmd["_result"]
    action = cmd.get("action")
    try:
        if action == "execute":
            result["data"] = engine.execute(cmd["commands"])
        elif action == "wait_frames":
            result["data"] = engine.after_frames(cmd.get("count", 1))
        elif action == "snapshot":
            result["data"] = engine.snapshot()
        elif action == "stop":
            engine.stop()
            result["data"] = None
        elif action == "clear":
            engine.clear()
            result["data"] = None
        elif action == "state":
            result["data"] = {**engine.world.describe(), "animating": engine.busy}
        elif action == "save_file":
            path = cmd["path"]
            engine.canvas.save_png(path)
            result["data"] = f"Canvas saved to {path}"
        else:
            result["error"] = f"Unknown request action: {action}"
    except Exception as e:
        result["error"] = str(e)
    finally:
        event.set()


def process_pending(command_queue: queue.Queue, engine: TurtleEngine):
    """Drain all pending commands from the queue into the engine."""
    while True:
        try:
            cmd = command_queue.get_nowait()
        except queue.Empty:
            break

        # Only request/response commands (with an _event key) are accepted
        if "_event" in cmd:
            _handle_request(cmd, engine)
        else:
            logger.warning("Ignoring command without a reply channel: %r", cmd.get("action"))


def _button(screen, font, rect: pygame.Rect, label: str, mouse_pos):
    btn_color = TB_BTN_HOVER if rect.collidepoint(mouse_pos) else TB_BTN
    pygame.draw.rect(screen, btn_color, rect, border_radius=4)
    pygame.draw.rect(screen, TB_TEXT, rect, width=1, border_radius=4)
    text = font.render(label, True, TB_TEXT)
    screen.blit(text, text.get_rect(center=rect.center))


def main():
    logging.basicConfig(
        level=logging.INFO, stream=sys.stderr,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    # Shared command queue between MCP thread and pygame main thread
    command_queue = queue.Queue()

    mcp_server = create_mcp_server(command_queue, WIDTH, HEIGHT)
    mcp_thread = threading.Thread(target=run_mcp_server, args=(mcp_server,), daemon=True)
    mcp_thread.start()

    # Initialize pygame on the main thread
    pygame.init()
    screen = pygame.display.set_mode((WIDTH, WINDOW_H))
    pygame.display.set_caption("Turtle MCP")
    clock = pygame.time.Clock()

    engine = TurtleEngine(WIDTH, HEIGHT)

    font = pygame.font.SysFont(None, 24)
    save_btn_rect = pygame.Rect(10, 8, 70, 26)
    stop_btn_rect = pygame.Rect(90, 8, 70, 26)

    running = True
    while running:
        mouse_pos = pygame.mouse.get_pos()

        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                if save_btn_rect.collidepoint(event.pos):
                    _save_dialog_and_write(engine)
                elif stop_btn_rect.collidepoint(event.pos):
                    engine.stop()

        process_pending(command_queue, engine)
        engine.tick()

        # --- Render ---
        pygame.draw.rect(screen, TB_BG, (0, 0, WIDTH, TOOLBAR_H))
        _button(screen, font, save_btn_rect, "Save", mouse_pos)
        _button(screen, font, stop_btn_rect, "Stop", mouse_pos)

        # Canvas (offset below toolbar)
        screen.blit(engine.canvas.surface, (0, TOOLBAR_H))
        pygame.display.flip()
        clock.tick(FPS)

    engine.destroy()
    pygame.quit()


if __name__ == "__main__":
    main()
