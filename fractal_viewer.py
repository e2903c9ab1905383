#!/usr/bin/env python3
"""Interactive fractal viewer using Pygame + NumPy.

Five fractals share one view window over the complex plane:
  1 Mandelbrot, 2 Sierpinski triangle, 3 Koch curve, 4 Menger carpet, 5 Dragon curve.

Controls:
  Left click      recenter on the clicked point
  Mouse wheel     zoom about the cursor
  + / -           continuous zoom about the center while held
  1-5             select fractal (also writes a debug PNG)
  R               reset the view

The view (center, width, fractal) is saved to a settings file a short while
after the last change and on close, and restored on the next start.
"""

import argparse
import logging
import os
import sys

import numpy as np
import pygame
import pygame.surfarray

from fractal_render import FractalType
from fractal_settings import (
    CLICK_LOG_FILENAME,
    SETTINGS_FILENAME,
    append_click_log,
    load_settings,
    save_settings,
)
from fractal_view import HEIGHT, MAX_ITER, WIDTH, ViewController

logger = logging.getLogger(__name__)

DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")
WINDOW_TITLE = "Mandelbrot Fractal"
FRAME_RATE = 60

FONT_PATH = "C:/Windows/Fonts/arial.ttf"
FONT_SIZE = 14
COL_TEXT = (255, 255, 255)
COL_OVERLAY_BG = (0, 0, 0, 160)

FRACTAL_KEYS = {
    pygame.K_1: FractalType.MANDELBROT,
    pygame.K_2: FractalType.SIERPINSKI,
    pygame.K_3: FractalType.KOCH,
    pygame.K_4: FractalType.MENGER,
    pygame.K_5: FractalType.DRAGON,
}


class FractalViewer:
    """Pygame front end: event pump, texture upload, HUD and settings persistence."""

    def __init__(self, width=WIDTH, height=HEIGHT, data_dir=DATA_DIR,
                 settings_path=None, font_path=FONT_PATH, seed=None):
        self.width = width
        self.height = height
        self.data_dir = data_dir
        self.settings_path = settings_path or os.path.join(data_dir, SETTINGS_FILENAME)
        self.click_log_path = os.path.join(data_dir, CLICK_LOG_FILENAME)
        self.running = True

        try:
            os.makedirs(self.data_dir, exist_ok=True)
        except OSError as exc:
            logger.warning("Could not create data directory %s: %s", self.data_dir, exc)

        self.controller, needs_save = ViewController.from_settings(
            load_settings(self.settings_path), width, height,
            max_iter=MAX_ITER, rng=np.random.default_rng(seed),
        )
        if needs_save:
            save_settings(self.settings_path, self.controller.settings())

        self._init_pygame()
        self.font = self._load_font(font_path)

        self.controller.render()
        self.upload()

    def _init_pygame(self):
        pygame.init()
        self.screen = pygame.display.set_mode((self.width, self.height))
        pygame.display.set_caption(WINDOW_TITLE)
        self.clock = pygame.time.Clock()
        self.surface = pygame.Surface((self.width, self.height))

    def _load_font(self, font_path):
        candidates = [font_path, pygame.font.match_font("arial")]
        for path in candidates:
            if not path:
                continue
            try:
                return pygame.font.Font(path, FONT_SIZE)
            except (OSError, pygame.error) as exc:
                logger.debug("Font %s not loaded: %s", path, exc)
        logger.info("No overlay font available; HUD disabled")
        return None

    # ── Image upload / export ─────────────────────────────────

    def upload(self):
        """Copy the controller's RGBA buffer into the display surface."""
        arr = np.transpose(self.controller.image[..., :3], (1, 0, 2))
        pygame.surfarray.blit_array(self.surface, arr)
        self.controller.image_changed = False

    def debug_image_path(self, fractal):
        return os.path.join(self.data_dir, f"debug_fractal_{int(fractal)}.png")

    def _save_debug_image(self, fractal):
        filepath = self.debug_image_path(fractal)
        img_surface = pygame.Surface((self.width, self.height))
        pygame.surfarray.blit_array(
            img_surface, np.transpose(self.controller.image[..., :3], (1, 0, 2))
        )
        try:
            pygame.image.save(img_surface, filepath)
        except (OSError, pygame.error) as exc:
            logger.warning("Could not write %s: %s", filepath, exc)

    # ── Settings ──────────────────────────────────────────────

    def save_now(self):
        save_settings(self.settings_path, self.controller.settings())
        self.controller.mark_saved()

    def flush_pending_save(self):
        if self.controller.save_due():
            self.save_now()

    # ── HUD overlay ───────────────────────────────────────────

    def draw_overlay(self):
        if self.font is None:
            return
        lines = self.controller.status_lines()

        padding = 6
        lh = self.font.get_linesize()
        box_h = padding * 2 + lh * len(lines)
        box_w = padding * 2 + max(self.font.size(l)[0] for l in lines)

        overlay = pygame.Surface((box_w, box_h), pygame.SRCALPHA)
        overlay.fill(COL_OVERLAY_BG)
        for i, line in enumerate(lines):
            overlay.blit(self.font.render(line, True, COL_TEXT), (padding, padding + i * lh))
        self.screen.blit(overlay, (8, 8))

    # ── Event handling ────────────────────────────────────────

    def handle_events(self):
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                if self.controller.view_dirty:
                    self.save_now()
                self.running = False
                # Events queued behind QUIT are dropped; the saved view is final
                return

            if event.type == pygame.KEYDOWN:
                self._handle_keydown(event)

            elif event.type == pygame.MOUSEBUTTONDOWN:
                if event.button == 1:
                    self._handle_click(event.pos)

            elif event.type == pygame.MOUSEWHEEL:
                self._handle_zoom(event.y)

    def _handle_keydown(self, event):
        if event.key in FRACTAL_KEYS:
            fractal = FRACTAL_KEYS[event.key]
            self.controller.select_fractal(fractal)
            self._save_debug_image(fractal)
        elif event.key == pygame.K_r:
            self.controller.reset()

    def _handle_click(self, pos):
        mx, my = pos
        real, imag = self.controller.click(mx, my)
        append_click_log(self.click_log_path, mx, my, real, imag, self.controller.window.bounds)

    def _handle_zoom(self, scroll_y):
        mx, my = pygame.mouse.get_pos()
        self.controller.wheel(scroll_y, mx, my)

    def poll_held_keys(self):
        keys = pygame.key.get_pressed()
        shift = pygame.key.get_mods() & pygame.KMOD_SHIFT
        zoom_in = keys[pygame.K_PLUS] or keys[pygame.K_KP_PLUS] or (keys[pygame.K_EQUALS] and shift)
        zoom_out = keys[pygame.K_MINUS] or keys[pygame.K_KP_MINUS]
        self.controller.hold_zoom(bool(zoom_in), bool(zoom_out))

    # ── Main loop ─────────────────────────────────────────────

    def run(self):
        try:
            while self.running:
                self.handle_events()
                if not self.running:
                    break
                self.poll_held_keys()

                if self.controller.image_changed:
                    self.upload()

                self.screen.fill((0, 0, 0))
                self.screen.blit(self.surface, (0, 0))
                self.draw_overlay()
                pygame.display.flip()

                self.flush_pending_save()
                self.clock.tick(FRAME_RATE)
        finally:
            pygame.quit()


def build_parser():
    parser = argparse.ArgumentParser(description="Interactive fractal viewer.")
    parser.add_argument("--data-dir", default=DATA_DIR,
                        help="Directory for the settings file, click log and debug PNGs.")
    parser.add_argument("--settings", default=None,
                        help="Settings file path (default: <data-dir>/%s)." % SETTINGS_FILENAME)
    parser.add_argument("--font", default=FONT_PATH,
                        help="TrueType font for the overlay, tried before the system Arial.")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for the Sierpinski chaos game.")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging, including per-render diagnostics.")
    return parser


def main(argv=None):
    opt = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if opt.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        viewer = FractalViewer(data_dir=opt.data_dir, settings_path=opt.settings,
                               font_path=opt.font, seed=opt.seed)
    except pygame.error as exc:
        logger.error("Could not open the display: %s", exc)
        pygame.quit()
        return 1
    viewer.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
