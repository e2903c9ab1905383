"""View model for the fractal viewer.

The visible region of the complex plane is an axis-aligned window
(r_min, r_max, i_min, i_max) mapped onto a W x H raster. Pixel Y grows
downward while the imaginary axis grows upward, so row 0 maps to i_max.
"""

import logging
import time
from dataclasses import dataclass, replace

import numpy as np

from fractal_render import FractalType, map_range, render_fractal
from fractal_settings import Settings

logger = logging.getLogger(__name__)

WIDTH = 640
HEIGHT = 480
MAX_ITER = 100

INIT_BOUNDS = (-2.5, 1.0, -1.0, 1.0)
INIT_WIDTH = INIT_BOUNDS[1] - INIT_BOUNDS[0]

WHEEL_ZOOM_BASE = 0.98
HOLD_ZOOM_IN = 0.98
HOLD_ZOOM_OUT = 1.02
HOLD_TICK_NS = 50_000_000
SAVE_DEBOUNCE_NS = 200_000_000


@dataclass(frozen=True)
class ViewWindow:
    """A rectangle of the complex plane shown on a width x height raster."""

    r_min: float
    r_max: float
    i_min: float
    i_max: float
    width: int = WIDTH
    height: int = HEIGHT

    def __post_init__(self):
        if self.width <= 1 or self.height <= 1:
            raise ValueError(
                f"raster must be larger than 1x1, got {self.width}x{self.height}"
            )

    @classmethod
    def initial(cls, width=WIDTH, height=HEIGHT):
        return cls(*INIT_BOUNDS, width=width, height=height)

    @classmethod
    def from_center(cls, center_real, center_imag, span, width=WIDTH, height=HEIGHT):
        """Window span wide around a center; the vertical span follows the raster aspect."""
        half_w = span / 2.0
        half_h = span * (height / width) / 2.0
        return cls(
            center_real - half_w, center_real + half_w,
            center_imag - half_h, center_imag + half_h,
            width=width, height=height,
        )

    @property
    def bounds(self):
        return self.r_min, self.r_max, self.i_min, self.i_max

    @property
    def center(self):
        return (self.r_min + self.r_max) / 2.0, (self.i_min + self.i_max) / 2.0

    @property
    def span_real(self):
        return self.r_max - self.r_min

    @property
    def span_imag(self):
        return self.i_max - self.i_min

    # ── pixel <-> complex ─────────────────────────────────────

    def pixel_to_real(self, px):
        return map_range(float(px), 0.0, float(self.width - 1), self.r_min, self.r_max)

    def pixel_to_imag(self, py):
        return map_range(float(py), 0.0, float(self.height - 1), self.i_max, self.i_min)

    def pixel_to_complex(self, px, py):
        return self.pixel_to_real(px), self.pixel_to_imag(py)

    def real_to_pixel(self, r):
        # int() truncates toward zero, not to the nearest pixel
        return int(map_range(r, self.r_min, self.r_max, 0.0, float(self.width - 1)))

    def imag_to_pixel(self, i):
        return int(map_range(i, self.i_max, self.i_min, 0.0, float(self.height - 1)))

    # ── transforms ────────────────────────────────────────────

    def recenter(self, center_real, center_imag):
        half_w = self.span_real / 2.0
        half_h = self.span_imag / 2.0
        return replace(
            self,
            r_min=center_real - half_w, r_max=center_real + half_w,
            i_min=center_imag - half_h, i_max=center_imag + half_h,
        )

    def zoom_about(self, anchor_real, anchor_imag, factor):
        """Scale every bound toward (or away from) an anchor point."""
        return replace(
            self,
            r_min=anchor_real + (self.r_min - anchor_real) * factor,
            r_max=anchor_real + (self.r_max - anchor_real) * factor,
            i_min=anchor_imag + (self.i_min - anchor_imag) * factor,
            i_max=anchor_imag + (self.i_max - anchor_imag) * factor,
        )

    def zoom_about_center(self, factor):
        center_real, center_imag = self.center
        half_w = self.span_real / 2.0 * factor
        half_h = self.span_imag / 2.0 * factor
        return replace(
            self,
            r_min=center_real - half_w, r_max=center_real + half_w,
            i_min=center_imag - half_h, i_max=center_imag + half_h,
        )


class ViewController:
    """Owns the view window, the selected fractal and the image buffer.

    Every input transition re-renders synchronously into the shared buffer
    and marks the view dirty for the debounced settings save.
    """

    def __init__(self, width=WIDTH, height=HEIGHT, max_iter=MAX_ITER,
                 window=None, fractal=FractalType.MANDELBROT, rng=None,
                 clock=time.monotonic_ns):
        self.window = window if window is not None else ViewWindow.initial(width, height)
        self.fractal = FractalType(fractal)
        self.max_iter = max_iter
        self.rng = rng if rng is not None else np.random.default_rng()
        self.clock = clock

        self.image = np.zeros((self.window.height, self.window.width, 4), dtype=np.uint8)
        self.image_changed = False

        self.view_dirty = False
        self.last_change = clock()
        self._last_zoom_tick = None

    @classmethod
    def from_settings(cls, settings, width=WIDTH, height=HEIGHT, **kwargs):
        """Restore a controller from loaded settings.

        Returns the controller and whether the caller should write a fresh
        settings file, which is the case when nothing usable was loaded.
        """
        if settings is not None and settings.width > 0.0:
            window = ViewWindow.from_center(
                settings.center_real, settings.center_imag, settings.width,
                width=width, height=height,
            )
            return cls(width, height, window=window, fractal=settings.fractal, **kwargs), False
        fractal = settings.fractal if settings is not None else FractalType.MANDELBROT
        return cls(width, height, fractal=fractal, **kwargs), True

    @property
    def width(self):
        return self.window.width

    @property
    def height(self):
        return self.window.height

    def render(self):
        render_fractal(self.fractal, self.image, self.window, self.max_iter, self.rng)
        self.image_changed = True

    def _changed(self):
        self.render()
        self.view_dirty = True
        self.last_change = self.clock()

    # ── input transitions ─────────────────────────────────────

    def click(self, mx, my):
        """Recenter the view on the complex point under pixel (mx, my)."""
        real, imag = self.window.pixel_to_complex(mx, my)
        self.window = self.window.recenter(real, imag)
        logger.debug("click px=(%d,%d) -> complex=(%g,%g) bounds=%s",
                     mx, my, real, imag, self.window.bounds)
        self._changed()
        return real, imag

    def wheel(self, delta, mx, my):
        anchor_real, anchor_imag = self.window.pixel_to_complex(mx, my)
        self.window = self.window.zoom_about(anchor_real, anchor_imag, WHEEL_ZOOM_BASE ** delta)
        self._changed()

    def select_fractal(self, fractal):
        self.fractal = FractalType(fractal)
        self._changed()

    def reset(self):
        self.window = ViewWindow.initial(self.width, self.height)
        self._changed()

    def zoom_about_center(self, factor):
        self.window = self.window.zoom_about_center(factor)
        self._changed()

    def hold_zoom(self, zoom_in, zoom_out):
        """Apply one continuous-zoom tick if a zoom key is held and the tick is due."""
        if not (zoom_in or zoom_out):
            return False
        now = self.clock()
        if self._last_zoom_tick is not None and now - self._last_zoom_tick < HOLD_TICK_NS:
            return False
        if zoom_in and not zoom_out:
            factor = HOLD_ZOOM_IN
        elif zoom_out and not zoom_in:
            factor = HOLD_ZOOM_OUT
        else:
            factor = 1.0
        self.zoom_about_center(factor)
        self._last_zoom_tick = now
        return True

    # ── persistence ───────────────────────────────────────────

    def settings(self):
        center_real, center_imag = self.window.center
        return Settings(center_real, center_imag, self.window.span_real, int(self.fractal))

    def save_due(self):
        return self.view_dirty and self.clock() - self.last_change >= SAVE_DEBOUNCE_NS

    def mark_saved(self):
        self.view_dirty = False

    # ── overlay ───────────────────────────────────────────────

    def status_lines(self):
        zoom = INIT_WIDTH / self.window.span_real
        center_real, center_imag = self.window.center
        return [
            f"Zoom: {zoom:.6f}x ({zoom * 100.0:.2f}%)",
            f"Center: ({center_real:.8f}, {center_imag:.8f})",
            f"Fractal: {self.fractal.label}",
        ]
