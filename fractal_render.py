"""CPU renderers for the five fractals.

Each renderer draws into a caller-owned RGBA buffer of shape (H, W, 4).
Mandelbrot and Menger overwrite every pixel; the geometric fractals clear
the buffer to black first.

Sierpinski and Koch are computed in pixel space from mapped endpoints,
Mandelbrot and Dragon in the complex plane, and Menger in normalized raster
coordinates (it ignores the view entirely).
"""

import logging
import math
from enum import IntEnum

import numpy as np

logger = logging.getLogger(__name__)

COL_BLACK = (0, 0, 0)
COL_SIERPINSKI = (255, 215, 0)
COL_KOCH = (34, 139, 34)
COL_MENGER = (192, 192, 192)

SIERPINSKI_POINTS = 120_000
# Halvings per chaos-game point; the start point's weight falls below float64 resolution
SIERPINSKI_HISTORY = 64
KOCH_DEPTH = 6
MENGER_DEPTH = 8
DRAGON_GENERATIONS = 12
DRAGON_RULES = str.maketrans({"X": "X+YF+", "Y": "-FX-Y"})
# Initial view width; the dragon's step is tied to it so the curve zooms with the view.
REF_WORLD_WIDTH = 3.5


class FractalType(IntEnum):
    MANDELBROT = 1
    SIERPINSKI = 2
    KOCH = 3
    MENGER = 4
    DRAGON = 5

    @property
    def label(self):
        return self.name.capitalize()


def map_range(value, in_min, in_max, out_min, out_max):
    """Linearly map value from [in_min, in_max] onto [out_min, out_max].

    Works element-wise on numpy arrays with the same operation order as on
    scalars, so vectorized renderers match the scalar pixel mapping bit for bit.
    """
    return out_min + (value - in_min) * (out_max - out_min) / (in_max - in_min)


def round_half_away(value):
    """Round to the nearest integer, halves away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _round_half_away_array(values):
    return np.sign(values) * np.floor(np.abs(values) + 0.5)


def clear(image, color=COL_BLACK):
    image[..., :3] = color
    image[..., 3] = 255


# ── Line rasterizer ───────────────────────────────────────

def draw_line(image, x0, y0, x1, y1, color):
    """Integer Bresenham line; pixels outside the image are skipped."""
    height, width = image.shape[:2]
    # Nothing to plot when both endpoints are past the same edge
    if (x0 < 0 and x1 < 0) or (y0 < 0 and y1 < 0):
        return
    if (x0 >= width and x1 >= width) or (y0 >= height and y1 >= height):
        return

    dx = abs(x1 - x0)
    dy = abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx - dy
    x, y = x0, y0
    while True:
        if 0 <= x < width and 0 <= y < height:
            image[y, x, :3] = color
            image[y, x, 3] = 255
        if x == x1 and y == y1:
            break
        e2 = 2 * err
        if e2 > -dy:
            err -= dy
            x += sx
        if e2 < dx:
            err += dx
            y += sy


# ── Mandelbrot ────────────────────────────────────────────

def mandelbrot_counts(window, width, height, max_iter):
    """Escape iteration per pixel, shape (height, width).

    The count is the loop index at which |z| first exceeds 2, or max_iter
    for points that never escape.
    """
    real = map_range(np.arange(width, dtype=np.float64), 0.0, float(width - 1),
                     window.r_min, window.r_max)
    imag = map_range(np.arange(height, dtype=np.float64), 0.0, float(height - 1),
                     window.i_max, window.i_min)
    cr = np.broadcast_to(real[np.newaxis, :], (height, width)).ravel()
    ci = np.broadcast_to(imag[:, np.newaxis], (height, width)).ravel()

    counts = np.full(height * width, max_iter, dtype=np.int32)
    idx = np.arange(height * width)
    zr = np.zeros_like(cr)
    zi = np.zeros_like(ci)
    # z*z + c on split real/imaginary parts, one ufunc per operation
    for i in range(max_iter):
        zr, zi = zr * zr - zi * zi + cr, zr * zi + zi * zr + ci
        escaped = np.hypot(zr, zi) > 2.0
        if escaped.any():
            counts[idx[escaped]] = i
            keep = ~escaped
            idx, zr, zi = idx[keep], zr[keep], zi[keep]
            cr, ci = cr[keep], ci[keep]
            if idx.size == 0:
                break
    return counts.reshape(height, width)


def render_mandelbrot(image, window, max_iter):
    height, width = image.shape[:2]
    counts = mandelbrot_counts(window, width, height, max_iter)
    blue = _round_half_away_array(map_range(counts.astype(np.float64), 0.0, float(max_iter), 0.0, 255.0))
    blue = np.clip(blue, 0, 255).astype(np.uint8)
    blue[counts == max_iter] = 0
    image[..., 0] = 0
    image[..., 1] = 0
    image[..., 2] = blue
    image[..., 3] = 255


# ── Sierpinski triangle (chaos game) ──────────────────────

def chaos_game(targets, start, history=SIERPINSKI_HISTORY):
    """Positions of the halfway walk p[n] = (p[n-1] + targets[n]) / 2 from start.

    Every step is applied to the whole array at once: after m passes each
    entry holds the last m halvings of its own chain. Entries with
    n < history are exact; later ones start from `start` instead of the true
    predecessor, an error scaled by 2**-history.
    """
    pos = np.full(targets.shape, start, dtype=np.float64)
    if pos.size == 0:
        return pos
    for _ in range(min(history, pos.size)):
        pos[1:] = (pos[:-1] + targets[1:]) / 2.0
        pos[0] = (start + targets[0]) / 2.0
    return pos


def render_sierpinski(image, window, rng, points=SIERPINSKI_POINTS):
    height, width = image.shape[:2]
    clear(image)
    vx = np.array([
        window.real_to_pixel(window.r_min),
        window.real_to_pixel(window.r_max),
        window.real_to_pixel((window.r_min + window.r_max) / 2.0),
    ], dtype=np.float64)
    vy = np.array([
        window.imag_to_pixel(window.i_max),
        window.imag_to_pixel(window.i_max),
        window.imag_to_pixel(window.i_min),
    ], dtype=np.float64)

    choice = rng.integers(0, 3, size=points)
    xs = chaos_game(vx[choice], (vx[0] + vx[1] + vx[2]) / 3.0)
    ys = chaos_game(vy[choice], (vy[0] + vy[1] + vy[2]) / 3.0)

    px = _round_half_away_array(xs).astype(np.int64)
    py = _round_half_away_array(ys).astype(np.int64)
    inside = (px >= 0) & (px < width) & (py >= 0) & (py < height)
    image[py[inside], px[inside], :3] = COL_SIERPINSKI


# ── Koch curve ────────────────────────────────────────────

def koch_points(a, b, depth):
    """Koch polyline from a to b in pixel doubles, 4**depth + 1 points."""
    pts = []
    _koch_recurse(pts, a, b, depth)
    pts.append(b)
    return pts


def _koch_recurse(pts, a, b, depth):
    if depth == 0:
        pts.append(a)
        return
    ax, ay = a
    bx, by = b
    vx, vy = bx - ax, by - ay
    p1 = (ax + vx / 3.0, ay + vy / 3.0)
    p3 = (ax + vx * (2.0 / 3.0), ay + vy * (2.0 / 3.0))
    angle = math.atan2(vy, vx) - math.pi / 3.0
    length = math.hypot(vx, vy) / 3.0
    p2 = (p1[0] + math.cos(angle) * length, p1[1] + math.sin(angle) * length)
    _koch_recurse(pts, a, p1, depth - 1)
    _koch_recurse(pts, p1, p2, depth - 1)
    _koch_recurse(pts, p2, p3, depth - 1)
    _koch_recurse(pts, p3, b, depth - 1)


def render_koch(image, window, depth=KOCH_DEPTH):
    clear(image)
    center_imag = (window.i_min + window.i_max) / 2.0
    row = float(window.imag_to_pixel(center_imag))
    a = (float(window.real_to_pixel(window.r_min)), row)
    b = (float(window.real_to_pixel(window.r_max)), row)
    pts = koch_points(a, b, depth)
    for (x0, y0), (x1, y1) in zip(pts, pts[1:]):
        draw_line(image,
                  round_half_away(x0), round_half_away(y0),
                  round_half_away(x1), round_half_away(y1),
                  COL_KOCH)


# ── Menger carpet ─────────────────────────────────────────

def render_menger(image, window=None, depth=MENGER_DEPTH):
    """Sierpinski carpet over the whole raster; the view window is unused."""
    height, width = image.shape[:2]
    ux = np.arange(width, dtype=np.float64) / float(width - 1)
    uy = 1.0 - np.arange(height, dtype=np.float64) / float(height - 1)
    tx = np.broadcast_to(ux[np.newaxis, :], (height, width)).copy()
    ty = np.broadcast_to(uy[:, np.newaxis], (height, width)).copy()

    hole = np.zeros((height, width), dtype=bool)
    for _ in range(depth):
        tx *= 3.0
        ty *= 3.0
        ix = np.floor(tx)
        iy = np.floor(ty)
        hole |= (ix % 3 == 1) & (iy % 3 == 1)
        tx -= ix
        ty -= iy

    image[..., :3] = COL_MENGER
    image[hole, :3] = COL_BLACK
    image[..., 3] = 255


# ── Dragon curve ──────────────────────────────────────────

def dragon_lsystem(generations):
    program = "FX"
    for _ in range(generations):
        program = program.translate(DRAGON_RULES)
    return program


def dragon_points(window, width, generations=DRAGON_GENERATIONS):
    """Turtle walk of the dragon program in the complex plane.

    Every F records the position before the move.
    """
    step = REF_WORLD_WIDTH / float(width) * 2.0
    center_real, center_imag = window.center
    x = center_real - REF_WORLD_WIDTH / 4.0
    y = center_imag
    angle = 0.0
    points = []
    for ch in dragon_lsystem(generations):
        if ch == "F":
            nx = x + math.cos(angle) * step
            ny = y + math.sin(angle) * step
            points.append((x, y))
            x, y = nx, ny
        elif ch == "+":
            angle += math.pi / 2.0
        elif ch == "-":
            angle -= math.pi / 2.0
    return points


def dragon_color(i, count):
    t = i / max(1, count - 1)
    return min(255, round_half_away(120.0 + 135.0 * t)), 20, 20


def render_dragon(image, window, generations=DRAGON_GENERATIONS):
    height, width = image.shape[:2]
    clear(image)
    points = dragon_points(window, width, generations)
    pixels = [(window.real_to_pixel(x), window.imag_to_pixel(y)) for x, y in points]
    for i in range(1, len(pixels)):
        x0, y0 = pixels[i - 1]
        x1, y1 = pixels[i]
        draw_line(image, x0, y0, x1, y1, dragon_color(i, len(pixels)))


# ── Dispatcher ────────────────────────────────────────────

def drawn_bounds(image):
    """Pixel bounding box (min_x, max_x, min_y, max_y) of non-black pixels, or None."""
    ys, xs = np.nonzero(np.any(image[..., :3] != 0, axis=2))
    if xs.size == 0:
        return None
    return int(xs.min()), int(xs.max()), int(ys.min()), int(ys.max())


def render_fractal(fractal, image, window, max_iter=100, rng=None):
    """Render the selected fractal into image; unknown selectors draw Mandelbrot."""
    logger.debug("render fractal=%s bounds=[%g,%g,%g,%g]",
                 fractal, window.r_min, window.r_max, window.i_min, window.i_max)
    if fractal == FractalType.SIERPINSKI:
        render_sierpinski(image, window, rng if rng is not None else np.random.default_rng())
    elif fractal == FractalType.KOCH:
        render_koch(image, window)
    elif fractal == FractalType.MENGER:
        render_menger(image, window)
    elif fractal == FractalType.DRAGON:
        render_dragon(image, window)
    else:
        render_mandelbrot(image, window, max_iter)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("drawn bounds px/py=%s", drawn_bounds(image))
