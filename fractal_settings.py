"""Settings file and click log for the fractal viewer.

The settings file holds one ``key=value`` pair per line:

    centerReal=-0.75
    centerImag=0
    width=3.5
    fractal=1

Only the horizontal width is stored; the vertical span is rebuilt from the
raster aspect ratio when the file is loaded.
"""

import logging
import os
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "fractal_settings.txt"
CLICK_LOG_FILENAME = "clicks.log"

FRACTAL_RANGE = range(1, 6)


@dataclass(frozen=True)
class Settings:
    center_real: float = 0.0
    center_imag: float = 0.0
    width: float = 0.0
    fractal: int = 1


# key in the file -> (Settings field, parser)
_FIELDS = {
    "centerReal": ("center_real", float),
    "centerImag": ("center_imag", float),
    "width": ("width", float),
    "fractal": ("fractal", int),
}


def load_settings(path, defaults=Settings()):
    """Read a settings file on top of defaults.

    Returns None when the file cannot be read. Unknown keys and lines that
    fail to parse are skipped; the matching default is kept.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            lines = fh.read().splitlines()
    except OSError as exc:
        logger.info("No settings loaded from %s: %s", path, exc)
        return None

    values = {}
    for line in lines:
        key, sep, raw = line.partition("=")
        if not sep or key not in _FIELDS:
            continue
        name, parse = _FIELDS[key]
        try:
            value = parse(raw.strip())
        except ValueError:
            logger.debug("Ignoring unparseable settings line %r", line)
            continue
        if name == "fractal" and value not in FRACTAL_RANGE:
            logger.debug("Ignoring out-of-range fractal %d", value)
            continue
        values[name] = value
    return replace(defaults, **values)


def save_settings(path, settings):
    """Rewrite the settings file; returns False if it could not be written."""
    try:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(f"centerReal={settings.center_real:.15g}\n")
            fh.write(f"centerImag={settings.center_imag:.15g}\n")
            fh.write(f"width={settings.width:.15g}\n")
            fh.write(f"fractal={int(settings.fractal)}\n")
    except OSError as exc:
        logger.warning("Could not save settings to %s: %s", path, exc)
        return False
    return True


def format_click(mx, my, real, imag, bounds):
    r_min, r_max, i_min, i_max = bounds
    return (
        f"MouseClick px=({mx},{my}) -> complex=({real:g},{imag:g}) "
        f"bounds=[{r_min:g},{r_max:g},{i_min:g},{i_max:g}]"
    )


def append_click_log(path, mx, my, real, imag, bounds):
    """Append one click line to the log; write errors are ignored."""
    try:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "a", encoding="utf-8") as fh:
            fh.write(format_click(mx, my, real, imag, bounds) + "\n")
    except OSError as exc:
        logger.debug("Click log write failed: %s", exc)
