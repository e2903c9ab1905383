import os
import shutil
import tempfile
import unittest

from fractal_settings import (
    Settings,
    append_click_log,
    format_click,
    load_settings,
    save_settings,
)
from fractal_view import ViewController


class TestSettingsFile(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.path = os.path.join(self.tmp, "fractal_settings.txt")

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def write(self, text):
        with open(self.path, "w", encoding="utf-8") as fh:
            fh.write(text)

    def test_save_format(self):
        assert save_settings(self.path, Settings(-0.75, 0.0, 3.5, 1))
        with open(self.path, encoding="utf-8") as fh:
            assert fh.read() == "centerReal=-0.75\ncenterImag=0\nwidth=3.5\nfractal=1\n"

    def test_fifteen_significant_digits(self):
        save_settings(self.path, Settings(1.0 / 3.0, -2.0 / 3.0, 1e-9 / 7.0, 5))
        with open(self.path, encoding="utf-8") as fh:
            lines = fh.read().splitlines()
        assert lines[0] == "centerReal=0.333333333333333"
        assert lines[1] == "centerImag=-0.666666666666667"
        assert lines[2] == "width=1.42857142857143e-10"

    def test_round_trip_is_byte_stable(self):
        save_settings(self.path, Settings(-0.743643887037151, 0.131825904205330, 0.0123456789012345, 3))
        with open(self.path, encoding="utf-8") as fh:
            first = fh.read()
        loaded = load_settings(self.path)
        assert loaded.fractal == 3
        save_settings(self.path, loaded)
        with open(self.path, encoding="utf-8") as fh:
            assert fh.read() == first

    def test_reconstructed_width(self):
        save_settings(self.path, Settings(0.25, -0.1, 0.0123456789012345, 2))
        ctl, needs_save = ViewController.from_settings(load_settings(self.path), 32, 24)
        assert not needs_save
        assert abs(ctl.window.span_real - 0.0123456789012345) < 1e-12
        assert abs(ctl.window.span_imag - 0.0123456789012345 * 24 / 32) < 1e-12

    def test_missing_file(self):
        assert load_settings(os.path.join(self.tmp, "nope.txt")) is None

    def test_order_insensitive_and_unknown_keys(self):
        self.write("fractal=4\nzoom=9\nwidth=2\n\ncenterImag=0.5\ncenterReal=-1\n")
        assert load_settings(self.path) == Settings(-1.0, 0.5, 2.0, 4)

    def test_bad_lines_keep_defaults(self):
        self.write("centerReal=abc\ncenterImag=0.25\nwidth=\nfractal=7\nno equals sign\n")
        defaults = Settings(1.0, 2.0, 3.0, 2)
        assert load_settings(self.path, defaults) == Settings(1.0, 0.25, 3.0, 2)

    def test_empty_file_loads_defaults(self):
        self.write("")
        assert load_settings(self.path) == Settings()

    def test_save_failure_returns_false(self):
        bad = os.path.join(self.tmp, "missing", "dir", "settings.txt")
        assert not save_settings(bad, Settings(0.0, 0.0, 1.0, 1))


class TestClickLog(unittest.TestCase):

    def test_format(self):
        line = format_click(320, 240, -0.75, 0.0, (-2.5, 1.0, -1.0, 1.0))
        assert line == "MouseClick px=(320,240) -> complex=(-0.75,0) bounds=[-2.5,1,-1,1]"

    def test_append(self):
        tmp = tempfile.mkdtemp()
        try:
            path = os.path.join(tmp, "logs", "clicks.log")
            append_click_log(path, 1, 2, 0.5, -0.5, (0.0, 1.0, -1.0, 0.0))
            append_click_log(path, 3, 4, 0.25, 0.125, (0.0, 1.0, -1.0, 0.0))
            with open(path, encoding="utf-8") as fh:
                lines = fh.read().splitlines()
            assert len(lines) == 2
            assert lines[1].startswith("MouseClick px=(3,4) -> complex=(0.25,0.125)")
        finally:
            shutil.rmtree(tmp)

    def test_append_failure_is_silent(self):
        tmp = tempfile.mkdtemp()
        try:
            # a directory where the log file should be
            path = os.path.join(tmp, "clicks.log")
            os.mkdir(path)
            append_click_log(path, 0, 0, 0.0, 0.0, (0.0, 1.0, 0.0, 1.0))
        finally:
            shutil.rmtree(tmp)


if __name__ == "__main__":
    unittest.main()
