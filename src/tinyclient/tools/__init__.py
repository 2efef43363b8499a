"""Bundled resources for TinyClient."""

import importlib.resources
import pathlib
import shutil
from contextlib import contextmanager

from tinyclient.constants import SAMPLE_CONFIG_FILENAME


@contextmanager
def open_sample_config():
    """
    Yield a real filesystem Path to the bundled sample config for the duration
    of the context.
    """
    res = importlib.resources.files(__package__) / SAMPLE_CONFIG_FILENAME
    with importlib.resources.as_file(res) as p:
        yield pathlib.Path(p)


def copy_sample_config_to(dst_path: str) -> str:
    """
    Copy the bundled sample configuration to dst_path and return the actual file path.

    If dst_path is an existing directory or has no suffix it is treated as a
    directory and the sample keeps its own file name.
    """
    res = importlib.resources.files(__package__) / SAMPLE_CONFIG_FILENAME
    dst = pathlib.Path(dst_path)
    if (dst.exists() and dst.is_dir()) or dst.suffix == "":
        dst = dst / SAMPLE_CONFIG_FILENAME
    with importlib.resources.as_file(res) as p:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(p, dst)
    return str(dst)
