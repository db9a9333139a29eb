from __future__ import annotations

import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

EXAMPLES_ROOT = Path("examples/cli-options")
BASE_ARGS = ["--x-res", "160", "--y-res", "160", "--samples", "200000", "--seed", "7"]


@dataclass
class Expected:
    path: Path
    is_dir: bool = False


@dataclass
class Example:
    name: str
    args: list[str]
    expected: list[Expected]

    @property
    def root(self) -> Path:
        return EXAMPLES_ROOT / self.name

    def full_args(self) -> list[str]:
        return [sys.executable, "buddha.py", *self.args]


def _out(name: str, filename: str) -> str:
    return str(EXAMPLES_ROOT / name / filename)


EXAMPLES: list[Example] = [
    Example(
        name="default",
        args=[*BASE_ARGS, "--output", _out("default", "nebula.png")],
        expected=[Expected(EXAMPLES_ROOT / "default" / "nebula.png")],
    ),
    Example(
        name="threshold",
        args=[
            *BASE_ARGS,
            "--threshold", "20:#ff8000",
            "--threshold", "200:0.2,0.6,1",
            "--output", _out("threshold", "custom-colors.png"),
        ],
        expected=[Expected(EXAMPLES_ROOT / "threshold" / "custom-colors.png")],
    ),
    Example(
        name="gray",
        args=[*BASE_ARGS, "--gray", "500", "--colormap", "inferno", "--output", _out("gray", "inferno.png")],
        expected=[Expected(EXAMPLES_ROOT / "gray" / "inferno.png")],
    ),
    Example(
        name="normalize",
        args=[*BASE_ARGS, "--normalize", "linear", "--gamma", "0.5", "--output", _out("normalize", "linear.png")],
        expected=[Expected(EXAMPLES_ROOT / "normalize" / "linear.png")],
    ),
    Example(
        name="viewport",
        args=[
            *BASE_ARGS,
            "--real-min", "-1.9", "--real-max", "-1.5",
            "--imag-min", "-0.2", "--imag-max", "0.2",
            "--x-res", "240", "--lock-aspect",
            "--output", _out("viewport", "antenna.png"),
        ],
        expected=[Expected(EXAMPLES_ROOT / "viewport" / "antenna.png")],
    ),
    Example(
        name="modes",
        args=[
            *BASE_ARGS,
            "--mode", "image", "--mode", "gif", "--mode", "mono", "--mode", "raw",
            "--frame-dir", _out("modes", "layers"),
            "--output", str(EXAMPLES_ROOT / "modes"),
        ],
        expected=[
            Expected(EXAMPLES_ROOT / "modes" / "buddhabrot.png"),
            Expected(EXAMPLES_ROOT / "modes" / "layers.gif"),
            Expected(EXAMPLES_ROOT / "modes" / "layers", is_dir=True),
        ],
    ),
    Example(
        name="show-coordinates",
        args=[*BASE_ARGS, "--show-coordinates", "--output", _out("show-coordinates", "annotated.png")],
        expected=[Expected(EXAMPLES_ROOT / "show-coordinates" / "annotated.png")],
    ),
]


def _ensure_clean(paths: Iterable[Path]) -> None:
    for path in paths:
        if path.exists():
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()


def _prepare(example: Example) -> None:
    _ensure_clean([example.root])
    for expected in example.expected:
        expected.path.parent.mkdir(parents=True, exist_ok=True)


def _verify(example: Example) -> None:
    for expected in example.expected:
        if expected.is_dir:
            if not expected.path.is_dir():
                raise RuntimeError(f"Expected directory {expected.path} was not created")
            if not any(expected.path.iterdir()):
                raise RuntimeError(f"Directory {expected.path} is empty")
        elif not expected.path.is_file():
            raise RuntimeError(f"Expected file {expected.path} was not created")


def main() -> None:
    EXAMPLES_ROOT.mkdir(parents=True, exist_ok=True)
    for example in EXAMPLES:
        print(f"\n[cli-example] {example.name}")
        _prepare(example)
        subprocess.run(example.full_args(), check=True)
        _verify(example)
    print("\nAll CLI examples generated successfully.")


if __name__ == "__main__":
    main()
