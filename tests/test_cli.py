import numpy as np
import PIL.Image
import pytest

import buddha

BASE = ["--x-res", "32", "--y-res", "24", "--samples", "3000", "--seed", "5", "--batch-size", "1000"]


def _parse(argv):
    parser = buddha.build_parser()
    return parser.parse_args(argv), parser


def test_image_mode_writes_composite(tmp_path):
    out = tmp_path / "nebula.png"
    result = buddha.main([*BASE, "--threshold", "20:blue", "--threshold", "60:red", "--output", str(out)])
    with PIL.Image.open(out) as image:
        assert image.size == (32, 24)
        assert image.mode == "RGB"
        written = np.asarray(image)
    np.testing.assert_array_equal(written, np.flipud(result.image.pixels))


def test_gray_mode_with_colormap(tmp_path):
    out = tmp_path / "gray.png"
    buddha.main([*BASE, "--gray", "40", "--colormap", "magma", "--output", str(out)])
    with PIL.Image.open(out) as image:
        assert image.size == (32, 24)


def test_all_modes(tmp_path):
    frames = tmp_path / "layers"
    buddha.main([
        *BASE,
        "--threshold", "20:blue", "--threshold", "60:#ff8000",
        "--mode", "image", "--mode", "gif", "--mode", "mono", "--mode", "raw",
        "--frame-dir", str(frames),
        "--output", str(tmp_path),
        "--show-coordinates",
    ])
    assert (tmp_path / "buddhabrot.png").is_file()
    assert (tmp_path / "layers.gif").is_file()
    assert sorted(p.name for p in frames.glob("mono*.png")) == ["mono000.png", "mono001.png"]
    counts = np.load(frames / "counts000_20.npy")
    assert counts.shape == (24, 32)
    assert counts.sum() > 0


def test_output_suffix_follows_format(tmp_path):
    opt, parser = _parse(["--format", "jpg", "--output", str(tmp_path / "render")])
    config = buddha.resolve_output_config(opt, parser)
    assert config.image_path.name == "render.jpg"
    assert config.gif_path is None


@pytest.mark.parametrize(
    "argv",
    [
        ["--mode", "video"],
        ["--frame-dir", "somewhere"],
        ["--mode", "gif", "--output", "movie.mp4"],
        ["--format", "png", "--output", "render.jpg"],
        ["--mode", "mono", "--output", "render.png"],
    ],
)
def test_invalid_output_options_exit(argv):
    opt, parser = _parse(argv)
    with pytest.raises(SystemExit):
        buddha.resolve_output_config(opt, parser)


@pytest.mark.parametrize(
    "argv",
    [
        ["--real-min", "1", "--real-max", "0"],
        ["--x-res", "0"],
        ["--samples", "0"],
        ["--threshold", "64:mauve"],
        ["--threshold", "64:nan,0,0"],
        ["--threshold", "3000000000:red"],
        ["--gray", "64", "--threshold", "64:red"],
    ],
)
def test_invalid_render_options_exit(argv):
    opt, parser = _parse(argv)
    with pytest.raises(SystemExit):
        buddha.build_render_config(opt, parser)


def test_lock_aspect_and_defaults():
    opt, parser = _parse(["--x-res", "200", "--y-res", "100", "--lock-aspect"])
    config = buddha.build_render_config(opt, parser)
    assert config.viewport.imag_span == pytest.approx(1.5)
    assert [t.max_iterations for t in config.thresholds] == [64, 256, 4096]
    assert config.skip_interior
