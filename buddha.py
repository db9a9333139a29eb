import os
import sys
import warnings
from dataclasses import dataclass
from pathlib import Path

_VERBOSE_FLAGS = {"--verbose", "-v"}
_cli_verbose = any(arg in _VERBOSE_FLAGS for arg in sys.argv[1:])
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _cli_verbose) and _env_log_level != "0"

if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

VERBOSE = _cli_verbose


def log(message, *args, **kwargs):
    if VERBOSE:
        print(message, *args, **kwargs)


import logging

import tensorflow as tf
import numpy as np

if _suppress_messages:
    tf.get_logger().setLevel("ERROR")

# Imports for visualization
import PIL.Image
import PIL.ImageDraw
import PIL.ImageFont
import imageio

from buddhabrot import (
    ColorChannelAssignment,
    CompositeImage,
    ConfigError,
    DEFAULT_THRESHOLDS,
    RenderConfig,
    RenderPipeline,
    Viewport,
)

try:
    from matplotlib import colormaps as _mpl_colormaps
except ImportError:  # Matplotlib < 3.5
    from matplotlib import cm as _mpl_colormaps  # type: ignore


def get_colormap(name):
    return _mpl_colormaps.get_cmap(name)


# Orbit iteration is CPU work; keep TensorFlow off any GPU it finds.
DEVICE = '/CPU:0'

from argparse import ArgumentParser


@dataclass
class OutputConfig:
    modes: tuple[str, ...]
    gif_path: Path | None
    image_path: Path | None
    frame_dir: Path | None
    image_format: str


def build_parser():
    parser = ArgumentParser(description='Render a Buddhabrot by Monte-Carlo sampling of escaping orbits.')

    parser.add_argument('--real-min', type=float, dest='real_min', default=-2.0,
                        help='left edge of the viewport on the real axis', metavar='REAL_MIN')
    parser.add_argument('--real-max', type=float, dest='real_max', default=1.0,
                        help='right edge of the viewport on the real axis', metavar='REAL_MAX')
    parser.add_argument('--imag-min', type=float, dest='imag_min', default=-1.5,
                        help='bottom edge of the viewport on the imaginary axis', metavar='IMAG_MIN')
    parser.add_argument('--imag-max', type=float, dest='imag_max', default=1.5,
                        help='top edge of the viewport on the imaginary axis', metavar='IMAG_MAX')

    parser.add_argument('--x-res', type=int, dest='x_res', default=512,
                        help='image width in pixels', metavar='X_RES')
    parser.add_argument('--y-res', type=int, dest='y_res', default=512,
                        help='image height in pixels', metavar='Y_RES')
    parser.add_argument('--lock-aspect', action='store_true',
                        help='Recomputes the imaginary span as real span * (y_res/x_res) to avoid stretching.')

    parser.add_argument('--threshold', dest='thresholds', action='append', metavar='ITER:COLOR',
                        help='Iteration depth and the color its layer feeds, e.g. 256:red, 64:#3050ff or 4096:0,1,0.5. '
                             'May be repeated. Default: 64:blue 256:red 4096:green.')
    parser.add_argument('--gray', type=int, dest='gray', metavar='ITER', default=None,
                        help='Render a single grayscale layer at this iteration depth instead of a color composite.')

    parser.add_argument('--samples', type=int, dest='samples', default=1_000_000,
                        help='number of random seeds drawn per threshold', metavar='SAMPLES')
    parser.add_argument('--seed', type=int, dest='seed', default=None,
                        help='seed for the random source; identical seeds give identical images', metavar='SEED')
    parser.add_argument('--normalize', choices=['linear', 'logarithmic'], default='logarithmic',
                        help='Count-to-intensity scale. Logarithmic keeps faint orbits visible.')
    parser.add_argument('--gamma', type=float, default=1.0, help='Gamma correction for tone mapping.')
    parser.add_argument('--clip-high', type=float, default=100.0,
                        help='Percentile of visited pixels mapped to full intensity.')

    parser.add_argument('--workers', type=int, default=None, help='Worker threads. Default: one per CPU.')
    parser.add_argument('--batch-size', type=int, dest='batch_size', default=50_000,
                        help='Seeds per batch. Part of the reproducibility key together with --seed.')
    parser.add_argument('--backend', choices=['tensorflow', 'python'], default='tensorflow',
                        help='Vectorized TensorFlow kernel or the per-seed reference iterator.')
    parser.add_argument('--region', choices=['disk', 'square'], default='disk',
                        help='Region around the origin that seeds are drawn from.')
    parser.add_argument('--include-interior', dest='include_interior', action='store_true',
                        help='Also iterate seeds inside the main cardioid and period-2 bulb.')
    parser.add_argument('--time-limit', type=float, dest='time_limit', default=None,
                        help='Stop dispatching new batches after this many seconds per threshold.')

    parser.add_argument('--mode', dest='modes', action='append', metavar='MODE',
                        help='Output modes to generate. May be repeated. Choices: image, mono, gif, raw.')
    parser.add_argument('--output', dest='output', type=str,
                        help='Destination for single-file outputs (gif/image) or container directory when both are requested.')
    parser.add_argument('--frame-dir', dest='frame_dir', type=str,
                        help='Directory in which to store per-threshold layers (mono) or histogram counts (raw).')
    parser.add_argument('--format', type=str, dest='format', default='png', metavar='FORMAT',
                        help='file format for image-based outputs. Can be any extension supported by Pillow. Default: "png".')
    parser.add_argument('--colormap', type=str, dest='colormap', default=None, metavar='COLORMAP',
                        help='matplotlib colormap applied to grayscale output (e.g. "inferno", "magma")')
    parser.add_argument('--show-coordinates', dest='show_coordinates', action='store_true',
                        help='overlay the viewport bounds on the final image')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging, including TensorFlow and sampling diagnostics.')

    return parser


def resolve_output_config(opt, parser: ArgumentParser) -> OutputConfig:
    valid_modes = {"image", "mono", "gif", "raw"}
    modes: list[str] = list(opt.modes or []) or ["image"]

    normalized_modes: list[str] = []
    for mode in modes:
        if mode not in valid_modes:
            parser.error(f"Unknown output mode '{mode}'. Valid choices: {', '.join(sorted(valid_modes))}.")
        if mode not in normalized_modes:
            normalized_modes.append(mode)

    modes_tuple = tuple(normalized_modes)
    modes_set = set(modes_tuple)

    frame_dir_value = getattr(opt, "frame_dir", None)
    frame_dir_path: Path | None = None
    if {"mono", "raw"} & modes_set:
        frame_dir_path = Path(frame_dir_value or "./frames").expanduser().resolve()
    elif frame_dir_value is not None:
        parser.error("--frame-dir is only valid with the mono or raw modes.")

    image_format = (getattr(opt, "format", "png") or "png").lower().lstrip(".") or "png"

    file_modes = [mode for mode in modes_tuple if mode in {"gif", "image"}]
    output_arg = getattr(opt, "output", None)
    gif_path: Path | None = None
    image_path: Path | None = None

    if not file_modes:
        if output_arg:
            parser.error("--output is only valid when gif or image modes are requested.")
    elif len(file_modes) == 1:
        mode = file_modes[0]
        if output_arg:
            output_path = Path(output_arg).expanduser()
            if str(output_arg).endswith(tuple(filter(None, {os.sep, os.altsep}))):
                parser.error("--output must be a file path when a single file-based mode is selected.")
            if output_path.exists() and output_path.is_dir():
                parser.error("--output must point to a file, not a directory, when a single file mode is active.")
            if mode == "gif":
                if output_path.suffix:
                    if output_path.suffix.lower() != ".gif":
                        parser.error("GIF outputs must end with .gif.")
                else:
                    output_path = output_path.with_suffix(".gif")
                gif_path = output_path.resolve()
            else:
                suffix = output_path.suffix
                expected_suffix = f".{image_format}"
                if suffix:
                    if suffix.lower() != expected_suffix.lower():
                        parser.error(f"--output extension {suffix} does not match --format {image_format}.")
                else:
                    output_path = output_path.with_suffix(expected_suffix)
                image_path = output_path.resolve()
        elif mode == "gif":
            gif_path = Path("layers.gif").resolve()
        else:
            image_path = Path(f"buddhabrot.{image_format}").resolve()
    else:
        base_dir = Path(output_arg).expanduser() if output_arg else Path.cwd()
        if base_dir.exists() and not base_dir.is_dir():
            parser.error("--output must be a directory when both gif and image modes are active.")
        gif_path = (base_dir / "layers.gif").resolve()
        image_path = (base_dir / f"buddhabrot.{image_format}").resolve()

    return OutputConfig(
        modes=modes_tuple,
        gif_path=gif_path,
        image_path=image_path,
        frame_dir=frame_dir_path,
        image_format=image_format,
    )


def build_render_config(opt, parser: ArgumentParser) -> RenderConfig:
    """Translate parsed options into a validated :class:`RenderConfig`."""

    if opt.gray is not None and opt.thresholds:
        parser.error("--gray cannot be combined with --threshold.")

    try:
        viewport = Viewport(
            real_min=opt.real_min,
            real_max=opt.real_max,
            imag_min=opt.imag_min,
            imag_max=opt.imag_max,
            width_px=opt.x_res,
            height_px=opt.y_res,
        )
        if opt.lock_aspect:
            viewport = viewport.locked_aspect()

        if opt.gray is not None:
            thresholds = (ColorChannelAssignment(opt.gray),)
        elif opt.thresholds:
            thresholds = tuple(ColorChannelAssignment.parse(text) for text in opt.thresholds)
        else:
            thresholds = DEFAULT_THRESHOLDS

        config = RenderConfig(
            viewport=viewport,
            thresholds=thresholds,
            sample_count=opt.samples,
            random_seed=opt.seed,
            normalization=opt.normalize,
            gamma=opt.gamma,
            clip_percentile=opt.clip_high,
            workers=opt.workers,
            batch_size=opt.batch_size,
            region=opt.region,
            skip_interior=not opt.include_interior,
            backend=opt.backend,
            time_limit=opt.time_limit,
            keep_histograms=bool(opt.modes and "raw" in opt.modes),
        )
        config.validate()
    except ConfigError as exc:
        parser.error(str(exc))
    return config


def _pil_format_name(ext: str) -> str:
    upper = ext.upper()
    if upper == "JPG":
        return "JPEG"
    if upper == "TIF":
        return "TIFF"
    return upper


def write_single_image(image: PIL.Image.Image, output_path: Path, image_format: str) -> None:
    """Write a single image to ``output_path`` using the provided format."""

    pil_format = _pil_format_name(image_format)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    image.save(str(output_path), format=pil_format)


def write_frame_sequence(
    image: PIL.Image.Image,
    frame_dir: Path,
    index: int,
    digits: int,
    image_format: str,
    prefix: str,
) -> Path:
    """Persist a layer in a numbered sequence inside ``frame_dir``."""

    pil_format = _pil_format_name(image_format)
    frame_path = frame_dir / f"{prefix}{index:0{digits}d}.{image_format}"
    frame_dir.mkdir(parents=True, exist_ok=True)
    image.save(str(frame_path), format=pil_format)
    return frame_path


def to_rgb_array(image, cmap=None) -> np.ndarray:
    """Convert a rendered image to an RGB uint8 array with imaginary values rising upwards."""

    if isinstance(image, CompositeImage):
        rgb = image.pixels
    elif cmap is not None:
        rgba = np.array(cmap(image.pixels.astype(np.float64) / 255.0), copy=True)
        rgb = np.uint8(np.clip(rgba[..., :3] * 255, 0, 255))
    else:
        rgb = np.stack((image.pixels,) * 3, axis=-1)
    return np.ascontiguousarray(np.flipud(rgb))


_FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
)


def _load_annotation_font(image: PIL.Image.Image) -> PIL.ImageFont.ImageFont:
    target_size = max(12, int(round(max(min(image.size), 1) * 0.028)))
    for path in _FONT_CANDIDATES:
        font_path = Path(path)
        if font_path.exists():
            try:
                return PIL.ImageFont.truetype(str(font_path), target_size)
            except OSError:
                continue
    return PIL.ImageFont.load_default()


def annotate_with_coordinates(image: PIL.Image.Image, config: RenderConfig) -> PIL.Image.Image:
    """Overlay the viewport bounds and thresholds on ``image``."""

    if image.mode != "RGBA":
        image = image.convert("RGBA")

    viewport = config.viewport
    lines = [
        f"Re: [{viewport.real_min:.6g}, {viewport.real_max:.6g}]",
        f"Im: [{viewport.imag_min:.6g}, {viewport.imag_max:.6g}]",
        "Iter: " + ", ".join(str(t.max_iterations) for t in config.thresholds),
    ]

    overlay = PIL.Image.new("RGBA", image.size, (0, 0, 0, 0))
    draw = PIL.ImageDraw.Draw(overlay, "RGBA")
    font = _load_annotation_font(image)
    text = "\n".join(lines)
    spacing = max(4, int(round(getattr(font, "size", 14) * 0.35)))
    padding = max(8, int(round(getattr(font, "size", 14) * 0.6)))

    left, top, right, bottom = draw.multiline_textbbox((0, 0), text, font=font, spacing=spacing)
    box = [(12, 12), (12 + right - left + padding * 2, 12 + bottom - top + padding * 2)]
    draw.rounded_rectangle(box, radius=padding, fill=(10, 12, 24, 170), outline=(255, 255, 255, 45))
    origin = (12 + padding, 12 + padding)
    draw.multiline_text((origin[0] + 1, origin[1] + 1), text, font=font, fill=(0, 0, 0, 170), spacing=spacing)
    draw.multiline_text(origin, text, font=font, fill=(240, 244, 255, 255), spacing=spacing)

    return PIL.Image.alpha_composite(image, overlay)


class ImageFileSink:
    """Encode the delivered image and write it to disk with Pillow."""

    def __init__(self, path: Path, image_format: str, config: RenderConfig, *, cmap=None, show_coordinates=False):
        self.path = path
        self.image_format = image_format
        self.config = config
        self.cmap = cmap
        self.show_coordinates = show_coordinates

    def deliver(self, image, width_px: int, height_px: int) -> None:
        pil_image = PIL.Image.fromarray(to_rgb_array(image, self.cmap))
        if pil_image.size != (width_px, height_px):
            raise ValueError(f"Image is {pil_image.size}, expected {(width_px, height_px)}.")
        if self.show_coordinates:
            pil_image = annotate_with_coordinates(pil_image, self.config)
            if _pil_format_name(self.image_format) in {"JPEG", "BMP"}:
                pil_image = pil_image.convert("RGB")
        write_single_image(pil_image, self.path, self.image_format)
        log(f"Wrote {self.path}")


def write_layers_gif(path: Path, frames: list[np.ndarray]) -> None:
    """Write the threshold layers followed by the final image as an animated GIF."""

    path.parent.mkdir(parents=True, exist_ok=True)
    writer = imageio.get_writer(str(path), mode='I', duration=0.8, loop=0)
    try:
        for frame in frames:
            writer.append_data(frame)
    finally:
        writer.close()


def print_progress(done: int, total: int) -> None:
    print("samples {0} out of {1}".format(done, total), end='\r')


def main(argv=None):
    parser = build_parser()
    opt = parser.parse_args(argv)

    output_config = resolve_output_config(opt, parser)

    global VERBOSE
    VERBOSE = bool(opt.verbose)
    if VERBOSE:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
        log("TensorFlow version: %s" % tf.__version__)

    config = build_render_config(opt, parser)
    cmap = get_colormap(opt.colormap) if opt.colormap else None

    pipeline = RenderPipeline(config, progress=print_progress, device=DEVICE)
    result = pipeline.render()
    print()

    if not result.complete:
        print("Time limit reached; the image uses fewer samples than requested.")

    if output_config.image_path is not None:
        sink = ImageFileSink(
            output_config.image_path,
            output_config.image_format,
            config,
            cmap=cmap,
            show_coordinates=bool(opt.show_coordinates),
        )
        sink.deliver(result.image, config.viewport.width_px, config.viewport.height_px)

    digits = max(3, len(str(len(config.thresholds) - 1)))
    if "mono" in output_config.modes and output_config.frame_dir is not None:
        for index, layer in enumerate(result.layers):
            mono_img = PIL.Image.fromarray(np.ascontiguousarray(np.flipud(layer.pixels)))
            path = write_frame_sequence(mono_img, output_config.frame_dir, index, digits, output_config.image_format, "mono")
            log(f"Wrote {path}")

    if "raw" in output_config.modes and output_config.frame_dir is not None:
        output_config.frame_dir.mkdir(parents=True, exist_ok=True)
        for index, (grid, threshold) in enumerate(zip(result.histograms, config.thresholds)):
            path = output_config.frame_dir / f"counts{index:0{digits}d}_{threshold.max_iterations}.npy"
            np.save(path, grid.counts)
            log(f"Wrote {path}")

    if output_config.gif_path is not None:
        frames = [to_rgb_array(layer, cmap) for layer in result.layers]
        if isinstance(result.image, CompositeImage):
            frames.append(to_rgb_array(result.image))
        write_layers_gif(output_config.gif_path, frames)
        log(f"Wrote {output_config.gif_path}")

    return result


if __name__ == '__main__':
    main()
