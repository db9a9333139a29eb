"""Vectorized orbit kernels for batches of seeds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
import tensorflow as tf

from .iterator import HORIZON
from .viewport import CoordinateMapper

_SEEDS = tf.TensorSpec(shape=[None], dtype=tf.float64)
_STEPS = tf.TensorSpec(shape=[None], dtype=tf.int32)
_FLOAT = tf.TensorSpec(shape=[], dtype=tf.float64)
_INT = tf.TensorSpec(shape=[], dtype=tf.int32)

# Step counters in the kernels are int32.
MAX_ITERATIONS = int(np.iinfo(np.int32).max)


@dataclass(frozen=True)
class BatchTally:
    """Counts produced by one batch of seeds."""

    counts: np.ndarray
    escaped: int
    orbit_points: int


def _orbit_step(zr: tf.Tensor, zi: tf.Tensor, cr: tf.Tensor, ci: tf.Tensor, active: tf.Tensor) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor]:
    """Perform a single iteration for the seeds still being followed."""

    zr_new = zr * zr - zi * zi + cr
    zi_new = 2.0 * zr * zi + ci
    zr = tf.where(active, zr_new, zr)
    zi = tf.where(active, zi_new, zi)
    return zr, zi, zr * zr + zi * zi


@tf.function(input_signature=[_SEEDS, _SEEDS, _INT])
def _escape_steps(cr: tf.Tensor, ci: tf.Tensor, max_iterations: tf.Tensor) -> tf.Tensor:
    """Step at which each seed escapes, or 0 when it stays bounded."""

    i = tf.constant(0, dtype=tf.int32)
    zr = tf.zeros_like(cr)
    zi = tf.zeros_like(ci)
    escaped_at = tf.zeros(tf.shape(cr), dtype=tf.int32)
    active = tf.ones(tf.shape(cr), dtype=tf.bool)

    def cond(i, zr, zi, escaped_at, active):
        return tf.logical_and(tf.less(i, max_iterations), tf.reduce_any(active))

    def body(i, zr, zi, escaped_at, active):
        i = i + 1
        zr, zi, mag = _orbit_step(zr, zi, cr, ci, active)
        # Orbits whose z stops being finite are treated as bounded.
        finite = tf.logical_and(tf.math.is_finite(zr), tf.math.is_finite(zi))
        escaping = active & finite & (mag > HORIZON)
        escaped_at = tf.where(escaping, i, escaped_at)
        active = active & finite & (mag <= HORIZON)
        return i, zr, zi, escaped_at, active

    _, _, _, escaped_at, _ = tf.while_loop(cond, body, (i, zr, zi, escaped_at, active))
    return escaped_at


@tf.function(input_signature=[_SEEDS, _SEEDS, _STEPS, _FLOAT, _FLOAT, _FLOAT, _FLOAT, _INT, _INT])
def _accumulate_orbits(
    cr: tf.Tensor,
    ci: tf.Tensor,
    escaped_at: tf.Tensor,
    real_min: tf.Tensor,
    imag_min: tf.Tensor,
    re_scale: tf.Tensor,
    im_scale: tf.Tensor,
    width: tf.Tensor,
    height: tf.Tensor,
) -> tf.Tensor:
    """Re-run escaping seeds and bin every in-frame orbit point."""

    size = width * height
    width_f = tf.cast(width, tf.float64)
    height_f = tf.cast(height, tf.float64)
    limit = tf.reduce_max(tf.concat([escaped_at, tf.zeros([1], dtype=tf.int32)], axis=0))

    i = tf.constant(0, dtype=tf.int32)
    zr = tf.zeros_like(cr)
    zi = tf.zeros_like(ci)
    # Slot 0 holds an empty entry so the concat below is defined for limit == 0.
    visits = tf.TensorArray(tf.int32, size=limit + 1, element_shape=tf.TensorShape([None]), infer_shape=False)
    visits = visits.write(0, tf.zeros([0], dtype=tf.int32))

    def cond(i, zr, zi, visits):
        return tf.less(i, limit)

    def body(i, zr, zi, visits):
        i = i + 1
        live = tf.less_equal(i, escaped_at)
        zr, zi, _ = _orbit_step(zr, zi, cr, ci, live)
        col = tf.floor((zr - real_min) * re_scale)
        row = tf.floor((zi - imag_min) * im_scale)
        inside = live & (col >= 0.0) & (col < width_f) & (row >= 0.0) & (row < height_f)
        flat = (
            tf.cast(tf.boolean_mask(row, inside), tf.int32) * width
            + tf.cast(tf.boolean_mask(col, inside), tf.int32)
        )
        return i, zr, zi, visits.write(i, flat)

    _, _, _, visits = tf.while_loop(cond, body, (i, zr, zi, visits))
    counts = tf.math.bincount(visits.concat(), minlength=size, maxlength=size, dtype=tf.int64)
    return tf.reshape(counts, tf.stack([height, width]))


def orbit_histogram(
    seeds_re: np.ndarray,
    seeds_im: np.ndarray,
    max_iterations: int,
    mapper: CoordinateMapper,
    *,
    device: Optional[str] = None,
) -> BatchTally:
    """Histogram the escaping orbits of a batch of seeds."""

    with tf.device(device if device is not None else "/CPU:0"):
        cr = tf.convert_to_tensor(np.asarray(seeds_re, dtype=np.float64))
        ci = tf.convert_to_tensor(np.asarray(seeds_im, dtype=np.float64))
        escaped_at = _escape_steps(cr, ci, tf.constant(max_iterations, dtype=tf.int32))
        mask = escaped_at > 0
        counts = _accumulate_orbits(
            tf.boolean_mask(cr, mask),
            tf.boolean_mask(ci, mask),
            tf.boolean_mask(escaped_at, mask),
            tf.constant(mapper.real_min, dtype=tf.float64),
            tf.constant(mapper.imag_min, dtype=tf.float64),
            tf.constant(mapper.re_scale, dtype=tf.float64),
            tf.constant(mapper.im_scale, dtype=tf.float64),
            tf.constant(mapper.width, dtype=tf.int32),
            tf.constant(mapper.height, dtype=tf.int32),
        )

    steps = escaped_at.numpy()
    return BatchTally(
        counts=counts.numpy(),
        escaped=int(np.count_nonzero(steps)),
        orbit_points=int(steps.sum(dtype=np.int64)),
    )
