"""Shared pytest fixtures for the ink_ctc test suite.

Fixtures:
    blank_raster: 100x200 white grayscale raster
    square_blob_raster: one 40x40 black square
    two_blob_raster: a narrow and a wide block, well separated
    ab_vocab: vocabulary ['A', 'B'] (ids 1, 2)
    hira_vocab: vocabulary ['あ', 'い', '。'] (ids 1, 2, 3)
    make_log_probs: builds a near-certain [T, V] log-probability matrix
    fixed_model / queued_model: stand-ins for the recognition network
"""

import sys
from pathlib import Path

import numpy as np
import pytest
import torch

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from ink_ctc import CTCVocab  # noqa: E402


def draw_rect(canvas, x0, y0, x1, y1, value=0):
    """Fill [x0, x1) x [y0, y1) in place"""
    canvas[y0:y1, x0:x1] = value
    return canvas


def near_certain_log_probs(ids, vocab_size, p=0.97):
    """Rows where the given id has probability p and the rest share 1 - p"""
    rest = (1.0 - p) / (vocab_size - 1)
    probs = np.full((len(ids), vocab_size), rest, dtype=np.float64)
    for t, idx in enumerate(ids):
        probs[t, idx] = p
    return np.log(probs)


class FixedModel:
    """Returns the same output for every input and records the inputs"""

    def __init__(self, output):
        self.output = output
        self.inputs = []

    def __call__(self, x):
        self.inputs.append(x)
        return self.output


class QueuedModel:
    """Returns the queued outputs one call at a time"""

    def __init__(self, outputs):
        self.outputs = list(outputs)
        self.calls = 0

    def __call__(self, x):
        self.calls += 1
        return self.outputs.pop(0)


@pytest.fixture
def blank_raster():
    return np.full((100, 200), 255, dtype=np.uint8)


@pytest.fixture
def square_blob_raster(blank_raster):
    return draw_rect(blank_raster.copy(), 30, 30, 70, 70)


@pytest.fixture
def two_blob_raster():
    canvas = np.full((100, 400), 255, dtype=np.uint8)
    draw_rect(canvas, 20, 20, 80, 80)
    draw_rect(canvas, 200, 20, 340, 80)
    return canvas


@pytest.fixture
def ab_vocab():
    return CTCVocab(['A', 'B'])


@pytest.fixture
def hira_vocab():
    return CTCVocab(['あ', 'い', '。'])


@pytest.fixture
def make_log_probs():
    return near_certain_log_probs


@pytest.fixture
def as_model_output():
    """Wrap a [T, V] matrix as a [T, 1, V] float tensor"""
    def wrap(log_probs):
        return torch.from_numpy(np.asarray(log_probs, dtype=np.float32)).unsqueeze(1)
    return wrap


@pytest.fixture
def fixed_model():
    return FixedModel


@pytest.fixture
def queued_model():
    return QueuedModel


@pytest.fixture
def draw():
    return draw_rect
