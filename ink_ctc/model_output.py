"""
Reading the recognition model output as a [T, V] log-probability matrix
"""

import logging
from enum import Enum

import numpy as np
import torch

from .errors import UnexpectedOutputShapeError

logger = logging.getLogger(__name__)


class OutputLayout(Enum):
    T1V = 'T1V'      # [T, 1, V], the usual CTC layout
    ONE_TV = '1TV'   # [1, T, V], batch first
    TV = 'TV'        # [T, V]

    @classmethod
    def from_shape(cls, shape):
        shape = tuple(int(d) for d in shape)
        if len(shape) == 3 and shape[1] == 1:
            return cls.T1V
        if len(shape) == 3 and shape[0] == 1:
            return cls.ONE_TV
        if len(shape) == 2:
            return cls.TV
        raise UnexpectedOutputShapeError(shape)

    def to_tv(self, arr):
        if self is OutputLayout.T1V:
            return arr[:, 0, :]
        if self is OutputLayout.ONE_TV:
            return arr[0]
        return arr


def to_numpy(output) -> np.ndarray:
    if isinstance(output, torch.Tensor):
        return output.detach().cpu().float().numpy()
    return np.asarray(output)


def extract_log_probs(output, valid_time_steps=None) -> np.ndarray:
    """[min(T, valid_time_steps), V] float64 matrix from a model output"""
    arr = to_numpy(output)
    try:
        layout = OutputLayout.from_shape(arr.shape)
    except UnexpectedOutputShapeError:
        logger.error("Model returned unexpected output shape %s", arr.shape)
        raise

    tv = layout.to_tv(arr)
    if valid_time_steps is not None:
        tv = tv[:max(0, min(tv.shape[0], int(valid_time_steps)))]
    logger.debug("Model output %s read as %s, %d time steps kept",
                 arr.shape, layout.value, tv.shape[0])
    return np.array(tv, dtype=np.float64)
