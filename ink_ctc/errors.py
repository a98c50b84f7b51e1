"""
Exceptions raised by the recognition pipeline
"""


class InkCTCError(Exception):
    """Base class for pipeline errors"""


class EmptyInkError(InkCTCError):
    """Nothing was drawn: no pixel is darker than the ink threshold"""


class UnexpectedOutputShapeError(InkCTCError):
    """The model returned a tensor that is not [T,1,V], [1,T,V] or [T,V]"""

    def __init__(self, shape):
        self.shape = tuple(int(d) for d in shape)
        super().__init__(f"Unexpected output shape: {self.shape}")


class DegenerateBeamError(InkCTCError):
    """Beam search finished without any surviving prefix"""
