"""Exception types raised by the enhancement core."""


class InputError(ValueError):
    """Invalid image, parameter or mode supplied by the caller."""


class BufferShapeError(InputError):
    """Two buffers that must match in size do not."""


class StageFailure(RuntimeError):
    """A single enhancement stage (or collaborator call) failed.

    Recovered locally by the stage runner; never reaches the caller.
    """

    def __init__(self, stage: str, cause: Exception):
        super().__init__(f"{stage} failed: {cause}")
        self.stage = stage
        self.cause = cause
