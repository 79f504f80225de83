from cozeapi.utils.sse import SSEFrame, iter_sse_frames
from cozeapi.utils.time import epoch_seconds

__all__ = ["SSEFrame", "iter_sse_frames", "epoch_seconds"]
