"""
Progress reporting.

Stages are advisory breadcrumbs emitted in a fixed order per operation. Each
emission carries the context's current increment and percentage so an
observer can draw a progress bar without recomputing anything.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from sfconnector.engine.context import ConnectionContext


logger = logging.getLogger(__name__)

ProgressObserver = Callable[..., None]


class ProgressStage(str, Enum):
    """Closed set of progress stages."""

    PREPARE = "prepare"
    CREATE_PROJECT = "createProject"
    LOADING_LOCAL = "loadingLocal"
    LOADING_ORG = "loadingOrg"
    RETRIEVE = "retrieve"
    PROCESS = "process"
    COPY_DATA = "copyData"
    COPY_FILE = "copyFile"
    COMPRESS_FILE = "compressFile"
    BEFORE_DOWNLOAD = "beforeDownload"
    AFTER_DOWNLOAD = "afterDownload"
    ERROR_DOWNLOAD = "errorDownload"


class ProgressStatus(BaseModel):
    """One progress event."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    stage: ProgressStage = Field(description="Stage being reported")
    increment: float = Field(default=0.0, description="Progress per completed item")
    percentage: float = Field(default=0.0, description="Accumulated progress")
    type_name: Optional[str] = Field(default=None, description="Metadata type involved")
    object_name: Optional[str] = Field(default=None, description="Metadata object involved")
    item_name: Optional[str] = Field(default=None, description="Metadata item involved")
    data: Any = Field(default=None, description="Stage payload (downloaded type, file path, ...)")


_CLOSED = object()


class ProgressStream:
    """
    Bounded async iterator over progress events.

    When the buffer is full the oldest event is dropped so emitters never
    block.
    """

    def __init__(self, maxsize: int = 100):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(maxsize, 1))
        self.closed = False
        self.dropped = 0

    def put(self, status: ProgressStatus) -> None:
        if self.closed:
            return
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(status)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "ProgressStream":
        return self

    async def __anext__(self) -> ProgressStatus:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class ProgressChannel:
    """
    Emits progress events for one connection.

    At most one callback observer is notified per event: the per-call
    observer if given, otherwise the connection-level default.
    """

    def __init__(self, context: ConnectionContext):
        self._context = context
        self._streams: List[ProgressStream] = []

    def reset(self) -> None:
        self._context.reset_progress()

    def set_total(self, increment: float) -> None:
        self._context.increment = increment

    def advance(self) -> None:
        self._context.percentage += self._context.increment

    def open_stream(self, maxsize: int = 100) -> ProgressStream:
        stream = ProgressStream(maxsize)
        self._streams.append(stream)
        return stream

    def close_streams(self) -> None:
        for stream in self._streams:
            stream.close()
        self._streams = []

    def emit(
        self,
        stage: ProgressStage,
        observer: Optional[ProgressObserver] = None,
        type_name: Optional[str] = None,
        object_name: Optional[str] = None,
        item_name: Optional[str] = None,
        data: Any = None,
    ) -> ProgressStatus:
        """
        Notify the observer and any open streams of a stage.

        Args:
            stage: Stage being reported
            observer: Per-call observer; takes precedence over the default
            type_name: Metadata type involved, if any
            object_name: Metadata object involved, if any
            item_name: Metadata item involved, if any
            data: Stage payload

        Returns:
            The emitted ProgressStatus.
        """
        status = ProgressStatus(
            stage=stage,
            increment=self._context.increment,
            percentage=self._context.percentage,
            type_name=type_name,
            object_name=object_name,
            item_name=item_name,
            data=data,
        )
        callback = observer or self._context.progress_observer
        if callback is not None:
            try:
                callback(
                    status.stage,
                    status.increment,
                    status.percentage,
                    status.type_name,
                    status.object_name,
                    status.item_name,
                    status.data,
                )
            except Exception:
                logger.exception(f"[progress] Observer failed on stage '{stage.value}'")

        self._streams = [stream for stream in self._streams if not stream.closed]
        for stream in self._streams:
            stream.put(status)
        return status
