"""Task that drains storage write requests into a media store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from streaminfa.storage import MediaStore, StorageError, StorageWrite, object_type_label

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BASE_DELAY_SECS = 0.1


@dataclass(frozen=True)
class WriterSummary:
    """Totals reported when the storage writer finishes."""

    segments_written: int
    bytes_written: int
    writes_failed: int


async def _next_write(
    write_queue: asyncio.Queue[StorageWrite | None], cancel: asyncio.Event
) -> StorageWrite | None:
    """Return the next write, or None if cancelled or the queue was closed."""
    if cancel.is_set():
        return None
    get_task = asyncio.ensure_future(write_queue.get())
    cancel_task = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({get_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (get_task, cancel_task):
            if not task.done():
                task.cancel()
    if cancel.is_set():
        return None
    return get_task.result()


async def _store_write(store: MediaStore, write: StorageWrite) -> None:
    if write.path.endswith(".m3u8"):
        content = bytes(write.data).decode("utf-8", errors="replace")
        await store.put_manifest(write.path, content)
    else:
        await store.put_segment(write.path, write.data, write.content_type)


async def run_storage_writer(
    stream_id: str,
    store: MediaStore,
    write_queue: asyncio.Queue[StorageWrite | None],
    cancel: asyncio.Event,
) -> WriterSummary:
    """Write every queued ``StorageWrite`` to ``store`` until cancelled.

    A ``None`` on the queue marks it as closed. Each write is attempted up to
    ``MAX_RETRIES`` extra times with exponential backoff (0.1 s, 0.2 s, 0.4 s);
    a write that still fails is logged and skipped.
    """
    logger.info("storage writer task started stream_id=%s", stream_id)
    written = 0
    total_bytes = 0
    failed = 0

    while True:
        write = await _next_write(write_queue, cancel)
        if write is None:
            if cancel.is_set():
                logger.info("storage writer cancelled stream_id=%s", stream_id)
            else:
                logger.info("packager queue closed, storage writer finishing stream_id=%s", stream_id)
            break

        object_type = object_type_label(write.path)
        last_error: StorageError | None = None
        for attempt in range(MAX_RETRIES + 1):
            try:
                await _store_write(store, write)
            except StorageError as exc:
                last_error = exc
                if attempt < MAX_RETRIES:
                    delay = RETRY_BASE_DELAY_SECS * (1 << attempt)
                    logger.warning(
                        "storage write failed, retrying stream_id=%s path=%s attempt=%d delay=%.3fs",
                        stream_id, write.path, attempt + 1, delay,
                    )
                    await asyncio.sleep(delay)
            else:
                last_error = None
                written += 1
                total_bytes += len(write.data)
                logger.debug(
                    "storage write completed stream_id=%s path=%s size=%d type=%s attempt=%d",
                    stream_id, write.path, len(write.data), object_type, attempt,
                )
                break

        if last_error is not None:
            failed += 1
            logger.error(
                "storage write failed after all retries stream_id=%s path=%s error=%s retries=%d",
                stream_id, write.path, last_error, MAX_RETRIES,
            )

    logger.info(
        "storage writer task finished stream_id=%s segments_written=%d bytes_written=%d",
        stream_id, written, total_bytes,
    )
    return WriterSummary(
        segments_written=written, bytes_written=total_bytes, writes_failed=failed
    )