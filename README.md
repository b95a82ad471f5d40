# streaminfa

A library for the middle of an HLS video pipeline. Demuxed frames go in.
Out come fragmented MP4 segments, HLS playlists and storage writes. The
package has no runtime dependencies beyond the standard library.

## Modules

| Module | What it provides |
| --- | --- |
| `streaminfa.profile` | `RenditionId`, `TranscodeProfile`, `SelectedRendition`, `select_renditions`, `codec_string`, `codecs_attribute`, `bandwidth` |
| `streaminfa.segment` | `EncodedPacket`, `EncodedSegment`, `SegmentAccumulator` |
| `streaminfa.hls` | `InitSegmentParams`, `MediaSegmentParams`, `SampleInfo`, `PackageError`, `generate_init_segment`, `generate_media_segment` |
| `streaminfa.manifest` | `RenditionInfo`, `PlaylistSegment`, `generate_multivariant_playlist`, `generate_media_playlist`, path helpers |
| `streaminfa.segment_index` | `SegmentEntry`, `SegmentIndex` (sliding live window) |
| `streaminfa.storage` | `MediaStore` (abstract), `InMemoryMediaStore`, `StorageWrite`, `StorageError`, `content_type_for_path`, `object_type_label` |
| `streaminfa.cache` | `CacheConfig`, `ObjectCache` |
| `streaminfa.pipeline` | `TranscodeConfig`, `DemuxedFrame`, `TrackKind`, `TranscodeError`, `TranscodePipeline` |
| `streaminfa.runner` | `PackagingConfig`, `SegmentProduced`, `RenditionComplete`, `run_packager` |
| `streaminfa.writer` | `run_storage_writer`, `WriterSummary` |

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

### Choosing renditions

```python
from streaminfa.profile import TranscodeProfile, select_renditions, codecs_attribute, bandwidth

ladder = [
    TranscodeProfile(name="high", width=1920, height=1080, bitrate_kbps=3500,
                     audio_bitrate_kbps=128, profile="high", level="4.1", preset="medium"),
    TranscodeProfile(name="low", width=854, height=480, bitrate_kbps=1000,
                     audio_bitrate_kbps=96, profile="main", level="3.0", preset="medium"),
]

for r in select_renditions(1280, 720, ladder):
    print(r.id, codecs_attribute(r.profile, r.level, True),
          bandwidth(r.video_bitrate_kbps, r.audio_bitrate_kbps))
```

`select_renditions` skips every rung that would upscale the source. If the
source is smaller than every rung, it returns one `RenditionId.SOURCE`
rendition at the source resolution, using the settings of the last rung.
`bandwidth` adds 10% overhead to the combined bitrate. For example,
`bandwidth(3500, 128)` is `3990800`, and `codec_string("high", "4.1")` is
`"avc1.640029"`.

### Segmenting

`SegmentAccumulator.push` takes an `EncodedPacket` with a 90 kHz PTS. It
returns an `EncodedSegment` at the first video keyframe reached once the
target duration has elapsed. Otherwise it returns `None`. `flush()` emits
any remaining video as a segment with `is_last=True`.

### Writing playlists

```python
from streaminfa.manifest import PlaylistSegment, generate_media_playlist, segment_filename

segments = [
    PlaylistSegment(sequence=0, duration_secs=6.006, filename=segment_filename(0)),
    PlaylistSegment(sequence=1, duration_secs=4.238, filename=segment_filename(1)),
]
print(generate_media_playlist(segments, 7, is_vod=True, is_finished=True))
```

How the media playlist is built:

- `#EXT-X-TARGETDURATION` is the longest segment duration, rounded up, and
  never less than 1.
- `#EXT-X-MEDIA-SEQUENCE` is the sequence number of the first segment.
- `#EXT-X-ENDLIST` is written for VOD playlists and for finished live
  playlists.

The path helpers give the storage layout:

- `segment_path` gives `{stream}/{rendition}/{seq:06}.m4s`.
- `init_segment_path` gives `{stream}/{rendition}/init.mp4`.
- `media_playlist_path` gives `{stream}/{rendition}/media.m3u8`.
- `master_playlist_path` gives `{stream}/master.m3u8`.

### A live window

```python
from streaminfa.profile import RenditionId
from streaminfa.segment_index import SegmentIndex

index = SegmentIndex("stream-1", RenditionId.HIGH, 5)
index.add_segment(6.0, "stream-1/high/000000.m4s", 200_000)
print(index.media_sequence, len(index))
print(index.generate_playlist(7, False, False))
```

When the window overflows, `add_segment` returns the `SegmentEntry` it
evicted. Each entry is stamped with the current UTC time, which is written
as `#EXT-X-PROGRAM-DATE-TIME`.

### fMP4 segments

```python
from streaminfa.hls import InitSegmentParams, generate_init_segment

init = generate_init_segment(InitSegmentParams(
    width=1920, height=1080, video_timescale=90000, audio_timescale=48000,
    sps=b"\x67\x64\x00\x29", pps=b"\x68\xee\x3c\x80",
    audio_specific_config=b"\x12\x10", has_audio=True,
))
```

`generate_init_segment` writes `ftyp` and `moov`. `generate_media_segment`
writes `styp`, `moof` and `mdat`. Either one raises `PackageError` when a
field does not fit its box field.

### Storage and caching

```python
import asyncio
from streaminfa.storage import InMemoryMediaStore

async def main():
    store = InMemoryMediaStore()
    await store.put_segment("s1/high/000000.m4s", b"\x00" * 10, "video/mp4")
    out = await store.get_object_range("s1/high/000000.m4s", 2, 5)
    print(out.body, out.etag)

asyncio.run(main())
```

Behaviour of `InMemoryMediaStore`:

- Ranges are inclusive.
- The ETag is the object length in quotes.
- `StorageError` is raised for a missing object and for a range that
  starts past the end.

The rules `ObjectCache` follows:

- `get` returns a `CachedObject(data, content_type, etag)`, or `None`.
- Segments and init segments expire after `segment_ttl_secs`.
- Master playlists and other keys expire after `ttl_secs`.
- Media playlists expire after one second.
- Least recently used entries are evicted to stay under `max_size_bytes`.
- An object larger than half that size is never cached.
- `invalidate`, `entry_count` and `current_size_bytes` are available.

## Pipeline

The three stages are coroutines, linked by `asyncio.Queue` objects. Each one
stops when its `cancel` event (`asyncio.Event`) is set, or when it reads
`None` from its input queue.

1. `TranscodePipeline(config, state_manager=None, cancel=None).run_live(...)`
   reads `DemuxedFrame` objects and puts `EncodedSegment` objects on the
   segment queue. The target segment length is three keyframe intervals.
   It raises `TranscodeError` in two cases: when no rendition can be
   selected, and after 10 consecutive frame failures. When the loop ends,
   each accumulator is flushed. If a `state_manager` is given, the pipeline
   calls its `set_expected_renditions(stream_id, count)`.
2. `run_packager` first writes an init segment for each rendition. For
   every segment it then queues, as `StorageWrite` objects, the media
   segment and the updated media playlist. After that it emits a
   `SegmentProduced` event, and a `RenditionComplete` event for a last
   segment. At the end it queues the multivariant playlist. It does not put
   `None` on the storage queue. The caller closes that queue.
3. `run_storage_writer` writes each `StorageWrite` to a `MediaStore`.
   Playlists go through `put_manifest` and everything else through
   `put_segment`. A failed write is retried up to three times, with delays
   of 0.1, 0.2 and 0.4 s. The writer returns a `WriterSummary`.

## What this package does not do

- **No real decoding or encoding.** `TranscodePipeline` passes each frame's
  compressed bytes through to every rendition unchanged. Renditions differ
  only in the metadata they carry.
- **Placeholder codec data in init segments.** The packager writes fixed
  SPS, PPS and AAC configuration bytes. The `trun` data offset is written
  as 0.
- **Only in-memory storage.** The only backend is `InMemoryMediaStore`.
  There is no object-store backend, no HTTP origin server and no
  background cleanup of expired segments.
- **No command-line program.** The package is used as a library.