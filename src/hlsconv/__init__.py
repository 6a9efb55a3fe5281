"""HLS to MP4 conversion service.

Accepts requests to transcode remote M3U8 playlists into MP4 files with
ffmpeg, runs each conversion as a background job, and exposes job progress
and the produced artifacts over HTTP.
"""

__version__ = "1.0.0"
