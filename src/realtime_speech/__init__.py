"""Realtime voice sessions with incremental transcription."""

from . import config, session, transport, types
from .client import RealtimeApiClient
from .config import RealtimeDefaults, RecorderSettings, load_app_config
from .recorder import RealtimeRecorder, RecorderOptions, create_transport_factory
from .transcript import TranscriptReconciler, append_transcript_segment

__all__ = [
    "RealtimeApiClient",
    "RealtimeDefaults",
    "RealtimeRecorder",
    "RecorderOptions",
    "RecorderSettings",
    "TranscriptReconciler",
    "append_transcript_segment",
    "config",
    "create_transport_factory",
    "load_app_config",
    "session",
    "transport",
    "types",
]
