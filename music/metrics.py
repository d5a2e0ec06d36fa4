"""Prometheus metric definitions for crabrave."""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, start_http_server

tracks_played_total = Counter(
    "crabrave_tracks_played_total",
    "Total tracks played across all guilds",
)
playback_errors_total = Counter(
    "crabrave_playback_errors_total",
    "Total playback errors",
)
queue_size = Gauge(
    "crabrave_queue_size",
    "Current queue size",
    ["guild_id"],
)
active_instances = Gauge(
    "crabrave_active_instances",
    "Number of guilds with a playback instance",
)
voice_connections = Gauge(
    "crabrave_voice_connections",
    "Number of active voice connections",
)
ytdl_fetch_seconds = Histogram(
    "crabrave_ytdl_fetch_seconds",
    "Time to fetch audio info from yt-dlp",
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)


def start_metrics_server(port: int = 9090) -> None:
    start_http_server(port)
