"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Scratch files, object storage (S3) and URL policies
- video: ffprobe and ffmpeg subprocesses
- records: Video record persistence

These wrappers translate between external formats and our domain models.
"""
