"""
Tubely - video upload and hosting service.

This package contains the complete application:
- core: Framework-agnostic upload pipeline
- infrastructure: Object storage, FFmpeg and record store adapters
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
