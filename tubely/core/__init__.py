"""
Core business logic for video uploads.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or run subprocesses. The pipeline talks to its collaborators through
protocols, so it can be tested in isolation.
"""
