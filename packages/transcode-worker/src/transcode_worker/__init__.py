"""Transcode worker: normalizes uploaded videos and publishes them to the catalog."""
