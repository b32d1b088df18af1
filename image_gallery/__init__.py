"""
AI Image Gallery - asynchronous image annotation backend.

Uploaded images are annotated in the background by an external AI vision
service (caption, tags, dominant colors). The annotation pipeline runs on one
asyncio event loop: a sequential job queue, a retrying annotation client, a
processing state store and a reconciliation poller.
"""

__version__ = "0.1.0"
