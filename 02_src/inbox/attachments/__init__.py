"""Attachments module."""

from .backends import HttpAttachmentStorage, IAttachmentStorage, LocalAttachmentStorage
from .uploader import AttachmentUploader, PreviewRegistry

__all__ = [
    "AttachmentUploader",
    "HttpAttachmentStorage",
    "IAttachmentStorage",
    "LocalAttachmentStorage",
    "PreviewRegistry",
]
