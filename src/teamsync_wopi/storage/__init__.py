# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Byte-addressable blob storage behind a get/put/delete contract.

The document store keeps metadata itself and delegates content bytes to a
BlobStore keyed by file identifier. Backends:

    memory: process-local dict (default, lost on restart)
    local: one file per key under a base directory

Usage:
    from teamsync_wopi.storage import create_blob_store

    blobs = create_blob_store("local", base_path="/data/documents")
    await blobs.put("doc-1", b"...")
    data = await blobs.get("doc-1")
"""

from .blob_store import BlobStore, LocalBlobStore, MemoryBlobStore, create_blob_store

__all__ = ["BlobStore", "LocalBlobStore", "MemoryBlobStore", "create_blob_store"]
