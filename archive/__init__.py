"""
Remote Archive Package.

Access to the folder-partitioned camera archive:
- interfaces: RemoteStoreInterface and listing data classes
- drive_client: Google Drive v3 implementation
- scanner: resumable, de-duplicating traversal of the archive
"""
