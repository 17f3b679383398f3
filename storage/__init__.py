"""
Storage Package.

Durable outputs of the ingestion pipeline:
- interfaces: IngestionRecord, BlobStoreInterface, RecordStoreInterface
- blob_store: local filesystem blobs served by the web layer
- record_store: SQLite ingestion history (via utils.db)
"""
