"""
chain-ingest - Test Suite

Unit and integration tests for the block ingestion pump.

Test Organization:
- test_models.py: Cursor, chain parsing and index record models
- test_partition.py: Partition key function
- test_sources.py: Block file and in-memory sources
- test_storage.py: SQLite table store, file and memory blob stores
- test_checkpoint.py: Cursor persistence
- test_batcher.py: Per-partition batching
- test_workers.py: Bounded worker pool
- test_writers.py: Retrying remote writers
- test_ingest.py: End-to-end pipeline runs
- test_config.py: Settings loading
- test_cli.py: Command-line interface

Fixtures are in tests/fixtures/:
- factories.py: BlockFactory for generating test blocks

Run tests:
    $ pytest tests/ -v
"""
