"""
ETL pipeline components for caregiver and carelog ingestion.

Modules:
    base: Abstract extractor producing 1-based RawRecords
    types: RawRecord and transform outcomes
    runner: ETL orchestrator that coordinates extract, transform, and load phases
    retry: Backoff policy for whole-extraction retries
    audit: Writes a pipeline_runs row for every run
    scheduler: APScheduler integration for periodic runs

Subpackages:
    entities: Per-entity strategies (aliases, cleaning, rules, inserts)
    extractors: File, HTTP and database extractors
    transformers: Field cleaning and the record transformer
    loaders: Batch loader with per-record savepoints and a circuit breaker

Architecture:
    1. Extract - Fetch every row from one source; the whole call is retried
    2. Transform - One outcome per row, never raises
    3. Load - One transaction per batch, one savepoint per record

    Bad records never abort a run; only exhausted extraction retries,
    configuration errors and fatal load errors do.

Usage:
    from ingestion.audit import run_and_record

    result, run = await run_and_record(
        session,
        "carelog",
        {"type": "file", "path": "data/carelogs.csv"},
        {"batch_size": 100},
    )
    print(f"Loaded {result.loaded_count} records")
"""
