"""
Pydantic schemas for validation and serialization.

Schemas:
    sources: Source descriptors (file, http, database) and run options
    records: Typed caregiver and carelog records produced by the transformer
    pipeline: LoadResult and PipelineRunResult
    api: Request/response models for the REST API

Validation:
    Descriptors and options are validated before any I/O; invalid values
    surface as core.exceptions.ConfigurationError.
"""
