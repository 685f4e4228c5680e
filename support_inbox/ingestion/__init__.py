"""CSV ingestion: records, conversation windowing and the ingestion driver."""
