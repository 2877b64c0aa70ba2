"""Document workspace service: field schemas, row reconciliation and file ingestion."""
