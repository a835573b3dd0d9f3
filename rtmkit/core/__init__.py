"""Event ingestion core: envelope decoding, typed dispatch, event stream."""
