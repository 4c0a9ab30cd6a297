"""SQL queries for extraction job tracking and agent requests."""

EXTRACTION_JOB_COLUMNS = """
        id,
        request_id,
        status,
        num_files,
        files_processed,
        files_failed,
        total_processing_time_ms,
        average_processing_time_ms,
        started_at,
        completed_at,
        error_message,
        metadata
"""

GET_EXTRACTION_JOB = f"""
    SELECT {EXTRACTION_JOB_COLUMNS}
    FROM cv_extraction_tracking
    WHERE request_id = %s
"""

# Returns no row when another writer created the job first
INSERT_EXTRACTION_JOB = f"""
    INSERT INTO cv_extraction_tracking (
        request_id, status, num_files, files_processed, files_failed,
        started_at, completed_at, error_message, metadata
    )
    VALUES (%s, %s, %s, 0, 0, %s, %s, %s, %s)
    ON CONFLICT (request_id) DO NOTHING
    RETURNING {EXTRACTION_JOB_COLUMNS}
"""

# Terminal rows are never updated; zero rows back means the job finished
# concurrently.
UPDATE_EXTRACTION_JOB = f"""
    UPDATE cv_extraction_tracking
    SET
        status = %s,
        files_processed = %s,
        files_failed = %s,
        total_processing_time_ms = %s,
        average_processing_time_ms = %s,
        completed_at = %s,
        error_message = %s,
        metadata = %s,
        updated_at = NOW()
    WHERE request_id = %s
      AND completed_at IS NULL
    RETURNING {EXTRACTION_JOB_COLUMNS}
"""

LIST_EXTRACTION_JOBS = f"""
    SELECT {EXTRACTION_JOB_COLUMNS}
    FROM cv_extraction_tracking
    ORDER BY started_at DESC NULLS LAST, id DESC
    LIMIT %s OFFSET %s
"""

GET_EXTRACTION_STATS = """
    SELECT
        COUNT(*) AS total_jobs,
        COUNT(*) FILTER (WHERE status = 'completed') AS completed_jobs,
        COUNT(*) FILTER (WHERE status = 'failed') AS failed_jobs,
        COUNT(*) FILTER (WHERE status = 'processing') AS processing_jobs,
        COUNT(*) FILTER (WHERE status = 'pending') AS pending_jobs,
        AVG(average_processing_time_ms) AS average_processing_time_ms,
        COALESCE(SUM(files_processed), 0) AS total_files_processed,
        COALESCE(SUM(files_failed), 0) AS total_files_failed
    FROM cv_extraction_tracking
"""

AGENT_REQUEST_COLUMNS = """
        id,
        query,
        processing_type,
        status,
        created_at,
        completed_at,
        error_message
"""

GET_AGENT_REQUEST = f"""
    SELECT {AGENT_REQUEST_COLUMNS}
    FROM ai_agent_requests
    WHERE id = %s
"""

INSERT_AGENT_REQUEST = f"""
    INSERT INTO ai_agent_requests (id, query, processing_type, status, created_at)
    VALUES (%s, %s, %s, %s, %s)
    RETURNING {AGENT_REQUEST_COLUMNS}
"""

UPDATE_AGENT_REQUEST = f"""
    UPDATE ai_agent_requests
    SET status = %s, completed_at = %s, error_message = %s
    WHERE id = %s
      AND completed_at IS NULL
    RETURNING {AGENT_REQUEST_COLUMNS}
"""

INSERT_AGENT_RESPONSE = """
    INSERT INTO ai_agent_responses (request_id, response_text, skills, matches, created_at)
    VALUES (%s, %s, %s, %s, %s)
    RETURNING id
"""
