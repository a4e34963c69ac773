"""
Defines the progress database schema using a SQL string constant.

Timestamps are stored as naive UTC TIMESTAMP values; the marshalling layer
strips and re-attaches the UTC zone.
"""

DB_SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS progress (
        learner_id VARCHAR NOT NULL,
        vocabulary_id VARCHAR NOT NULL,
        state VARCHAR NOT NULL,
        due_at TIMESTAMP,
        interval_days INTEGER NOT NULL DEFAULT 0,
        ease DOUBLE NOT NULL,
        step_index INTEGER NOT NULL DEFAULT 0,
        last_reviewed_at TIMESTAMP,
        reps INTEGER NOT NULL DEFAULT 0,
        lapses INTEGER NOT NULL DEFAULT 0,
        first_reviewed_at TIMESTAMP,
        first_reviewed_day_key VARCHAR,
        PRIMARY KEY (learner_id, vocabulary_id)
    );
"""
