from __future__ import annotations

CREATE_EVENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS pipeline_events (
  ts_ms BIGINT,
  stage TEXT,
  identifier TEXT,
  cache_hit BOOLEAN,
  feature_count INTEGER,
  duration_ms DOUBLE,
  error TEXT
);
"""

SUMMARY_SQL_TEMPLATE = """
SELECT
  stage,
  COUNT(*) AS n,
  SUM(CASE WHEN error IS NOT NULL THEN 1 ELSE 0 END) AS failures,
  AVG(duration_ms) AS avg_ms,
  quantile_cont(duration_ms, 0.95) AS p95_ms,
  AVG(CASE WHEN cache_hit THEN 1 ELSE 0 END) AS cache_hit_rate,
  SUM(feature_count) AS features
FROM pipeline_events
{where_sql}
GROUP BY stage
ORDER BY stage
"""

INSERT_EVENTS_SQL = """
INSERT INTO pipeline_events
  (ts_ms, stage, identifier, cache_hit, feature_count, duration_ms, error)
VALUES (?, ?, ?, ?, ?, ?, ?)
"""
