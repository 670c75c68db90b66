"""SQL text for every statement the collector issues.

Per-database statements take the registered database names as a single
``text[]`` parameter (``$1``) so names never get spliced into the SQL.
"""

from __future__ import annotations

PG_VERSION_17 = 170000


def query_server_version() -> str:
    return "SHOW server_version_num;"


def query_settings_max_connections() -> str:
    return "SELECT current_setting('max_connections')::INT - current_setting('superuser_reserved_connections')::INT;"


def query_database_list() -> str:
    return """
SELECT datname
FROM pg_database
WHERE datallowconn = true
  AND datistemplate = false
  AND has_database_privilege(datname, 'connect')
ORDER BY datname;
"""


def query_server_current_connections() -> str:
    return "SELECT sum(numbackends) FROM pg_stat_database;"


def query_checkpoints(server_version: int) -> str:
    """Checkpointer and background writer counters.

    PostgreSQL 17 moved the checkpointer counters into ``pg_stat_checkpointer``
    and dropped the backend buffer columns; those are reported as zero there.
    """

    if server_version >= PG_VERSION_17:
        return """
SELECT ckpt.num_timed                                                 AS checkpoints_timed,
       ckpt.num_requested                                             AS checkpoints_req,
       ckpt.write_time::bigint                                        AS checkpoint_write_time,
       ckpt.sync_time::bigint                                         AS checkpoint_sync_time,
       ckpt.buffers_written * current_setting('block_size')::numeric AS buffers_checkpoint,
       bgw.buffers_clean * current_setting('block_size')::numeric    AS buffers_clean,
       bgw.maxwritten_clean                                           AS maxwritten_clean,
       0                                                              AS buffers_backend,
       0                                                              AS buffers_backend_fsync,
       bgw.buffers_alloc * current_setting('block_size')::numeric    AS buffers_alloc
FROM pg_stat_checkpointer ckpt
         CROSS JOIN pg_stat_bgwriter bgw;
"""
    return """
SELECT checkpoints_timed,
       checkpoints_req,
       checkpoint_write_time::bigint                             AS checkpoint_write_time,
       checkpoint_sync_time::bigint                              AS checkpoint_sync_time,
       buffers_checkpoint * current_setting('block_size')::numeric AS buffers_checkpoint,
       buffers_clean * current_setting('block_size')::numeric      AS buffers_clean,
       maxwritten_clean,
       buffers_backend * current_setting('block_size')::numeric    AS buffers_backend,
       buffers_backend_fsync,
       buffers_alloc * current_setting('block_size')::numeric      AS buffers_alloc
FROM pg_stat_bgwriter;
"""


def query_database_stats() -> str:
    return """
SELECT stat.datname,
       stat.numbackends,
       pg_database.datconnlimit,
       stat.xact_commit,
       stat.xact_rollback,
       stat.blks_read,
       stat.blks_hit,
       stat.tup_returned,
       stat.tup_fetched,
       stat.tup_inserted,
       stat.tup_updated,
       stat.tup_deleted,
       stat.conflicts,
       stat.temp_files,
       stat.temp_bytes,
       stat.deadlocks,
       pg_database_size(stat.datname) AS size
FROM pg_stat_database stat
         INNER JOIN pg_database ON pg_database.datname = stat.datname
WHERE pg_database.datname = ANY ($1::text[]);
"""


def query_database_conflicts() -> str:
    return """
SELECT datname,
       confl_tablespace,
       confl_lock,
       confl_snapshot,
       confl_bufferpin,
       confl_deadlock
FROM pg_stat_database_conflicts
WHERE datname = ANY ($1::text[]);
"""


def query_database_locks() -> str:
    return """
SELECT pg_database.datname,
       mode,
       granted,
       count(mode) AS locks_count
FROM pg_locks
         INNER JOIN pg_database ON pg_database.oid = pg_locks.database
WHERE pg_database.datname = ANY ($1::text[])
GROUP BY pg_database.datname, mode, granted
ORDER BY pg_database.datname, mode;
"""


__all__ = [
    "PG_VERSION_17",
    "query_checkpoints",
    "query_database_conflicts",
    "query_database_list",
    "query_database_locks",
    "query_database_stats",
    "query_server_current_connections",
    "query_server_version",
    "query_settings_max_connections",
]
