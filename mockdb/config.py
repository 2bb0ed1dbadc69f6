"""Store configuration resolved from the environment.

Env driven tuning with clamping + sanity logging:
    - MOCKDB_DEFAULT_LIMIT   page size when find() gets no limit (default 100)
    - MOCKDB_HARD_LIMIT      largest page find() will return (default 1000)
    - MOCKDB_MAX_SKIP        largest skip find() honours (default 10000)
    - MOCKDB_MAX_QUERY_DEPTH sub-query nesting allowed before InvalidQueryError (default 32)
    - DEBUG_DB=1             request / op / match tracing to stderr
"""
from __future__ import annotations
import os
from dataclasses import dataclass, asdict
from typing import Any, Dict

from .logging_util import warn

DEFAULT_LIMIT = 100
HARD_LIMIT = 1000
MAX_SKIP = 10000
DEFAULT_MAX_QUERY_DEPTH = 32
MAX_QUERY_DEPTH = 256


@dataclass
class StoreConfig:
    default_limit: int = DEFAULT_LIMIT
    hard_limit: int = HARD_LIMIT
    max_skip: int = MAX_SKIP
    max_query_depth: int = DEFAULT_MAX_QUERY_DEPTH
    debug: bool = False

    @classmethod
    def from_env(cls) -> "StoreConfig":
        def _int(name: str, default: int) -> int:
            raw = os.environ.get(name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                warn("invalid_env_int", key=name, value=raw, default=default)
                return default
        default_limit = _int("MOCKDB_DEFAULT_LIMIT", DEFAULT_LIMIT)
        hard_limit = _int("MOCKDB_HARD_LIMIT", HARD_LIMIT)
        max_skip = _int("MOCKDB_MAX_SKIP", MAX_SKIP)
        depth = _int("MOCKDB_MAX_QUERY_DEPTH", DEFAULT_MAX_QUERY_DEPTH)
        debug = os.environ.get("DEBUG_DB", "0") not in ("", "0")
        # Clamp
        adjusted = {}
        if hard_limit < 1 or hard_limit > HARD_LIMIT:
            adjusted["hard_limit"] = hard_limit
            hard_limit = min(HARD_LIMIT, max(1, hard_limit))
        if default_limit < 1 or default_limit > hard_limit:
            adjusted["default_limit"] = default_limit
            default_limit = min(hard_limit, max(1, default_limit))
        if max_skip < 0 or max_skip > MAX_SKIP:
            adjusted["max_skip"] = max_skip
            max_skip = min(MAX_SKIP, max(0, max_skip))
        if depth < 1 or depth > MAX_QUERY_DEPTH:
            adjusted["max_query_depth"] = depth
            depth = min(MAX_QUERY_DEPTH, max(1, depth))
        if adjusted:
            final_values = {"default_limit": default_limit, "hard_limit": hard_limit,
                            "max_skip": max_skip, "max_query_depth": depth}
            warn("store_config_clamped", original=adjusted, clamped=final_values)
        return cls(default_limit=default_limit, hard_limit=hard_limit, max_skip=max_skip,
                   max_query_depth=depth, debug=debug)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def cli_dump_config():  # pragma: no cover - thin CLI wrapper
    """CLI helper: print resolved StoreConfig + empty store stats JSON."""
    import argparse, json
    from .database import MockDatabase
    ap = argparse.ArgumentParser(description='Dump store config and stats')
    ap.add_argument('--collection', action='append', default=[],
                    help='Touch a collection so it shows up in stats (repeatable)')
    args = ap.parse_args()
    db = MockDatabase()
    for name in args.collection:
        db.store.collection(name)
    out = {'config': db.config.to_dict(), 'stats': db.stats()}
    print(json.dumps(out, indent=2))


if __name__ == '__main__':  # pragma: no cover
    cli_dump_config()
