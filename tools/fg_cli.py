from __future__ import annotations
import argparse, json, sys

def main(argv=None):
    ap = argparse.ArgumentParser(prog="fg", description="Fatigue Governor CLI")
    ap.add_argument("--debug", action="store_true", help="debug-level logs")
    ap.add_argument("--json-logs", action="store_true", help="JSON log lines instead of console format")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Run a headless focus session with live input tracking")
    p_run.add_argument("--intensity", type=int, default=5, help="focus sensitivity 1..10")
    p_run.add_argument("--minutes", type=float, help="planned session length (defaults to the intensity time cap)")
    p_run.add_argument("--db", default="fatigue_governor.sqlite3")
    p_run.add_argument("--config", help="TOML file with a [fatigue] table")
    p_run.add_argument("--fresh", action="store_true", help="ignore a saved session snapshot")

    p_base = sub.add_parser("baselines", help="Show (or clear) the stored personal baselines")
    p_base.add_argument("--db", default="fatigue_governor.sqlite3")
    p_base.add_argument("--reset", action="store_true")

    p_hist = sub.add_parser("history", help="Dump stored per-window fatigue metrics")
    p_hist.add_argument("--db", default="fatigue_governor.sqlite3")
    p_hist.add_argument("--session")
    p_hist.add_argument("--limit", type=int)

    args = ap.parse_args(argv)

    from app.logging_config import configure_logging
    configure_logging(debug=args.debug, json=args.json_logs)

    if args.cmd == "run":
        from main import run_headless
        run_headless(
            intensity=args.intensity,
            minutes=args.minutes,
            db_path=args.db,
            config_path=args.config,
            resume=not args.fresh,
        )
        return 0

    if args.cmd == "baselines":
        from app.analytics.baseline import BaselineStore, LATENCY_KEY, VARIANCE_KEY
        from app.analytics.config import FatigueConfig
        from core.storage.kv_store import SqliteStore
        bs = BaselineStore(SqliteStore(args.db))
        if args.reset:
            bs.clear()
            print("Baselines cleared.")
            return 0
        cfg = FatigueConfig()
        stored = {k: bs.store.get(k) for k in (LATENCY_KEY, VARIANCE_KEY)}
        state = bs.snapshot(cfg.default_latency_baseline_ms, cfg.default_variance_baseline_ms)
        print(f"Latency baseline  : {state.latency_baseline_ms:.1f} ms" + ("" if stored[LATENCY_KEY] else " (default)"))
        print(f"Variance baseline : {state.variance_baseline_ms:.1f} ms" + ("" if stored[VARIANCE_KEY] else " (default)"))
        return 0

    if args.cmd == "history":
        from core.storage.metrics_log import MetricsLog
        rows = MetricsLog(args.db).for_session(args.session, limit=args.limit)
        for rec in rows:
            print(json.dumps(rec, separators=(",", ":")))
        if not rows:
            print("No metrics stored.", file=sys.stderr)
        return 0
    return 1

if __name__ == "__main__":
    sys.exit(main())
