# main.py
from __future__ import annotations
import time
from typing import Optional
import structlog
from app.logging_config import configure_logging
from app.analytics.config import load_config
from app.controller.runner import HookRuntime
from app.controller.session import SessionStatus
from app.policy.insights import Insight

def run_headless(
    intensity: int = 5,
    minutes: Optional[float] = None,
    db_path: Optional[str] = "fatigue_governor.sqlite3",
    config_path: Optional[str] = None,
    resume: bool = True,
) -> None:
    log = structlog.get_logger()

    def _print_insight(ins: Insight) -> None:
        tag = " [recovery recommended]" if ins.recommend_recovery else ""
        print(f"[{ins.kind.value}] {ins.message}{tag}", flush=True)

    rt = HookRuntime(db_path=db_path, config=load_config(config_path), intensity=intensity, on_insight=_print_insight)

    def _boot() -> None:
        s = rt.session
        if resume and s.restore() and s.status is SessionStatus.RUNNING:
            return
        if s.intensity != intensity:
            s.set_intensity(intensity)
        if minutes:
            s.duration_s = int(minutes * 60)
        # a finished (or capped) restored session resets on the first start
        if not s.start():
            s.start()

    rt.start()
    rt.submit(_boot)
    log.info("app.start", msg="Fatigue Governor running; Ctrl+C to stop")
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        rt.submit(rt.session.stop)
    finally:
        rt.stop()
    log.info("app.stop", msg="Exited cleanly")

def main() -> None:
    configure_logging(debug=False, json=False)
    run_headless()

if __name__ == "__main__":
    main()
