# itemrec/cli.py
"""Command line entrypoint: build top-N recommendations from GraphChi/ALS factor files."""
from __future__ import annotations

import argparse
import logging
import sys

from itemrec.config import load_config, parse_bool
from itemrec.errors import ConfigError, ModelConstructorError, SinkWriteFailure
from itemrec.orchestrator import run_job
from itemrec.utils.logger import get_logger

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_FATAL = 2


def parse_args(argv=None):
    ap = argparse.ArgumentParser(
        description="Model constructor: score every item for every user and write the top-N recommendations."
    )
    ap.add_argument("--inputDir", dest="input_dir", help="Directory with usersIndex.tsv, itemsIndex.tsv and the .mm files")
    ap.add_argument("--appid", type=int)
    ap.add_argument("--algoid", type=int)
    ap.add_argument("--evalid", type=int, default=None, help="Offline evaluation id; switches to the training model store")
    ap.add_argument("--modelSet", dest="model_set", type=parse_bool, default=None)
    ap.add_argument("--unseenOnly", dest="unseen_only", type=parse_bool, default=None)
    ap.add_argument("--numRecommendations", dest="num_recommendations", type=int, default=None)
    ap.add_argument("--config", default=None, help="Path to a config.yaml (defaults to the packaged one)")
    ap.add_argument("--env", default=None, help="Config section to merge over base (default: APP_ENV or dev)")
    ap.add_argument("--max-workers", dest="max_workers", type=int, default=None)
    ap.add_argument("--task-timeout", dest="task_timeout_sec", type=float, default=None)
    ap.add_argument("--sink-dir", dest="sink_dir", default=None)
    ap.add_argument("--metrics-path", dest="metrics_path", default=None)
    ap.add_argument("--log-level", dest="log_level", default=None)
    return ap.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    overrides = {k: v for k, v in vars(args).items() if k not in ("config", "env")}

    try:
        cfg = load_config(env=args.env, path=args.config, **overrides).validate()
    except ConfigError as e:
        get_logger("itemrec").error(f"Invalid configuration: {e}")
        return EXIT_FATAL

    logger = get_logger("itemrec", level=cfg.log_level, log_dir=cfg.log_dir)
    logger.info("Running model constructor ...")
    logger.info(f"Job config: {cfg.to_dict()}")

    try:
        report = run_job(cfg)
    except SinkWriteFailure as e:
        logger.error(str(e))
        return EXIT_PARTIAL
    except (ModelConstructorError, OSError) as e:
        logger.error(f"Model constructor aborted: {e}")
        return EXIT_FATAL

    if not report.ok:
        logger.error(f"{len(report.failed_users)} user(s) failed, uindex: {sorted(report.failed_users)[:10]}")
        return EXIT_PARTIAL
    return EXIT_OK


if __name__ == "__main__":
    logging.captureWarnings(True)
    sys.exit(main())
