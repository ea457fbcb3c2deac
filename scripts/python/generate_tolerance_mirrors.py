"""Render the SQL and JavaScript copies of the zoom tolerance table.

Run after editing ``tracks.tolerance.ZOOM_TOLERANCE_TABLE``; pass ``--check``
in CI to fail when a committed mirror is stale.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tracks.tolerance import render_js_module, render_sql_function

logger = logging.getLogger(__name__)

DEFAULT_SQL_PATH = REPO_ROOT / "db" / "sql" / "get_simplify_tolerance.sql"
DEFAULT_JS_PATH = REPO_ROOT / "static" / "js" / "zoom-tolerance.js"


def build_mirrors(sql_path: Path, js_path: Path) -> dict[Path, str]:
    return {
        sql_path: render_sql_function(),
        js_path: render_js_module(),
    }


def stale_mirrors(mirrors: dict[Path, str]) -> list[Path]:
    """Paths whose content on disk differs from the rendered table."""
    return [
        path
        for path, content in mirrors.items()
        if not path.exists() or path.read_text(encoding="utf-8") != content
    ]


def write_mirrors(mirrors: dict[Path, str]) -> int:
    written = 0
    for path in stale_mirrors(mirrors):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(mirrors[path], encoding="utf-8")
        logger.info("Wrote %s", path)
        written += 1
    return written


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--sql", type=Path, default=DEFAULT_SQL_PATH)
    parser.add_argument("--js", type=Path, default=DEFAULT_JS_PATH)
    parser.add_argument(
        "--check",
        action="store_true",
        help="Exit non-zero if a mirror is missing or out of date.",
    )
    args = parser.parse_args()

    mirrors = build_mirrors(args.sql, args.js)
    if args.check:
        stale = stale_mirrors(mirrors)
        for path in stale:
            logger.error("Tolerance mirror is stale: %s", path)
        return 1 if stale else 0

    written = write_mirrors(mirrors)
    logger.info("Tolerance mirrors up to date (%d written).", written)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
