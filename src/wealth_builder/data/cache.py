from pathlib import Path
import hashlib
import logging

import pandas as pd

logger = logging.getLogger(__name__)

def key_path(cache_dir: Path, prefix: str, key: str, suffix: str = ".csv") -> Path:
    h = hashlib.sha256(key.encode()).hexdigest()[:16]
    return Path(cache_dir) / f"{prefix}_{h}{suffix}"

def cache_read(path: Path):
    """Cached frame at ``path``, or None when missing or unreadable.

    An unreadable file is removed so the next write replaces it.
    """
    if not path.exists():
        return None
    try:
        return pd.read_csv(path, index_col=0, parse_dates=True)
    except (OSError, ValueError, pd.errors.ParserError) as e:
        logger.warning("Discarding unreadable cache file %s: %s", path, e)
        path.unlink(missing_ok=True)
        return None

def cache_write(df, path: Path):
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path)
