"""
日志模块 - 每个 worker 进程写自己的日志文件 app.<pid>.log

所有 worker 都运行调度器，若共用同一个文件，午夜轮转时后轮转的进程会删掉
先轮转进程刚生成的日期文件。按 pid 分文件后各自轮转互不干扰，
read_logs 再按时间戳把所有进程的日志合并。
"""
import heapq
import logging
import os
import re
from pathlib import Path
from logging.handlers import TimedRotatingFileHandler

LOG_DIR = Path(os.getenv("LOG_DIR") or Path(__file__).parent.parent / "logs")
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOG_FORMAT = "%(asctime)s | %(levelname)-5s | pid=%(process)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_TIMESTAMP = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}")


def _resolve_level(raw: str | None) -> int:
    level = logging.getLevelName(str(raw or "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _resolve_backup_count(raw: str | None) -> int:
    try:
        return max(1, int(raw or 7))
    except ValueError:
        return 7


LOG_LEVEL = _resolve_level(os.getenv("LOG_LEVEL"))
LOG_BACKUP_COUNT = _resolve_backup_count(os.getenv("LOG_BACKUP_COUNT"))


def log_file_for(pid: int, log_dir: Path | None = None) -> Path:
    return Path(log_dir or LOG_DIR) / f"app.{pid}.log"


def build_file_handler(path: Path) -> TimedRotatingFileHandler:
    """按天轮转（午夜切分），轮转文件名 app.<pid>.log.YYYY-MM-DD"""
    handler = TimedRotatingFileHandler(
        path,
        when="midnight",
        interval=1,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    return handler


LOG_FILE = log_file_for(os.getpid())

logger = logging.getLogger("asset_backend")
logger.setLevel(LOG_LEVEL)
logger.propagate = False

# --reload 或重复导入时不重复挂 handler
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    logger.addHandler(build_file_handler(LOG_FILE))
    logger.addHandler(console_handler)


def _iter_lines_reversed(path: Path, chunk_size: int = 4096):
    """从文件尾部按块倒序读取，逐行产出（不含换行符）"""
    with open(path, "rb") as f:
        f.seek(0, os.SEEK_END)
        pos = f.tell()
        remainder = b""
        while pos > 0:
            read_size = min(chunk_size, pos)
            pos -= read_size
            f.seek(pos)
            parts = (f.read(read_size) + remainder).split(b"\n")
            remainder = parts.pop(0)
            for raw in reversed(parts):
                if raw:
                    yield raw.decode("utf-8", errors="replace")
        if remainder:
            yield remainder.decode("utf-8", errors="replace")


def _iter_stamped_reversed(path: Path):
    # traceback 等续行没有时间戳，沿用其后一行的时间戳，保持倒序单调
    stamp = "9999-12-31 23:59:59"
    for line in _iter_lines_reversed(path):
        match = _TIMESTAMP.match(line)
        if match:
            stamp = match.group(0)
        yield stamp, line


def read_logs(lines: int = 200, keyword: str | None = None) -> list[str]:
    """
    读取所有 worker 最近的日志行

    Args:
        lines: 返回的最大行数
        keyword: 只保留包含该关键字的行，例如锁名或任务名

    Returns:
        list: 日志行列表（最新的在前，多个进程按时间戳合并）
    """
    paths = sorted(Path(LOG_DIR).glob("app.*.log"))
    if not paths:
        return []

    limit = max(1, int(lines))
    streams = [_iter_stamped_reversed(path) for path in paths]
    result = []
    try:
        for _stamp, line in heapq.merge(*streams, key=lambda item: item[0], reverse=True):
            if keyword and keyword not in line:
                continue
            result.append(line)
            if len(result) >= limit:
                break
    finally:
        for stream in streams:
            stream.close()
    return result
