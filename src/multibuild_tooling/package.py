"""Zip {staging_dir}/{package_id} into {staging_dir}/{archive_name}.

Archive paths keep the package_id prefix, so extracting yields the package directory
as the only top-level entry. Entries are sorted and stamped with a fixed timestamp,
so an unchanged staging tree always produces the same bytes. The archive is written
to `{archive_name}.tmp` and renamed into place only once complete.
"""

from __future__ import annotations

import logging
import os
import stat
import zipfile
from pathlib import Path

from multibuild_tooling.collect import validate_staging
from multibuild_tooling.config import ReleaseConfig
from multibuild_tooling.errors import PackagingFailure, StagingStateError
from multibuild_tooling.helpers import display_path

log = logging.getLogger(__name__)

# Earliest timestamp the zip format can store.
FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
COMPRESS_LEVEL = 9


def _entries(package_root: Path) -> list[Path]:
    return sorted(package_root.rglob("*"), key=lambda p: p.relative_to(package_root).as_posix())


def _zip_info(path: Path, arcname: str) -> zipfile.ZipInfo:
    mode = stat.S_IMODE(path.stat().st_mode)
    if path.is_dir():
        info = zipfile.ZipInfo(arcname.rstrip("/") + "/", date_time=FIXED_DATE_TIME)
        info.external_attr = ((stat.S_IFDIR | mode) << 16) | 0x10
        return info
    info = zipfile.ZipInfo(arcname, date_time=FIXED_DATE_TIME)
    info.external_attr = (stat.S_IFREG | mode) << 16
    info.compress_type = zipfile.ZIP_DEFLATED
    return info


def write_archive(package_root: Path, out_path: Path) -> None:
    """Write package_root (including its own directory name) to out_path as a deterministic zip."""
    prefix = package_root.name
    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL) as zf:
        zf.writestr(_zip_info(package_root, prefix), b"")
        for p in _entries(package_root):
            arcname = f"{prefix}/{p.relative_to(package_root).as_posix()}"
            info = _zip_info(p, arcname)
            if p.is_dir():
                zf.writestr(info, b"")
            else:
                zf.writestr(info, p.read_bytes(), compresslevel=COMPRESS_LEVEL)


def package(config: ReleaseConfig) -> Path:
    """Archive the staged package. Returns the archive path.

    Raises StagingStateError if nothing is staged or the staged tree does not match
    the configured targets, PackagingFailure if the archive cannot be written.
    """
    package_root = config.package_root
    if not package_root.is_dir() or not any(package_root.iterdir()):
        msg = f"Nothing to package: {display_path(package_root, config.project_root)} is missing or empty (run collect first)"
        raise StagingStateError(msg, task="package")
    missing, extra = validate_staging(config, config.targets)
    if missing or extra:
        problems = []
        if missing:
            problems.append(f"missing {', '.join(sorted(missing))}")
        if extra:
            problems.append(f"unexpected {', '.join(sorted(extra))}")
        msg = (
            f"{display_path(package_root, config.project_root)} does not match the configured targets "
            f"({'; '.join(problems)}); run collect --force-clean"
        )
        raise StagingStateError(msg, task="package")

    out = config.archive_path
    tmp = out.with_name(out.name + ".tmp")
    log.debug("writing %s via %s", out, tmp)
    try:
        write_archive(package_root, tmp)
        os.replace(tmp, out)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        msg = f"Could not write {display_path(out, config.project_root)}: {e}"
        raise PackagingFailure(msg, task="package") from e
    print(f"✅ Packaged {display_path(out, config.project_root)}")
    return out
