"""Install the bundled static viewer into a web root."""
import logging
import shutil
from pathlib import Path
from typing import List, Union

logger = logging.getLogger(__name__)

VIEWER_DIR = Path(__file__).parent.parent / "web"


def install_viewer(web_root: Union[str, Path], force: bool = False) -> List[Path]:
    """Copy index.html and assets/ into web_root. Existing files are kept unless force."""
    web_root = Path(web_root)
    if not VIEWER_DIR.is_dir():
        raise FileNotFoundError(f"Bundled viewer not found at {VIEWER_DIR}")

    written = []
    for source in sorted(VIEWER_DIR.rglob("*")):
        if not source.is_file():
            continue
        target = web_root / source.relative_to(VIEWER_DIR)
        if target.exists() and not force:
            logger.debug(f"Keeping existing {target}")
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        written.append(target)

    (web_root / "data").mkdir(parents=True, exist_ok=True)
    logger.info(f"Viewer installed in {web_root} ({len(written)} files written)")
    return written
