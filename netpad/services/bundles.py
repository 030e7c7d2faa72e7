"""Writes injected bundles into the standalone app template."""

import json
from pathlib import Path

from netpad.core.exceptions import NetPadError
from netpad.models.bundle import Bundle
from netpad.utils.logging import get_logger

logger = get_logger(__name__)

BUNDLE_FILENAME = "bundle.json"


def inject_bundle_into_template(template_path: str | Path, bundle: Bundle) -> Path:
    """Write ``bundle.json`` into the template directory.

    Raises:
        NetPadError: If the template directory does not exist or the bundle
            cannot be written.
    """
    template_dir = Path(template_path)
    if not template_dir.is_dir():
        raise NetPadError(f"Template directory not found: {template_dir}")

    bundle_path = template_dir / BUNDLE_FILENAME
    try:
        bundle_path.write_text(json.dumps(bundle.to_wire(), indent=2), encoding="utf-8")
    except OSError as e:
        logger.error("bundle.write_failed", path=str(bundle_path), error=str(e))
        raise NetPadError(f"Failed to write bundle: {e}") from e
    logger.info("bundle.written", path=str(bundle_path), name=bundle.manifest.name)
    return bundle_path

