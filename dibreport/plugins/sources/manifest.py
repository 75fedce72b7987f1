import re
from typing import List
from dibreport.core.exceptions import ManifestError

MANIFEST_FILE = "map.js"
DATA_DIR = "data"

# Per-image artifact file names inside <run>/data/<image>/
BUILD_LOG_FILE = "docker.txt"
TEST_RESULT_FILE = "goss.json"
SCAN_RESULT_FILE = "trivy.json"

_IMAGES_ARRAY = re.compile(r"dib_images\s*=\s*\[(?P<items>.*?)\]", re.DOTALL)
_QUOTED = re.compile(r"'([^']*)'|\"([^\"]*)\"")


def parse_manifest(text: str) -> List[str]:
    """Extract image names, in build order, from a map.js manifest.

    The manifest is a script of the form::

        const dib_images = [
          'web',
          'db',
        ];
    """
    match = _IMAGES_ARRAY.search(text)
    if not match:
        raise ManifestError("Manifest does not define dib_images")
    names = [single or double for single, double in _QUOTED.findall(match.group("items"))]
    return [name for name in names if name]
