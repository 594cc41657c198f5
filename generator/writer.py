"""
Diagram file output.

The text is written to a sibling temporary file first and moved into place
with os.replace, so an interrupted or failed write never leaves a truncated
diagram at the destination.
"""

import os
import tempfile
from pathlib import Path
from typing import Union


def write_diagram(text: str, path: Union[str, Path]) -> Path:
    """
    Write the diagram text to path, overwriting any existing file.

    Returns the absolute destination path. Raises OSError on failure.
    """
    output_path = Path(path).resolve()
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
        os.replace(tmp_name, output_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return output_path
