"""
Atomic file writer - ensures no partial writes or corrupted output files.
Implements temp-write → fsync → rename pattern for durability.
"""

import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Mapping

import pandas as pd


def write_text_atomic(content: str, output_path: Path) -> Dict[str, Any]:
    """
    Write text content atomically to prevent partial files.

    Args:
        content: Text to write
        output_path: Final path for the file

    Returns:
        Dictionary with write results ('status' is 'completed' or 'failed')
    """
    start_time = time.time()
    temp_path = None

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)

        # Temp file in the same directory so the rename stays on one filesystem
        temp_fd, temp_path_str = tempfile.mkstemp(
            suffix='.tmp',
            prefix=f'{output_path.stem}_',
            dir=output_path.parent
        )
        temp_path = Path(temp_path_str)

        with os.fdopen(temp_fd, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        os.replace(temp_path, output_path)

        return {
            'status': 'completed',
            'output_path': str(output_path),
            'bytes_written': len(content.encode('utf-8')),
            'duration_seconds': time.time() - start_time
        }

    except OSError as e:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink()

        return {
            'status': 'failed',
            'error': str(e),
            'output_path': str(output_path),
            'bytes_written': 0,
            'duration_seconds': time.time() - start_time
        }


def write_json_atomic(data: Mapping[str, Any], output_path: Path) -> Dict[str, Any]:
    """
    Write a JSON document atomically.

    Dates and other non-JSON values are serialized with str().
    """
    try:
        # Serialize first to catch errors before touching the filesystem
        content = json.dumps(data, indent=2, default=str)
    except (TypeError, ValueError) as e:
        return {
            'status': 'failed',
            'error': f'JSON serialization failed: {e}',
            'output_path': str(output_path),
            'bytes_written': 0
        }

    return write_text_atomic(content, output_path)


def write_frame_atomic(df: pd.DataFrame, output_path: Path, index: bool = False) -> Dict[str, Any]:
    """Write a DataFrame as CSV atomically."""
    return write_text_atomic(df.to_csv(index=index), output_path)


def write_outputs_atomic(
    documents: Mapping[str, Mapping[str, Any]],
    frames: Mapping[str, pd.DataFrame],
    output_dir: Path
) -> Dict[str, Any]:
    """
    Write a set of JSON documents and CSV tables into one directory.

    Every file is written atomically; the combined status is 'completed'
    only if all writes succeeded.

    Args:
        documents: File name -> JSON-serializable mapping
        frames: File name -> DataFrame
        output_dir: Target directory

    Returns:
        Dictionary with per-file results and the combined status
    """
    results = {}

    for filename, data in documents.items():
        results[filename] = write_json_atomic(data, output_dir / filename)

    for filename, df in frames.items():
        results[filename] = write_frame_atomic(df, output_dir / filename)

    failed = [name for name, r in results.items() if r['status'] != 'completed']

    return {
        'status': 'failed' if failed else 'completed',
        'files': results,
        'failed_files': failed,
        'bytes_written': sum(r.get('bytes_written', 0) for r in results.values())
    }
