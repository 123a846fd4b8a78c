import csv
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import pandas as pd
from dotenv import dotenv_values, load_dotenv

from configs import CREDENTIAL_KEYS
from errors import ConfigurationError, TransformError


# ============================================================================
# TABULAR SOURCE
# ============================================================================

@dataclass
class TabularSource:
    """Header row plus data rows, every cell read as a string."""
    headers: List[str]
    rows: List[List[str]]

    def records(self) -> Iterator[Dict[str, str]]:
        for row in self.rows:
            yield dict(zip(self.headers, row))

    def __len__(self) -> int:
        return len(self.rows)


def _read_frame(path: str, permissive: bool) -> pd.DataFrame:
    options = dict(header=None, dtype=str, keep_default_na=False, skip_blank_lines=True)
    if permissive:
        # sniff the delimiter and tolerate a BOM
        options.update(sep=None, engine='python', encoding='utf-8-sig',
                       skipinitialspace=True, on_bad_lines='error')
    else:
        options.update(sep=',', quotechar='"', doublequote=True, encoding='utf-8')
    return pd.read_csv(path, **options)


def load_csv(path: str, permissive: bool = False) -> TabularSource:
    """
    Load a header-having CSV file.

    Args:
        path: Path to the CSV file
        permissive: Sniff the delimiter and tolerate a byte-order mark instead of
            reading strict comma-separated RFC 4180 input

    Returns:
        TabularSource with the header row split from the data rows

    Raises:
        ConfigurationError: file missing, empty, or with duplicate headers
        TransformError: a row could not be parsed
    """
    if not os.path.isfile(path):
        raise ConfigurationError(f"The input file name {path} does not exist")

    try:
        df = _read_frame(path, permissive)
    except pd.errors.EmptyDataError:
        raise ConfigurationError(f"The input file {path} is empty")
    except (pd.errors.ParserError, csv.Error, UnicodeDecodeError) as e:
        raise TransformError(f"Could not parse {path}: {e}")

    df = df.fillna("")
    headers = [str(h) for h in df.iloc[0].tolist()]
    if permissive:
        headers = [h.strip() for h in headers]

    duplicates = sorted({h for h in headers if headers.count(h) > 1})
    if duplicates:
        raise ConfigurationError(f"The CSV file contains duplicate columns: {', '.join(duplicates)}")

    rows = [[str(v) for v in row] for row in df.iloc[1:].itertuples(index=False, name=None)]
    return TabularSource(headers=headers, rows=rows)


def resolve_filename_column(headers: List[str], column: str, substring: bool = False) -> str:
    """
    Return the header holding output file names.

    By default the header must match exactly. With substring=True the first
    header in header order containing column is used.
    """
    if substring:
        for header in headers:
            if column in header:
                return header
    elif column in headers:
        return column
    raise ConfigurationError(f"The CSV file does not contain a column with the name {column}")


def check_output_folder(folder: str) -> Path:
    path = Path(folder)
    if not path.is_dir():
        raise ConfigurationError(f"The output directory {folder} does not exist")
    return path


# ============================================================================
# CREDENTIALS
# ============================================================================

@dataclass
class Credentials:
    domain: str
    username: str
    password: str


def load_credentials(path: Optional[str] = None) -> Optional[Credentials]:
    """
    Read Preservica credentials from a properties file, falling back to the
    PRESERVICA_* environment variables. Returns None unless all three are set.
    """
    values = {}
    if path:
        if not os.path.isfile(path):
            raise ConfigurationError(f"The credentials file {path} does not exist")
        values = dotenv_values(path)
    else:
        load_dotenv()

    resolved = {}
    for field, (key, env_var) in CREDENTIAL_KEYS.items():
        value = values.get(key) or os.getenv(env_var) or ""
        resolved[field] = value.strip()

    if not all(resolved.values()):
        return None
    return Credentials(**resolved)
