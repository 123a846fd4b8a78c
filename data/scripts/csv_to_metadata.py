import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional
from xml.sax.saxutils import escape

from tqdm import tqdm

from configs import (
    DEFAULT_FILE_COLUMN,
    DEFAULT_ROOT_ELEMENT,
    DEFAULT_ROOT_NAMESPACE,
    DEFAULT_ROOT_PREFIX,
    METADATA_EXTENSION,
    NAMESPACES,
    VOCABULARY_PREFIXES,
    XML_PROLOG,
)
from errors import ConfigurationError, MetadataError, TransformError
from preservica import RepositoryUpdater
from utils import check_output_folder, load_credentials, load_csv, resolve_filename_column

USAGE = 'csv_to_metadata.py -i file.csv -o output [-c "file name column"] [-r root] [-p prefix] [-n namespace] [-k credentials.properties]'

DC_NS = f'xmlns:dc="{NAMESPACES["dc"]}"'
DCTERMS_NS = f'xmlns:dcterms="{NAMESPACES["dcterms"]}"'
XSI_NS = f'xmlns:xsi="{NAMESPACES["xsi"]}"'


# ============================================================================
# XML RENDERING
# ============================================================================

def is_dublin_core(header: str) -> bool:
    return header.startswith(VOCABULARY_PREFIXES)


def closing_element(element: str) -> str:
    """Remove any attributes from the opening tag text."""
    return element.split(" ")[0]


def root_opening_tag(root_element: str, root_prefix: str, root_namespace: str) -> str:
    """
    Build the root tag declaring the configured namespace plus dcterms, xsi and dc.

    The dc and dcterms declarations are only added when the configured one
    is not already identical, so the tag never repeats an attribute.
    """
    declaration = f'xmlns:{root_prefix}="{root_namespace}"'
    parts = [f"{root_prefix}:{root_element}", declaration]
    if declaration != DCTERMS_NS:
        parts.append(DCTERMS_NS)
    parts.append(XSI_NS)
    if declaration != DC_NS:
        parts.append(DC_NS)
    return "<" + " ".join(parts) + ">"


def render_element(element: str, value: str, escape_values: bool = False) -> str:
    value = value.strip()
    if not value:
        return f"\t<{element} />"
    if escape_values:
        value = escape(value)
    return f"\t<{element}>{value}</{closing_element(element)}>"


def render_document(record: Dict[str, str], headers: List[str], root_element: str,
                    root_prefix: str, root_namespace: str, escape_values: bool = False) -> str:
    """Render one row as an XML document holding only its dc and dcterms fields."""
    lines = [XML_PROLOG, root_opening_tag(root_element, root_prefix, root_namespace)]
    for header in headers:
        if is_dublin_core(header):
            lines.append(render_element(header, record.get(header, ""), escape_values))
    lines.append(f"</{root_prefix}:{root_element}>")
    return "\n".join(lines)


def write_document(folder: Path, filename: str, document: str) -> Path:
    if not filename.strip():
        raise TransformError("Row has an empty file name")
    xml_file = folder / f"{filename}{METADATA_EXTENSION}"
    try:
        with open(xml_file, "w", encoding="utf-8", newline="\n") as f:
            f.write(document)
    except OSError as e:
        raise TransformError(f"Could not write {xml_file}: {e}")
    return xml_file


# ============================================================================
# CSV PROCESSING
# ============================================================================

def parse(csv_document: str, folder, filename_column: str = DEFAULT_FILE_COLUMN,
          root_element: str = DEFAULT_ROOT_ELEMENT, root_prefix: str = DEFAULT_ROOT_PREFIX,
          root_namespace: str = DEFAULT_ROOT_NAMESPACE, *, permissive: bool = False,
          substring_column: bool = False, updater=None, escape_values: bool = False,
          progress: bool = True) -> int:
    """
    Loop over the CSV file and create an XML document for each row.

    Args:
        csv_document: Path to the CSV file
        folder: Existing output folder
        filename_column: Column holding the output file name
        root_element: Local name of the root element
        root_prefix: Namespace prefix of the root element
        root_namespace: Namespace URI bound to root_prefix
        permissive: Read the CSV with a sniffed delimiter and BOM tolerance
        substring_column: Accept the first header containing filename_column
        updater: Optional RepositoryUpdater called with every written row
        escape_values: Escape markup characters in field values
        progress: Show a progress bar

    Returns:
        Number of documents written
    """
    folder = Path(folder)
    source = load_csv(csv_document, permissive=permissive)
    file_column = resolve_filename_column(source.headers, filename_column, substring=substring_column)

    num_files = 0
    for record in tqdm(source.records(), total=len(source), desc="Writing metadata", disable=not progress):
        document = render_document(record, source.headers, root_element, root_prefix,
                                   root_namespace, escape_values)
        write_document(folder, record[file_column], document)
        num_files += 1

        if updater is not None:
            updater.update(record, document)

    return num_files


# ============================================================================
# MAIN PIPELINE
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        usage=USAGE,
        description="Create a Dublin Core XML document for each row of a CSV file",
    )
    parser.add_argument("-i", "--input", required=True, help="input csv file to parse")
    parser.add_argument("-o", "--output", required=True, help="the folder which will contain the xml documents")
    parser.add_argument(
        "-c",
        "--column",
        default=DEFAULT_FILE_COLUMN,
        help=f"the column name in the csv which contains the filename of the output xml file (default: {DEFAULT_FILE_COLUMN})",
    )
    parser.add_argument(
        "-r",
        "--root",
        default=DEFAULT_ROOT_ELEMENT,
        help=f"the root element of the dublin core xml (default: {DEFAULT_ROOT_ELEMENT})",
    )
    parser.add_argument(
        "-n",
        "--namespace",
        default=DEFAULT_ROOT_NAMESPACE,
        help=f"the root element namespace (default: {DEFAULT_ROOT_NAMESPACE})",
    )
    parser.add_argument(
        "-p",
        "--prefix",
        default=DEFAULT_ROOT_PREFIX,
        help=f"the root element namespace prefix (default: {DEFAULT_ROOT_PREFIX})",
    )
    parser.add_argument(
        "-k",
        "--credentials",
        default=None,
        help="properties file with preservica.domain, preservica.username and preservica.password",
    )
    parser.add_argument("--permissive", action="store_true", help="sniff the delimiter and tolerate a byte-order mark")
    parser.add_argument(
        "--substring-column",
        action="store_true",
        help="use the first column whose name contains --column",
    )
    parser.add_argument("--escape-values", action="store_true", help="escape <, & and > in field values")
    parser.add_argument("-q", "--quiet", action="store_true", help="hide the progress bar")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Execute the CSV to metadata pipeline."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        folder = check_output_folder(args.output)
        credentials = load_credentials(args.credentials)
    except ConfigurationError as e:
        print(e)
        parser.print_usage()
        return 1

    updater = None
    if credentials is None:
        print("No Preservica credentials found, metadata will only be written locally")
    else:
        updater = RepositoryUpdater.from_credentials(credentials, args.namespace)

    try:
        files = parse(
            args.input,
            folder,
            args.column,
            args.root,
            args.prefix,
            args.namespace,
            permissive=args.permissive,
            substring_column=args.substring_column,
            updater=updater,
            escape_values=args.escape_values,
            progress=not args.quiet,
        )
    except ConfigurationError as e:
        print(e)
        parser.print_usage()
        return 1
    except MetadataError as e:
        print(f"❌ {e}")
        return 1
    finally:
        if updater is not None:
            updater.close()

    print(f"✅ Created {files} XML files in {folder.name}")
    if updater is not None:
        print(updater.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
