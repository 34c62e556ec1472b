# run_from_json.py

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from delta_viewer.app_logic import render_delta_text

# Default input and output file names
INPUT_JSON_FILE = 'data/document_delta.json'


def main(argv: Optional[List[str]] = None) -> int:
    """
    Renders a Delta JSON file to a standalone HTML preview.

    Returns:
        int: 0 on success, 1 for an invalid Delta document, 2 when the input cannot be read.
    """
    parser = argparse.ArgumentParser(description="Render a Quill Delta JSON file to HTML.")
    parser.add_argument('input', nargs='?', default=INPUT_JSON_FILE, help="Delta JSON file to read.")
    parser.add_argument('-o', '--output', help="HTML file to write. Defaults to the input name with .html.")
    args = parser.parse_args(argv)

    input_path = Path(args.input)
    output_path = Path(args.output) if args.output else input_path.with_suffix('.html')

    print(f"📄 Reading Delta from '{input_path}'...")
    try:
        raw_text = input_path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: cannot read the input file -> {e}", file=sys.stderr)
        return 2

    outcome = render_delta_text(raw_text)
    if not outcome.is_valid:
        print(f"Error: {outcome.error}", file=sys.stderr)
        return 1

    output_path.write_text(outcome.html, encoding='utf-8')
    print(f"🎉 {outcome.summary.count_text} rendered to '{output_path}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
