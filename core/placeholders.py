"""
Template-fill logic for Google Docs appraisal reports.

Pure functions over the JSON returned by documents.get and the request
bodies sent to documents.batchUpdate. Indexes follow the Docs API, which
counts UTF-16 code units.
"""
import math
import re
import uuid
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Any, Dict, Iterator, List, Optional, Tuple

GALLERY_PLACEHOLDER = "gallery"
GALLERY_IMAGE_PREFIX = "googlevision"

Range = Tuple[int, int]


def placeholder_token(name: str) -> str:
    return "{{" + name + "}}"


def utf16_len(text: str) -> int:
    """Length of text in UTF-16 code units, as the Docs API measures it."""
    return len(text.encode("utf-16-le")) // 2


def iter_text_runs(content: List[Dict[str, Any]], include_tables: bool = True) -> Iterator[Tuple[Dict[str, Any], str]]:
    """Yield (paragraph element, text) for every text run, descending into table cells."""
    for element in content or []:
        paragraph = element.get("paragraph")
        if paragraph:
            for elem in paragraph.get("elements", []):
                text = (elem.get("textRun") or {}).get("content")
                if text:
                    yield elem, text
        elif include_tables and element.get("table"):
            for row in element["table"].get("tableRows", []):
                for cell in row.get("tableCells", []):
                    yield from iter_text_runs(cell.get("content"), include_tables)


# =========================================================================
# Text placeholders
# =========================================================================

def find_placeholder_keys(content: List[Dict[str, Any]], keys) -> List[str]:
    """Keys whose {{key}} token appears in the document, in the order given."""
    texts = [text for _, text in iter_text_runs(content)]
    return [key for key in keys if any(placeholder_token(key) in text for text in texts)]


def build_replace_requests(content: List[Dict[str, Any]], data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """One replaceAllText request per placeholder present in the document."""
    requests = []
    for key in find_placeholder_keys(content, data.keys()):
        value = data[key]
        requests.append({
            "replaceAllText": {
                "containsText": {"text": placeholder_token(key), "matchCase": True},
                "replaceText": "" if value is None else str(value),
            }
        })
    return requests


def build_remove_requests(content: List[Dict[str, Any]], names: List[str]) -> List[Dict[str, Any]]:
    """replaceAllText requests blanking every listed placeholder still present."""
    return build_replace_requests(content, {name: "" for name in names})


def find_first_placeholder(content: List[Dict[str, Any]], name: str) -> Optional[int]:
    """Document index where the first {{name}} token starts, or None."""
    token = placeholder_token(name)
    for elem, text in iter_text_runs(content):
        offset = text.find(token)
        if offset != -1:
            return elem["startIndex"] + utf16_len(text[:offset])
    return None


def find_all_placeholder_ranges(content: List[Dict[str, Any]], name: str) -> List[Range]:
    """Every {{name}} occurrence as (start, end), sorted by descending start."""
    token = placeholder_token(name)
    token_len = utf16_len(token)
    ranges = []

    for elem, text in iter_text_runs(content):
        offset = text.find(token)
        while offset != -1:
            start = elem["startIndex"] + utf16_len(text[:offset])
            ranges.append((start, start + token_len))
            offset = text.find(token, offset + len(token))

    # Editing from the end keeps earlier indexes valid
    ranges.sort(key=lambda r: r[0], reverse=True)
    return ranges


# =========================================================================
# Title
# =========================================================================

def find_title_range(content: List[Dict[str, Any]], title: str) -> Optional[Range]:
    """Range of the first top-level text run containing the title (case-insensitive)."""
    needle = (title or "").strip().lower()
    if not needle:
        return None
    for elem, text in iter_text_runs(content, include_tables=False):
        if needle in text.strip().lower():
            return elem["startIndex"], elem["endIndex"]
    return None


def title_font_size(title: str) -> int:
    """Shorter titles get larger type."""
    length = len(title or "")
    if length <= 20:
        return 18
    if length <= 40:
        return 16
    return 14


def build_font_size_request(title_range: Range, size: int) -> Dict[str, Any]:
    return {
        "updateTextStyle": {
            "range": {"startIndex": title_range[0], "endIndex": title_range[1]},
            "textStyle": {"fontSize": {"magnitude": size, "unit": "PT"}},
            "fields": "fontSize",
        }
    }


# =========================================================================
# Metadata "table" field
# =========================================================================

def parse_metadata_table(text: str) -> List[Tuple[str, str]]:
    """
    Parse "- Key: value - Other: value" text into (key, value) pairs.

    Items are separated by hyphens; the first colon splits key from value.
    An item without a colon is a key with no value.
    """
    rows = []
    for item in (text or "").split("-"):
        item = item.strip()
        if not item:
            continue
        key, _, value = item.partition(":")
        rows.append((key.strip(), value.strip()))
    return rows


def format_metadata_line(key: str, value: str) -> str:
    if key and value:
        return f"{key}: {value}"
    if key:
        return f"{key}:"
    return value


def build_metadata_requests(index: int, text: str) -> List[Dict[str, Any]]:
    """
    Requests inserting the parsed metadata as lines at index, with each
    "key:" label in bold.
    """
    rows = parse_metadata_table(text)
    if not rows:
        return []

    lines = [format_metadata_line(key, value) for key, value in rows]
    requests = [{"insertText": {"text": "\n".join(lines), "location": {"index": index}}}]

    offset = 0
    for (key, _), line in zip(rows, lines):
        if key:
            start = index + offset
            requests.append({
                "updateTextStyle": {
                    "range": {"startIndex": start, "endIndex": start + utf16_len(key) + 1},
                    "textStyle": {"bold": True},
                    "fields": "bold",
                }
            })
        offset += utf16_len(line) + 1

    return requests


# =========================================================================
# Gallery
# =========================================================================

def gallery_rows(count: int, columns: int = 3) -> int:
    return math.ceil(count / columns) if count > 0 else 0


def build_insert_table_request(index: int, rows: int, columns: int) -> Dict[str, Any]:
    return {"insertTable": {"rows": rows, "columns": columns, "location": {"index": index}}}


def find_first_table_after(content: List[Dict[str, Any]], index: int) -> Optional[Dict[str, Any]]:
    """First table element starting at or after index, searching nested tables too."""
    for element in content or []:
        table = element.get("table")
        if not table:
            continue
        if element.get("startIndex", -1) >= index:
            return element
        for row in table.get("tableRows", []):
            for cell in row.get("tableCells", []):
                found = find_first_table_after(cell.get("content"), index)
                if found:
                    return found
    return None


def gallery_placeholder_name(number: int) -> str:
    return f"{GALLERY_IMAGE_PREFIX}{number}"


def build_gallery_placeholder_requests(table_element: Dict[str, Any], count: int) -> List[Dict[str, Any]]:
    """Insert {{googlevision<n>}} at the end of the first count cells, row-major."""
    requests = []
    number = 1
    for row in table_element["table"].get("tableRows", []):
        for cell in row.get("tableCells", []):
            if number > count:
                break
            requests.append({
                "insertText": {
                    "text": placeholder_token(gallery_placeholder_name(number)),
                    "location": {"index": cell["endIndex"] - 1},
                }
            })
            number += 1

    requests.sort(key=lambda r: r["insertText"]["location"]["index"], reverse=True)
    return requests


# =========================================================================
# Images
# =========================================================================

def build_image_requests(ranges: List[Range], image_url: str, size_pt: int = 150) -> List[Dict[str, Any]]:
    """Replace each placeholder range with an inline image, last occurrence first."""
    requests = []
    for start, end in sorted(ranges, key=lambda r: r[0], reverse=True):
        requests.append({"deleteContentRange": {"range": {"startIndex": start, "endIndex": end}}})
        requests.append({
            "insertInlineImage": {
                "uri": image_url,
                "location": {"index": start},
                "objectSize": {
                    "height": {"magnitude": size_pt, "unit": "PT"},
                    "width": {"magnitude": size_pt, "unit": "PT"},
                },
            }
        })
    return requests


def build_delete_range_request(start: int, end: int) -> Dict[str, Any]:
    return {"deleteContentRange": {"range": {"startIndex": start, "endIndex": end}}}


# =========================================================================
# Values and names
# =========================================================================

_LEADING_NUMBER = re.compile(r'^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)')
# Amounts longer than this are left as written
_MAX_INTEGER_DIGITS = 100


def _group_thousands(digits: str) -> str:
    # es-ES only groups numbers with five or more integer digits
    if len(digits) < 5:
        return digits
    groups = []
    while digits:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    return ".".join(groups)


def format_appraisal_value(value: Any) -> str:
    """
    Format an appraisal value as Spanish-locale USD currency ("12.345,50 US$").

    Text with a leading number is formatted from that number; other text is
    returned unchanged and empty values become an empty string.
    """
    if value is None:
        return ""
    text = str(value)
    if not text.strip():
        return ""

    match = _LEADING_NUMBER.match(text)
    if not match:
        return text

    number = Decimal(match.group(1))
    if number.adjusted() > _MAX_INTEGER_DIGITS:
        return text

    # Default context precision (28 digits) is too small for long amounts
    with localcontext() as context:
        context.prec = max(context.prec, number.adjusted() + 4)
        amount = number.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    integer, _, cents = format(amount.copy_abs(), "f").partition(".")
    return f"{sign}{_group_thousands(integer)},{cents} US$"


def report_filename(post_id: Any, session_id: Optional[str] = None, prefix: str = "Appraisal_Report") -> str:
    """PDF name: the session id when given, otherwise a unique per-post name."""
    if isinstance(session_id, str) and session_id.strip():
        return f"{session_id.strip()}.pdf"
    return f"{prefix}_Post_{post_id}_{uuid.uuid4()}.pdf"


def document_copy_name(prefix: str = "Appraisal_Report") -> str:
    return f"{prefix}_{uuid.uuid4()}"
