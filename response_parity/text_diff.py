"""Raw text comparison for bodies that cannot be compared structurally.

Used for non-success responses and status-code mismatches. Lines are aligned
with difflib.SequenceMatcher; replaced blocks are reported pairwise as
MODIFIED, leftovers as ONLY_IN_A / ONLY_IN_B.
"""

from __future__ import annotations

import difflib

from response_parity.models import RawTextDifference, RawTextDifferenceType

MAX_BODY_CHARS = 5 * 1024
MAX_DIFF_LINES = 100


def _split_lines(text: str | None) -> list[str]:
    if not text:
        return []
    return text.splitlines()


def line_diff(
    text_a: str | None,
    text_b: str | None,
    *,
    max_lines: int = MAX_DIFF_LINES,
) -> list[RawTextDifference]:
    """Compute line-level differences between two texts.

    Args:
        text_a: Text from side A (None treated as empty).
        text_b: Text from side B (None treated as empty).
        max_lines: Upper bound on reported differences.

    Returns:
        Differences in document order, with 1-based line numbers.
    """
    lines_a = _split_lines(text_a)
    lines_b = _split_lines(text_b)
    matcher = difflib.SequenceMatcher(a=lines_a, b=lines_b, autojunk=False)

    diffs: list[RawTextDifference] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue

        paired = min(i2 - i1, j2 - j1) if tag == "replace" else 0
        for offset in range(paired):
            diffs.append(
                RawTextDifference(
                    type=RawTextDifferenceType.MODIFIED,
                    line_number_a=i1 + offset + 1,
                    line_number_b=j1 + offset + 1,
                    text_a=lines_a[i1 + offset],
                    text_b=lines_b[j1 + offset],
                    description=f"Line {i1 + offset + 1} modified",
                )
            )
        for i in range(i1 + paired, i2):
            diffs.append(
                RawTextDifference(
                    type=RawTextDifferenceType.ONLY_IN_A,
                    line_number_a=i + 1,
                    text_a=lines_a[i],
                    description=f"Line {i + 1} only in A",
                )
            )
        for j in range(j1 + paired, j2):
            diffs.append(
                RawTextDifference(
                    type=RawTextDifferenceType.ONLY_IN_B,
                    line_number_b=j + 1,
                    text_b=lines_b[j],
                    description=f"Line {j + 1} only in B",
                )
            )

        if len(diffs) >= max_lines:
            break

    return diffs[:max_lines]


def status_code_difference(status_code_a: int, status_code_b: int) -> RawTextDifference | None:
    """Difference entry for unequal status codes, None when they match."""
    if status_code_a == status_code_b:
        return None
    return RawTextDifference(
        type=RawTextDifferenceType.STATUS_CODE_DIFFERENCE,
        text_a=f"HTTP {status_code_a}",
        text_b=f"HTTP {status_code_b}",
        description=f"Status code mismatch: A returned {status_code_a}, B returned {status_code_b}",
    )


def compare_raw_text(
    text_a: str | None,
    text_b: str | None,
    status_code_a: int | None = None,
    status_code_b: int | None = None,
    *,
    max_chars: int = MAX_BODY_CHARS,
    max_lines: int = MAX_DIFF_LINES,
) -> list[RawTextDifference]:
    """Compare two bodies as text, status-code difference first.

    Bodies longer than max_chars are truncated and a notice is appended.
    """
    diffs: list[RawTextDifference] = []

    if status_code_a is not None and status_code_b is not None:
        status_diff = status_code_difference(status_code_a, status_code_b)
        if status_diff is not None:
            diffs.append(status_diff)

    truncated = False
    if text_a is not None and len(text_a) > max_chars:
        text_a = text_a[:max_chars]
        truncated = True
    if text_b is not None and len(text_b) > max_chars:
        text_b = text_b[:max_chars]
        truncated = True

    diffs.extend(line_diff(text_a, text_b, max_lines=max_lines))

    if truncated:
        diffs.append(
            RawTextDifference(
                type=RawTextDifferenceType.MODIFIED,
                description=f"Body truncated to the first {max_chars} characters for comparison",
            )
        )

    return diffs
