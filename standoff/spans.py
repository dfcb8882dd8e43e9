# Author: Eric Kow
# License: BSD3

"""
Character offsets and spans.

Extent tags are anchored to the primary text by a set of absolute
character offsets. Most of the time it is more convenient to think of
these as a list of half-open `(start, end)` pairs, which is also how they
are written out in annotation files ::

    0-4,6-9

covers the characters 0, 1, 2, 3, 6, 7, 8. A tag with no offsets at all
(a non-consuming tag) is written with the sentinel pair `-1--1`.

Offsets count code points of the (Python) primary text. Annotation files
count UTF-16 code units instead, so a character outside of the Basic
Multilingual Plane (eg. an emoji) takes up two offsets on disk;
`utf16_to_pairs` and `pairs_to_utf16` convert between the two.
"""

from bisect import bisect_left, bisect_right
import re

NO_SPAN = (-1, -1)
SPAN_SEPARATOR = ','
SPAN_DELIMITER = '-'

# older files used a tilde between the start and end of a pair
_PAIR_RE = re.compile(r'^\s*(-?\d+)\s*[-~]\s*(-?\d+)\s*$')


class SpanFormatError(ValueError):
    """
    Offsets or span strings that do not describe a valid set of
    character positions
    """
    def __init__(self, *args, **kw):
        ValueError.__init__(self, *args, **kw)


def normalize_offsets(offsets):
    """
    Return the offsets as a sorted, duplicate-free list.

    :raises SpanFormatError: on negative or non-integer offsets
    """
    cleaned = set()
    for offset in offsets:
        if isinstance(offset, bool) or not isinstance(offset, int):
            raise SpanFormatError("not a character offset: %r" % (offset,))
        if offset < 0:
            raise SpanFormatError("negative character offset: %d" % offset)
        cleaned.add(offset)
    return sorted(cleaned)


def offsets_to_pairs(offsets):
    """
    Minimal ordered list of half-open `(start, end)` pairs covering
    exactly the given offsets. Runs of adjacent offsets are merged.
    """
    pairs = []
    for offset in normalize_offsets(offsets):
        if pairs and pairs[-1][1] == offset:
            pairs[-1] = (pairs[-1][0], offset + 1)
        else:
            pairs.append((offset, offset + 1))
    return pairs


def pairs_to_offsets(pairs):
    """
    Flat sorted list of the offsets covered by the given pairs.
    The "no span" pair contributes nothing.
    """
    offsets = set()
    for start, end in pairs:
        if (start, end) == NO_SPAN:
            continue
        if start < 0 or end < start:
            raise SpanFormatError("invalid span (%d, %d)" % (start, end))
        offsets.update(range(start, end))
    return sorted(offsets)


def merge_pairs(pairs):
    """
    Minimal pair list for a possibly overlapping or unsorted pair list
    """
    return offsets_to_pairs(pairs_to_offsets(pairs))


def pairs_to_string(pairs):
    """
    Canonical textual notation for a list of pairs, eg. `0-4,6-9`.
    An empty list is rendered as the "no span" sentinel.
    """
    pairs = [p for p in pairs if tuple(p) != NO_SPAN]
    if not pairs:
        pairs = [NO_SPAN]
    return SPAN_SEPARATOR.join('%d%s%d' % (start, SPAN_DELIMITER, end)
                               for start, end in pairs)


def offsets_to_string(offsets):
    """
    Canonical textual notation for a set of offsets
    """
    return pairs_to_string(offsets_to_pairs(offsets))


def string_to_pairs(text):
    """
    Read the textual span notation back into a minimal pair list.
    The "no span" sentinel (and the empty string) give the empty list.

    :raises SpanFormatError: if the string is not in span notation
    """
    if text is None or not text.strip():
        return []
    pairs = []
    for chunk in text.split(SPAN_SEPARATOR):
        match = _PAIR_RE.match(chunk)
        if match is None:
            raise SpanFormatError("malformed span: %r" % chunk)
        pairs.append((int(match.group(1)), int(match.group(2))))
    return merge_pairs(pairs)


def string_to_offsets(text):
    """
    Read the textual span notation into a flat list of offsets
    """
    return pairs_to_offsets(string_to_pairs(text))


def range_offsets(start, end):
    """
    Offsets for the legacy start/end form of a span, where
    `(-1, -1)` stands for a tag without any span
    """
    return pairs_to_offsets([(start, end)])


def pairs_text(text, pairs, joiner):
    """
    Slice the text for each pair and join the pieces
    """
    return joiner.join(text[start:end] for start, end in pairs)


def _is_bmp(text):
    return len(text.encode('utf-16-le')) == 2 * len(text)


def _utf16_bounds(text):
    """
    UTF-16 position of every code point boundary in the text
    """
    bounds = [0]
    for char in text:
        bounds.append(bounds[-1] + (2 if ord(char) > 0xFFFF else 1))
    return bounds


def utf16_to_pairs(text, pairs):
    """
    Pairs of UTF-16 offsets into the text as pairs of code point
    offsets. A pair that cuts a surrogate pair in half is widened to
    the whole character. Positions past the end of the text stay past
    the end (by the same amount).
    """
    if _is_bmp(text):
        return list(pairs)
    bounds = _utf16_bounds(text)
    overshoot = len(text) - bounds[-1]

    def start_of(pos):
        if pos > bounds[-1]:
            return pos + overshoot
        return bisect_right(bounds, pos) - 1

    def end_of(pos):
        if pos > bounds[-1]:
            return pos + overshoot
        return bisect_left(bounds, pos)

    return [(start_of(start), end_of(end)) for start, end in pairs]


def pairs_to_utf16(text, pairs):
    """
    Pairs of code point offsets into the text as pairs of UTF-16
    offsets
    """
    if _is_bmp(text):
        return list(pairs)
    bounds = _utf16_bounds(text)

    def convert(pos):
        if pos >= len(bounds):
            return bounds[-1] + pos - len(text)
        return bounds[pos]

    return [(convert(start), convert(end)) for start, end in pairs]
