# Author: Eric Kow
# License: BSD3

"""
The standoff XML annotation format.

An annotation file looks like this ::

    <?xml version="1.0" encoding="UTF-8" ?>
    <NameOfTask>
    <TEXT><![CDATA[John loves Mary]]></TEXT>
    <TAGS>
    <PERSON id="P0" spans="0-4" text="John" role="subject" />
    <PERSON id="P1" spans="11-15" text="Mary" role="object" />
    <LOVES id="L0" fromID="P0" fromText="John" toID="P1" toText="Mary" />
    </TAGS>
    </NameOfTask>

Reading a file gives a :py:class:`ParseResult`, a flat list of parsed
tag, attribute and argument records (checked against a
:py:class:`standoff.annotation.TaskSchema`). Problems with the content
(unknown tags, unknown attributes, values outside of the allowed set)
are not fatal; they are collected as warnings in the result. Problems
with the structure of the file are raised as :py:class:`TagXmlException`.

You're likely most interested in `read_annotation_file` and
`write_annotation_file`
"""

from collections import namedtuple
import io
import xml.etree.ElementTree as ET

from .ids import tid_sort_key
from .annotation import ExtentTag, LinkTag
from .spans import (SpanFormatError,
                    offsets_to_pairs, pairs_to_offsets, pairs_to_string,
                    pairs_to_utf16, pairs_text, range_offsets,
                    string_to_offsets, utf16_to_pairs)

# link tag attribute suffixes for argument slots, eg. fromID, fromText
ARG_ID_SUFFIX = 'ID'
ARG_TEXT_SUFFIX = 'Text'

# text of a tag with more than one span
SPAN_TEXT_JOINER = ' ... '

TEXT_ELEMENT = 'TEXT'
TAGS_ELEMENT = 'TAGS'

XML_DECL = '<?xml version="1.0" encoding="UTF-8" ?>'

# extent tag attributes which are not tag attributes proper (these are
# matched regardless of case)
_EXTENT_RESERVED = frozenset(['id', 'spans', 'start', 'end', 'text'])

_WARNING_SEPARATOR = '\n\n'


# ---------------------------------------------------------------------
# parsed records
# ---------------------------------------------------------------------

ParsedTag = namedtuple('ParsedTag', 'tid tag_type is_link spans text')
"""
One tag read from a file

:param tag_type: name of the tag type
:param spans: character offsets (always empty for link tags)
"""

ParsedAtt = namedtuple('ParsedAtt', 'tid tag_type name value')

ParsedArg = namedtuple('ParsedArg', 'tid tag_type name arg_tid')
"""
One filled argument slot of a link tag: `arg_tid` is the id of the
extent tag it points to
"""


class TagXmlException(Exception):
    """
    The file could not be read at all
    """
    def __init__(self, *args, **kw):
        Exception.__init__(self, *args, **kw)


class ParseResult(object):
    """
    Everything we could read from one annotation file
    """
    def __init__(self, task_name=None, primary_text=None):
        self.task_name = task_name
        self.primary_text = primary_text
        self.tags = []
        self.atts = []
        self.args = []
        self.warnings = []
        self._att_index = None
        self._arg_index = None

    def warn(self, message):
        self.warnings.append(message)

    def has_warnings(self):
        return bool(self.warnings)

    def warnings_report(self):
        """
        All warnings as one human readable string (empty if there were
        none)
        """
        return _WARNING_SEPARATOR.join(self.warnings)

    def tags_of_type(self, tag_type):
        "parsed tags with the given type name, in document order"
        return [t for t in self.tags if t.tag_type == tag_type]

    def attributes_of(self, tid):
        "attribute name to value for the given tag"
        self._att_index = _by_tid(self.atts, self._att_index)
        return dict(self._att_index[1].get(tid, {}))

    def arguments_of(self, tid):
        "argument name to target id for the given tag"
        self._arg_index = _by_tid(self.args, self._arg_index)
        return dict(self._arg_index[1].get(tid, {}))


def _by_tid(records, index):
    """
    (record count, tid to name to value) for parsed attribute or
    argument records; the given index is reused unless records were
    added since it was built
    """
    if index is not None and index[0] == len(records):
        return index
    by_tid = {}
    for record in records:
        by_tid.setdefault(record.tid, {})[record.name] = record[-1]
    return (len(records), by_tid)


# ---------------------------------------------------------------------
# reading
# ---------------------------------------------------------------------

def _is_named(elem, name):
    return elem.tag.lower() == name.lower()


def _check_root(root):
    if root.attrib or _is_named(root, TEXT_ELEMENT):
        raise TagXmlException("Root node should be the task name, "
                              "found: <%s>" % root.tag)


def _reserved(elem):
    "lowercased reserved attribute name to value"
    return dict((name.lower(), value) for name, value in elem.attrib.items()
                if name.lower() in _EXTENT_RESERVED)


def _read_offsets(elem):
    """
    Character offsets (in UTF-16 code units) for an extent tag element,
    from its `spans` attribute or else its legacy `start` and `end`
    attributes
    """
    reserved = _reserved(elem)
    if 'spans' in reserved:
        return string_to_offsets(reserved['spans'])
    elif 'start' in reserved and 'end' in reserved:
        return range_offsets(int(reserved['start']), int(reserved['end']))
    else:
        return []


def _read_attribute(result, tid, tag_type, name, value):
    att_type = tag_type.attribute_type(name)
    if att_type is None:
        result.warn('unexpected attribute type found: "%s" of %s\n'
                    'Ignored.' % (name, tag_type.name))
        return
    if value and not att_type.is_valid_value(value):
        result.warn('"%s" is not a valid value for "%s", '
                    'valid values are %s\n'
                    'Set to its default value.' %
                    (value, name, list(att_type.valueset)))
        value = att_type.default_value
    result.atts.append(ParsedAtt(tid, tag_type.name, name, value))


def _read_extent(result, elem, tag_type, tid):
    try:
        offsets = _read_offsets(elem)
    except (SpanFormatError, ValueError) as err:
        raise TagXmlException("bad span for tag %s: %s" % (tid, err))
    if not offsets and not tag_type.non_consuming:
        result.warn('tag without span found: "%s" of %s, which is not '
                    'a non-consuming tag type' % (tid, tag_type.name))
    result.tags.append(ParsedTag(tid, tag_type.name, False, offsets, ''))
    for name, value in elem.attrib.items():
        if name.lower() not in _EXTENT_RESERVED:
            _read_attribute(result, tid, tag_type, name, value)


def _read_link(result, elem, tag_type, tid):
    arg_names = tag_type.argument_names()
    result.tags.append(ParsedTag(tid, tag_type.name, True, [], ''))
    for name, value in elem.attrib.items():
        if name.lower() == 'id':
            continue
        elif name.endswith(ARG_ID_SUFFIX) and\
                name[:-len(ARG_ID_SUFFIX)] in arg_names:
            if value:
                result.args.append(ParsedArg(tid, tag_type.name,
                                             name[:-len(ARG_ID_SUFFIX)],
                                             value))
        elif name.endswith(ARG_TEXT_SUFFIX) and\
                name[:-len(ARG_TEXT_SUFFIX)] in arg_names:
            # derived from the target tag, so not worth reading
            continue
        else:
            _read_attribute(result, tid, tag_type, name, value)


def _read_tag(result, elem, schema):
    tag_type = schema.tag_type(elem.tag)
    if tag_type is None:
        result.warn('unexpected tag type found: "%s"\nIgnored.' % elem.tag)
        return
    tid = _reserved(elem).get('id')
    if not tid:
        result.warn('tag without id found: "%s"\nIgnored.' % elem.tag)
        return
    if tag_type.is_link:
        _read_link(result, elem, tag_type, tid)
    else:
        _read_extent(result, elem, tag_type, tid)


def _fill_tag_text(result):
    """
    Extent tag text is always taken from the primary text rather than
    the file. Offsets are converted from UTF-16 code units to code
    points along the way.
    """
    text = result.primary_text
    filled = []
    for tag in result.tags:
        if not tag.is_link and tag.spans:
            pairs = utf16_to_pairs(text, offsets_to_pairs(tag.spans))
            if pairs[-1][1] > len(text):
                raise TagXmlException(
                    "span of tag %s runs past the end of the text "
                    "(%d > %d)" % (tag.tid, pairs[-1][1], len(text)))
            tag = tag._replace(spans=pairs_to_offsets(pairs),
                               text=pairs_text(text, pairs,
                                               SPAN_TEXT_JOINER))
        filled.append(tag)
    result.tags = filled


def read_annotation(stream, schema):
    """
    Read an annotation file (path or binary file object) against the
    given task schema.

    :rtype: ParseResult
    :raises TagXmlException: if the file is not well-formed XML, has
        a root element with attributes, or has no text element
    """
    result = ParseResult()
    depth = 0
    seen_text = False
    try:
        for event, elem in ET.iterparse(stream, events=('start', 'end')):
            if event == 'start':
                depth += 1
                if depth == 1:
                    _check_root(elem)
                    result.task_name = elem.tag
                continue
            depth -= 1
            if depth == 1 and _is_named(elem, TEXT_ELEMENT):
                result.primary_text = elem.text or ''
                seen_text = True
                elem.clear()
            elif depth == 1 and _is_named(elem, TAGS_ELEMENT):
                elem.clear()
            elif depth in (1, 2) and len(elem) == 0 and\
                    not _is_named(elem, TEXT_ELEMENT):
                _read_tag(result, elem, schema)
    except ET.ParseError as err:
        raise TagXmlException("not a readable annotation file: %s" % err)
    except UnicodeDecodeError as err:
        raise TagXmlException("annotation file is not UTF-8: %s" % err)
    if not seen_text:
        raise TagXmlException("no %s element found in the annotation "
                              "file" % TEXT_ELEMENT)
    _fill_tag_text(result)
    return result


def read_annotation_file(filename, schema):
    """
    Read a single annotation file
    """
    with open(filename, 'rb') as stream:
        return read_annotation(stream, schema)


def read_annotation_string(text, schema):
    """
    Read annotations from an (already decoded) string
    """
    return read_annotation(io.BytesIO(text.encode('utf-8')), schema)


def read_preamble(stream):
    """
    Read only the task name and the primary text of an annotation
    file, stopping as soon as the text has been read.

    :rtype: (string, string)
    """
    task_name = None
    depth = 0
    try:
        for event, elem in ET.iterparse(stream, events=('start', 'end')):
            if event == 'start':
                depth += 1
                if depth == 1:
                    _check_root(elem)
                    task_name = elem.tag
                continue
            depth -= 1
            if depth == 1 and _is_named(elem, TEXT_ELEMENT):
                return task_name, elem.text or ''
    except ET.ParseError as err:
        raise TagXmlException("not a readable annotation file: %s" % err)
    except UnicodeDecodeError as err:
        raise TagXmlException("annotation file is not UTF-8: %s" % err)
    raise TagXmlException("no %s element found in the annotation "
                          "file" % TEXT_ELEMENT)


def read_preamble_file(filename):
    with open(filename, 'rb') as stream:
        return read_preamble(stream)


def is_task_name_matching(filename, task_name):
    """
    True if the annotation file was made for the given task
    """
    return read_preamble_file(filename)[0] == task_name


def is_primary_text_matching(filename, primary_text):
    """
    True if the annotation file annotates exactly the given text
    """
    return read_preamble_file(filename)[1] == primary_text


# ---------------------------------------------------------------------
# writing
# ---------------------------------------------------------------------

class TagXmlOutputSettings(object):
    """
    Non-essential aspects of XML output, such as the order that
    attributes are written out in. Attributes not mentioned are
    written in the order the task declares them. Controlling this
    could be useful when you want to automatically modify an existing
    document, but produce only minimal textual diffs along the way.
    """
    def __init__(self, attribute_order):
        self.attribute_order = attribute_order


DEFAULT_OUTPUT_SETTINGS = TagXmlOutputSettings([])


def ordered_keys(preferred, d):
    """
    Keys from a dictionary starting with 'preferred' ones
    in the order of preference
    """
    return ([k for k in preferred if k in d] +
            [k for k in d if k not in preferred])


def tag_to_xml(tag, settings=DEFAULT_OUTPUT_SETTINGS, primary_text=None):
    """
    One self-closing element for the tag. Extent tags carry their
    spans and text, link tags carry an id/text pair for each filled
    argument. Tag attributes come last.

    If the primary text is given, spans are written in UTF-16 code
    units (as annotation files expect) rather than code points.
    """
    tag_type = tag.tag_type
    elm = ET.Element(tag_type.name)
    elm.set('id', tag.tid)
    if isinstance(tag, ExtentTag):
        pairs = offsets_to_pairs(tag.spans)
        if primary_text is not None:
            pairs = pairs_to_utf16(primary_text, pairs)
        elm.set('spans', pairs_to_string(pairs))
        elm.set('text', tag.text or '')
    elif isinstance(tag, LinkTag):
        for name in ordered_keys(tag_type.argument_names(), tag.arguments):
            argument = tag.arguments[name]
            elm.set(name + ARG_ID_SUFFIX, argument.target)
            elm.set(name + ARG_TEXT_SUFFIX, argument.target_text or '')
    else:
        raise ValueError("Don't know how to emit XML for non extent/link "
                         "tags (%r)" % tag)
    preferred = settings.attribute_order + tag_type.attribute_names()
    for name in ordered_keys(preferred, tag.attributes):
        elm.set(name, tag.attributes[name])
    return elm


def _cdata(text):
    return '<![CDATA[%s]]>' % text.replace(']]>', ']]]]><![CDATA[>')


def _tag_order(schema, tag):
    type_names = [t.name for t in schema.tag_types]
    rank = type_names.index(tag.tag_type.name)\
        if tag.tag_type.name in type_names else len(type_names)
    return (tag.tag_type.is_link, rank, tid_sort_key(tag.tid))


def annotation_to_string(schema, primary_text, tags,
                         settings=DEFAULT_OUTPUT_SETTINGS):
    """
    The full annotation document for the given tags, as a string.

    Extent tags are written before link tags, grouped by type in the
    order the task declares them.
    """
    lines = [XML_DECL,
             '<%s>' % schema.name,
             '<%s>%s</%s>' % (TEXT_ELEMENT, _cdata(primary_text or ''),
                              TEXT_ELEMENT),
             '<%s>' % TAGS_ELEMENT]
    for tag in sorted(tags, key=lambda t: _tag_order(schema, t)):
        elem = tag_to_xml(tag, settings, primary_text=primary_text or '')
        lines.append(ET.tostring(elem, encoding='unicode'))
    lines.append('</%s>' % TAGS_ELEMENT)
    lines.append('</%s>' % schema.name)
    return '\n'.join(lines) + '\n'


def write_annotation_file(filename, schema, primary_text, tags,
                          settings=DEFAULT_OUTPUT_SETTINGS):
    """
    Write the tags and primary text to the given path
    """
    with open(filename, 'w', encoding='utf-8', newline='') as fout:
        fout.write(annotation_to_string(schema, primary_text, tags,
                                        settings=settings))
