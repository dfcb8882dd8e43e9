# Author: Eric Kow
# License: BSD3

"""
Annotation task definitions, written as (a restricted form of) DTD ::

    <!ENTITY name "NameOfTask">

    <!ELEMENT PERSON ( #PCDATA ) >
    <!ATTLIST PERSON id ID prefix="P" #REQUIRED >
    <!ATTLIST PERSON role ( subject | object ) #REQUIRED "subject" >

    <!ELEMENT LOVES EMPTY >
    <!ATTLIST LOVES id ID prefix="L" #REQUIRED >
    <!ATTLIST LOVES arg0 IDREF prefix="from" #REQUIRED >
    <!ATTLIST LOVES arg1 IDREF prefix="to" #IMPLIED >

Elements with character content are extent tag types, empty elements
are link tag types. On a link tag, an `IDREF` attribute is an argument
slot, named after its prefix. On an extent tag, `spans #IMPLIED` makes
the tag type non-consuming.
"""

import re

from .annotation import ArgumentType, AttributeType, TagType, TaskSchema

_COMMENT_RE = re.compile(r'<!--.*?-->', re.DOTALL)
_ENTITY_RE = re.compile(r'<!ENTITY\s+name\s+"([^"]*)"\s*>')
_ELEMENT_RE = re.compile(r'<!ELEMENT\s+(\S+)\s+(.*?)>', re.DOTALL)
_ATTLIST_RE = re.compile(r'<!ATTLIST\s+(\S+)\s+(\S+)\s*(.*?)>', re.DOTALL)
_VALUESET_RE = re.compile(r'^\(([^)]*)\)')
_PREFIX_RE = re.compile(r'prefix\s*=\s*"([^"]*)"')
_DEFAULT_RE = re.compile(r'"([^"]*)"\s*$')

# extent tag attributes that describe the tag, not its content
_SPAN_ATTRIBUTES = ('spans', 'start')
_IGNORED_ATTRIBUTES = ('end', 'text')


class DtdException(Exception):
    """
    The task definition could not be read
    """
    def __init__(self, *args, **kw):
        Exception.__init__(self, *args, **kw)


def _read_attlist(tag_type, name, body):
    """
    Update the tag type with a single attribute declaration
    """
    prefix_match = _PREFIX_RE.search(body)
    prefix = prefix_match.group(1) if prefix_match else None
    rest = _PREFIX_RE.sub('', body).strip()
    required = '#REQUIRED' in rest
    valueset_match = _VALUESET_RE.match(rest)
    valueset = None
    if valueset_match:
        valueset = [v.strip() for v in valueset_match.group(1).split('|')
                    if v.strip()]
        rest = rest[valueset_match.end():]
    default_match = _DEFAULT_RE.search(rest)
    default_value = default_match.group(1) if default_match else ''
    words = rest.split()
    att_kind = words[0] if words else 'CDATA'

    if name == 'id' and att_kind == 'ID':
        if prefix:
            tag_type.prefix = prefix
    elif not tag_type.is_link and name in _SPAN_ATTRIBUTES:
        tag_type.non_consuming = not required
    elif not tag_type.is_link and name in _IGNORED_ATTRIBUTES:
        pass
    elif tag_type.is_link and att_kind == 'IDREF':
        tag_type.argument_types.append(
            ArgumentType(tag_type.name, prefix or name, required=required))
    else:
        tag_type.attribute_types.append(
            AttributeType(tag_type.name, name,
                          valueset=valueset,
                          default_value=default_value,
                          required=required,
                          id_ref=(att_kind == 'IDREF')))


def _drop_argument_texts(tag_type):
    """
    `<argument>Text` attributes of a link are derived from the
    argument, not set by annotators
    """
    derived = set(x.name + 'Text' for x in tag_type.argument_types)
    tag_type.attribute_types = [x for x in tag_type.attribute_types
                                if x.name not in derived]


def read_dtd(text):
    """
    Read a task definition from a string

    :rtype: TaskSchema
    :raises DtdException: if the task has no name, or if attributes are
        declared for unknown elements
    """
    text = _COMMENT_RE.sub('', text)
    entity = _ENTITY_RE.search(text)
    if entity is None:
        raise DtdException('task name not found, expected '
                           '<!ENTITY name "...">')
    tag_types = []
    by_name = {}
    for match in _ELEMENT_RE.finditer(text):
        name, content = match.group(1), match.group(2)
        if name in by_name:
            raise DtdException('element declared twice: %s' % name)
        if '#PCDATA' in content:
            is_link = False
        elif 'EMPTY' in content:
            is_link = True
        else:
            raise DtdException('element %s should be either ( #PCDATA ) '
                               'or EMPTY' % name)
        tag_type = TagType(name, is_link=is_link)
        tag_types.append(tag_type)
        by_name[name] = tag_type
    for match in _ATTLIST_RE.finditer(text):
        element, name, body = match.groups()
        if element not in by_name:
            raise DtdException('attributes declared for unknown element '
                               '%s' % element)
        _read_attlist(by_name[element], name, body)
    for tag_type in tag_types:
        if tag_type.is_link:
            _drop_argument_texts(tag_type)
    return TaskSchema(entity.group(1), tag_types)


def read_dtd_file(filename):
    """
    Read a task definition from a DTD file
    """
    with open(filename, encoding='utf-8') as stream:
        return read_dtd(stream.read())
